"""
Observed-data ingestion and tabular export.

Input files are delimited text (commas and/or whitespace) with one sample per
row. Columns are selected by zero-based index; only the time column is
mandatory. Exports are written with pandas.
"""

import io
import re
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .config import Config, DEFAULT_CONFIG
from .derivative import bourdet_derivative
from .parameters import FitParameter
from .reservoir import ModelCurve


PathLike = Union[str, Path]

_DELIMITER = re.compile(r'[,\s]+')


@dataclass
class ObservedData:
    """
    Measured pressure-transient data.

    Attributes
    ----------
    time : np.ndarray
        Strictly positive, strictly increasing times [h]
    pressure : np.ndarray
        Pressure change [MPa], same length as ``time``
    derivative : np.ndarray
        Pressure derivative [MPa]; may be shorter than ``time`` when
        read from a file with missing entries
    """
    time: np.ndarray
    pressure: np.ndarray
    derivative: np.ndarray

    def __post_init__(self):
        self.time = np.asarray(self.time, dtype=float)
        self.pressure = np.asarray(self.pressure, dtype=float)
        self.derivative = np.asarray(self.derivative, dtype=float)

        if self.time.ndim != 1 or self.pressure.shape != self.time.shape:
            raise ValueError(
                f"time and pressure must be 1-D with equal length, "
                f"got {self.time.shape} and {self.pressure.shape}"
            )
        if self.derivative.ndim != 1 or len(self.derivative) > len(self.time):
            raise ValueError("derivative must be 1-D and no longer than time")
        if np.any(self.time <= 0):
            raise ValueError("time must be strictly positive")
        if np.any(np.diff(self.time) <= 0):
            raise ValueError("time must be strictly increasing")

    def __len__(self) -> int:
        return len(self.time)

    @classmethod
    def from_arrays(
        cls,
        time: Sequence[float],
        pressure: Sequence[float],
        derivative: Optional[Sequence[float]] = None,
        config: Optional[Config] = None,
    ) -> 'ObservedData':
        """
        Build observed data, dropping samples with non-positive time.

        When ``derivative`` is None it is computed with the Bourdet method
        (window config.DATA_BOURDET_WINDOW). A derivative as long as
        ``time`` is filtered with it; a shorter one is taken as aligned to
        the kept samples and is only accepted when nothing is dropped.

        Raises
        ------
        ValueError
            If samples are dropped and ``derivative`` is not as long as
            ``time``.
        """
        if config is None:
            config = DEFAULT_CONFIG

        t = np.asarray(time, dtype=float)
        p = np.asarray(pressure, dtype=float)
        keep = np.isfinite(t) & (t > 0)
        n_dropped = int(np.count_nonzero(~keep))
        if n_dropped:
            warnings.warn(f"Dropped {n_dropped} samples with non-positive time.", RuntimeWarning)
        t, p = t[keep], p[keep]

        if derivative is None:
            d = bourdet_derivative(t, p, config.DATA_BOURDET_WINDOW)
        else:
            d = np.asarray(derivative, dtype=float)
            if len(d) == len(keep):
                d = d[keep]
            elif n_dropped:
                raise ValueError(
                    f"derivative has {len(d)} samples for {len(keep)} times; it cannot be "
                    f"aligned after dropping {n_dropped} samples"
                )
        return cls(t, p, d)

    def to_frame(self) -> pd.DataFrame:
        d = np.zeros_like(self.time)
        d[:len(self.derivative)] = self.derivative
        return pd.DataFrame({'t': self.time, 'Dp': self.pressure, 'dDp': d})


# =============================================================================
# Ingestion
# =============================================================================

def read_table(path: PathLike, skip_rows: int = 0) -> pd.DataFrame:
    """
    Read a comma/whitespace delimited file into an all-numeric DataFrame.

    Blank lines are ignored, then the first ``skip_rows`` lines are
    skipped. Cells that do not parse as numbers become NaN.
    """
    with open(path, 'r', encoding='utf-8-sig') as fh:
        lines = [line.strip() for line in fh]
    lines = [line for line in lines if line][skip_rows:]
    if not lines:
        return pd.DataFrame()

    n_cols = max(len(_DELIMITER.split(line)) for line in lines)
    frame = pd.read_csv(
        io.StringIO('\n'.join(lines)),
        sep=_DELIMITER.pattern,
        engine='python',
        header=None,
        names=list(range(n_cols)),
    )
    return frame.apply(pd.to_numeric, errors='coerce')


def load_observed_data(
    path: PathLike,
    time_col: int = 0,
    pressure_col: Optional[int] = 1,
    derivative_col: Optional[int] = None,
    skip_rows: int = 0,
    raw_pressure: bool = False,
    config: Optional[Config] = None,
) -> ObservedData:
    """
    Load observed well-test data from a delimited text file.

    Parameters
    ----------
    path : str or Path
        Input file
    time_col : int, optional
        Column index of time [h] (required)
    pressure_col : int or None, optional
        Column index of pressure; None gives zero pressure
    derivative_col : int or None, optional
        Column index of the pressure derivative; None computes a Bourdet
        derivative with window config.DATA_BOURDET_WINDOW
    skip_rows : int, optional
        Number of leading non-blank rows to ignore (e.g. headers)
    raw_pressure : bool, optional
        If True the pressure column holds raw pressure P and the pressure
        change |P - P_initial| is used, with P_initial taken from the first
        non-skipped row
    config : Config, optional
        Configuration object

    Returns
    -------
    ObservedData

    Raises
    ------
    ValueError
        If a column index is out of range, ``skip_rows`` is negative or no
        sample with positive time remains.
    """
    if config is None:
        config = DEFAULT_CONFIG
    if skip_rows < 0:
        raise ValueError(f"skip_rows ({skip_rows}) must be >= 0")

    frame = read_table(path, skip_rows)
    n_cols = frame.shape[1]
    for name, col in (('time_col', time_col), ('pressure_col', pressure_col), ('derivative_col', derivative_col)):
        if col is not None and not 0 <= col < n_cols:
            raise ValueError(f"{name} ({col}) is out of range for a file with {n_cols} columns")

    t = frame[time_col].to_numpy(dtype=float)

    if pressure_col is None:
        p = np.zeros_like(t)
    else:
        p = frame[pressure_col].to_numpy(dtype=float)
        if raw_pressure and len(p) > 0:
            p_initial = p[0] if np.isfinite(p[0]) else 0.0
            p = np.abs(p - p_initial)
        p = np.nan_to_num(p, nan=0.0)

    keep = np.isfinite(t) & (t > 0)
    if not np.any(keep):
        raise ValueError(f"No samples with positive time in {path}")
    n_dropped = int(np.count_nonzero(~keep))
    if n_dropped:
        warnings.warn(f"Dropped {n_dropped} rows with non-positive or missing time.", RuntimeWarning)

    if derivative_col is None:
        d = None
    else:
        d = np.nan_to_num(frame[derivative_col].to_numpy(dtype=float)[keep], nan=0.0)

    t, p = t[keep], p[keep]
    if d is None:
        d = bourdet_derivative(t, p, config.DATA_BOURDET_WINDOW)
    return ObservedData(t, p, d)


# =============================================================================
# Export
# =============================================================================

def parameter_table(parameters: Iterable[FitParameter]) -> pd.DataFrame:
    """
    Presentation table of parameters: name, symbol, value, unit.

    Values are formatted with 10 significant digits.
    """
    rows = [
        {
            'name': p.display_name,
            'symbol': p.symbol,
            'value': f"{p.value:.10g}",
            'unit': p.unit,
        }
        for p in parameters
    ]
    return pd.DataFrame(rows, columns=['name', 'symbol', 'value', 'unit'])


def export_parameter_table(parameters: Iterable[FitParameter], path: PathLike) -> Path:
    """
    Write the parameter table to ``path``.

    A ``.csv`` suffix writes UTF-8 CSV with a byte-order mark and the header
    ``name,symbol,value,unit``; any other suffix writes one
    ``name (symbol): value unit`` line per parameter.
    """
    path = Path(path)
    table = parameter_table(parameters)
    if path.suffix.lower() == '.csv':
        table.to_csv(path, index=False, encoding='utf-8-sig')
    else:
        lines = [
            f"{row.name} ({row.symbol}): {row.value} {row.unit}".strip()
            for row in table.itertuples(index=False)
        ]
        path.write_text('\n'.join(lines) + '\n', encoding='utf-8')
    return path


def export_curve(curve: ModelCurve, path: PathLike) -> Path:
    """Write a model curve as CSV with columns t, Dp, dDp."""
    path = Path(path)
    frame = pd.DataFrame({'t': curve.time, 'Dp': curve.pressure, 'dDp': curve.derivative})
    frame.to_csv(path, index=False)
    return path
