"""
One-parameter sensitivity analysis of the forward model.
"""

from typing import List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import Config, DEFAULT_CONFIG
from .models import ModelType, compute_curve
from .parameters import recompute_dependents
from .reservoir import ModelCurve, generate_log_time_steps


def default_time_grid(test_time: float = 1000.0, count: int = 100) -> np.ndarray:
    """
    Log-spaced times from 1e-3 h to the test duration.

    Durations not above 1e-3 h fall back to 1000 h.
    """
    if not test_time > 1e-3:
        test_time = 1000.0
    return generate_log_time_steps(count, -3.0, np.log10(test_time))


def sensitivity_curves(
    model_type: ModelType,
    values: Mapping[str, float],
    key: str,
    sweep: Sequence[float],
    times: Optional[Sequence[float]] = None,
    test_time: float = 1000.0,
    config: Optional[Config] = None,
    verbose: bool = False,
) -> List[Tuple[float, ModelCurve]]:
    """
    Evaluate the model once per value of one parameter.

    Parameters
    ----------
    model_type : ModelType
        Model variant
    values : mapping
        Base parameter key -> value
    key : str
        Parameter to vary
    sweep : sequence of float
        Values taken by ``key``
    times : array-like, optional
        Times [h]; defaults to default_time_grid(test_time)
    test_time : float, optional
        Test duration [h] used for the default grid
    config : Config, optional
        Configuration object
    verbose : bool, optional
        Print one line per evaluated value

    Returns
    -------
    list of (value, ModelCurve)
    """
    if config is None:
        config = DEFAULT_CONFIG
    if times is None:
        times = default_time_grid(test_time)

    if verbose:
        print(f"Sensitivity analysis: {key} over {len(sweep)} values")

    results = []
    for val in sweep:
        current = dict(values)
        current[key] = float(val)
        recompute_dependents(current, config)
        curve = compute_curve(model_type, current, times, True, config)
        results.append((float(val), curve))
        if verbose:
            print(f"  {key} = {val:g}: Δp(end) = {curve.pressure[-1]:.4g} MPa")
    return results


def run_sensitivity_analysis(
    model_type: ModelType,
    values: Mapping[str, float],
    key: str,
    sweep: Sequence[float],
    times: Optional[Sequence[float]] = None,
    test_time: float = 1000.0,
    config: Optional[Config] = None,
    verbose: bool = False,
) -> pd.DataFrame:
    """
    Sensitivity analysis as a long-format table.

    Returns
    -------
    pd.DataFrame
        Columns parameter, value, t, Dp, dDp; one row per (value, time).
    """
    frames = []
    for val, curve in sensitivity_curves(model_type, values, key, sweep, times, test_time, config, verbose):
        frames.append(pd.DataFrame({
            'parameter': key,
            'value': val,
            't': curve.time,
            'Dp': curve.pressure,
            'dDp': curve.derivative,
        }))
    if not frames:
        return pd.DataFrame(columns=['parameter', 'value', 't', 'Dp', 'dDp'])
    return pd.concat(frames, ignore_index=True)
