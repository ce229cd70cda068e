"""
Weighted logarithmic residuals between observed and modeled curves.

    r = [ w   · (ln p_obs - ln p_model)   for the pressure channel,
          (1-w) · (ln d_obs - ln d_model) for the derivative channel ]

A slot whose observed or modeled value is not above the positivity floor
holds exactly 0, so the vector length depends only on the observed data and
the model time grid.
"""

from typing import Mapping, Optional

import numpy as np

from .config import Config, DEFAULT_CONFIG
from .data_io import ObservedData
from .models import ModelType, compute_curve
from .reservoir import ModelCurve


def check_weight(weight: float) -> float:
    """Validate a pressure/derivative weight in [0, 1]."""
    if not 0.0 <= weight <= 1.0:
        raise ValueError(f"weight ({weight}) must be within [0, 1]")
    return float(weight)


def _log_channel(observed: np.ndarray, model: np.ndarray, floor: float) -> np.ndarray:
    valid = (observed > floor) & (model > floor)
    out = np.zeros(len(observed))
    out[valid] = np.log(observed[valid]) - np.log(model[valid])
    return out


def curve_residuals(
    curve: ModelCurve,
    observed: ObservedData,
    weight: float,
    config: Optional[Config] = None,
) -> np.ndarray:
    """
    Residual vector of an already computed model curve.

    Parameters
    ----------
    curve : ModelCurve
        Model evaluated on the observed time grid
    observed : ObservedData
        Measured data
    weight : float
        Pressure-channel weight w; the derivative channel gets 1 - w
    config : Config, optional
        Configuration object

    Returns
    -------
    np.ndarray
        Pressure residuals followed by derivative residuals
    """
    if config is None:
        config = DEFAULT_CONFIG

    floor = config.RESIDUAL_FLOOR
    n_p = min(len(observed.pressure), len(curve.pressure))
    n_d = min(len(observed.derivative), len(curve.derivative), n_p)

    r_p = weight * _log_channel(observed.pressure[:n_p], curve.pressure[:n_p], floor)
    r_d = (1.0 - weight) * _log_channel(observed.derivative[:n_d], curve.derivative[:n_d], floor)
    return np.concatenate([r_p, r_d])


def compute_residuals(
    values: Mapping[str, float],
    model_type: ModelType,
    weight: float,
    observed: ObservedData,
    high_precision: bool = False,
    config: Optional[Config] = None,
) -> np.ndarray:
    """
    Evaluate the forward model on the observed grid and return its residuals.

    Parameters
    ----------
    values : mapping
        Parameter key -> value, derived parameters included
    model_type : ModelType
        Model variant
    weight : float
        Pressure-channel weight in [0, 1]
    observed : ObservedData
        Measured data
    high_precision : bool, optional
        Stehfest precision of the forward evaluation (default: fast)
    config : Config, optional
        Configuration object
    """
    curve = compute_curve(model_type, values, observed.time, high_precision, config)
    return curve_residuals(curve, observed, weight, config)


def sum_squared_error(residuals: np.ndarray) -> float:
    """SSE = Σ r²."""
    residuals = np.asarray(residuals, dtype=float)
    return float(np.dot(residuals, residuals))


def error_metric(residuals: np.ndarray) -> float:
    """Mean squared residual, 0 for an empty vector."""
    n = len(residuals)
    if n == 0:
        return 0.0
    return sum_squared_error(residuals) / n
