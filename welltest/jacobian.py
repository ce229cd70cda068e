"""
Central finite-difference Jacobian of the residual vector.

Positive parameters that span orders of magnitude are perturbed in log10
space, so column j holds ∂r/∂log10(x_j):

    J[:, j] = (r(10^(log10 x_j + h)) - r(10^(log10 x_j - h))) / 2h,  h = 0.01

Skin, fracture count and non-positive values are perturbed additively with
h = 1e-4. Derived parameters are recomputed after every perturbation.
"""

from typing import Mapping, Optional, Sequence

import numpy as np

from .config import Config, DEFAULT_CONFIG
from .data_io import ObservedData
from .models import ModelType
from .parameters import is_log_parameter, recompute_dependents
from .residuals import compute_residuals


def perturbed(
    values: Mapping[str, float],
    key: str,
    step: float,
    log_space: bool,
    config: Optional[Config] = None,
) -> dict:
    """Copy of ``values`` with one parameter shifted and dependents recomputed."""
    out = dict(values)
    if log_space:
        out[key] = 10.0 ** (np.log10(values[key]) + step)
    else:
        out[key] = values[key] + step
    return recompute_dependents(out, config)


def compute_jacobian(
    values: Mapping[str, float],
    base_residuals: np.ndarray,
    active_keys: Sequence[str],
    model_type: ModelType,
    weight: float,
    observed: ObservedData,
    config: Optional[Config] = None,
) -> np.ndarray:
    """
    Sensitivity matrix of the residuals to the active parameters.

    Parameters
    ----------
    values : mapping
        Current parameter key -> value
    base_residuals : np.ndarray
        Residuals at ``values``; fixes the expected row count
    active_keys : sequence of str
        Parameters being fitted, one column each
    model_type : ModelType
        Model variant
    weight : float
        Pressure-channel weight
    observed : ObservedData
        Measured data
    config : Config, optional
        Configuration object

    Returns
    -------
    np.ndarray
        Shape (len(base_residuals), len(active_keys)). A column whose
        perturbed residuals have a different length is left at zero.
    """
    if config is None:
        config = DEFAULT_CONFIG

    n_res = len(base_residuals)
    J = np.zeros((n_res, len(active_keys)))

    for j, key in enumerate(active_keys):
        log_space = is_log_parameter(key, values[key], config)
        h = config.FD_LOG_STEP if log_space else config.FD_LINEAR_STEP

        r_plus = compute_residuals(
            perturbed(values, key, h, log_space, config), model_type, weight, observed, config=config
        )
        r_minus = compute_residuals(
            perturbed(values, key, -h, log_space, config), model_type, weight, observed, config=config
        )
        if len(r_plus) == n_res and len(r_minus) == n_res:
            J[:, j] = (r_plus - r_minus) / (2.0 * h)

    return J
