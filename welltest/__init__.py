"""
Pressure-transient well-test interpretation package.

This package provides modules for:
- config: Centralized configuration with all constants
- parameters: Fit parameters, parameter sets, derived quantities
- stehfest: Gaver-Stehfest inverse Laplace transform
- quadrature: Adaptive Gauss-Legendre integration
- linalg: Small linear solves with least-squares fallback
- derivative: Bourdet logarithmic derivative
- reservoir: Composite multi-fractured horizontal well model
- models: Model variants behind one forward-model interface
- residuals: Weighted log residuals and SSE
- jacobian: Finite-difference sensitivity matrix
- fitting: Levenberg-Marquardt fit with event stream
- worker: Background fit thread
- data_io: Observed-data ingestion, parameter/curve export
- sensitivity: One-parameter sensitivity sweeps
- plots: Log-log diagnostic plots
"""

from .config import Config, DEFAULT_CONFIG
from .parameters import FitParameter, ParameterSet, recompute_dependents
from .stehfest import stehfest_invert, stehfest_coefficients
from .derivative import bourdet_derivative
from .reservoir import ModelCurve, dimensionless_time, generate_log_time_steps
from .models import (
    ModelType,
    compute_curve,
    create_parameter_set,
    default_parameters,
    parameter_order,
)
from .data_io import (
    ObservedData,
    load_observed_data,
    export_parameter_table,
    export_curve,
)
from .residuals import compute_residuals, sum_squared_error
from .jacobian import compute_jacobian
from .fitting import (
    CancellationToken,
    FitCompleted,
    FitProgress,
    FitState,
    IterationUpdate,
    LevenbergMarquardt,
    fit,
    run_fit,
)
from .worker import FitWorker
from .sensitivity import run_sensitivity_analysis, sensitivity_curves
from . import plots

__version__ = "1.0.0"
__all__ = [
    "Config",
    "DEFAULT_CONFIG",
    "FitParameter",
    "ParameterSet",
    "recompute_dependents",
    "stehfest_invert",
    "stehfest_coefficients",
    "bourdet_derivative",
    "ModelCurve",
    "dimensionless_time",
    "generate_log_time_steps",
    "ModelType",
    "compute_curve",
    "create_parameter_set",
    "default_parameters",
    "parameter_order",
    "ObservedData",
    "load_observed_data",
    "export_parameter_table",
    "export_curve",
    "compute_residuals",
    "sum_squared_error",
    "compute_jacobian",
    "CancellationToken",
    "FitCompleted",
    "FitProgress",
    "FitState",
    "IterationUpdate",
    "LevenbergMarquardt",
    "fit",
    "run_fit",
    "FitWorker",
    "run_sensitivity_analysis",
    "sensitivity_curves",
    "plots",
]
