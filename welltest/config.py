"""
Centralized configuration for pressure-transient interpretation.

All numeric constants of the forward model and the fitting engine live here.
Units follow the oilfield-metric convention used by the model:
time in hours, length in m, permeability in mD, viscosity in mPa·s,
compressibility in MPa⁻¹, rate in m³/d and pressure in MPa.

Configuration Groups:
    - Forward model: unit conversion factors, Stehfest orders
    - Quadrature: adaptive Gauss tolerances
    - Derivative: Bourdet smoothing windows
    - Residuals: positivity floor
    - Levenberg-Marquardt: damping schedule, iteration caps
    - Finite differences: sensitivity step sizes
"""

from dataclasses import dataclass


@dataclass
class Config:
    """
    Centralized configuration with all constants for forward modeling and fitting.

    Attributes
    ----------
    Forward model:
        DIFFUSIVITY_FACTOR : float
            Multiplier of the dimensionless time transform (default: 14.4)
            tD = DIFFUSIVITY_FACTOR * kf * t / (phi * mu * Ct * L²)
        PRESSURE_FACTOR : float
            Multiplier of the dimensionless pressure rescale (default: 1.842e-3)
            Δp = PRESSURE_FACTOR * q * mu * B / (kf * h) * pD
        STEHFEST_N_FAST : int
            Stehfest order used while fitting (default: 4)
        STEHFEST_N_HIGH : int
            Stehfest order used for final/display curves (default: 8)
        MIN_TD : float
            Dimensionless times at or below this give a zero sample (default: 1e-12)
        FRACTURE_SPREAD : float
            Fracture centres are spread over [-FRACTURE_SPREAD, FRACTURE_SPREAD]
            in well-length units (default: 0.9)
        MIN_BESSEL_ARG : float
            Floor for the Bessel argument of the influence kernel (default: 1e-10)
        MIN_INTERFACE_DENOMINATOR : float
            Floor for the scaled interface coefficient denominator (default: 1e-100)
        MIN_LENGTH : float
            Well lengths at or below this give LfD = 0 (default: 1e-9)

    Quadrature:
        QUAD_EPS : float
            Absolute local tolerance, halved at every subdivision (default: 1e-5)
        QUAD_REL_TOL : float
            Relative tolerance of the stopping rule (default: 1e-10)
        QUAD_MAX_DEPTH : int
            Maximum recursion depth (default: 10)

    Derivative:
        MODEL_BOURDET_WINDOW : float
            Smoothing window of the model derivative in ln(t) units (default: 0.1)
        DATA_BOURDET_WINDOW : float
            Smoothing window used when observed derivative is computed (default: 0.15)

    Residuals:
        RESIDUAL_FLOOR : float
            Values at or below this are excluded from the log residual (default: 1e-10)

    Levenberg-Marquardt:
        LM_MAX_ITER : int
            Maximum outer iterations (default: 50)
        LM_MAX_TRIALS : int
            Maximum damped trial steps per outer iteration (default: 5)
        LM_LAMBDA_INIT : float
            Initial damping factor (default: 0.01)
        LM_LAMBDA_UP : float
            Damping growth after a rejected trial (default: 10.0)
        LM_LAMBDA_DOWN : float
            Damping shrink after an accepted trial (default: 0.1)
        LM_LAMBDA_MAX : float
            Damping ceiling; exceeding it without progress stops the fit (default: 1e10)
        LM_SSE_TOL : float
            Sum of squares at or below this counts as converged (default: 1e-24)

    Finite differences:
        FD_LOG_STEP : float
            Step in decades for log-parameterized parameters (default: 0.01)
        FD_LINEAR_STEP : float
            Additive step for linear parameters (default: 1e-4)
        LOG_PARAM_FLOOR : float
            Values above this are treated in log10 space (default: 1e-12)
    """

    # =========================================================================
    # Forward model
    # =========================================================================
    DIFFUSIVITY_FACTOR: float = 14.4
    PRESSURE_FACTOR: float = 1.842e-3
    STEHFEST_N_FAST: int = 4
    STEHFEST_N_HIGH: int = 8
    MIN_TD: float = 1e-12
    FRACTURE_SPREAD: float = 0.9
    MIN_BESSEL_ARG: float = 1e-10
    MIN_INTERFACE_DENOMINATOR: float = 1e-100
    MIN_LENGTH: float = 1e-9

    # =========================================================================
    # Quadrature
    # =========================================================================
    QUAD_EPS: float = 1e-5
    QUAD_REL_TOL: float = 1e-10
    QUAD_MAX_DEPTH: int = 10

    # =========================================================================
    # Derivative
    # =========================================================================
    MODEL_BOURDET_WINDOW: float = 0.1
    DATA_BOURDET_WINDOW: float = 0.15

    # =========================================================================
    # Residuals
    # =========================================================================
    RESIDUAL_FLOOR: float = 1e-10

    # =========================================================================
    # Levenberg-Marquardt
    # =========================================================================
    LM_MAX_ITER: int = 50
    LM_MAX_TRIALS: int = 5
    LM_LAMBDA_INIT: float = 0.01
    LM_LAMBDA_UP: float = 10.0
    LM_LAMBDA_DOWN: float = 0.1
    LM_LAMBDA_MAX: float = 1e10
    LM_SSE_TOL: float = 1e-24

    # =========================================================================
    # Finite differences
    # =========================================================================
    FD_LOG_STEP: float = 0.01
    FD_LINEAR_STEP: float = 1e-4
    LOG_PARAM_FLOOR: float = 1e-12

    def stehfest_order(self, high_precision: bool) -> int:
        """Stehfest order for the requested precision."""
        return self.STEHFEST_N_HIGH if high_precision else self.STEHFEST_N_FAST

    def __post_init__(self):
        """Validate configuration after initialization."""
        for name in ('STEHFEST_N_FAST', 'STEHFEST_N_HIGH'):
            n = getattr(self, name)
            if n <= 0 or n % 2 != 0:
                raise ValueError(f"{name} ({n}) must be a positive even integer.")

        if self.QUAD_EPS <= 0 or self.QUAD_REL_TOL < 0:
            raise ValueError("Quadrature tolerances must be positive.")

        if self.QUAD_MAX_DEPTH < 0:
            raise ValueError(f"QUAD_MAX_DEPTH ({self.QUAD_MAX_DEPTH}) must be >= 0.")

        if self.LM_LAMBDA_UP <= 1.0 or not (0.0 < self.LM_LAMBDA_DOWN < 1.0):
            raise ValueError(
                f"Damping schedule must grow on rejection (LM_LAMBDA_UP={self.LM_LAMBDA_UP}) "
                f"and shrink on acceptance (LM_LAMBDA_DOWN={self.LM_LAMBDA_DOWN})."
            )

        if self.LM_MAX_ITER < 0 or self.LM_MAX_TRIALS < 1:
            raise ValueError("LM_MAX_ITER must be >= 0 and LM_MAX_TRIALS >= 1.")

        if self.FD_LOG_STEP <= 0 or self.FD_LINEAR_STEP <= 0:
            raise ValueError("Finite-difference steps must be positive.")


# Default configuration instance
DEFAULT_CONFIG = Config()
