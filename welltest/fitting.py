"""
Levenberg-Marquardt calibration of the forward model against observed data.

The fit is a stream of events:

    IterationUpdate(iteration=0)        initial parameters, fast curve
    FitProgress / IterationUpdate ...   one progress event per outer
                                        iteration, one update per accepted step
    IterationUpdate(high_precision)     committed parameters, final curve
    FitCompleted                        final parameter mapping

States: INITIALIZING -> ITERATING -> {CONVERGED | DIVERGED | CANCELLED |
MAX_ITER_REACHED} -> FINALIZING -> DONE. Every exit path, including an empty
fit-parameter list, goes through FINALIZING, where the curve is recomputed
with the high-precision inversion.

Each outer iteration builds g = Jᵀr and H = JᵀJ and tries up to
LM_MAX_TRIALS damped steps

    (H + λ diag(1 + |H_ii|)) Δ = -g

A step that lowers the SSE is committed and λ shrinks; otherwise λ grows.
The fit stops early when no step is accepted and λ exceeds LM_LAMBDA_MAX.

Cancellation is checked once per outer iteration, never inside the damped
trial search.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple, Union

import numpy as np

from .config import Config, DEFAULT_CONFIG
from .data_io import ObservedData
from .jacobian import compute_jacobian
from .linalg import solve_symmetric
from .models import ModelType, compute_curve
from .parameters import ParameterSet, is_log_parameter, recompute_dependents
from .reservoir import ModelCurve
from .residuals import check_weight, curve_residuals, error_metric, sum_squared_error


class FitState(Enum):
    INITIALIZING = 'initializing'
    ITERATING = 'iterating'
    CONVERGED = 'converged'
    DIVERGED = 'diverged'
    CANCELLED = 'cancelled'
    MAX_ITER_REACHED = 'max_iter_reached'
    FINALIZING = 'finalizing'
    DONE = 'done'


class CancellationToken:
    """Cooperative cancellation flag shared between threads."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


# =============================================================================
# Events
# =============================================================================

@dataclass
class FitProgress:
    """Start of an outer iteration."""
    iteration: int
    fraction: float


@dataclass
class IterationUpdate:
    """
    Committed state after initialization, an accepted step or finalization.

    Attributes
    ----------
    iteration : int
        Outer iteration that produced this state (0 for the initial state)
    error : float
        SSE divided by the residual count
    parameters : dict
        Committed key -> value mapping, derived parameters included
    curve : ModelCurve
        Model evaluated on the observed time grid
    high_precision : bool
        Whether ``curve`` used the high-precision inversion
    """
    iteration: int
    error: float
    parameters: Dict[str, float]
    curve: ModelCurve
    high_precision: bool = False


@dataclass
class FitCompleted:
    """Terminal event; carries the same result for every way a fit can end."""
    parameters: Dict[str, float]
    error: float
    iterations: int


FitEvent = Union[FitProgress, IterationUpdate, FitCompleted]


@dataclass
class OptimizationState:
    """Mutable state of one fit run."""
    values: Dict[str, float]
    residuals: np.ndarray = field(default_factory=lambda: np.zeros(0))
    sse: float = np.inf
    damping: float = 0.0
    iteration: int = 0
    accepted_steps: int = 0
    status: FitState = FitState.INITIALIZING

    @property
    def error(self) -> float:
        return error_metric(self.residuals)


# =============================================================================
# Optimizer
# =============================================================================

class LevenbergMarquardt:
    """
    One Levenberg-Marquardt fit run.

    All inputs are copied at construction; later edits to the caller's
    parameter set or data are never seen by the run.

    Parameters
    ----------
    model_type : ModelType
        Model variant
    parameters : ParameterSet
        Initial values, bounds and fit flags
    observed : ObservedData
        Measured data
    weight : float, optional
        Pressure-channel weight in [0, 1] (default: 0.5)
    token : CancellationToken, optional
        Cooperative cancellation
    config : Config, optional
        Configuration object
    """

    def __init__(
        self,
        model_type: ModelType,
        parameters: ParameterSet,
        observed: ObservedData,
        weight: float = 0.5,
        token: Optional[CancellationToken] = None,
        config: Optional[Config] = None,
    ):
        if config is None:
            config = DEFAULT_CONFIG

        self.model_type = model_type
        self.weight = check_weight(weight)
        self.observed = ObservedData(
            observed.time.copy(), observed.pressure.copy(), observed.derivative.copy()
        )
        self.token = token if token is not None else CancellationToken()
        self.config = config

        self.fit_keys: List[str] = parameters.fit_keys()
        self.bounds: Dict[str, Tuple[float, float]] = parameters.bounds()
        self.state = OptimizationState(values=parameters.values())
        self.exit_status: Optional[FitState] = None

    # ------------------------------------------------------------------
    def _curve(self, values: Dict[str, float], high_precision: bool) -> ModelCurve:
        return compute_curve(self.model_type, values, self.observed.time, high_precision, self.config)

    def _evaluate(self, values: Dict[str, float]) -> Tuple[ModelCurve, np.ndarray, float]:
        curve = self._curve(values, high_precision=False)
        residuals = curve_residuals(curve, self.observed, self.weight, self.config)
        return curve, residuals, sum_squared_error(residuals)

    def apply_step(self, values: Dict[str, float], delta: np.ndarray) -> Dict[str, float]:
        """
        Trial parameters after a step Δ over the fitted keys.

        Log parameters move multiplicatively, the rest additively; every
        value is clamped to its bounds before dependents are recomputed.
        """
        trial = dict(values)
        for key, step in zip(self.fit_keys, delta):
            old = values[key]
            if is_log_parameter(key, old, self.config):
                with np.errstate(over='ignore'):
                    new = float(np.power(10.0, np.log10(old) + step))
            else:
                new = old + step
            lower, upper = self.bounds[key]
            trial[key] = float(min(max(new, lower), upper))
        return recompute_dependents(trial, self.config)

    def _update(self, high_precision: bool = False, curve: Optional[ModelCurve] = None) -> IterationUpdate:
        state = self.state
        if curve is None:
            curve = self._curve(state.values, high_precision)
        return IterationUpdate(
            iteration=state.iteration,
            error=state.error,
            parameters=dict(state.values),
            curve=curve,
            high_precision=high_precision,
        )

    # ------------------------------------------------------------------
    def run(self) -> Iterator[FitEvent]:
        """
        Execute the fit, yielding events in order.

        The committed parameter values never leave their bounds.
        """
        cfg = self.config
        state = self.state
        n_fit = len(self.fit_keys)

        # Initializing
        recompute_dependents(state.values, cfg)
        curve, state.residuals, state.sse = self._evaluate(state.values)
        state.damping = cfg.LM_LAMBDA_INIT
        yield self._update(curve=curve)

        if n_fit == 0:
            state.status = FitState.CONVERGED
        else:
            state.status = FitState.ITERATING
            for it in range(cfg.LM_MAX_ITER):
                if self.token.cancelled:
                    state.status = FitState.CANCELLED
                    break
                if state.sse <= cfg.LM_SSE_TOL:
                    state.status = FitState.CONVERGED
                    break

                yield FitProgress(iteration=it, fraction=it / cfg.LM_MAX_ITER)

                J = compute_jacobian(
                    state.values, state.residuals, self.fit_keys,
                    self.model_type, self.weight, self.observed, cfg,
                )
                g = J.T @ state.residuals
                H = J.T @ J
                H = np.tril(H) + np.tril(H, -1).T
                diag = np.diag_indices(n_fit)

                accepted = False
                for _ in range(cfg.LM_MAX_TRIALS):
                    H_lm = H.copy()
                    H_lm[diag] += state.damping * (1.0 + np.abs(H[diag]))
                    delta = solve_symmetric(H_lm, -g)

                    trial = self.apply_step(state.values, delta)
                    trial_curve, trial_res, trial_sse = self._evaluate(trial)

                    if trial_sse < state.sse:
                        state.values = trial
                        state.residuals = trial_res
                        state.sse = trial_sse
                        state.damping *= cfg.LM_LAMBDA_DOWN
                        state.iteration = it + 1
                        state.accepted_steps += 1
                        accepted = True
                        yield self._update(curve=trial_curve)
                        break
                    state.damping *= cfg.LM_LAMBDA_UP

                if not accepted and state.damping > cfg.LM_LAMBDA_MAX:
                    state.status = FitState.DIVERGED
                    break
            else:
                state.status = FitState.MAX_ITER_REACHED

        # Finalizing
        exit_status = state.status
        state.status = FitState.FINALIZING
        recompute_dependents(state.values, cfg)
        yield self._update(high_precision=True)

        state.status = FitState.DONE
        self.exit_status = exit_status
        yield FitCompleted(
            parameters=dict(state.values),
            error=state.error,
            iterations=state.iteration,
        )


def run_fit(
    model_type: ModelType,
    parameters: ParameterSet,
    observed: ObservedData,
    weight: float = 0.5,
    token: Optional[CancellationToken] = None,
    config: Optional[Config] = None,
) -> Iterator[FitEvent]:
    """
    Start a fit and return its event stream.

    Inputs are validated and copied immediately; the fit itself runs as
    the returned iterator is consumed.

    Raises
    ------
    ValueError
        If ``weight`` is outside [0, 1].
    """
    return LevenbergMarquardt(model_type, parameters, observed, weight, token, config).run()


def fit(
    model_type: ModelType,
    parameters: ParameterSet,
    observed: ObservedData,
    weight: float = 0.5,
    token: Optional[CancellationToken] = None,
    config: Optional[Config] = None,
    verbose: bool = True,
    print_every: int = 5,
) -> Tuple[ParameterSet, Dict]:
    """
    Fit a model to observed data and return the calibrated parameters.

    Parameters
    ----------
    model_type : ModelType
        Model variant
    parameters : ParameterSet
        Initial values, bounds and fit flags; not modified
    observed : ObservedData
        Measured data
    weight : float, optional
        Pressure-channel weight in [0, 1] (default: 0.5)
    token : CancellationToken, optional
        Cooperative cancellation
    config : Config, optional
        Configuration object
    verbose : bool, optional
        Print progress messages (default: True)
    print_every : int, optional
        Print every n-th accepted step (default: 5)

    Returns
    -------
    tuple
        (fitted, info)
        - fitted: copy of ``parameters`` with the committed values
        - info: dictionary with the error history, final curve and status
    """
    optimizer = LevenbergMarquardt(model_type, parameters, observed, weight, token, config)

    if verbose:
        print("\n" + "=" * 60)
        print("WELL-TEST PARAMETER FIT")
        print("=" * 60)
        print(f"\nModel: {model_type.value}")
        print(f"  Fitted parameters: {', '.join(optimizer.fit_keys) or '(none)'}")
        print(f"  Observed samples:  {len(observed)}")
        print(f"  Weight (pressure): {optimizer.weight}")
        print("\nRunning fit...")

    history = {'iteration': [], 'error': []}
    final_update = None
    completed = None
    for event in optimizer.run():
        if isinstance(event, IterationUpdate):
            if event.high_precision:
                final_update = event
                continue
            history['iteration'].append(event.iteration)
            history['error'].append(event.error)
            if verbose and event.iteration > 0 and event.iteration % print_every == 0:
                print(f"  Iteration {event.iteration}: error = {event.error:.6e}")
        elif isinstance(event, FitCompleted):
            completed = event

    fitted = parameters.copy()
    fitted.update_values(completed.parameters)

    info = {
        'status': optimizer.exit_status,
        'n_iterations': completed.iterations,
        'n_accepted': optimizer.state.accepted_steps,
        'error_initial': history['error'][0],
        'error_final': completed.error,
        'history': history,
        'curve': final_update.curve,
    }

    if verbose:
        print(f"\nFit complete!")
        print(f"  Status: {optimizer.exit_status.value}")
        print(f"  Accepted steps: {optimizer.state.accepted_steps}")
        print(f"  Error (initial): {info['error_initial']:.6e}")
        print(f"  Error (final):   {info['error_final']:.6e}")
        for key in optimizer.fit_keys:
            print(f"  {key} = {completed.parameters[key]:.6g}")

    return fitted, info
