"""
Semi-analytical forward model of a multi-fractured horizontal well in a
two-zone composite reservoir.

The well response is built in Laplace space and inverted numerically with
the Stehfest algorithm at every requested time.

Key equations (Laplace variable z, dimensionless units):

    Composite storage/flow functions:
        f_s1 = ω1 + λ1 ω2 / (λ1 + z ω2)
        f_s2 = M12 ω2,            M12 = kf / km
        γ1 = sqrt(z f_s1),        γ2 = sqrt(z f_s2)

    Interface coefficient at the composite radius rmD:
        A_c = [M12 γ1 K1(γ1 rmD) K0(γ2 rmD) - γ2 K0(γ1 rmD) K1(γ2 rmD)]
            / [M12 γ1 I1(γ1 rmD) K0(γ2 rmD) + γ2 I0(γ1 rmD) K1(γ2 rmD)]

    Influence of fracture j on fracture i (centres x_i, half-length LfD):
        G_ij = 1 / (2 M12 LfD) ∫_{-LfD}^{LfD} [K0(γ1 r) + A_c I0(γ1 r)] da
        r = |x_i - x_j - a|

    Influence system for fracture rates q_j and wellbore pressure p_w:
        Σ_j G_ij q_j - p_w = 0        (i = 1..nf)
        Σ_j z q_j          = 1

    Wellbore storage and skin:
        p_wD = (z p + S) / (z + cD z² (z p + S))

    Physical units:
        tD = 14.4 kf t / (φ μ Ct L²)
        Δp = 1.842e-3 q μ B / (kf h) · pD

I(x) is evaluated through the exponentially scaled I(x)e^(-x) so that large
arguments never overflow. Non-finite Laplace samples contribute zero to the
inversion sum and singular influence systems fall back to least squares;
both are counted on the returned curve.
"""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence, Tuple

import numpy as np
from scipy import special

from .config import Config, DEFAULT_CONFIG
from .derivative import bourdet_derivative
from .linalg import solve_dense
from .parameters import recompute_dependents
from .quadrature import adaptive_gauss
from .stehfest import stehfest_invert_counted


# Fallback values for keys missing from a parameter mapping
FORWARD_DEFAULTS: Dict[str, float] = {
    'phi': 0.05,
    'h': 20.0,
    'mu': 0.5,
    'B': 1.05,
    'Ct': 5e-4,
    'q': 5.0,
    'nf': 4.0,
    'kf': 1e-3,
    'km': 1e-4,
    'L': 1000.0,
    'Lf': 100.0,
    'rmD': 4.0,
    'omega1': 0.4,
    'omega2': 0.08,
    'lambda1': 1e-3,
    'cD': 0.0,
    'S': 0.0,
}

# exp() arguments below this contribute nothing
_MIN_EXPONENT = -700.0


@dataclass
class ModelCurve:
    """
    One forward-model evaluation.

    Attributes
    ----------
    time : np.ndarray
        Times [h]
    pressure : np.ndarray
        Pressure change [MPa]
    derivative : np.ndarray
        Bourdet derivative of the pressure change [MPa]
    available : bool
        False when the model variant has no implementation
    nonfinite_samples : int
        Laplace samples that were not finite and contributed zero
    singular_solves : int
        Influence systems solved by the least-squares fallback
    """
    time: np.ndarray
    pressure: np.ndarray
    derivative: np.ndarray
    available: bool = True
    nonfinite_samples: int = 0
    singular_solves: int = 0

    @property
    def degenerate(self) -> bool:
        """Whether any numerical degeneracy was absorbed."""
        return self.nonfinite_samples > 0 or self.singular_solves > 0

    def __len__(self) -> int:
        return len(self.time)

    def as_tuple(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        return self.time, self.pressure, self.derivative


def generate_log_time_steps(count: int, start_exp: float, end_exp: float) -> np.ndarray:
    """
    Logarithmically spaced times 10^start_exp .. 10^end_exp.

    Parameters
    ----------
    count : int
        Number of points (>= 2)
    start_exp, end_exp : float
        Decimal exponents of the first and last time
    """
    if count < 2:
        raise ValueError(f"count ({count}) must be >= 2")
    return np.logspace(start_exp, end_exp, count)


# =============================================================================
# Dimensionless transforms
# =============================================================================

def dimensionless_time(
    t: Sequence[float],
    kf: float,
    phi: float,
    mu: float,
    Ct: float,
    L: float,
    config: Optional[Config] = None,
) -> np.ndarray:
    """
    Convert real time to dimensionless time.

        tD = DIFFUSIVITY_FACTOR * kf * t / (φ μ Ct L²)

    A non-positive denominator (zero-length well or storage) gives tD = 0
    for every sample.
    """
    if config is None:
        config = DEFAULT_CONFIG

    t = np.asarray(t, dtype=float)
    denom = phi * mu * Ct * L ** 2
    if not denom > 0:
        return np.zeros_like(t)
    return config.DIFFUSIVITY_FACTOR * kf * t / denom


def pressure_scale(
    q: float,
    mu: float,
    B: float,
    kf: float,
    h: float,
    config: Optional[Config] = None,
) -> float:
    """
    Factor converting dimensionless pressure to MPa.

        Δp / pD = PRESSURE_FACTOR * q μ B / (kf h)

    Returns 0 for a non-positive kf·h.
    """
    if config is None:
        config = DEFAULT_CONFIG

    denom = kf * h
    if not denom > 0:
        return 0.0
    return config.PRESSURE_FACTOR * q * mu * B / denom


def fracture_positions(nf: int, config: Optional[Config] = None) -> np.ndarray:
    """
    Dimensionless fracture centres, evenly spread along the well.
    """
    if config is None:
        config = DEFAULT_CONFIG

    spread = config.FRACTURE_SPREAD
    if nf <= 1:
        return np.array([-spread])
    return np.linspace(-spread, spread, nf)


# =============================================================================
# Laplace-domain solution
# =============================================================================

def composite_storage(
    z: float,
    omega1: float,
    omega2: float,
    lambda1: float,
    M12: float,
) -> Tuple[float, float]:
    """
    Inner and outer composite storage functions (f_s1, f_s2).
    """
    fs1 = omega1 + lambda1 * omega2 / (lambda1 + z * omega2)
    fs2 = M12 * omega2
    return fs1, fs2


def interface_coefficient(gamma1: float, gamma2: float, M12: float, rmD: float, config: Config) -> float:
    """
    Scaled interface coefficient A_c · e^(γ1 rmD).

    Multiplying by I0(x)e^(-x) · e^(x - γ1 rmD) recovers A_c I0(x)
    without overflow.
    """
    arg1 = gamma1 * rmD
    arg2 = gamma2 * rmD
    k0_1, k1_1 = special.k0(arg1), special.k1(arg1)
    k0_2, k1_2 = special.k0(arg2), special.k1(arg2)

    numerator = M12 * gamma1 * k1_1 * k0_2 - gamma2 * k0_1 * k1_2
    denominator = M12 * gamma1 * special.i1e(arg1) * k0_2 + gamma2 * special.i0e(arg1) * k1_2
    if abs(denominator) < config.MIN_INTERFACE_DENOMINATOR:
        denominator = config.MIN_INTERFACE_DENOMINATOR
    return numerator / denominator


def influence_integral(
    offset: float,
    LfD: float,
    gamma1: float,
    prefactor: float,
    arg_interface: float,
    config: Config,
) -> float:
    """
    ∫_{-LfD}^{LfD} [K0(γ1 r) + A_c I0(γ1 r)] da with r = |offset - a|.

    When the logarithmic singularity r = 0 lies inside the fracture, the
    integral is split there and each side is mapped with a = offset ± u²,
    which turns K0's log singularity into a smooth u·ln(u) integrand.
    """
    floor = config.MIN_BESSEL_ARG

    def kernel(a: np.ndarray) -> np.ndarray:
        arg = np.maximum(gamma1 * np.abs(offset - a), floor)
        exponent = arg - arg_interface
        with np.errstate(over='ignore', invalid='ignore'):
            term2 = np.where(
                exponent > _MIN_EXPONENT,
                prefactor * special.i0e(arg) * np.exp(np.maximum(exponent, _MIN_EXPONENT)),
                0.0,
            )
        return special.k0(arg) + term2

    if not -LfD < offset < LfD:
        return adaptive_gauss(kernel, -LfD, LfD, config=config)

    def right(u: np.ndarray) -> np.ndarray:
        return 2.0 * u * kernel(offset + u * u)

    def left(u: np.ndarray) -> np.ndarray:
        return 2.0 * u * kernel(offset - u * u)

    return (
        adaptive_gauss(right, 0.0, np.sqrt(LfD - offset), config=config)
        + adaptive_gauss(left, 0.0, np.sqrt(offset + LfD), config=config)
    )


def fractured_well_pressure(
    z: float,
    fs1: float,
    fs2: float,
    M12: float,
    LfD: float,
    rmD: float,
    xwD: np.ndarray,
    config: Optional[Config] = None,
) -> Tuple[float, bool]:
    """
    Laplace-domain wellbore pressure of the fracture influence system.

    Returns
    -------
    tuple
        (p_w, fallback) where ``fallback`` is True when the influence matrix
        was solved by least squares.
    """
    if config is None:
        config = DEFAULT_CONFIG

    nf = len(xwD)
    gamma1 = np.sqrt(z * fs1)
    gamma2 = np.sqrt(z * fs2)
    prefactor = interface_coefficient(gamma1, gamma2, M12, rmD, config)
    arg_interface = gamma1 * rmD
    scale = 1.0 / (M12 * 2.0 * LfD)

    # The integral only depends on the centre-to-centre distance
    cache: Dict[float, float] = {}
    A = np.zeros((nf + 1, nf + 1))
    for i in range(nf):
        for j in range(nf):
            dist = round(abs(xwD[i] - xwD[j]), 12)
            if dist not in cache:
                cache[dist] = influence_integral(dist, LfD, gamma1, prefactor, arg_interface, config)
            A[i, j] = cache[dist] * scale
        A[i, nf] = -1.0
        A[nf, i] = z

    b = np.zeros(nf + 1)
    b[nf] = 1.0
    x, fallback = solve_dense(A, b)
    return float(x[nf]), fallback


def wellbore_storage_skin(z: float, pf: float, cD: float, S: float) -> float:
    """
    Apply wellbore storage and skin to a Laplace-domain sandface pressure.
    """
    if cD > 1e-12 or abs(S) > 1e-12:
        zp = z * pf + S
        return zp / (z + cD * z * z * zp)
    return pf


def _resolve(values: Mapping[str, float], config: Config) -> Dict[str, float]:
    """
    Merge ``values`` over FORWARD_DEFAULTS.

    LfD is always derived from L and Lf when either is given; a supplied
    LfD is used as-is only when both lengths are absent.
    """
    merged = dict(FORWARD_DEFAULTS)
    merged.update(values)
    if 'LfD' not in values or 'L' in values or 'Lf' in values:
        recompute_dependents(merged, config)
    return merged


def composite_laplace_solution(values: Mapping[str, float], config: Optional[Config] = None):
    """
    Build the Laplace-domain wellbore pressure z -> p̄_wD(z).

    Parameters
    ----------
    values : mapping
        Parameter key -> value; missing keys use FORWARD_DEFAULTS
    config : Config, optional
        Configuration object

    Returns
    -------
    tuple
        (laplace_fn, stats) where ``stats['singular_solves']`` counts the
        least-squares fallbacks of every call made so far.
    """
    if config is None:
        config = DEFAULT_CONFIG

    p = _resolve(values, config)
    kf, km = p['kf'], p['km']
    LfD, rmD = p['LfD'], p['rmD']
    omega1, omega2, lambda1 = p['omega1'], p['omega2'], p['lambda1']
    cD, S = p['cD'], p['S']
    nf = max(1, int(round(p['nf'])))
    xwD = fracture_positions(nf, config)
    M12 = kf / km if km > 0 else np.inf

    stats = {'singular_solves': 0}

    def laplace_fn(z: float) -> float:
        if not (LfD > 0 and np.isfinite(M12) and M12 > 0):
            return np.nan
        with np.errstate(all='ignore'):
            fs1, fs2 = composite_storage(z, omega1, omega2, lambda1, M12)
            pf, fallback = fractured_well_pressure(z, fs1, fs2, M12, LfD, rmD, xwD, config)
            if fallback:
                stats['singular_solves'] += 1
            return wellbore_storage_skin(z, pf, cD, S)

    return laplace_fn, stats


# =============================================================================
# Time-domain curve
# =============================================================================

def compute_curve(
    values: Mapping[str, float],
    times: Optional[Sequence[float]] = None,
    high_precision: bool = True,
    config: Optional[Config] = None,
) -> ModelCurve:
    """
    Pressure and derivative of the composite multi-fractured horizontal well.

    Parameters
    ----------
    values : mapping
        Parameter key -> value (see welltest.parameters for the vocabulary)
    times : array-like, optional
        Times [h]; defaults to 100 log-spaced points in [1e-3, 1e3]
    high_precision : bool, optional
        Use STEHFEST_N_HIGH terms (True) or STEHFEST_N_FAST terms (False)
    config : Config, optional
        Configuration object

    Returns
    -------
    ModelCurve
        Always structurally valid; degenerate samples are zero.
    """
    if config is None:
        config = DEFAULT_CONFIG

    if times is None:
        times = generate_log_time_steps(100, -3.0, 3.0)
    t = np.asarray(times, dtype=float)

    p = _resolve(values, config)
    tD = dimensionless_time(t, p['kf'], p['phi'], p['mu'], p['Ct'], p['L'], config)
    n_terms = config.stehfest_order(high_precision)

    laplace_fn, stats = composite_laplace_solution(p, config)

    pD = np.zeros_like(t)
    nonfinite = 0
    for k, td in enumerate(tD):
        if not td > config.MIN_TD:
            continue
        pD[k], dropped = stehfest_invert_counted(laplace_fn, td, n_terms)
        nonfinite += dropped

    scale = pressure_scale(p['q'], p['mu'], p['B'], p['kf'], p['h'], config)
    pressure = scale * pD
    if t.size > 2:
        derivative = bourdet_derivative(t, pressure, config.MODEL_BOURDET_WINDOW)
    else:
        derivative = np.zeros_like(t)

    return ModelCurve(
        time=t,
        pressure=pressure,
        derivative=derivative,
        nonfinite_samples=nonfinite,
        singular_solves=stats['singular_solves'],
    )
