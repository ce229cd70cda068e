"""
Adaptive recursive Gauss-Legendre quadrature.

Each interval is integrated with a 15-point Gauss-Legendre rule on the whole
interval and on its two halves. The halves are accepted when

    |I_whole - I_halves| < rel_tol * |I_halves| + eps

or when the maximum recursion depth is reached; otherwise both halves are
refined with eps halved. This copes with the logarithmic singularity of the
fracture self-influence kernel without a closed-form treatment.
"""

from typing import Callable, Optional

import numpy as np

from .config import Config, DEFAULT_CONFIG


_NODES, _WEIGHTS = np.polynomial.legendre.leggauss(15)


def gauss15(f: Callable[[np.ndarray], np.ndarray], a: float, b: float) -> float:
    """
    15-point Gauss-Legendre integral of a vectorized function over [a, b].
    """
    half = 0.5 * (b - a)
    centre = 0.5 * (a + b)
    return float(half * np.dot(_WEIGHTS, f(centre + half * _NODES)))


def _adaptive(f, a, b, whole, eps, rel_tol, depth, max_depth):
    c = 0.5 * (a + b)
    left = gauss15(f, a, c)
    right = gauss15(f, c, b)
    halves = left + right
    if depth >= max_depth or abs(whole - halves) < rel_tol * abs(halves) + eps:
        return halves
    return (
        _adaptive(f, a, c, left, 0.5 * eps, rel_tol, depth + 1, max_depth)
        + _adaptive(f, c, b, right, 0.5 * eps, rel_tol, depth + 1, max_depth)
    )


def adaptive_gauss(
    f: Callable[[np.ndarray], np.ndarray],
    a: float,
    b: float,
    eps: Optional[float] = None,
    max_depth: Optional[int] = None,
    config: Optional[Config] = None,
) -> float:
    """
    Integrate a vectorized function over [a, b] adaptively.

    Parameters
    ----------
    f : callable
        Integrand accepting and returning np.ndarray
    a, b : float
        Integration limits
    eps : float, optional
        Absolute local tolerance (default: config.QUAD_EPS)
    max_depth : int, optional
        Maximum recursion depth (default: config.QUAD_MAX_DEPTH)
    config : Config, optional
        Configuration object

    Returns
    -------
    float
        Integral estimate
    """
    if config is None:
        config = DEFAULT_CONFIG
    if eps is None:
        eps = config.QUAD_EPS
    if max_depth is None:
        max_depth = config.QUAD_MAX_DEPTH

    if a == b:
        return 0.0
    return _adaptive(f, a, b, gauss15(f, a, b), eps, config.QUAD_REL_TOL, 0, max_depth)
