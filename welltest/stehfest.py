"""
Gaver-Stehfest numerical inversion of the Laplace transform.

    f(t) ≈ (ln 2 / t) Σ_{m=1..N} V_m F(m ln 2 / t)

with the alternating coefficients

    V_m = (-1)^(m + N/2) Σ_{k=⌊(m+1)/2⌋..min(m, N/2)}
          k^(N/2) (2k)! / [(N/2 - k)! k! (k-1)! (m-k)! (2k-m)!]

Samples of F that are not finite contribute zero instead of poisoning the sum.
"""

import math
from functools import lru_cache
from typing import Callable, Tuple

import numpy as np


LN2 = math.log(2.0)


def _factorial(n: int) -> float:
    """Iterative factorial as float, 1 for n <= 1."""
    result = 1.0
    for i in range(2, n + 1):
        result *= i
    return result


@lru_cache(maxsize=16)
def _coefficients(n: int) -> Tuple[float, ...]:
    half = n // 2
    coeffs = []
    for m in range(1, n + 1):
        total = 0.0
        for k in range((m + 1) // 2, min(m, half) + 1):
            num = k ** half * _factorial(2 * k)
            den = (
                _factorial(half - k)
                * _factorial(k)
                * _factorial(k - 1)
                * _factorial(m - k)
                * _factorial(2 * k - m)
            )
            if den != 0:
                total += num / den
        sign = 1.0 if (m + half) % 2 == 0 else -1.0
        coeffs.append(sign * total)
    return tuple(coeffs)


def stehfest_coefficients(n: int) -> np.ndarray:
    """
    Stehfest weights V_1..V_N.

    Parameters
    ----------
    n : int
        Even number of terms

    Returns
    -------
    np.ndarray
        Array of length ``n``

    Raises
    ------
    ValueError
        If ``n`` is not a positive even integer.
    """
    if n <= 0 or n % 2 != 0:
        raise ValueError(f"Stehfest requires a positive even number of terms, got {n}")
    return np.array(_coefficients(n))


def stehfest_invert_counted(
    laplace_fn: Callable[[float], float],
    t: float,
    n: int,
) -> Tuple[float, int]:
    """
    Invert ``laplace_fn`` at time ``t`` and count discarded samples.

    Returns
    -------
    tuple
        (value, n_nonfinite) where ``n_nonfinite`` is the number of Laplace
        samples that were not finite and contributed zero.
    """
    coeffs = stehfest_coefficients(n)
    if t <= 0:
        return 0.0, 0

    a = LN2 / t
    total = 0.0
    dropped = 0
    for m in range(1, n + 1):
        sample = laplace_fn(m * a)
        if not np.isfinite(sample):
            dropped += 1
            continue
        total += coeffs[m - 1] * sample
    return float(total * a), dropped


def stehfest_invert(laplace_fn: Callable[[float], float], t: float, n: int) -> float:
    """
    Time-domain value of a Laplace-domain function at time ``t``.

    Parameters
    ----------
    laplace_fn : callable
        F(s) for real s > 0
    t : float
        Time (> 0); non-positive times give 0
    n : int
        Even number of Stehfest terms

    Returns
    -------
    float
        Approximation of f(t)

    Examples
    --------
    >>> round(stehfest_invert(lambda s: 1.0 / s, 1.0, 8), 6)
    1.0
    """
    return stehfest_invert_counted(laplace_fn, t, n)[0]
