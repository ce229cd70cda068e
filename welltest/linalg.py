"""
Small dense linear solves with a best-effort fallback.

Newton-type steps and the fracture influence system are tiny (a handful to a
few dozen unknowns), so direct factorizations are used. When a factorization
fails or scipy reports an ill-conditioned matrix, the minimum-norm
least-squares solution is returned instead of raising.
"""

import warnings
from typing import Tuple

import numpy as np
from scipy import linalg as sla


def _solve(A: np.ndarray, b: np.ndarray, assume_a: str) -> Tuple[np.ndarray, bool]:
    A = np.asarray(A, dtype=float)
    b = np.asarray(b, dtype=float)
    if b.size == 0:
        return np.zeros(0), False

    if np.all(np.isfinite(A)) and np.all(np.isfinite(b)):
        try:
            with warnings.catch_warnings():
                warnings.simplefilter('error', sla.LinAlgWarning)
                x = sla.solve(A, b, assume_a=assume_a, check_finite=False)
            if np.all(np.isfinite(x)):
                return x, False
        except (np.linalg.LinAlgError, sla.LinAlgWarning, ValueError):
            pass

    A = np.nan_to_num(A, nan=0.0, posinf=0.0, neginf=0.0)
    b = np.nan_to_num(b, nan=0.0, posinf=0.0, neginf=0.0)
    try:
        x = sla.lstsq(A, b, check_finite=False)[0]
    except (np.linalg.LinAlgError, ValueError):
        x = np.zeros(A.shape[1])
    return np.nan_to_num(x, nan=0.0, posinf=0.0, neginf=0.0), True


def solve_symmetric(H: np.ndarray, g: np.ndarray) -> np.ndarray:
    """
    Solve a symmetric system H x = g.

    Parameters
    ----------
    H : np.ndarray
        Symmetric matrix, shape (n, n)
    g : np.ndarray
        Right-hand side, shape (n,)

    Returns
    -------
    np.ndarray
        Solution of shape (n,). For singular or ill-conditioned H the
        least-squares solution is returned; the result is always finite.
    """
    return _solve(H, g, 'sym')[0]


def solve_dense(A: np.ndarray, b: np.ndarray) -> Tuple[np.ndarray, bool]:
    """
    Solve a general square system A x = b.

    Returns
    -------
    tuple
        (x, fallback) where ``fallback`` is True when the least-squares
        solution had to be used.
    """
    return _solve(A, b, 'gen')
