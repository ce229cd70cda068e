"""
Bourdet logarithmic pressure derivative.

For every interior sample i, a left point j and a right point k are chosen as
the nearest samples at least ``window`` natural-log-time units away (or the
first/last sample when none is that far). The derivative is the
log-time-weighted average of the left and right slopes:

    d_i = (m_L * Δx_R + m_R * Δx_L) / (Δx_L + Δx_R)

    m_L = (p_i - p_j) / Δx_L,   Δx_L = ln t_i - ln t_j
    m_R = (p_k - p_i) / Δx_R,   Δx_R = ln t_k - ln t_i

The first and last entries are zero by definition.

Reference
---------
Bourdet, D., Ayoub, J. A., Pirard, Y. M. (1989): "Use of Pressure Derivative
in Well-Test Interpretation", SPE Formation Evaluation 4(2), 293-302.
"""

from typing import Sequence

import numpy as np


def bourdet_derivative(
    t: Sequence[float],
    p: Sequence[float],
    window: float = 0.1,
) -> np.ndarray:
    """
    Compute the Bourdet derivative dp/d(ln t).

    Parameters
    ----------
    t : array-like
        Strictly increasing, positive times
    p : array-like
        Pressure (or pressure change) aligned with ``t``
    window : float, optional
        Smoothing window L in ln(t) units (default: 0.1)

    Returns
    -------
    np.ndarray
        Derivative, same length as ``t``; zero at both ends and wherever
        the local spacing is degenerate.
    """
    t = np.asarray(t, dtype=float)
    p = np.asarray(p, dtype=float)
    n = t.size
    d = np.zeros(n)
    if n < 3:
        return d

    with np.errstate(divide='ignore', invalid='ignore'):
        x = np.log(t)
    idx = np.arange(1, n - 1)

    # Nearest samples at least one window away on each side
    left = np.searchsorted(x, x[idx] - window, side='right') - 1
    left = np.clip(left, 0, idx - 1)
    right = np.searchsorted(x, x[idx] + window, side='left')
    right = np.clip(right, idx + 1, n - 1)

    dx_l = x[idx] - x[left]
    dx_r = x[right] - x[idx]
    valid = (dx_l > 0) & (dx_r > 0)

    with np.errstate(divide='ignore', invalid='ignore'):
        slope_l = (p[idx] - p[left]) / dx_l
        slope_r = (p[right] - p[idx]) / dx_r
        interior = (slope_l * dx_r + slope_r * dx_l) / (dx_l + dx_r)

    d[idx] = np.where(valid & np.isfinite(interior), interior, 0.0)
    return d
