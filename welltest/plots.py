"""
Log-log diagnostic plots for well-test interpretation.

Plots:
1. Observed and model pressure change with their Bourdet derivatives
2. Sensitivity family of model curves for one parameter
3. Fit error history
"""

from typing import Dict, List, Optional, Tuple

import numpy as np
import matplotlib.pyplot as plt

from .data_io import ObservedData
from .reservoir import ModelCurve


# Samples at or below this value cannot be shown on log axes
_PLOT_FLOOR = 1e-8


def _positive(t: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    n = min(len(t), len(y))
    t, y = np.asarray(t[:n]), np.asarray(y[:n])
    mask = (t > _PLOT_FLOOR) & (y > _PLOT_FLOOR)
    return t[mask], y[mask]


def plot_loglog(
    observed: Optional[ObservedData] = None,
    curve: Optional[ModelCurve] = None,
    ax: Optional[plt.Axes] = None,
    figsize: Tuple[float, float] = (8, 6),
    title: str = 'Log-Log Diagnostic Plot',
) -> plt.Figure:
    """
    Plot pressure change and derivative on logarithmic axes.

    Parameters
    ----------
    observed : ObservedData, optional
        Measured data, drawn as markers
    curve : ModelCurve, optional
        Model curve, drawn as lines
    ax : plt.Axes, optional
        Axes to plot on (creates new figure if None)
    figsize : tuple, optional
        Figure size
    title : str, optional
        Axes title

    Returns
    -------
    plt.Figure
        The figure object
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure

    if observed is not None:
        t, p = _positive(observed.time, observed.pressure)
        ax.scatter(t, p, s=14, c='tab:blue', label='Δp (observed)', zorder=3)
        t, d = _positive(observed.time, observed.derivative)
        ax.scatter(t, d, s=14, c='tab:orange', marker='^', label="Δp' (observed)", zorder=3)

    if curve is not None and curve.available:
        t, p = _positive(curve.time, curve.pressure)
        ax.plot(t, p, 'r-', linewidth=2, label='Δp (model)')
        t, d = _positive(curve.time, curve.derivative)
        ax.plot(t, d, 'b-', linewidth=2, label="Δp' (model)")

    ax.set_xscale('log')
    ax.set_yscale('log')
    ax.set_xlabel('Time t [h]', fontsize=12)
    ax.set_ylabel("Δp, Δp' [MPa]", fontsize=12)
    ax.set_title(title, fontsize=14, fontweight='bold')
    ax.grid(True, which='both', alpha=0.3)
    if ax.get_legend_handles_labels()[0]:
        ax.legend(loc='upper left')

    plt.tight_layout()
    return fig


def plot_sensitivity(
    results: List[Tuple[float, ModelCurve]],
    key: str,
    ax: Optional[plt.Axes] = None,
    figsize: Tuple[float, float] = (8, 6),
) -> plt.Figure:
    """
    Plot one model curve per value of a swept parameter.

    Pressure is drawn solid and its derivative dashed in the same colour.
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure

    colors = plt.cm.viridis(np.linspace(0.0, 0.9, max(len(results), 1)))
    for (val, curve), color in zip(results, colors):
        t, p = _positive(curve.time, curve.pressure)
        ax.plot(t, p, '-', color=color, linewidth=1.8, label=f'{key} = {val:g}')
        t, d = _positive(curve.time, curve.derivative)
        ax.plot(t, d, '--', color=color, linewidth=1.2)

    ax.set_xscale('log')
    ax.set_yscale('log')
    ax.set_xlabel('Time t [h]', fontsize=12)
    ax.set_ylabel("Δp, Δp' [MPa]", fontsize=12)
    ax.set_title(f'Sensitivity to {key}', fontsize=14, fontweight='bold')
    ax.grid(True, which='both', alpha=0.3)
    if results:
        ax.legend(loc='upper left', fontsize=9)

    plt.tight_layout()
    return fig


def plot_fit_history(
    history: Dict,
    ax: Optional[plt.Axes] = None,
    figsize: Tuple[float, float] = (8, 5),
) -> plt.Figure:
    """
    Plot the fit error after every accepted step.

    Parameters
    ----------
    history : dict
        Fit history with 'iteration' and 'error' keys
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure

    ax.semilogy(history['iteration'], history['error'], 'b-', linewidth=2, marker='o', markersize=3)
    ax.set_xlabel('Iteration', fontsize=12)
    ax.set_ylabel('Error (MSE)', fontsize=12)
    ax.set_title('Fit Convergence', fontsize=14, fontweight='bold')
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    return fig
