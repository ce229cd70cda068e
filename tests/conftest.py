"""
Shared fixtures: a noise-free single-fracture drawdown generated by the model.
"""

import matplotlib
matplotlib.use('Agg')

import numpy as np
import pytest

from welltest.data_io import ObservedData
from welltest.models import ModelType, compute_curve, create_parameter_set


MODEL = ModelType.COMPOSITE_FRACTURED_HORIZONTAL


@pytest.fixture
def truth():
    """Parameters of the synthetic single-fracture well."""
    values = create_parameter_set(MODEL).values()
    values.update({
        'nf': 1.0,
        'kf': 0.01,
        'L': 500.0,
        'Lf': 50.0,
        'cD': 0.01,
        'S': 1.0,
    })
    return values


@pytest.fixture
def synthetic(truth):
    """Observed data equal to the fast-precision model on a 12-point grid."""
    times = np.logspace(-2, 2, 12)
    curve = compute_curve(MODEL, truth, times, high_precision=False)
    return ObservedData(curve.time, curve.pressure, curve.derivative)


@pytest.fixture
def truth_set(truth):
    """Parameter set holding the synthetic truth, nothing flagged for fitting."""
    params = create_parameter_set(MODEL)
    params.update_values(truth)
    return params
