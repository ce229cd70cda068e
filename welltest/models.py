"""
Closed set of well-test model variants behind one forward-model interface.

Every variant answers the same three questions:
- default_parameters(model_type): initial key -> value mapping
- parameter_order(model_type): display order of the parameter table
- compute_curve(model_type, values, times, high_precision): forward model

Only the composite multi-fractured horizontal well has a solver. The other
variants keep their parameter tables but return a ModelCurve with
``available=False`` instead of a curve.
"""

from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np

from .config import Config, DEFAULT_CONFIG
from .parameters import ParameterSet
from .reservoir import ModelCurve, compute_curve as composite_curve


class ModelType(Enum):
    COMPOSITE_FRACTURED_HORIZONTAL = 'composite_fractured_horizontal'
    FINITE_CONDUCTIVE = 'finite_conductive'
    SEGMENTED_MULTI_CLUSTER = 'segmented_multi_cluster'


MODEL_NAMES: Dict[ModelType, str] = {
    ModelType.COMPOSITE_FRACTURED_HORIZONTAL: 'Composite multi-fractured horizontal well',
    ModelType.FINITE_CONDUCTIVE: 'Finite-conductivity fractured horizontal well',
    ModelType.SEGMENTED_MULTI_CLUSTER: 'Segmented multi-cluster fractured horizontal well',
}

# Reservoir and fluid properties shared by every variant
BASE_PROPERTIES: Dict[str, float] = {
    'phi': 0.05,
    'h': 20.0,
    'mu': 0.5,
    'B': 1.05,
    'Ct': 5e-4,
    'q': 5.0,
    'nf': 4.0,
}

_COMPOSITE_DEFAULTS: Dict[str, float] = {
    'kf': 1e-3,
    'km': 1e-4,
    'L': 1000.0,
    'Lf': 100.0,
    'rmD': 4.0,
    'omega1': 0.4,
    'omega2': 0.08,
    'lambda1': 1e-3,
    'cD': 0.01,
    'S': 1.0,
}

_OTHER_DEFAULTS: Dict[str, float] = {
    'cD': 0.001,
    'S': 0.01,
}

_BASE_ORDER = ['phi', 'h', 'mu', 'B', 'Ct', 'q', 'nf']
_COMPOSITE_ORDER = ['kf', 'km', 'L', 'Lf', 'rmD', 'omega1', 'omega2', 'lambda1', 'cD', 'S']
_OTHER_ORDER = ['omega', 'lambda', 'cD', 'S']


def model_name(model_type: ModelType) -> str:
    return MODEL_NAMES[model_type]


def is_available(model_type: ModelType) -> bool:
    """Whether the variant has a forward-model implementation."""
    return model_type is ModelType.COMPOSITE_FRACTURED_HORIZONTAL


def default_parameters(
    model_type: ModelType,
    base: Optional[Mapping[str, float]] = None,
) -> Dict[str, float]:
    """
    Initial parameter values of a model variant.

    Parameters
    ----------
    model_type : ModelType
        Model variant
    base : mapping, optional
        Project-level reservoir/fluid properties overriding BASE_PROPERTIES

    Returns
    -------
    dict
        Key -> value
    """
    values = dict(BASE_PROPERTIES)
    if base is not None:
        values.update({k: float(v) for k, v in base.items() if k in BASE_PROPERTIES})

    if model_type is ModelType.COMPOSITE_FRACTURED_HORIZONTAL:
        values.update(_COMPOSITE_DEFAULTS)
    else:
        values.update(_OTHER_DEFAULTS)
    return values


def parameter_order(model_type: ModelType) -> List[str]:
    """Display order of the parameter table."""
    if model_type is ModelType.COMPOSITE_FRACTURED_HORIZONTAL:
        return _BASE_ORDER + _COMPOSITE_ORDER
    return _BASE_ORDER + _OTHER_ORDER


def create_parameter_set(
    model_type: ModelType,
    base: Optional[Mapping[str, float]] = None,
    config: Optional[Config] = None,
) -> ParameterSet:
    """
    Fresh parameter set for a model variant with default bounds.

    Keys listed in the display order but lacking a default are skipped.
    """
    return ParameterSet.from_values(
        default_parameters(model_type, base),
        order=parameter_order(model_type),
        config=config,
    )


def compute_curve(
    model_type: ModelType,
    values: Mapping[str, float],
    times: Optional[Sequence[float]] = None,
    high_precision: bool = True,
    config: Optional[Config] = None,
) -> ModelCurve:
    """
    Forward model of any variant.

    Parameters
    ----------
    model_type : ModelType
        Model variant
    values : mapping
        Parameter key -> value; keys the variant does not use are ignored
    times : array-like, optional
        Times [h]
    high_precision : bool, optional
        Stehfest precision of this call
    config : Config, optional
        Configuration object

    Returns
    -------
    ModelCurve
        Zero-filled with ``available=False`` for variants without a solver.
    """
    if config is None:
        config = DEFAULT_CONFIG

    if is_available(model_type):
        return composite_curve(values, times, high_precision, config)

    t = np.asarray(times if times is not None else [], dtype=float)
    return ModelCurve(
        time=t,
        pressure=np.zeros_like(t),
        derivative=np.zeros_like(t),
        available=False,
    )
