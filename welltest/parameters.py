"""
Fit parameters, parameter sets and derived quantities.

A parameter set is an ordered collection of named fit parameters, each with a
value, a [lower, upper] bound and a fit flag. Display order is the insertion
order; computations only ever see the key -> value mapping.

Derived parameters are never edited directly. They are recomputed from the
base parameters they depend on every time one of those changes:
    LfD = Lf / L        (fracture half-length to well length ratio)

Parameter vocabulary (units):
    phi      porosity [-]                    kf       inner-zone permeability [mD]
    h        thickness [m]                   km       outer-zone permeability [mD]
    mu       viscosity [mPa·s]               L        horizontal well length [m]
    B        formation volume factor [-]     Lf       fracture half-length [m]
    Ct       total compressibility [MPa⁻¹]   rmD      composite radius [-]
    q        flow rate [m³/d]                omega1   inner storativity ratio [-]
    nf       number of fractures [-]         omega2   outer storativity ratio [-]
    cD       wellbore storage [-]            lambda1  interporosity coefficient [-]
    S        skin factor [-]                 LfD      derived, Lf / L [-]
"""

import copy
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from .config import Config, DEFAULT_CONFIG


# Parameters updated additively even when positive
LINEAR_KEYS = frozenset({'S', 'nf'})

# key -> (display name, symbol, unit)
PARAMETER_INFO: Dict[str, Tuple[str, str, str]] = {
    'kf': ('Inner-zone permeability', 'k_f', 'mD'),
    'km': ('Outer-zone permeability', 'kₘ', 'mD'),
    'L': ('Horizontal well length', 'L', 'm'),
    'Lf': ('Fracture half-length', 'L_f', 'm'),
    'rmD': ('Composite radius', 'rₘᴅ', ''),
    'omega1': ('Inner-zone storativity ratio', 'ω₁', ''),
    'omega2': ('Outer-zone storativity ratio', 'ω₂', ''),
    'lambda1': ('Interporosity flow coefficient', 'λ₁', ''),
    'omega': ('Storativity ratio', 'ω', ''),
    'lambda': ('Interporosity flow coefficient', 'λ', ''),
    'cD': ('Wellbore storage coefficient', 'Cᴅ', ''),
    'S': ('Skin factor', 'S', ''),
    'phi': ('Porosity', 'φ', ''),
    'h': ('Thickness', 'h', 'm'),
    'mu': ('Viscosity', 'μ', 'mPa·s'),
    'B': ('Formation volume factor', 'B', ''),
    'Ct': ('Total compressibility', 'Cₜ', 'MPa⁻¹'),
    'q': ('Flow rate', 'q', 'm³/d'),
    'nf': ('Number of fractures', 'n_f', ''),
}

# key -> (lower, upper)
DEFAULT_BOUNDS: Dict[str, Tuple[float, float]] = {
    'kf': (1e-6, 100.0),
    'km': (1e-6, 100.0),
    'L': (10.0, 5000.0),
    'Lf': (1.0, 1000.0),
    'rmD': (1.0, 50.0),
    'omega1': (0.001, 1.0),
    'omega2': (0.001, 1.0),
    'lambda1': (1e-9, 1.0),
    'cD': (0.0, 100.0),
    'S': (0.0, 50.0),
    'phi': (0.001, 1.0),
    'h': (1.0, 500.0),
    'mu': (0.01, 1000.0),
    'B': (0.5, 2.0),
    'Ct': (1e-6, 1e-2),
    'q': (0.1, 10000.0),
    'nf': (1.0, 100.0),
}


def parameter_info(key: str) -> Tuple[str, str, str]:
    """
    Display metadata for a parameter key.

    Unknown keys are displayed by their key with no unit.

    Returns
    -------
    tuple
        (display_name, symbol, unit)
    """
    return PARAMETER_INFO.get(key, (key, key, ''))


def default_bounds(key: str, value: float) -> Tuple[float, float]:
    """
    Empirical fitting bounds for a parameter.

    Keys without a tabulated range get a range relative to their value:
    [value/1000, value*1000] when positive, [0, 100] when zero and
    [-100, 100] when negative.
    """
    if key in DEFAULT_BOUNDS:
        return DEFAULT_BOUNDS[key]
    if value > 0:
        return value * 0.001, value * 1000.0
    if value == 0:
        return 0.0, 100.0
    return -100.0, 100.0


def is_log_parameter(key: str, value: float, config: Optional[Config] = None) -> bool:
    """
    Whether a parameter is perturbed and updated in log10 space.

    Positive parameters spanning orders of magnitude are handled
    multiplicatively; skin and fracture count are always linear.
    """
    if config is None:
        config = DEFAULT_CONFIG
    return value > config.LOG_PARAM_FLOOR and key not in LINEAR_KEYS


# =============================================================================
# Derived parameters
# =============================================================================

def _fracture_length_ratio(values: Mapping[str, float], config: Config) -> float:
    L = values['L']
    if L > config.MIN_LENGTH:
        return values['Lf'] / L
    return 0.0


# derived key -> (base keys, function)
DERIVED_PARAMETERS: Dict[str, Tuple[Tuple[str, ...], Callable[[Mapping[str, float], Config], float]]] = {
    'LfD': (('L', 'Lf'), _fracture_length_ratio),
}


def recompute_dependents(
    values: Dict[str, float],
    config: Optional[Config] = None,
) -> Dict[str, float]:
    """
    Recompute every derived parameter from its base parameters, in place.

    Derived keys whose base parameters are absent are left untouched.

    Parameters
    ----------
    values : dict
        Parameter key -> value mapping. Modified in place.
    config : Config, optional
        Configuration object

    Returns
    -------
    dict
        The same mapping, for chaining.
    """
    if config is None:
        config = DEFAULT_CONFIG

    for key, (bases, func) in DERIVED_PARAMETERS.items():
        if all(b in values for b in bases):
            values[key] = func(values, config)
    return values


# =============================================================================
# Fit parameter and parameter set
# =============================================================================

@dataclass
class FitParameter:
    """
    A single fit parameter.

    Attributes
    ----------
    key : str
        Unique identifier from the parameter vocabulary
    value : float
        Current value, always within [lower, upper]
    lower : float
        Lower bound
    upper : float
        Upper bound
    fit : bool
        Whether the optimizer may change this parameter
    """
    key: str
    value: float
    lower: float
    upper: float
    fit: bool = False

    def __post_init__(self):
        if self.lower > self.upper:
            raise ValueError(
                f"Invalid bounds for '{self.key}': lower ({self.lower}) > upper ({self.upper})."
            )
        self.value = self.clamp(self.value)

    def clamp(self, value: float) -> float:
        """Clamp a value into this parameter's bounds."""
        return max(self.lower, min(float(value), self.upper))

    @property
    def display_name(self) -> str:
        return parameter_info(self.key)[0]

    @property
    def symbol(self) -> str:
        return parameter_info(self.key)[1]

    @property
    def unit(self) -> str:
        return parameter_info(self.key)[2]


class ParameterSet:
    """
    Ordered collection of fit parameters with derived quantities.

    Every mutation goes through a method that clamps to bounds and then
    recomputes the derived parameters, so the value mapping is always
    consistent.
    """

    def __init__(self, parameters: Iterable[FitParameter], config: Optional[Config] = None):
        self.config = config if config is not None else DEFAULT_CONFIG
        self._params: Dict[str, FitParameter] = {}
        for p in parameters:
            if p.key in self._params:
                raise ValueError(f"Duplicate parameter key '{p.key}'.")
            self._params[p.key] = p
        self._derived: Dict[str, float] = {}
        self._refresh_derived()

    @classmethod
    def from_values(
        cls,
        values: Mapping[str, float],
        order: Optional[Iterable[str]] = None,
        config: Optional[Config] = None,
    ) -> 'ParameterSet':
        """
        Build a parameter set with default bounds and no fitted parameters.

        Parameters
        ----------
        values : mapping
            Key -> initial value
        order : iterable of str, optional
            Display order; keys missing from ``values`` are skipped.
            Defaults to the mapping order.
        config : Config, optional
            Configuration object
        """
        keys = list(order) if order is not None else list(values)
        params = []
        for key in keys:
            if key not in values or key in DERIVED_PARAMETERS:
                continue
            lower, upper = default_bounds(key, values[key])
            params.append(FitParameter(key, values[key], lower, upper))
        return cls(params, config)

    # ------------------------------------------------------------------
    # Container protocol
    # ------------------------------------------------------------------
    def __getitem__(self, key: str) -> FitParameter:
        return self._params[key]

    def __contains__(self, key: str) -> bool:
        return key in self._params

    def __iter__(self) -> Iterator[FitParameter]:
        return iter(self._params.values())

    def __len__(self) -> int:
        return len(self._params)

    def __repr__(self) -> str:
        inner = ', '.join(f"{p.key}={p.value:g}{'*' if p.fit else ''}" for p in self)
        return f"ParameterSet({inner})"

    def keys(self) -> List[str]:
        return list(self._params)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def values(self) -> Dict[str, float]:
        """Snapshot of all base and derived values as a new dict."""
        out = {k: p.value for k, p in self._params.items()}
        out.update(self._derived)
        return out

    def fit_keys(self) -> List[str]:
        """Keys flagged for fitting, in display order."""
        return [p.key for p in self if p.fit]

    def bounds(self) -> Dict[str, Tuple[float, float]]:
        return {p.key: (p.lower, p.upper) for p in self}

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------
    def set_value(self, key: str, value: float) -> float:
        """
        Set a base parameter, clamped to its bounds.

        Returns
        -------
        float
            The stored (clamped) value.

        Raises
        ------
        KeyError
            If ``key`` is derived or unknown.
        """
        if key in DERIVED_PARAMETERS:
            raise KeyError(f"'{key}' is derived and cannot be set directly.")
        param = self._params[key]
        param.value = param.clamp(value)
        self._refresh_derived()
        return param.value

    def set_fit(self, key: str, fit: bool = True) -> None:
        self._params[key].fit = bool(fit)

    def set_bounds(self, key: str, lower: float, upper: float) -> None:
        """Change the bounds of a parameter and re-clamp its value."""
        if lower > upper:
            raise ValueError(f"Invalid bounds for '{key}': lower ({lower}) > upper ({upper}).")
        param = self._params[key]
        param.lower, param.upper = float(lower), float(upper)
        param.value = param.clamp(param.value)
        self._refresh_derived()

    def update_values(self, values: Mapping[str, float]) -> None:
        """Commit a key -> value mapping; derived and unknown keys are ignored."""
        for key, value in values.items():
            if key in self._params:
                param = self._params[key]
                param.value = param.clamp(value)
        self._refresh_derived()

    def copy(self) -> 'ParameterSet':
        """Independent deep copy."""
        return ParameterSet(copy.deepcopy(list(self._params.values())), self.config)

    def _refresh_derived(self) -> None:
        values = {k: p.value for k, p in self._params.items()}
        recompute_dependents(values, self.config)
        self._derived = {k: values[k] for k in DERIVED_PARAMETERS if k in values}
