"""
Unit tests for parameters and model variants.
"""

import numpy as np
import pytest

from welltest.models import (
    ModelType,
    compute_curve,
    create_parameter_set,
    default_parameters,
    is_available,
    parameter_order,
)
from welltest.parameters import (
    FitParameter,
    ParameterSet,
    default_bounds,
    is_log_parameter,
    parameter_info,
    recompute_dependents,
)


class TestFitParameter:
    """Test single fit parameter."""

    def test_value_clamped_on_creation(self):
        """Test the initial value is clamped into bounds."""
        p = FitParameter('kf', 5.0, 0.1, 1.0)
        assert p.value == 1.0
        assert not p.fit

    def test_invalid_bounds(self):
        """Test lower > upper is rejected."""
        with pytest.raises(ValueError):
            FitParameter('kf', 1.0, 2.0, 1.0)

    def test_display_metadata(self):
        """Test display name, symbol and unit lookup."""
        p = FitParameter('mu', 0.5, 0.01, 1000.0)
        assert p.display_name == 'Viscosity'
        assert p.unit == 'mPa·s'
        assert parameter_info('unknown') == ('unknown', 'unknown', '')


class TestDefaults:
    """Test default bounds and log-space policy."""

    def test_tabulated_bounds(self):
        """Test tabulated keys ignore the value."""
        assert default_bounds('kf', 123.0) == (1e-6, 100.0)
        assert default_bounds('S', 1.0) == (0.0, 50.0)

    def test_relative_bounds(self):
        """Test untabulated keys get value-relative ranges."""
        lower, upper = default_bounds('gamaD', 0.02)
        assert np.isclose(lower, 2e-5)
        assert np.isclose(upper, 20.0)
        assert default_bounds('gamaD', 0.0) == (0.0, 100.0)
        assert default_bounds('gamaD', -1.0) == (-100.0, 100.0)

    def test_log_policy(self):
        """Test skin and fracture count stay linear."""
        assert is_log_parameter('kf', 1e-3)
        assert not is_log_parameter('kf', 0.0)
        assert not is_log_parameter('S', 2.0)
        assert not is_log_parameter('nf', 4.0)


class TestDerived:
    """Test derived parameter recomputation."""

    def test_lfd(self):
        """Test LfD = Lf / L."""
        values = recompute_dependents({'L': 1000.0, 'Lf': 100.0})
        assert values['LfD'] == 0.1

    def test_zero_length(self):
        """Test a zero well length gives LfD = 0."""
        values = recompute_dependents({'L': 0.0, 'Lf': 100.0})
        assert values['LfD'] == 0.0

    def test_missing_base(self):
        """Test derived keys are untouched without their base keys."""
        values = recompute_dependents({'kf': 1.0})
        assert 'LfD' not in values


class TestParameterSet:
    """Test parameter set."""

    def _params(self):
        return ParameterSet.from_values({'kf': 1e-3, 'L': 1000.0, 'Lf': 100.0, 'S': 1.0})

    def test_values_include_derived(self):
        """Test the value snapshot carries LfD."""
        params = self._params()
        assert params.values()['LfD'] == pytest.approx(0.1)
        assert 'LfD' not in params

    def test_set_value_recomputes(self):
        """Test a base edit refreshes the derived value."""
        params = self._params()
        params.set_value('Lf', 200.0)
        assert params.values()['LfD'] == pytest.approx(0.2)

    def test_set_value_clamps(self):
        """Test edits are clamped to the bounds."""
        params = self._params()
        assert params.set_value('kf', 1e6) == 100.0
        params.set_bounds('kf', 1e-4, 1e-2)
        assert params['kf'].value == 1e-2

    def test_derived_not_settable(self):
        """Test derived keys are read-only."""
        params = self._params()
        with pytest.raises(KeyError):
            params.set_value('LfD', 0.5)

    def test_duplicate_keys(self):
        """Test duplicate keys are rejected."""
        with pytest.raises(ValueError):
            ParameterSet([FitParameter('kf', 1.0, 0.0, 2.0), FitParameter('kf', 1.0, 0.0, 2.0)])

    def test_fit_keys_in_order(self):
        """Test fit keys follow display order."""
        params = self._params()
        params.set_fit('S')
        params.set_fit('kf')
        assert params.fit_keys() == ['kf', 'S']

    def test_update_values_ignores_unknown(self):
        """Test unknown and derived keys are ignored on commit."""
        params = self._params()
        params.update_values({'kf': 2e-3, 'LfD': 0.9, 'bogus': 1.0})
        values = params.values()
        assert values['kf'] == 2e-3
        assert values['LfD'] == pytest.approx(0.1)
        assert 'bogus' not in values

    def test_copy_is_independent(self):
        """Test copies do not share parameters."""
        params = self._params()
        other = params.copy()
        other.set_value('kf', 5e-3)
        other.set_fit('kf')
        assert params['kf'].value == 1e-3
        assert not params['kf'].fit


class TestModelVariants:
    """Test closed model variants."""

    def test_composite_defaults(self):
        """Test composite defaults."""
        values = default_parameters(ModelType.COMPOSITE_FRACTURED_HORIZONTAL)
        assert values['kf'] == 1e-3
        assert values['km'] == 1e-4
        assert values['cD'] == 0.01
        assert values['S'] == 1.0
        assert values['nf'] == 4.0

    def test_base_override(self):
        """Test project-level properties override the base values."""
        values = default_parameters(ModelType.FINITE_CONDUCTIVE, base={'phi': 0.12, 'kf': 9.0})
        assert values['phi'] == 0.12
        assert 'kf' not in values
        assert values['cD'] == 0.001

    def test_parameter_set_order(self):
        """Test the parameter set follows the display order."""
        params = create_parameter_set(ModelType.COMPOSITE_FRACTURED_HORIZONTAL)
        assert params.keys() == parameter_order(ModelType.COMPOSITE_FRACTURED_HORIZONTAL)
        assert params.fit_keys() == []

    def test_keys_without_defaults_skipped(self):
        """Test display keys lacking defaults are left out."""
        params = create_parameter_set(ModelType.SEGMENTED_MULTI_CLUSTER)
        assert 'omega' not in params
        assert params.keys()[-2:] == ['cD', 'S']

    def test_unavailable_variant(self):
        """Test variants without a solver report unavailable."""
        assert is_available(ModelType.COMPOSITE_FRACTURED_HORIZONTAL)
        assert not is_available(ModelType.FINITE_CONDUCTIVE)

        t = np.array([0.1, 1.0, 10.0])
        curve = compute_curve(ModelType.FINITE_CONDUCTIVE, {}, t)
        assert not curve.available
        assert len(curve) == 3
        np.testing.assert_array_equal(curve.pressure, 0.0)
        np.testing.assert_array_equal(curve.derivative, 0.0)
