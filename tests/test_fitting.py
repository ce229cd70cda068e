"""
Unit tests for residuals, Jacobian, Levenberg-Marquardt fitting and the worker.
"""

import threading

import numpy as np
import pytest

from welltest.config import Config
from welltest.data_io import ObservedData
from welltest.fitting import (
    CancellationToken,
    FitCompleted,
    FitProgress,
    FitState,
    IterationUpdate,
    LevenbergMarquardt,
    fit,
    run_fit,
)
from welltest.jacobian import compute_jacobian, perturbed
from welltest.models import ModelType, compute_curve
from welltest.residuals import (
    check_weight,
    compute_residuals,
    curve_residuals,
    error_metric,
    sum_squared_error,
)
from welltest.worker import FitFailed, FitWorker


MODEL = ModelType.COMPOSITE_FRACTURED_HORIZONTAL


def offset_set(truth_set, factors):
    """Copy of the truth with some parameters scaled and flagged for fitting."""
    params = truth_set.copy()
    for key, factor in factors.items():
        params.set_value(key, params[key].value * factor)
        params.set_fit(key)
    return params


class TestResiduals:
    """Test weighted log residuals."""

    def test_zero_at_truth(self, truth, synthetic):
        """Test the generating parameters reproduce the data exactly."""
        r = compute_residuals(truth, MODEL, 0.5, synthetic)
        assert len(r) == 2 * len(synthetic)
        assert sum_squared_error(r) == 0.0

    def test_log_difference_and_weight(self, synthetic):
        """Test the channel formulas and weights."""
        curve = compute_curve(MODEL, {}, synthetic.time, high_precision=False)
        curve.pressure = synthetic.pressure / np.e
        curve.derivative = synthetic.derivative.copy()
        r = curve_residuals(curve, synthetic, 0.3)
        n = len(synthetic)
        np.testing.assert_allclose(r[:n], 0.3)
        np.testing.assert_allclose(r[n:], 0.0)

    def test_gated_slots_kept(self, synthetic):
        """Test non-positive samples give zero slots rather than dropping them."""
        observed = ObservedData(synthetic.time, synthetic.pressure.copy(), synthetic.derivative)
        observed.pressure[3] = 0.0
        curve = compute_curve(MODEL, {}, synthetic.time, high_precision=False)
        r = curve_residuals(curve, observed, 0.5)
        assert len(r) == 2 * len(observed)
        assert r[3] == 0.0
        # End points of the Bourdet derivative are zero
        assert r[len(observed)] == 0.0

    def test_short_derivative_channel(self, truth, synthetic):
        """Test the derivative channel follows the shorter derivative."""
        observed = ObservedData(synthetic.time, synthetic.pressure, synthetic.derivative[:-3])
        r = compute_residuals(truth, MODEL, 0.5, observed)
        assert len(r) == 2 * len(observed) - 3

    def test_weight_validation(self):
        """Test weights outside [0, 1] are rejected."""
        assert check_weight(0.0) == 0.0
        with pytest.raises(ValueError):
            check_weight(1.5)

    def test_error_metric(self):
        """Test SSE and its mean."""
        r = np.array([1.0, -2.0, 2.0])
        assert sum_squared_error(r) == 9.0
        assert error_metric(r) == 3.0
        assert error_metric(np.zeros(0)) == 0.0


class TestJacobian:
    """Test finite-difference Jacobian."""

    def test_perturbed_recomputes_dependents(self, truth):
        """Test perturbing Lf refreshes LfD."""
        values = perturbed(truth, 'Lf', 0.01, True)
        assert np.isclose(values['Lf'], 50.0 * 10 ** 0.01)
        assert np.isclose(values['LfD'], values['Lf'] / values['L'])
        values = perturbed(truth, 'S', -1e-4, False)
        assert np.isclose(values['S'], 1.0 - 1e-4)

    def test_residual_length_invariant(self, truth, synthetic):
        """Test every perturbation keeps the residual length."""
        config = Config()
        base = compute_residuals(truth, MODEL, 0.5, synthetic)
        for key in ('kf', 'Lf', 'S', 'cD'):
            for step in (config.FD_LOG_STEP, -config.FD_LOG_STEP):
                values = perturbed(truth, key, step, key != 'S')
                assert len(compute_residuals(values, MODEL, 0.5, synthetic)) == len(base)

    def test_shape_and_unused_parameter(self, truth, synthetic):
        """Test one column per key and a zero column for an unused key."""
        values = dict(truth)
        values['omega'] = 0.1
        base = compute_residuals(values, MODEL, 0.5, synthetic)
        J = compute_jacobian(values, base, ['kf', 'omega'], MODEL, 0.5, synthetic)
        assert J.shape == (len(base), 2)
        assert np.any(J[:, 0] != 0.0)
        np.testing.assert_array_equal(J[:, 1], 0.0)

    def test_mismatched_length_column_zero(self, truth, synthetic):
        """Test a base residual of unexpected length leaves columns at zero."""
        J = compute_jacobian(truth, np.zeros(5), ['kf'], MODEL, 0.5, synthetic)
        np.testing.assert_array_equal(J, 0.0)


class TestLevenbergMarquardt:
    """Test the fitting state machine."""

    def test_exact_parameters(self, truth_set, synthetic):
        """Test starting at the truth gives SSE ≈ 0 and stops."""
        params = truth_set.copy()
        params.set_fit('kf')
        params.set_fit('S')
        optimizer = LevenbergMarquardt(MODEL, params, synthetic)
        events = list(optimizer.run())

        completed = events[-1]
        assert isinstance(completed, FitCompleted)
        assert completed.error < 1e-20
        assert completed.parameters['kf'] == truth_set['kf'].value
        assert optimizer.exit_status is FitState.CONVERGED
        assert optimizer.state.status is FitState.DONE

    def test_no_fit_parameters(self, truth_set, synthetic):
        """Test an empty fit goes straight to finalization."""
        events = list(run_fit(MODEL, truth_set, synthetic))
        assert [type(e) for e in events] == [IterationUpdate, IterationUpdate, FitCompleted]
        assert not events[0].high_precision
        assert events[1].high_precision

    def test_recovers_parameters(self, truth, truth_set, synthetic):
        """Test kf, S and cD are recovered from ±50% starting values."""
        params = offset_set(truth_set, {'kf': 1.5, 'S': 0.5, 'cD': 1.5})
        events = list(run_fit(MODEL, params, synthetic))
        final = events[-1].parameters

        for key in ('kf', 'S', 'cD'):
            assert abs(final[key] - truth[key]) <= 0.05 * abs(truth[key]), key
        iterations = [e.iteration for e in events if isinstance(e, IterationUpdate)]
        assert max(iterations) <= 50

    def test_bounds_respected(self, truth_set, synthetic):
        """Test no committed iterate leaves the configured bounds."""
        params = offset_set(truth_set, {'kf': 0.5, 'cD': 2.0})
        params.set_bounds('kf', 0.004, 0.008)
        params.set_bounds('cD', 0.015, 0.05)
        config = Config(LM_MAX_ITER=8)

        updates = [e for e in run_fit(MODEL, params, synthetic, config=config) if isinstance(e, IterationUpdate)]
        assert len(updates) >= 2
        for update in updates:
            assert 0.004 <= update.parameters['kf'] <= 0.008
            assert 0.015 <= update.parameters['cD'] <= 0.05

    def test_error_decreases(self, truth_set, synthetic):
        """Test accepted steps strictly lower the error."""
        params = offset_set(truth_set, {'kf': 1.5})
        config = Config(LM_MAX_ITER=5)
        errors = [
            e.error for e in run_fit(MODEL, params, synthetic, config=config)
            if isinstance(e, IterationUpdate) and not e.high_precision
        ]
        assert len(errors) >= 2
        assert all(b < a for a, b in zip(errors, errors[1:]))

    def test_cancellation(self, truth_set, synthetic):
        """Test cancelling after an accepted step ends with that iterate."""
        params = offset_set(truth_set, {'kf': 1.5, 'S': 0.5})
        token = CancellationToken()
        committed = None
        after_cancel = []

        for event in run_fit(MODEL, params, synthetic, token=token):
            if token.cancelled:
                after_cancel.append(event)
            elif isinstance(event, IterationUpdate) and event.iteration >= 1:
                committed = event.parameters
                token.cancel()

        assert committed is not None
        assert [type(e) for e in after_cancel] == [IterationUpdate, FitCompleted]
        final_update, completed = after_cancel
        assert final_update.high_precision
        assert completed.parameters == committed

        expected = compute_curve(MODEL, committed, synthetic.time, high_precision=True)
        np.testing.assert_allclose(final_update.curve.pressure, expected.pressure)

    def test_progress_events(self, truth_set, synthetic):
        """Test one progress event per outer iteration with growing fractions."""
        params = offset_set(truth_set, {'kf': 1.5})
        config = Config(LM_MAX_ITER=3)
        progress = [e for e in run_fit(MODEL, params, synthetic, config=config) if isinstance(e, FitProgress)]
        assert 1 <= len(progress) <= 3
        assert progress[0].fraction == 0.0
        assert [p.iteration for p in progress] == list(range(len(progress)))

    def test_inputs_copied(self, truth_set, synthetic):
        """Test edits after start are not seen by the fit."""
        params = offset_set(truth_set, {'kf': 1.5})
        events = run_fit(MODEL, params, synthetic, config=Config(LM_MAX_ITER=1))
        params.set_value('kf', 1.0)
        first = next(events)
        assert first.parameters['kf'] != 1.0

    def test_invalid_weight(self, truth_set, synthetic):
        """Test an invalid weight fails at start."""
        with pytest.raises(ValueError):
            run_fit(MODEL, truth_set, synthetic, weight=-0.1)

    def test_fit_wrapper(self, truth_set, synthetic, capsys):
        """Test the convenience wrapper returns a fitted copy and a report."""
        params = offset_set(truth_set, {'kf': 1.3})
        fitted, info = fit(MODEL, params, synthetic, config=Config(LM_MAX_ITER=10), verbose=True)

        assert fitted is not params
        assert params['kf'].value == pytest.approx(0.013)
        assert info['error_final'] <= info['error_initial']
        assert isinstance(info['status'], FitState)
        assert len(info['curve']) == len(synthetic)
        out = capsys.readouterr().out
        assert 'WELL-TEST PARAMETER FIT' in out
        assert 'Fit complete!' in out


class TestFitWorker:
    """Test the background fit worker."""

    def test_runs_to_completion(self, truth_set, synthetic):
        """Test events arrive in order and end with completion."""
        worker = FitWorker(Config(LM_MAX_ITER=2))
        params = offset_set(truth_set, {'kf': 1.2})
        worker.start(MODEL, params, synthetic)
        events = list(worker.events(timeout=600))
        worker.join(10)

        assert isinstance(events[0], IterationUpdate)
        assert isinstance(events[-1], FitCompleted)
        assert events[-2].high_precision
        assert not worker.running

    def test_rejects_concurrent_run(self, truth_set, synthetic, monkeypatch):
        """Test a second start while running raises."""
        release = threading.Event()

        def blocking_run(self):
            release.wait(30)
            yield FitCompleted(parameters={}, error=0.0, iterations=0)

        monkeypatch.setattr(LevenbergMarquardt, 'run', blocking_run)
        worker = FitWorker()
        worker.start(MODEL, truth_set, synthetic)
        assert worker.running
        with pytest.raises(RuntimeError):
            worker.start(MODEL, truth_set, synthetic)

        release.set()
        events = list(worker.events(timeout=30))
        assert isinstance(events[-1], FitCompleted)
        worker.join(10)
        assert not worker.running

    def test_failure_reported(self, truth_set, synthetic, monkeypatch):
        """Test an exception in the fit arrives as a terminal event."""
        def failing_run(self):
            raise ArithmeticError("boom")
            yield

        monkeypatch.setattr(LevenbergMarquardt, 'run', failing_run)
        worker = FitWorker()
        worker.start(MODEL, truth_set, synthetic)
        events = list(worker.events(timeout=30))
        assert isinstance(events[-1], FitFailed)
        assert isinstance(events[-1].error, ArithmeticError)
        worker.join(10)
        assert not worker.running

    def test_cancel(self, truth_set, synthetic):
        """Test a cancelled run still completes with a final curve."""
        worker = FitWorker()
        params = offset_set(truth_set, {'kf': 1.5})
        token = worker.start(MODEL, params, synthetic)
        worker.cancel()
        assert token.cancelled
        events = list(worker.events(timeout=600))
        assert isinstance(events[-1], FitCompleted)
        assert events[-2].high_precision
        worker.join(10)
        assert worker.drain() == []
