import threading
from types import SimpleNamespace

import numpy as np
import pytest

from modelupdate.core import Constraints, OptimOptions, match_vertices
from modelupdate.optimization import (
    CallbackStatus,
    ForwardDifferenceJacobian,
    IterationMonitor,
    IterationSummary,
    ParameterCodec,
    ResidualEvaluator,
    UpdateProblem,
    bounded_eigen_solver,
)
from modelupdate.preprocessing import build_selector, scale_model

from conftest import make_cantilever


def _problem(model, target, indices=(0, 1, 2), weights=None):
    return UpdateProblem(
        target_solution=target,
        target_indices=list(indices),
        target_weights=list(weights) if weights is not None else [1.0] * len(indices),
        vertex_matches=match_vertices(target.geometry, model.geometry(), 1e-6),
        selector=build_selector([{"name": "beams", "types": ["BI"]}], model),
        constraints=Constraints(),
    )


def _setup(model, factor=1.0, weights=None, timeout=5.0):
    target = scale_model(model, {"beam_stiffness": factor}).solve_eigen()
    problem = _problem(model, target, weights=weights)
    options = OptimOptions(timeout_iteration=timeout, num_modes=6)
    codec = ParameterCodec(model, problem.selections(), problem.constraints)
    codec.wrap()
    solve_eigen = bounded_eigen_solver(options.num_modes, options.timeout_iteration)
    return problem, options, codec, solve_eigen


def test_residuals_vanish_at_target(cantilever):
    problem, options, codec, solve_eigen = _setup(cantilever)
    evaluator = ResidualEvaluator(problem, options, codec.unwrap, solve_eigen)
    residuals = evaluator(codec.parameters.values)
    assert residuals.shape == (3,)
    assert np.allclose(residuals, 0.0, atol=1e-12)


def test_residuals_follow_frequency_errors():
    problem, options, codec, solve_eigen = _setup(make_cantilever(with_spring=False), factor=1.21)
    evaluator = ResidualEvaluator(problem, options, codec.unwrap, solve_eigen)
    candidate = evaluator.evaluate(codec.parameters.values)
    assert candidate is not None
    expected = candidate.comparison.error_frequencies ** 2 + 20.0 * candidate.comparison.errors_mac ** 2
    assert np.allclose(evaluator(codec.parameters.values), expected)
    assert np.allclose(candidate.comparison.error_frequencies, 1.0 / 1.1 - 1.0)


def test_zero_weights_do_not_produce_residuals(cantilever):
    problem, options, codec, solve_eigen = _setup(cantilever, factor=1.21, weights=[2.0, 0.0, 1.0])
    evaluator = ResidualEvaluator(problem, options, codec.unwrap, solve_eigen)
    assert evaluator.num_residuals == 2
    candidate = evaluator.evaluate(codec.parameters.values)
    residuals = evaluator.residuals(candidate.comparison)
    errors = candidate.comparison.error_frequencies
    assert residuals.shape == (2,)
    assert residuals[0] == pytest.approx(2.0 * (errors[0] ** 2 + 20.0 * candidate.comparison.errors_mac[0] ** 2))


def test_timeout_makes_candidate_infeasible(slow_cantilever):
    problem, options, codec, solve_eigen = _setup(slow_cantilever, timeout=0.05)
    evaluator = ResidualEvaluator(problem, options, codec.unwrap, solve_eigen)
    assert evaluator(codec.parameters.values) is None
    objective = evaluator.as_objective()
    values = objective(codec.parameters.values)
    assert values.shape == (3,)
    assert np.all(np.isnan(values))


def test_decode_errors_make_candidate_infeasible(cantilever):
    problem, options, codec, solve_eigen = _setup(cantilever)

    def broken_decode(x):
        raise ValueError("bad vector")

    evaluator = ResidualEvaluator(problem, options, broken_decode, solve_eigen)
    assert evaluator(codec.parameters.values) is None


def test_evaluator_keeps_private_problem(cantilever):
    problem, options, codec, solve_eigen = _setup(cantilever)
    evaluator = ResidualEvaluator(problem, options, codec.unwrap, solve_eigen)
    problem.target_indices.clear()
    problem.target_weights.clear()
    assert evaluator(codec.parameters.values).shape == (3,)


def _monitor(problem, options, codec, solve_eigen, stop_event=None):
    snapshots = []
    monitor = IterationMonitor(problem, options, codec.unwrap, solve_eigen, stop_event or threading.Event(),
                               snapshots.append)
    return monitor, snapshots


def _summary(x, iteration=1):
    return IterationSummary.from_result(iteration, SimpleNamespace(x=x, cost=0.5, fun=np.zeros(3)), None, 0.1)


def test_monitor_aborts_when_stopped(cantilever):
    problem, options, codec, solve_eigen = _setup(cantilever, factor=1.21)
    stop_event = threading.Event()
    stop_event.set()
    monitor, snapshots = _monitor(problem, options, codec, solve_eigen, stop_event)
    assert monitor(_summary(codec.parameters.values)) == CallbackStatus.ABORT
    assert snapshots == []


def test_monitor_records_snapshot_and_continues(cantilever):
    problem, options, codec, solve_eigen = _setup(cantilever, factor=1.21)
    monitor, snapshots = _monitor(problem, options, codec, solve_eigen)
    assert monitor(_summary(codec.parameters.values, iteration=3)) == CallbackStatus.CONTINUE
    assert len(snapshots) == 1
    snapshot = snapshots[0]
    assert snapshot.iteration == 3
    assert not snapshot.is_success
    assert snapshot.max_error() > options.max_rel_error
    assert snapshot.frequencies.size == 6


def test_monitor_terminates_on_small_errors(cantilever):
    problem, options, codec, solve_eigen = _setup(cantilever)
    monitor, snapshots = _monitor(problem, options, codec, solve_eigen)
    assert monitor(_summary(codec.parameters.values)) == CallbackStatus.TERMINATE_SUCCESS
    assert len(snapshots) == 1


def test_monitor_skips_infeasible_iterates(slow_cantilever):
    problem, options, codec, solve_eigen = _setup(slow_cantilever, timeout=0.05)
    monitor, snapshots = _monitor(problem, options, codec, solve_eigen)
    assert monitor(_summary(codec.parameters.values)) == CallbackStatus.CONTINUE
    assert snapshots == []


def test_iteration_summary_tracks_changes():
    first = IterationSummary.from_result(1, SimpleNamespace(x=np.array([1.0, 1.0]), cost=2.0), None, 0.1)
    second = IterationSummary.from_result(2, SimpleNamespace(x=np.array([1.0, 4.0]), cost=1.5), first, 0.2)
    assert np.isnan(first.cost_change)
    assert second.cost_change == 0.5
    assert second.step_norm == 3.0
    assert second.step_is_successful


def _linear(x):
    return np.array([2.0 * x[0] + x[1], 3.0 * x[1]])


def test_jacobian_of_feasible_objective():
    jacobian = ForwardDifferenceJacobian(_linear, 1e-6, np.full(2, -np.inf), np.full(2, np.inf))
    assert np.allclose(jacobian(np.array([1.0, -2.0])), [[2.0, 1.0], [0.0, 3.0]], atol=1e-5)


def test_jacobian_steps_away_from_upper_bound():
    jacobian = ForwardDifferenceJacobian(_linear, 1e-6, np.zeros(2), np.array([1.0, 10.0]))
    steps = jacobian.steps(np.array([1.0, 2.0]))
    assert steps[0] < 0.0 < steps[1]


def test_jacobian_retries_infeasible_columns():
    def objective(x):
        if x[0] > 1.0:
            return np.full(2, np.nan)
        return _linear(x)

    jacobian = ForwardDifferenceJacobian(objective, 1e-6, np.full(2, -np.inf), np.full(2, np.inf))
    matrix = jacobian(np.array([1.0, 0.5]))
    assert np.all(np.isfinite(matrix))
    assert np.allclose(matrix, [[2.0, 1.0], [0.0, 3.0]], atol=1e-5)


def test_jacobian_freezes_parameters_infeasible_both_ways():
    def objective(x):
        if x[1] != 0.5:
            return np.full(2, np.nan)
        return _linear(x)

    jacobian = ForwardDifferenceJacobian(objective, 1e-6, np.full(2, -np.inf), np.full(2, np.inf))
    matrix = jacobian(np.array([1.0, 0.5]))
    assert np.allclose(matrix[:, 0], [2.0, 0.0], atol=1e-5)
    assert np.array_equal(matrix[:, 1], [0.0, 0.0])


def test_jacobian_reuses_last_residuals():
    calls = []

    def objective(x):
        calls.append(x.copy())
        return _linear(x)

    jacobian = ForwardDifferenceJacobian(objective, 1e-6, np.full(2, -np.inf), np.full(2, np.inf),
                                         lambda func, tasks: [func(task) for task in tasks])
    x = np.array([1.0, 2.0])
    jacobian.fun(x)
    jacobian.fun(x)
    jacobian(x)
    assert jacobian.num_evaluations == 1
    assert len(calls) == 3
