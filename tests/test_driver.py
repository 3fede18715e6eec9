import logging
from types import SimpleNamespace

import pytest

from modelupdate.core import (
    Constraints,
    ElementType,
    ModalSolution,
    OptimOptions,
    StructuralModel,
    VariableKind,
    match_vertices,
)
from modelupdate.optimization import UpdateDriver, UpdateProblem
from modelupdate.optimization import driver as driver_module
from modelupdate.preprocessing import build_selector, scale_model

from conftest import make_cantilever


def _problem(model, target, weights=(1.0, 1.0, 1.0), selection_sets=None):
    constraints = Constraints()
    constraints.set_scale(VariableKind.BEAM_STIFFNESS, 1e-7)
    return UpdateProblem(
        target_solution=target,
        target_indices=list(range(len(weights))),
        target_weights=list(weights),
        vertex_matches=match_vertices(target.geometry, model.geometry(), 1e-6),
        selector=build_selector(selection_sets or [{"name": "beams", "types": ["BI"]}], model),
        constraints=constraints,
    )


def _beam_factor(model):
    return model.element(0, ElementType.BEAM, 0).get()[4] / 1.0e4


@pytest.mark.parametrize("num_threads", [1, 2])
def test_update_recovers_beam_stiffness(num_threads):
    model = make_cantilever(with_spring=False)
    target = scale_model(model, {"beam_stiffness": 1.2}).solve_eigen()
    options = OptimOptions(max_num_iterations=100, timeout_iteration=5.0, num_threads=num_threads,
                           max_rel_error=1e-3, num_modes=6)

    driver = UpdateDriver()
    snapshots = driver.solve(model, _problem(model, target), options)

    assert snapshots
    assert [snapshot.iteration for snapshot in snapshots] == sorted(snapshot.iteration for snapshot in snapshots)
    final = snapshots[-1]
    assert _beam_factor(final.model) == pytest.approx(1.2, rel=1e-2)
    assert final.max_error() < 1e-2
    assert final.message
    assert not any(snapshot.is_success for snapshot in snapshots[:-1])
    assert driver.summary is not None
    assert driver.summary.final_cost <= driver.summary.initial_cost
    assert driver.summary.is_success == final.is_success
    assert _beam_factor(model) == 1.0


def test_iteration_cap_stops_the_solver():
    model = make_cantilever(with_spring=False)
    target = scale_model(model, {"beam_stiffness": 1.5}).solve_eigen()
    options = OptimOptions(max_num_iterations=1, timeout_iteration=5.0, max_rel_error=1e-12, num_modes=6)

    driver = UpdateDriver()
    snapshots = driver.solve(model, _problem(model, target), options)

    assert len(snapshots) <= 1
    assert driver.summary.num_iterations <= 1
    assert not driver.summary.is_success


def test_invalid_problem_returns_nothing(cantilever, caplog):
    target = cantilever.solve_eigen()
    problem = _problem(cantilever, target)
    problem.target_indices = [0, 1, 42]
    with caplog.at_level(logging.WARNING, logger="modelupdate"):
        snapshots = UpdateDriver().solve(cantilever, problem, OptimOptions())
    assert snapshots == []
    assert "Optimization data is not valid" in caplog.text


def test_empty_selection_returns_nothing(cantilever, caplog):
    target = cantilever.solve_eigen()
    problem = _problem(cantilever, target, selection_sets=[{"name": "nothing"}])
    with caplog.at_level(logging.WARNING, logger="modelupdate"):
        snapshots = UpdateDriver().solve(cantilever, problem, OptimOptions())
    assert snapshots == []
    assert "No parameters selected for updating" in caplog.text


def test_zero_weights_return_nothing(cantilever, caplog):
    target = cantilever.solve_eigen()
    problem = _problem(cantilever, target, weights=(0.0, 0.0))
    with caplog.at_level(logging.WARNING, logger="modelupdate"):
        driver = UpdateDriver()
        snapshots = driver.solve(cantilever, problem, OptimOptions())
    assert snapshots == []
    assert driver.summary is None
    assert "All target modes have zero weights" in caplog.text


def test_slow_model_produces_no_snapshots(slow_cantilever, caplog):
    target = slow_cantilever.solve_eigen()
    problem = _problem(slow_cantilever, target)
    options = OptimOptions(timeout_iteration=0.05, num_modes=6)
    with caplog.at_level(logging.ERROR, logger="modelupdate"):
        snapshots = UpdateDriver().solve(slow_cantilever, problem, options)
    assert snapshots == []
    assert "Residuals could not be computed" in caplog.text


def test_initial_values_outside_bounds_are_clipped(caplog):
    model = make_cantilever(with_spring=False)
    target = scale_model(model, {"beam_stiffness": 1.1}).solve_eigen()
    problem = _problem(model, target)
    problem.constraints.set_bounds(VariableKind.BEAM_STIFFNESS, (1.2e7, 1.0e9))
    options = OptimOptions(max_num_iterations=3, timeout_iteration=5.0, num_modes=6)
    with caplog.at_level(logging.WARNING, logger="modelupdate"):
        snapshots = UpdateDriver().solve(model, problem, options)
    assert "Initial parameters outside of their bounds were clipped" in caplog.text
    assert all(_beam_factor(snapshot.model) >= 1.2 - 1e-9 for snapshot in snapshots)


def test_stop_request_aborts_at_next_iteration():
    driver = UpdateDriver()

    class StoppingModel(StructuralModel):
        def solve_eigen(self):
            driver.stop()
            return super().solve_eigen()

    model = make_cantilever(with_spring=False, model_type=StoppingModel)
    target = scale_model(model, {"beam_stiffness": 1.3}).solve_eigen()
    options = OptimOptions(timeout_iteration=5.0, num_modes=6)

    snapshots = driver.solve(model, _problem(model, target), options)

    assert snapshots == []
    assert driver.summary is not None
    assert not driver.summary.is_success
    assert driver.summary.message == "Updating was stopped by the user"
    assert driver.summary.num_iterations == 1


@pytest.mark.parametrize("failing_call", [2, 3, 4, 5, 6, 8])
def test_single_infeasible_evaluation_does_not_end_updating(failing_call, caplog):
    calls = {"count": 0}

    class FlakyModel(StructuralModel):
        def solve_eigen(self):
            calls["count"] += 1
            if calls["count"] == failing_call:
                return ModalSolution()
            return super().solve_eigen()

    model = make_cantilever(with_spring=False, model_type=FlakyModel)
    target = scale_model(model, {"beam_stiffness": 1.2}).solve_eigen()
    calls["count"] = 0
    options = OptimOptions(max_num_iterations=100, timeout_iteration=5.0, max_rel_error=1e-3, num_modes=6)

    driver = UpdateDriver()
    with caplog.at_level(logging.ERROR, logger="modelupdate"):
        snapshots = driver.solve(model, _problem(model, target), options)

    assert "Updating failed" not in caplog.text
    assert driver.summary is not None
    assert driver.summary.num_iterations >= 1
    assert snapshots
    assert snapshots[-1].message == driver.summary.message
    assert _beam_factor(snapshots[-1].model) == pytest.approx(1.2, rel=1e-2)


def test_solver_failure_after_first_iteration_is_reported(monkeypatch, caplog):
    model = make_cantilever(with_spring=False)
    target = scale_model(model, {"beam_stiffness": 1.2}).solve_eigen()
    options = OptimOptions(timeout_iteration=5.0, num_modes=6)

    def failing_least_squares(fun, x0, callback=None, **kwargs):
        callback(SimpleNamespace(x=x0, cost=0.25, fun=fun(x0)))
        raise ValueError("array must not contain infs or NaNs")

    monkeypatch.setattr(driver_module, "least_squares", failing_least_squares)
    driver = UpdateDriver()
    with caplog.at_level(logging.ERROR, logger="modelupdate"):
        snapshots = driver.solve(model, _problem(model, target), options)

    assert "Updating failed at iteration 1" in caplog.text
    assert "initial point" not in caplog.text
    assert len(snapshots) == 1
    assert not snapshots[0].is_success
    assert "array must not contain infs or NaNs" in snapshots[0].message
    assert driver.summary is not None
    assert driver.summary.num_iterations == 1
    assert driver.summary.final_cost == 0.25
    assert driver.summary.message == snapshots[0].message


def test_evaluation_budget_follows_iteration_cap(monkeypatch):
    model = make_cantilever(with_spring=False)
    target = scale_model(model, {"beam_stiffness": 1.2}).solve_eigen()
    options = OptimOptions(max_num_iterations=700, timeout_iteration=5.0, max_rel_error=1e-3, num_modes=6)
    budgets = []

    def recording_least_squares(*args, **kwargs):
        budgets.append(kwargs["max_nfev"])
        return original(*args, **kwargs)

    original = driver_module.least_squares
    monkeypatch.setattr(driver_module, "least_squares", recording_least_squares)
    UpdateDriver().solve(model, _problem(model, target), options)

    assert budgets == [700 * driver_module.EVALUATIONS_PER_ITERATION]
