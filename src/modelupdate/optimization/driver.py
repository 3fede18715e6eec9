"""Model updating driver.

This module provides the UpdateDriver class which wraps the selected model
properties into a bounded parameter vector and minimizes the weighted
frequency and shape residuals with ``scipy.optimize.least_squares``.

Solver setup
------------
- Trust Region Reflective method with bounds from the constraints;
- forward finite differences with relative step ``diff_step_size``,
  evaluated on ``num_threads`` worker threads; a column at an infeasible
  point is retried backwards and frozen when both directions fail;
- at most ``EVALUATIONS_PER_ITERATION`` residual evaluations per allowed
  iteration;
- a per-iteration callback which records snapshots, enforces the iteration
  cap and stops the solver by raising ``StopIteration``.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from typing import List, Optional

import numpy as np
from scipy.optimize import least_squares

from ..core.config import OptimOptions
from ..core.model import StructuralModel
from ..utils.parallel import worker_map
from .codec import ParameterCodec
from .monitor import CallbackStatus, IterationMonitor, IterationSummary
from .problem import IterationSnapshot, UpdateProblem, UpdateSummary
from .residual import ForwardDifferenceJacobian, ResidualEvaluator, bounded_eigen_solver

logger = logging.getLogger(__name__)

# Residual evaluations granted to the solver per allowed iteration
EVALUATIONS_PER_ITERATION = 10


class UpdateDriver:
    """Runs the updating of a structural model against target modes.

    ``solve`` blocks until the solver returns; ``stop`` may be called from
    another thread and takes effect at the next iteration.
    """

    def __init__(self) -> None:
        self._stop_event = threading.Event()
        self._summary: Optional[UpdateSummary] = None

    @property
    def summary(self) -> Optional[UpdateSummary]:
        return self._summary

    def stop(self) -> None:
        """Request the running solver to stop."""
        self._stop_event.set()

    def solve(self, model: StructuralModel, problem: UpdateProblem, options: OptimOptions) -> List[IterationSnapshot]:
        """Update ``model`` so that its modes approach the target.

        Parameters
        ----------
        model : StructuralModel
            Initial model; it is not modified.
        problem : UpdateProblem
            Target modes, weights, vertex matches, selections and constraints.
        options : OptimOptions
            Solver settings.

        Returns
        -------
        list of IterationSnapshot
            One snapshot per feasible iteration. Empty if the problem is not
            valid or the initial model cannot be evaluated. When the solver
            fails after the first iteration the last snapshot carries the
            error message.
        """
        self._stop_event.clear()
        self._summary = None
        snapshots: List[IterationSnapshot] = []

        if model.is_empty() or not problem.is_valid():
            logger.warning("Optimization data is not valid")
            return snapshots

        codec = ParameterCodec(model, problem.selections(), problem.constraints)
        parameters = codec.wrap()
        if len(parameters) == 0:
            logger.warning("No parameters selected for updating")
            return snapshots

        solve_eigen = bounded_eigen_solver(options.num_modes, options.timeout_iteration)
        evaluator = ResidualEvaluator(problem, options, codec.unwrap, solve_eigen)
        num_residuals = evaluator.num_residuals
        if num_residuals == 0:
            logger.warning("All target modes have zero weights")
            return snapshots
        monitor = IterationMonitor(problem, options, codec.unwrap, solve_eigen, self._stop_event, snapshots.append)
        objective = evaluator.as_objective(num_residuals)

        lower, upper = parameters.lower, parameters.upper
        x0 = np.clip(parameters.values, lower, upper)
        if not np.array_equal(x0, parameters.values):
            logger.warning("Initial parameters outside of their bounds were clipped")
        logger.info("Updating %d parameters to fit %d residuals", x0.size, num_residuals)

        start = time.perf_counter()
        state = {"iteration": 0, "previous": None, "status": CallbackStatus.CONTINUE, "capped": False}

        def callback(intermediate_result) -> None:
            state["iteration"] += 1
            summary = IterationSummary.from_result(state["iteration"], intermediate_result, state["previous"],
                                                   time.perf_counter() - start)
            state["previous"] = summary
            status = monitor(summary)
            state["status"] = status
            if status != CallbackStatus.CONTINUE:
                raise StopIteration
            if state["iteration"] >= options.max_num_iterations:
                state["capped"] = True
                raise StopIteration

        with worker_map(options.num_threads) as workers:
            jacobian = ForwardDifferenceJacobian(objective, options.diff_step_size, lower, upper, workers)
            initial = jacobian.fun(x0)
            if not np.all(np.isfinite(initial)):
                logger.error("Residuals could not be computed for the initial model")
                return snapshots
            initial_cost = 0.5 * float(np.dot(initial, initial))
            try:
                result = least_squares(
                    jacobian.fun,
                    x0,
                    jac=jacobian,
                    bounds=(lower, upper),
                    method="trf",
                    max_nfev=options.max_num_iterations * EVALUATIONS_PER_ITERATION,
                    callback=callback,
                )
            except (ValueError, np.linalg.LinAlgError) as exc:
                if state["iteration"] == 0:
                    logger.error("Updating failed at the initial point: %s", exc)
                    return snapshots
                logger.error("Updating failed at iteration %d: %s", state["iteration"], exc)
                result = None
                failure = str(exc)

        if result is None:
            is_success, message = False, f"Updating failed: {failure}"
            final_cost = snapshots[-1].cost if snapshots else state["previous"].cost
        else:
            is_success, message = self._verdict(state, result)
            final_cost = float(result.cost)
        if snapshots:
            snapshots[-1] = dataclasses.replace(snapshots[-1], is_success=is_success, message=message)
        self._summary = UpdateSummary(
            num_iterations=state["iteration"],
            num_evaluations=jacobian.num_evaluations,
            initial_cost=initial_cost,
            final_cost=final_cost,
            duration=time.perf_counter() - start,
            is_success=is_success,
            message=message,
        )
        logger.info("Updating finished")
        for line in self._summary.lines():
            logger.info(line)
        return snapshots

    @staticmethod
    def _verdict(state: dict, result) -> tuple:
        status = state["status"]
        if status == CallbackStatus.TERMINATE_SUCCESS:
            return True, "Relative frequency errors are below the tolerance"
        if status == CallbackStatus.ABORT:
            return False, "Updating was stopped by the user"
        if state["capped"]:
            return False, "Maximum number of iterations reached"
        return bool(result.success), str(result.message)
