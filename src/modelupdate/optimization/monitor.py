"""Per-iteration monitoring of the least-squares solver."""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

import numpy as np

from ..core.config import OptimOptions
from .problem import IterationSnapshot, UpdateProblem
from .residual import DecodeFunction, EigenFunction, evaluate_candidate

logger = logging.getLogger(__name__)


class CallbackStatus(Enum):
    CONTINUE = "continue"
    ABORT = "abort"
    TERMINATE_SUCCESS = "terminate_success"


@dataclass(frozen=True)
class IterationSummary:
    """Iteration metadata reported by the solver."""
    iteration: int
    cost: float
    cost_change: float = np.nan
    gradient_norm: float = np.nan
    step_norm: float = np.nan
    step_is_successful: bool = True
    elapsed: float = 0.0
    parameters: np.ndarray = field(default_factory=lambda: np.zeros(0))

    @classmethod
    def from_result(cls, iteration: int, result, previous: Optional["IterationSummary"],
                    elapsed: float) -> "IterationSummary":
        """Build a summary from the ``intermediate_result`` of scipy's callback."""
        x = np.array(result.x, dtype=float)
        fun = np.asarray(getattr(result, "fun", np.zeros(0)), dtype=float)
        cost = float(getattr(result, "cost", 0.5 * np.dot(fun, fun)))
        grad = getattr(result, "grad", None)
        gradient_norm = float(np.max(np.abs(grad))) if grad is not None and np.size(grad) else np.nan
        if previous is None:
            cost_change = np.nan
            step_norm = np.nan
            is_successful = True
        else:
            cost_change = previous.cost - cost
            step_norm = float(np.linalg.norm(x - previous.parameters))
            is_successful = cost_change >= 0.0
        return cls(iteration, cost, cost_change, gradient_norm, step_norm, is_successful, elapsed, x)


class IterationMonitor:
    """Evaluate the current solver iterate and decide whether to go on.

    On every call:

    1. a pending stop request aborts the solver;
    2. an infeasible iterate is skipped;
    3. otherwise a snapshot is emitted through ``on_snapshot`` together with a
       progress line, and the solver is stopped successfully once the largest
       relative frequency error drops below ``options.max_rel_error``.
    """

    def __init__(self, problem: UpdateProblem, options: OptimOptions, decode: DecodeFunction,
                 solve_eigen: EigenFunction, stop_event: threading.Event,
                 on_snapshot: Callable[[IterationSnapshot], None]) -> None:
        self._problem = copy.deepcopy(problem)
        self._options = copy.deepcopy(options)
        self._decode = decode
        self._solve_eigen = solve_eigen
        self._stop_event = stop_event
        self._on_snapshot = on_snapshot

    def __call__(self, summary: IterationSummary) -> CallbackStatus:
        if self._stop_event.is_set():
            return CallbackStatus.ABORT

        candidate = evaluate_candidate(summary.parameters, self._problem, self._options, self._decode,
                                       self._solve_eigen)
        if candidate is None:
            logger.debug("Iteration %d: model could not be evaluated", summary.iteration)
            return CallbackStatus.CONTINUE

        snapshot = IterationSnapshot(
            iteration=summary.iteration,
            is_success=False,
            duration=summary.elapsed,
            cost=summary.cost,
            model=candidate.model,
            solution=candidate.solution,
            comparison=candidate.comparison,
        )
        self._on_snapshot(snapshot)

        max_error = snapshot.max_error()
        logger.info(
            "Iteration: %4d    Cost: %12.6e    Change: %12.6e    Step: %10.4e    Max error: %8.4f %%    Time: %8.3f s",
            summary.iteration, summary.cost, summary.cost_change, summary.step_norm, 100.0 * max_error,
            summary.elapsed,
        )
        if max_error < self._options.max_rel_error:
            return CallbackStatus.TERMINATE_SUCCESS
        return CallbackStatus.CONTINUE
