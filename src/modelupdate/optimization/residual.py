"""Residuals of the mismatch between target and computed modes.

Each evaluation decodes a parameter vector into a fresh model copy, runs the
modal analysis bounded by a timeout and compares the computed modes with the
target ones. An evaluation that cannot produce a valid comparison is
infeasible: the evaluator returns ``None`` and the solver objective returns a
NaN vector, which the trust-region solver rejects as a trial step.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from ..core.config import OptimOptions
from ..core.modal import ModalComparison, ModalSolution
from ..core.model import StructuralModel
from ..utils.parallel import run_with_timeout
from .problem import UpdateProblem

logger = logging.getLogger(__name__)

# Weights not exceeding this value do not produce residuals
WEIGHT_EPS = 1e-12

DecodeFunction = Callable[[np.ndarray], StructuralModel]
EigenFunction = Callable[[StructuralModel], Optional[ModalSolution]]


@dataclass(frozen=True)
class Candidate:
    """Decoded model with its modes compared to the target."""
    model: StructuralModel
    solution: ModalSolution
    comparison: ModalComparison


def bounded_eigen_solver(num_modes: int, timeout: Optional[float]) -> EigenFunction:
    """Create a function running the modal analysis of a model within ``timeout`` seconds.

    The returned function writes the number of modes into the analysis
    parameters of the model and yields ``None`` if the analysis is late.
    """

    def solve(model: StructuralModel) -> Optional[ModalSolution]:
        model.set_num_modes(num_modes)
        return run_with_timeout(model.solve_eigen, timeout)

    return solve


def evaluate_candidate(x: np.ndarray, problem: UpdateProblem, options: OptimOptions, decode: DecodeFunction,
                       solve_eigen: EigenFunction) -> Optional[Candidate]:
    """Decode, solve and compare one parameter vector; ``None`` if infeasible."""
    try:
        model = decode(np.array(x, dtype=float))
        solution = solve_eigen(model)
    except (ArithmeticError, ValueError, np.linalg.LinAlgError) as exc:
        logger.debug("Evaluation failed: %s", exc)
        return None
    if solution is None or solution.is_empty():
        return None
    comparison = problem.target_solution.compare(solution, problem.target_indices, problem.vertex_matches,
                                                 options.min_mac)
    if not comparison.is_valid():
        return None
    return Candidate(model, solution, comparison)


class ResidualEvaluator:
    """Weighted frequency and shape residuals of a parameter vector.

    One residual is produced per target mode whose weight exceeds
    ``WEIGHT_EPS``::

        r_i = w_i * (error_frequency_i ** 2 + penalty_mac * error_mac_i ** 2)

    The evaluator owns a private copy of the problem and keeps no state
    between calls, so it may be called from several threads at once.
    """

    def __init__(self, problem: UpdateProblem, options: OptimOptions, decode: DecodeFunction,
                 solve_eigen: EigenFunction) -> None:
        self._problem = copy.deepcopy(problem)
        self._options = copy.deepcopy(options)
        self._decode = decode
        self._solve_eigen = solve_eigen
        weights = np.asarray(self._problem.target_weights, dtype=float)
        self._active = np.flatnonzero(weights > WEIGHT_EPS)
        self._weights = weights[self._active]

    @property
    def num_residuals(self) -> int:
        return self._active.size

    def evaluate(self, x: np.ndarray) -> Optional[Candidate]:
        return evaluate_candidate(x, self._problem, self._options, self._decode, self._solve_eigen)

    def residuals(self, comparison: ModalComparison) -> np.ndarray:
        error_frequencies = comparison.error_frequencies[self._active]
        errors_mac = comparison.errors_mac[self._active]
        return self._weights * (error_frequencies**2 + self._options.penalty_mac * errors_mac**2)

    def __call__(self, x: np.ndarray) -> Optional[np.ndarray]:
        candidate = self.evaluate(x)
        if candidate is None:
            return None
        return self.residuals(candidate.comparison)

    def as_objective(self, num_residuals: Optional[int] = None) -> Callable[[np.ndarray], np.ndarray]:
        """Objective for ``scipy.optimize.least_squares``; infeasible points give NaN."""
        size = self.num_residuals if num_residuals is None else num_residuals

        def objective(x: np.ndarray) -> np.ndarray:
            residuals = self(x)
            if residuals is None:
                return np.full(size, np.nan)
            return residuals

        return objective


class ForwardDifferenceJacobian:
    """Forward-difference Jacobian of an objective with infeasible regions.

    Steps follow ``scipy.optimize.least_squares``: ``h = rel_step * sign(x) *
    max(1, |x|)``, flipped when ``x + h`` leaves the bounds. A column whose
    perturbed point is infeasible is retried with the step in the opposite
    direction; when that point is infeasible too the column is zero and the
    parameter does not move in the iteration.

    ``fun`` is the objective to hand to the solver. It caches the last point,
    so the Jacobian reuses the residuals the solver has just computed.
    Columns are evaluated through ``map_function`` when given, otherwise
    sequentially.
    """

    def __init__(self, objective: Callable[[np.ndarray], np.ndarray], rel_step: Optional[float],
                 lower: np.ndarray, upper: np.ndarray,
                 map_function: Optional[Callable[[Callable, list], list]] = None) -> None:
        self._objective = objective
        self._rel_step = rel_step if rel_step else float(np.sqrt(np.finfo(float).eps))
        self._lower = np.asarray(lower, dtype=float)
        self._upper = np.asarray(upper, dtype=float)
        self._map = map_function
        self._last_x: Optional[np.ndarray] = None
        self._last_f: Optional[np.ndarray] = None
        self.num_evaluations = 0

    def fun(self, x: np.ndarray) -> np.ndarray:
        x = np.array(x, dtype=float)
        if self._last_x is not None and np.array_equal(x, self._last_x):
            return self._last_f.copy()
        f = np.asarray(self._objective(x), dtype=float)
        self.num_evaluations += 1
        self._last_x = x
        self._last_f = f.copy()
        return f

    def steps(self, x: np.ndarray) -> np.ndarray:
        sign = np.where(x >= 0.0, 1.0, -1.0)
        h = self._rel_step * sign * np.maximum(1.0, np.abs(x))
        outside = (x + h > self._upper) | (x + h < self._lower)
        h[outside] *= -1.0
        return (x + h) - x

    def _column(self, task) -> np.ndarray:
        x, f0, j, h = task
        for step in (h, -h):
            point = x.copy()
            point[j] += step
            dx = point[j] - x[j]
            if dx == 0.0 or point[j] < self._lower[j] or point[j] > self._upper[j]:
                continue
            f = np.asarray(self._objective(point), dtype=float)
            if np.all(np.isfinite(f)):
                return (f - f0) / dx
        logger.debug("Derivative with respect to parameter %d could not be computed", j)
        return np.zeros_like(f0)

    def __call__(self, x: np.ndarray, *args, **kwargs) -> np.ndarray:
        x = np.array(x, dtype=float)
        f0 = self.fun(x)
        if not np.all(np.isfinite(f0)):
            return np.zeros((f0.size, x.size))
        h = self.steps(x)
        tasks = [(x, f0, j, h[j]) for j in range(x.size)]
        if self._map is None:
            columns = [self._column(task) for task in tasks]
        else:
            columns = self._map(self._column, tasks)
        return np.column_stack(columns)
