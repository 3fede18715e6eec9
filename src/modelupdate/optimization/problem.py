"""Input and output records of model updating."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from ..core.constraints import Constraints
from ..core.modal import ModalComparison, ModalSolution, VertexMatch
from ..core.model import StructuralModel
from ..core.selection import Selection, Selector


@dataclass
class UpdateProblem:
    """Target modes and the elements to adjust to reproduce them.

    Attributes
    ----------
    target_solution : ModalSolution
        Measured (or reference) modes.
    target_indices : list of int
        Target modes taking part in updating.
    target_weights : list of float
        Weight of every target mode; a zero weight keeps the mode in the
        comparison without adding a residual.
    vertex_matches : list of (int, int)
        Correspondence ``(target vertex, model vertex)``.
    selector : Selector
        Selection sets of the elements to update.
    constraints : Constraints
        Updating settings per variable kind.
    """
    target_solution: ModalSolution = field(default_factory=ModalSolution)
    target_indices: List[int] = field(default_factory=list)
    target_weights: List[float] = field(default_factory=list)
    vertex_matches: List[VertexMatch] = field(default_factory=list)
    selector: Selector = field(default_factory=Selector)
    constraints: Constraints = field(default_factory=Constraints)

    def is_empty(self) -> bool:
        return len(self.target_indices) == 0

    def is_valid(self) -> bool:
        num_modes = len(self.target_indices)
        if self.is_empty() or num_modes != len(self.target_weights):
            return False
        num_target = self.target_solution.num_modes
        return all(0 <= index < num_target for index in self.target_indices)

    def resize(self, num_modes: int) -> None:
        self.target_indices = list(range(num_modes))
        self.target_weights = [1.0] * num_modes

    def selections(self) -> List[Selection]:
        return self.selector.all_selections()


@dataclass(frozen=True)
class IterationSnapshot:
    """State of the model after one solver iteration."""
    iteration: int
    is_success: bool
    duration: float
    cost: float
    model: StructuralModel
    solution: ModalSolution
    comparison: ModalComparison
    message: str = ""

    @property
    def frequencies(self) -> np.ndarray:
        return self.solution.frequencies

    def max_error(self) -> Optional[float]:
        """Largest absolute relative frequency error, ``None`` if nothing was compared."""
        errors = np.abs(self.comparison.error_frequencies)
        if errors.size == 0:
            return None
        return float(np.max(errors))


@dataclass(frozen=True)
class UpdateSummary:
    """Final report of the least-squares solver."""
    num_iterations: int = 0
    num_evaluations: int = 0
    initial_cost: float = np.nan
    final_cost: float = np.nan
    duration: float = 0.0
    is_success: bool = False
    message: str = ""

    def lines(self) -> Tuple[str, ...]:
        return (
            f"Iterations: {self.num_iterations}",
            f"Residual evaluations: {self.num_evaluations}",
            f"Initial cost: {self.initial_cost:.6e}",
            f"Final cost: {self.final_cost:.6e}",
            f"Duration: {self.duration:.3f} s",
            f"Termination: {self.message}",
        )
