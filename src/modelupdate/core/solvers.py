"""
Analysis solvers of a project.

The closed set of analyses (modal, flutter, updating) is described by
``AnalysisKind``. Each variant is a dataclass with the same interface:
``kind``, ``solve()``, ``clear()``, ``clone()``, equality and ``to_dict()``.
Variants are rebuilt from dictionaries through the ``SOLVER_TYPES`` registry.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union

from ..optimization.driver import UpdateDriver
from ..optimization.problem import IterationSnapshot, UpdateProblem
from ..utils.parallel import run_with_timeout
from .config import FlutterOptions, ModalOptions, OptimOptions, update_dataclass
from .modal import FlutterSolution, ModalSolution
from .model import StructuralModel

logger = logging.getLogger(__name__)


class AnalysisKind(Enum):
    MODAL = "modal"
    FLUTTER = "flutter"
    OPTIM = "optim"


def _copy_model(model: Optional[StructuralModel]) -> Optional[StructuralModel]:
    return model.copy() if model is not None else None


@dataclass(eq=False)
class ModalSolver:
    """Modal analysis of a model bounded by a timeout."""
    kind: ClassVar[AnalysisKind] = AnalysisKind.MODAL
    name: str = ""
    model: Optional[StructuralModel] = None
    options: ModalOptions = field(default_factory=ModalOptions)
    solution: Optional[ModalSolution] = None

    def solve(self) -> Optional[ModalSolution]:
        self.clear()
        if self.model is None or self.model.is_empty():
            logger.warning("Modal analysis of %s skipped: the model is empty", self.name or "unnamed solver")
            return None
        model = self.model.copy()
        model.set_num_modes(self.options.num_modes)
        solution = run_with_timeout(model.solve_eigen, self.options.timeout)
        if solution is None:
            logger.warning("Modal analysis did not finish within %g s", self.options.timeout)
        else:
            logger.info("Modal analysis finished: %d modes computed", solution.num_modes)
        self.solution = solution
        return solution

    def clear(self) -> None:
        self.solution = None

    def clone(self) -> "ModalSolver":
        return ModalSolver(self.name, _copy_model(self.model), copy.deepcopy(self.options),
                           copy.deepcopy(self.solution))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ModalSolver):
            return NotImplemented
        return self.name == other.name and self.options == other.options

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "name": self.name, "options": asdict(self.options)}


@dataclass(eq=False)
class FlutterSolver:
    """Flutter analysis delegated to the model."""
    kind: ClassVar[AnalysisKind] = AnalysisKind.FLUTTER
    name: str = ""
    model: Optional[StructuralModel] = None
    options: FlutterOptions = field(default_factory=FlutterOptions)
    solution: Optional[FlutterSolution] = None

    def solve(self) -> Optional[FlutterSolution]:
        self.clear()
        if self.model is None or self.model.is_empty():
            logger.warning("Flutter analysis of %s skipped: the model is empty", self.name or "unnamed solver")
            return None
        model = self.model.copy()
        model.set_num_modes(self.options.num_modes)
        solution = run_with_timeout(model.solve_flutter, self.options.timeout)
        if solution is None:
            logger.warning("Flutter analysis did not finish within %g s", self.options.timeout)
        self.solution = solution
        return solution

    def clear(self) -> None:
        self.solution = None

    def clone(self) -> "FlutterSolver":
        return FlutterSolver(self.name, _copy_model(self.model), copy.deepcopy(self.options),
                             copy.deepcopy(self.solution))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FlutterSolver):
            return NotImplemented
        return self.name == other.name and self.options == other.options

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "name": self.name, "options": asdict(self.options)}


@dataclass(eq=False)
class OptimSolver:
    """Model updating against the target modes of a problem."""
    kind: ClassVar[AnalysisKind] = AnalysisKind.OPTIM
    name: str = ""
    model: Optional[StructuralModel] = None
    problem: UpdateProblem = field(default_factory=UpdateProblem)
    options: OptimOptions = field(default_factory=OptimOptions)
    solutions: List[IterationSnapshot] = field(default_factory=list)
    driver: UpdateDriver = field(default_factory=UpdateDriver, repr=False)

    def solve(self) -> List[IterationSnapshot]:
        self.clear()
        if self.model is None:
            logger.warning("Updating of %s skipped: no model is set", self.name or "unnamed solver")
            return self.solutions
        self.solutions = self.driver.solve(self.model, self.problem, self.options)
        return self.solutions

    def stop(self) -> None:
        self.driver.stop()

    def clear(self) -> None:
        self.solutions = []

    def clone(self) -> "OptimSolver":
        return OptimSolver(self.name, _copy_model(self.model), copy.deepcopy(self.problem),
                           copy.deepcopy(self.options), copy.deepcopy(self.solutions))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OptimSolver):
            return NotImplemented
        return self.name == other.name and self.options == other.options

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "name": self.name, "options": asdict(self.options)}


AnalysisSolver = Union[ModalSolver, FlutterSolver, OptimSolver]

SOLVER_TYPES = {
    AnalysisKind.MODAL: ModalSolver,
    AnalysisKind.FLUTTER: FlutterSolver,
    AnalysisKind.OPTIM: OptimSolver,
}


def solver_from_dict(data: Dict[str, Any], model: Optional[StructuralModel] = None) -> AnalysisSolver:
    """Create a solver from ``{"kind": ..., "name": ..., "options": {...}}``."""
    try:
        kind = AnalysisKind(data["kind"])
    except KeyError:
        raise KeyError("Solver description has no 'kind' entry") from None
    except ValueError:
        raise ValueError(f"Unknown analysis kind: {data['kind']}") from None
    solver = SOLVER_TYPES[kind](name=str(data.get("name", "")), model=model)
    update_dataclass(solver.options, data.get("options"), kind.value)
    return solver


def clone_solver(solver: AnalysisSolver) -> AnalysisSolver:
    """Deep copy of a solver with a fresh driver state."""
    return SOLVER_TYPES[solver.kind].clone(solver)
