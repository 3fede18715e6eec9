"""Core data structures for modal model updating."""

from .constraints import VARIABLE_KINDS, VARIABLE_METADATA, ConstraintEntry, Constraints, VariableKind
from .model import SPECIAL_SURFACE, Element, ElementType, SpringElement, StructuralModel, Surface
from .modal import FlutterSolution, Geometry, ModalComparison, ModalSolution, match_vertices
from .mathutils import compute_mac, pair_by_mac, row_indices_abs_max
from .selection import Selection, SelectionSet, Selector
from .config import FlutterOptions, ModalOptions, OptimOptions, ProjectConfig
from .solvers import (
    AnalysisKind,
    FlutterSolver,
    ModalSolver,
    OptimSolver,
    clone_solver,
    solver_from_dict,
)

__all__ = [
    'VARIABLE_KINDS',
    'VARIABLE_METADATA',
    'ConstraintEntry',
    'Constraints',
    'VariableKind',
    'SPECIAL_SURFACE',
    'Element',
    'ElementType',
    'SpringElement',
    'StructuralModel',
    'Surface',
    'FlutterSolution',
    'Geometry',
    'ModalComparison',
    'ModalSolution',
    'match_vertices',
    'compute_mac',
    'pair_by_mac',
    'row_indices_abs_max',
    'Selection',
    'SelectionSet',
    'Selector',
    'FlutterOptions',
    'ModalOptions',
    'OptimOptions',
    'ProjectConfig',
    'AnalysisKind',
    'FlutterSolver',
    'ModalSolver',
    'OptimSolver',
    'clone_solver',
    'solver_from_dict',
]
