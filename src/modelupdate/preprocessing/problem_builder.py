"""
Problem Input Definition for Modal Model Updating
=================================================

This module converts YAML-style dictionaries into the objects consumed by the
updating engine: the structural model, the target modal solution, the
selection sets and the update problem.

Layout of a project file
------------------------
options:            modal / flutter / optim option sections
model:
  surfaces:         list of {name, vertices, elements: {CODE: [rows]}}
  springs:          list of {surface, vertex, stiffness, num_values}
target:
  frequencies, modeshapes, vertices   explicit measured modes, or
  reference: {factors: {kind: factor}}  modes of a modified copy of the model
  move / rotate:    rigid transformation of the target geometry
problem:
  indices, weights  target modes and their weights
  vertex_tolerance  distance used to match target and model vertices
  selection_sets    list of {name, all, surfaces, types, elements}
  constraints       per variable kind overrides
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np

from ..core.config import ProjectConfig
from ..core.constraints import Constraints, VariableKind
from ..core.modal import Geometry, ModalSolution, match_vertices
from ..core.model import (
    SPECIAL_SURFACE,
    Element,
    ElementType,
    SpringElement,
    StructuralModel,
    Surface,
)
from ..core.selection import Selection, Selector
from ..optimization.accessor import ELEMENT_VARIABLES, VARIABLE_INDICES
from ..optimization.problem import UpdateProblem
from ..utils.io_utils import load_nested_config

logger = logging.getLogger(__name__)


@dataclass
class ProjectInput:
    """Everything needed to run the analyses of one project file."""
    config: ProjectConfig = field(default_factory=ProjectConfig)
    model: StructuralModel = field(default_factory=StructuralModel)
    target: ModalSolution = field(default_factory=ModalSolution)
    problem: UpdateProblem = field(default_factory=UpdateProblem)


# ---- model ----
def build_model(data: Dict[str, Any]) -> StructuralModel:
    """Create a structural model from its dictionary description."""
    if not isinstance(data, dict):
        raise ValueError("Section 'model' must be a mapping")
    surfaces = []
    for i, item in enumerate(data.get("surfaces", [])):
        surface = Surface(name=str(item.get("name", f"Surface {i + 1}")), vertices=item.get("vertices", []))
        for code, rows in (item.get("elements") or {}).items():
            element_type = ElementType.from_code(code)
            if element_type in (ElementType.SPRING, ElementType.ANALYSIS_PARAMETERS):
                raise ValueError(f"Element type {code} belongs to the special surface")
            for row in rows:
                surface.add_element(Element(element_type, row))
        surfaces.append(surface)

    special = Surface(name="special")
    for item in data.get("springs", []):
        special.add_element(SpringElement(
            stiffness=item.get("stiffness"),
            num_values=item.get("num_values", 6),
            surface=item.get("surface", 0),
            vertex=item.get("vertex", 0),
        ))
    model = StructuralModel(surfaces, special, name=str(data.get("name", "")))
    if "num_modes" in data:
        model.set_num_modes(int(data["num_modes"]))
    return model


def model_to_dict(model: StructuralModel) -> Dict[str, Any]:
    """Describe a model with the same layout ``build_model`` reads."""
    surfaces = []
    for surface in model.surfaces:
        elements = {
            element_type.code: [element.get().tolist() for element in surface.elements_of(element_type)]
            for element_type in surface.types()
        }
        surfaces.append({"name": surface.name, "vertices": surface.vertices.tolist(), "elements": elements})
    springs = [
        {
            "surface": spring.surface,
            "vertex": spring.vertex,
            "num_values": spring.num_values,
            "stiffness": spring.get().tolist(),
        }
        for spring in model.special_surface.elements_of(ElementType.SPRING)
    ]
    return {"name": model.name, "num_modes": model.num_modes, "surfaces": surfaces, "springs": springs}


def scale_model(model: StructuralModel, factors: Dict[str, float]) -> StructuralModel:
    """Copy of ``model`` with the properties of the given variable kinds multiplied by factors."""
    result = model.copy()
    for key, factor in factors.items():
        kind = VariableKind(key)
        if kind == VariableKind.SPRING_STIFFNESS:
            for spring in result.special_surface.elements_of(ElementType.SPRING):
                spring.set(spring.get() * factor)
            continue
        indices = list(VARIABLE_INDICES[kind])
        for surface in result.surfaces:
            for element_type in surface.types():
                if kind not in ELEMENT_VARIABLES.get(element_type, ()):
                    continue
                for element in surface.elements_of(element_type):
                    values = element.get()
                    values[indices] *= factor
                    element.set(values)
    return result


# ---- target ----
def build_target(data: Dict[str, Any], model: Optional[StructuralModel] = None) -> ModalSolution:
    """Create the target modal solution.

    With a ``reference`` entry the target is the modal solution of a copy of
    ``model`` whose properties are scaled by ``reference.factors``.
    Otherwise frequencies, mode shapes and vertices are read explicitly;
    ``null`` mode shape entries are treated as not measured.
    """
    if "reference" in data:
        if model is None:
            raise ValueError("A reference target requires a model")
        reference = scale_model(model, (data["reference"] or {}).get("factors", {}))
        if "num_modes" in data:
            reference.set_num_modes(int(data["num_modes"]))
        target = reference.solve_eigen()
    else:
        vertices = np.asarray(data.get("vertices", []), dtype=float).reshape(-1, 3)
        modeshapes = [np.asarray(item, dtype=float).reshape(-1, 3) for item in data.get("modeshapes", [])]
        geometry = Geometry(vertices, data.get("lines"), data.get("vertex_names"))
        target = ModalSolution(geometry, data.get("frequencies", []), modeshapes, data.get("names"))

    if "move" in data:
        target.geometry.move(data["move"])
    if "rotate" in data:
        rotation = data["rotate"]
        target.geometry.rotate(float(rotation["angle"]), rotation.get("axis", "z"), bool(rotation.get("degrees", True)))
    return target


# ---- selections ----
def build_selector(items: List[Dict[str, Any]], model: StructuralModel) -> Selector:
    """Create selection sets; by default every updatable element is selected."""
    selector = Selector(model)
    if not items:
        items = [{"name": "all", "all": True}]
    for item in items:
        selection_set = selector.add(str(item.get("name", f"Set {len(selector) + 1}")))
        if item.get("all"):
            selection_set.select_all()
        for surface in item.get("surfaces", []):
            selection_set.set_surface_selected(SPECIAL_SURFACE if surface == "special" else int(surface), True)
        for code in item.get("types", []):
            selection_set.set_type_selected(ElementType.from_code(code), True)
        for element in item.get("elements", []):
            selection_set.set_selected(Selection.from_dict(element), True)
        for element in item.get("exclude", []):
            selection_set.set_selected(Selection.from_dict(element), False)
    return selector


# ---- problem ----
def build_problem(data: Dict[str, Any], model: StructuralModel, target: ModalSolution) -> UpdateProblem:
    """Create the update problem of ``model`` against ``target``."""
    problem = UpdateProblem(target_solution=target)
    if "indices" in data:
        problem.target_indices = [int(index) for index in data["indices"]]
        problem.target_weights = [float(weight) for weight in data.get("weights", [1.0] * len(problem.target_indices))]
    else:
        problem.resize(target.num_modes)
        if "weights" in data:
            problem.target_weights = [float(weight) for weight in data["weights"]]

    tolerance = float(data.get("vertex_tolerance", 1e-6))
    problem.vertex_matches = match_vertices(target.geometry, model.geometry(), tolerance)
    if not problem.vertex_matches:
        logger.warning("No vertices of the target geometry match the model within %g", tolerance)

    problem.selector = build_selector(data.get("selection_sets", []), model)
    problem.constraints = Constraints.from_dict(data.get("constraints", {}))
    return problem


def build_project(data: Dict[str, Any]) -> ProjectInput:
    """Create all project objects from a configuration dictionary."""
    for section in ("model", "target"):
        if section not in data:
            raise KeyError(f"Missing '{section}' section in the project configuration")
    config = ProjectConfig.from_dict(data.get("options", {}))
    model = build_model(data["model"])
    model.set_num_modes(config.modal.num_modes)
    target = build_target(data["target"], model)
    problem = build_problem(data.get("problem", {}), model, target)
    return ProjectInput(config, model, target, problem)


def load_project(path: str | Path) -> ProjectInput:
    """Read a YAML project file (include directives supported)."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    return build_project(load_nested_config(path))
