"""Reference structural model used by the updating engine.

The model is a set of elastic surfaces plus one special surface. Every
surface owns its vertices and a group of elements per element type; the
special surface carries the elements which are not attached to a single
surface (springs, analysis parameters).

Eigen-analysis
--------------
Each surface is treated as an Euler-Bernoulli bending chain in the z
direction with two degrees of freedom per vertex (deflection ``w`` and
rotation ``theta``), vertex 0 being clamped:

- beams (BI, DB, BK) contribute the consistent stiffness and mass matrices
  built from ``EIx`` and the mass per unit length;
- panels (PN, OP) contribute a grounded plate stiffness ``D / area`` and a
  lumped mass ``density * area * thickness`` at their vertex;
- lumped masses (M3) contribute translational mass at their vertex;
- springs (PR) of the special surface ground the deflection and rotation of
  their attachment vertex through the stiffness entries ``k[2][2]`` and
  ``k[3][3]``.

The generalized symmetric problem ``K phi = lambda M phi`` is solved by
``scipy.linalg.eigh`` and converted to frequencies ``sqrt(lambda) / (2 pi)``.

Element data layout
-------------------
Beams   (8)  : [vertex1, vertex2, mass_per_length, unused, EIx, EIz, GJ, EA]
Panels  (18) : [vertex, area, density, ..., thickness @ 11, E1 @ 12,
                nu @ 13, G @ 14, ..., E2 @ 17]
Mass    (2)  : [vertex, mass]
Analysis (1) : [number of modes]
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
from scipy import linalg

from .modal import Geometry, ModalSolution

logger = logging.getLogger(__name__)

SPECIAL_SURFACE = -1


class ElementType(IntEnum):
    """Element types ordered the way groups are traversed."""
    BEAM = 0
    DOUBLE_BEAM = 1
    BOX_BEAM = 2
    PANEL = 3
    ORTHO_PANEL = 4
    MASS = 5
    SPRING = 6
    ANALYSIS_PARAMETERS = 7

    @property
    def code(self) -> str:
        return ELEMENT_CODES[self]

    @classmethod
    def from_code(cls, code: str) -> "ElementType":
        for element_type, element_code in ELEMENT_CODES.items():
            if element_code == code.upper():
                return element_type
        raise KeyError(f"Unknown element type: {code}")


ELEMENT_CODES: Dict[ElementType, str] = {
    ElementType.BEAM: "BI",
    ElementType.DOUBLE_BEAM: "DB",
    ElementType.BOX_BEAM: "BK",
    ElementType.PANEL: "PN",
    ElementType.ORTHO_PANEL: "OP",
    ElementType.MASS: "M3",
    ElementType.SPRING: "PR",
    ElementType.ANALYSIS_PARAMETERS: "WP",
}

ELEMENT_SIZES: Dict[ElementType, int] = {
    ElementType.BEAM: 8,
    ElementType.DOUBLE_BEAM: 8,
    ElementType.BOX_BEAM: 8,
    ElementType.PANEL: 18,
    ElementType.ORTHO_PANEL: 18,
    ElementType.MASS: 2,
    ElementType.ANALYSIS_PARAMETERS: 1,
}

BEAM_TYPES = (ElementType.BEAM, ElementType.DOUBLE_BEAM, ElementType.BOX_BEAM)
PANEL_TYPES = (ElementType.PANEL, ElementType.ORTHO_PANEL)
DEFAULT_NUM_MODES = 20


class Element:
    """Generic element holding a fixed-size vector of properties."""

    def __init__(self, type: ElementType, data=None) -> None:
        self.type = ElementType(type)
        size = ELEMENT_SIZES[self.type]
        values = np.zeros(size) if data is None else np.asarray(data, dtype=float).ravel()
        if values.size != size:
            raise ValueError(f"Element {self.type.code} expects {size} values, got {values.size}")
        self._data = values.copy()

    def get(self) -> np.ndarray:
        return self._data.copy()

    def set(self, values) -> None:
        values = np.asarray(values, dtype=float).ravel()
        if values.size != self._data.size:
            raise ValueError(f"Element {self.type.code} expects {self._data.size} values, got {values.size}")
        self._data = values.copy()

    def __repr__(self) -> str:
        return f"Element({self.type.code}, {self._data.tolist()})"


class SpringElement:
    """Spring connecting a surface vertex to the ground.

    ``num_values`` tells how many independent stiffness entries are defined:
    6 for a diagonal matrix, anything else for a full matrix addressed in
    row-major order.
    """

    type = ElementType.SPRING

    def __init__(self, stiffness=None, num_values: int = 6, surface: int = 0, vertex: int = 0) -> None:
        matrix = np.zeros((6, 6)) if stiffness is None else np.asarray(stiffness, dtype=float)
        if matrix.ndim == 1 and matrix.size == 6:
            matrix = np.diag(matrix)
        if matrix.shape != (6, 6):
            raise ValueError(f"Spring stiffness must be a 6x6 matrix, got shape {matrix.shape}")
        self.stiffness = matrix.copy()
        self.num_values = int(num_values)
        self.surface = int(surface)
        self.vertex = int(vertex)

    @property
    def is_diagonal(self) -> bool:
        return self.num_values == self.stiffness.shape[0]

    def get(self) -> np.ndarray:
        return self.stiffness.copy()

    def set(self, stiffness) -> None:
        matrix = np.asarray(stiffness, dtype=float)
        if matrix.shape != self.stiffness.shape:
            raise ValueError(f"Spring stiffness must be a 6x6 matrix, got shape {matrix.shape}")
        self.stiffness = matrix.copy()

    def __repr__(self) -> str:
        return f"SpringElement(surface={self.surface}, vertex={self.vertex}, num_values={self.num_values})"


AnyElement = Union[Element, SpringElement]


@dataclass
class Surface:
    """Named group of vertices and elements."""
    name: str = ""
    vertices: np.ndarray = field(default_factory=lambda: np.zeros((0, 3)))
    elements: Dict[ElementType, List[AnyElement]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.vertices = np.asarray(self.vertices, dtype=float).reshape(-1, 3)

    @property
    def num_vertices(self) -> int:
        return self.vertices.shape[0]

    def types(self) -> List[ElementType]:
        """Element types present in the surface in traversal order."""
        return sorted(key for key, items in self.elements.items() if items)

    def elements_of(self, type: ElementType) -> List[AnyElement]:
        return self.elements.get(type, [])

    def num_elements(self, type: ElementType) -> int:
        return len(self.elements.get(type, []))

    def element(self, type: ElementType, index: int) -> Optional[AnyElement]:
        items = self.elements.get(type, [])
        if 0 <= index < len(items):
            return items[index]
        return None

    def add_element(self, element: AnyElement) -> int:
        """Append an element and return its index within its type group."""
        items = self.elements.setdefault(element.type, [])
        items.append(element)
        return len(items) - 1


class StructuralModel:
    """Elastic surfaces, the special surface and the modal analysis."""

    def __init__(self, surfaces: Optional[List[Surface]] = None, special_surface: Optional[Surface] = None,
                 name: str = "") -> None:
        self.name = name
        self.surfaces: List[Surface] = list(surfaces) if surfaces else []
        self.special_surface = special_surface if special_surface is not None else Surface(name="special")
        if not self.special_surface.elements_of(ElementType.ANALYSIS_PARAMETERS):
            self.special_surface.add_element(Element(ElementType.ANALYSIS_PARAMETERS, [DEFAULT_NUM_MODES]))

    def is_empty(self) -> bool:
        return not any(surface.num_vertices > 0 for surface in self.surfaces)

    @property
    def num_surfaces(self) -> int:
        return len(self.surfaces)

    @property
    def analysis_parameters(self) -> Element:
        return self.special_surface.element(ElementType.ANALYSIS_PARAMETERS, 0)

    @property
    def num_modes(self) -> int:
        return int(self.analysis_parameters.get()[0])

    def set_num_modes(self, num_modes: int) -> None:
        self.analysis_parameters.set([num_modes])

    def surface(self, index: int) -> Optional[Surface]:
        if index == SPECIAL_SURFACE:
            return self.special_surface
        if 0 <= index < len(self.surfaces):
            return self.surfaces[index]
        return None

    def element(self, surface: int, type: ElementType, index: int) -> Optional[AnyElement]:
        """Retrieve an element by position, ``None`` if it does not exist."""
        owner = self.surface(surface)
        if owner is None:
            return None
        return owner.element(type, index)

    def num_elements(self, surface: int, type: ElementType) -> int:
        owner = self.surface(surface)
        return owner.num_elements(type) if owner is not None else 0

    def types(self, surface: int) -> List[ElementType]:
        owner = self.surface(surface)
        return owner.types() if owner is not None else []

    def add_surface(self, surface: Surface) -> int:
        self.surfaces.append(surface)
        return len(self.surfaces) - 1

    def copy(self) -> "StructuralModel":
        return copy.deepcopy(self)

    # ---- analysis ----
    def geometry(self) -> Geometry:
        """Vertices of all elastic surfaces with the beam connectivity."""
        blocks = [surface.vertices for surface in self.surfaces]
        vertices = np.vstack(blocks) if blocks else np.zeros((0, 3))
        lines: List[Tuple[int, int]] = []
        for offset, surface in zip(self._vertex_offsets(), self.surfaces):
            for element_type in BEAM_TYPES:
                for element in surface.elements_of(element_type):
                    data = element.get()
                    lines.append((offset + int(data[0]), offset + int(data[1])))
        return Geometry(vertices, lines)

    def solve_eigen(self) -> ModalSolution:
        """Compute the lowest ``num_modes`` frequencies and mode shapes.

        Returns
        -------
        ModalSolution
            Empty solution if the model is empty, has no free degrees of
            freedom, or its matrices are not positive definite.
        """
        geometry = self.geometry()
        if self.is_empty():
            return ModalSolution(geometry)
        stiffness, mass = self._assemble()
        free = self._free_dofs()
        if free.size == 0:
            return ModalSolution(geometry)
        K = stiffness[np.ix_(free, free)]
        M = mass[np.ix_(free, free)]
        if not (np.all(np.isfinite(K)) and np.all(np.isfinite(M))):
            logger.debug("Non-finite structural matrices, modal analysis skipped")
            return ModalSolution(geometry)
        num_modes = max(0, min(self.num_modes, free.size))
        if num_modes == 0:
            return ModalSolution(geometry)
        try:
            eigenvalues, eigenvectors = linalg.eigh(K, M, subset_by_index=[0, num_modes - 1])
        except (linalg.LinAlgError, ValueError) as exc:
            logger.debug("Modal analysis failed: %s", exc)
            return ModalSolution(geometry)
        frequencies = np.sqrt(np.clip(eigenvalues, 0.0, None)) / (2.0 * np.pi)
        num_dofs = stiffness.shape[0]
        modeshapes = []
        for i in range(num_modes):
            full = np.zeros(num_dofs)
            full[free] = eigenvectors[:, i]
            shape = np.zeros((geometry.num_vertices, 3))
            shape[:, 2] = full[0::2]
            modeshapes.append(shape)
        names = [f"Mode {i + 1}" for i in range(num_modes)]
        return ModalSolution(geometry, frequencies, modeshapes, names)

    def solve_flutter(self):
        raise NotImplementedError("Flutter analysis is provided by an external solver")

    def _vertex_offsets(self) -> List[int]:
        counts = [surface.num_vertices for surface in self.surfaces]
        return list(np.concatenate([[0], np.cumsum(counts)[:-1]]).astype(int)) if counts else []

    def _free_dofs(self) -> np.ndarray:
        clamped = []
        for offset, surface in zip(self._vertex_offsets(), self.surfaces):
            if surface.num_vertices:
                clamped.extend([2 * offset, 2 * offset + 1])
        total = 2 * sum(surface.num_vertices for surface in self.surfaces)
        return np.setdiff1d(np.arange(total), clamped)

    def _assemble(self) -> Tuple[np.ndarray, np.ndarray]:
        num_dofs = 2 * sum(surface.num_vertices for surface in self.surfaces)
        K = np.zeros((num_dofs, num_dofs))
        M = np.zeros((num_dofs, num_dofs))
        offsets = self._vertex_offsets()
        for offset, surface in zip(offsets, self.surfaces):
            for element_type in BEAM_TYPES:
                for element in surface.elements_of(element_type):
                    _add_beam(K, M, element.get(), surface.vertices, offset)
            for element_type in PANEL_TYPES:
                for element in surface.elements_of(element_type):
                    data = element.get()
                    dof = 2 * (offset + int(data[0]))
                    K[dof, dof] += _plate_stiffness(element_type, data)
                    M[dof, dof] += data[2] * data[1] * data[11]
            for element in surface.elements_of(ElementType.MASS):
                data = element.get()
                dof = 2 * (offset + int(data[0]))
                M[dof, dof] += data[1]
        for spring in self.special_surface.elements_of(ElementType.SPRING):
            if not 0 <= spring.surface < len(self.surfaces):
                continue
            dof = 2 * (offsets[spring.surface] + spring.vertex)
            K[dof, dof] += spring.stiffness[2, 2]
            K[dof + 1, dof + 1] += spring.stiffness[3, 3]
        return K, M


def _add_beam(K: np.ndarray, M: np.ndarray, data: np.ndarray, vertices: np.ndarray, offset: int) -> None:
    i, j = int(data[0]), int(data[1])
    length = float(np.linalg.norm(vertices[j] - vertices[i]))
    if length <= 0.0:
        return
    L = length
    EI = data[4]
    mass = data[2]
    ke = EI / L**3 * np.array([
        [12.0, 6.0 * L, -12.0, 6.0 * L],
        [6.0 * L, 4.0 * L**2, -6.0 * L, 2.0 * L**2],
        [-12.0, -6.0 * L, 12.0, -6.0 * L],
        [6.0 * L, 2.0 * L**2, -6.0 * L, 4.0 * L**2],
    ])
    me = mass * L / 420.0 * np.array([
        [156.0, 22.0 * L, 54.0, -13.0 * L],
        [22.0 * L, 4.0 * L**2, 13.0 * L, -3.0 * L**2],
        [54.0, 13.0 * L, 156.0, -22.0 * L],
        [-13.0 * L, -3.0 * L**2, -22.0 * L, 4.0 * L**2],
    ])
    dofs = [2 * (offset + i), 2 * (offset + i) + 1, 2 * (offset + j), 2 * (offset + j) + 1]
    K[np.ix_(dofs, dofs)] += ke
    M[np.ix_(dofs, dofs)] += me


def _plate_stiffness(element_type: ElementType, data: np.ndarray) -> float:
    area, thickness, E1, nu, G, E2 = data[1], data[11], data[12], data[13], data[14], data[17]
    if area <= 0.0:
        return 0.0
    with np.errstate(divide="ignore", invalid="ignore"):
        if element_type == ElementType.ORTHO_PANEL:
            rigidity = thickness**3 / 12.0 * (np.sqrt(E1 * E2) / (1.0 - nu**2) + 2.0 * G)
        else:
            rigidity = E1 * thickness**3 / (12.0 * (1.0 - nu**2))
    return float(rigidity / area)
