"""Access to the updatable properties of selected model elements.

Properties of a group of elements of one type are exchanged as a matrix with
one row per element and one column per property index of a variable kind.
Spring stiffness matrices are exchanged as a single row of the entries kept
by a boolean mask.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

import numpy as np

from ..core.constraints import Constraints, VariableKind
from ..core.model import SPECIAL_SURFACE, AnyElement, ElementType, SpringElement, StructuralModel
from ..core.selection import Selection

# Surface index -> element type -> elements in selection order
ElementGroups = Dict[int, Dict[ElementType, List[AnyElement]]]

VARIABLE_INDICES: Dict[VariableKind, Tuple[int, ...]] = {
    VariableKind.BEAM_STIFFNESS: (4, 5, 6, 7),
    VariableKind.THICKNESS: (11,),
    VariableKind.YOUNGS_MODULUS_1: (12,),
    VariableKind.YOUNGS_MODULUS_2: (17,),
    VariableKind.SHEAR_MODULUS: (14,),
    VariableKind.POISSON_RATIO: (13,),
}

ELEMENT_VARIABLES: Dict[ElementType, Tuple[VariableKind, ...]] = {
    ElementType.BEAM: (VariableKind.BEAM_STIFFNESS,),
    ElementType.DOUBLE_BEAM: (VariableKind.BEAM_STIFFNESS,),
    ElementType.BOX_BEAM: (VariableKind.BEAM_STIFFNESS,),
    ElementType.PANEL: (
        VariableKind.THICKNESS,
        VariableKind.YOUNGS_MODULUS_1,
        VariableKind.POISSON_RATIO,
    ),
    ElementType.ORTHO_PANEL: (
        VariableKind.THICKNESS,
        VariableKind.YOUNGS_MODULUS_1,
        VariableKind.YOUNGS_MODULUS_2,
        VariableKind.SHEAR_MODULUS,
        VariableKind.POISSON_RATIO,
    ),
}

EPS = np.finfo(float).eps


def group_elements(model: StructuralModel, selections: List[Selection]) -> ElementGroups:
    """Group the selected elements of ``model`` by surface, then by type.

    Selections pointing to missing elements are skipped. Dictionaries are
    filled in sorted order so that iterating them gives the traversal order
    of elastic surfaces, then the special surface.
    """
    groups: ElementGroups = {}
    for selection in sorted(selections):
        element = model.element(selection.surface, selection.type, selection.index)
        if element is None:
            continue
        groups.setdefault(selection.surface, {}).setdefault(selection.type, []).append(element)
    ordered = sorted(groups, key=lambda surface: (surface == SPECIAL_SURFACE, surface))
    return {surface: dict(sorted(groups[surface].items())) for surface in ordered}


def get_properties(elements: List[AnyElement], kind: VariableKind, constraints: Constraints) -> np.ndarray:
    """Read the property slice of ``kind``; empty if the kind is disabled."""
    if not constraints.is_enabled(kind) or kind not in VARIABLE_INDICES:
        return np.zeros((0, 0))
    indices = list(VARIABLE_INDICES[kind])
    return np.array([element.get()[indices] for element in elements], dtype=float).reshape(len(elements), len(indices))


def set_properties(properties: np.ndarray, elements: List[AnyElement], kind: VariableKind) -> None:
    """Write the property slice of ``kind`` back to the elements."""
    indices = list(VARIABLE_INDICES[kind])
    for element, row in zip(elements, properties):
        values = element.get()
        values[indices] = row
        element.set(values)


def _spring_values(spring: SpringElement) -> np.ndarray:
    if spring.is_diagonal:
        return np.diag(spring.stiffness).copy()
    return spring.stiffness.ravel().copy()


def get_spring_properties(spring: SpringElement, constraints: Constraints,
                          mask: Optional[np.ndarray] = None) -> Tuple[np.ndarray, np.ndarray]:
    """Read the updatable stiffness entries of a spring.

    A previously built ``mask`` may be passed to read the same entries again.

    Returns
    -------
    properties : ndarray
        ``(1, n)`` matrix of the entries kept by the mask (empty if springs
        are disabled).
    mask : ndarray of bool
        Kept entries among the diagonal (diagonal springs) or the row-major
        matrix entries: a value is kept when it does not exceed the upper
        bound and, for nonzero-filtered springs, when it exceeds epsilon.
    """
    kind = VariableKind.SPRING_STIFFNESS
    if not constraints.is_enabled(kind):
        return np.zeros((0, 0)), np.zeros(0, dtype=bool)
    values = _spring_values(spring)
    if mask is not None:
        return values[mask].reshape(1, -1), mask
    upper = constraints.bounds(kind)[1]
    mask = values <= upper
    if constraints.is_nonzero(kind):
        mask &= values > EPS
    return values[mask].reshape(1, -1), mask


def set_spring_properties(properties: np.ndarray, spring: SpringElement, mask: np.ndarray) -> None:
    """Write the masked stiffness entries of a spring."""
    values = _spring_values(spring)
    values[mask] = np.asarray(properties, dtype=float).ravel()
    stiffness = spring.get()
    if spring.is_diagonal:
        np.fill_diagonal(stiffness, values)
    else:
        stiffness = values.reshape(stiffness.shape)
    spring.set(stiffness)
