"""
Selections of model elements to be updated.

Every element of a structural model is identified by a ``Selection``
(surface, element type, index within the group). A ``SelectionSet`` keeps a
selected flag per element of a model, and a ``Selector`` manages several
named sets whose selected elements are merged into the update problem.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from .model import SPECIAL_SURFACE, ElementType, StructuralModel

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class Selection:
    """Position of one element: surface index, element type, element index."""
    surface: int
    type: ElementType
    index: int

    def is_special(self) -> bool:
        return self.surface == SPECIAL_SURFACE

    def to_dict(self) -> dict:
        return {"surface": self.surface, "type": self.type.code, "index": self.index}

    @classmethod
    def from_dict(cls, data: dict) -> "Selection":
        return cls(int(data["surface"]), ElementType.from_code(str(data["type"])), int(data["index"]))


def model_selections(model: StructuralModel) -> List[Selection]:
    """All elements of a model: elastic surfaces first, then the special surface."""
    result = []
    for i_surface, surface in enumerate(model.surfaces):
        for element_type in surface.types():
            result.extend(Selection(i_surface, element_type, i) for i in range(surface.num_elements(element_type)))
    special = model.special_surface
    for element_type in special.types():
        result.extend(Selection(SPECIAL_SURFACE, element_type, i) for i in range(special.num_elements(element_type)))
    return result


class SelectionSet:
    """Named set of per-element selected flags."""

    def __init__(self, model: Optional[StructuralModel] = None, name: str = "") -> None:
        self.name = name
        self._flags: Dict[Selection, bool] = {}
        if model is not None:
            self.reset(model)

    def __len__(self) -> int:
        return len(self._flags)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SelectionSet):
            return NotImplemented
        return self.name == other.name and self._flags == other._flags

    @property
    def flags(self) -> Dict[Selection, bool]:
        return dict(self._flags)

    def is_selected(self, selection: Selection) -> bool:
        return self._flags.get(selection, False)

    def num_selected(self) -> int:
        return sum(self._flags.values())

    def selected(self) -> List[Selection]:
        return sorted(selection for selection, flag in self._flags.items() if flag)

    def select_all(self) -> None:
        for selection in self._flags:
            self._flags[selection] = True

    def select_none(self) -> None:
        for selection in self._flags:
            self._flags[selection] = False

    def inverse(self) -> None:
        for selection, flag in self._flags.items():
            self._flags[selection] = not flag

    def set_selected(self, selection: Selection, flag: bool) -> None:
        """Set the state of one element; unknown elements are ignored."""
        if selection in self._flags:
            self._flags[selection] = bool(flag)

    def set_surface_selected(self, surface: int, flag: bool, type: Optional[ElementType] = None) -> None:
        """Set the state of every element of a surface, optionally of one type only."""
        for selection in self._flags:
            if selection.surface == surface and (type is None or selection.type == type):
                self._flags[selection] = bool(flag)

    def set_type_selected(self, type: ElementType, flag: bool) -> None:
        for selection in self._flags:
            if selection.type == type:
                self._flags[selection] = bool(flag)

    def reset(self, model: StructuralModel) -> None:
        """Register every element of the model as not selected."""
        self._flags = {selection: False for selection in model_selections(model)}

    def update(self, model: StructuralModel) -> None:
        """Follow a modified model, keeping the flags of elements that still exist."""
        previous = self._flags
        self.reset(model)
        for selection, flag in previous.items():
            if selection in self._flags:
                self._flags[selection] = flag

    def to_dict(self) -> dict:
        return {"name": self.name, "selected": [selection.to_dict() for selection in self.selected()]}


class Selector:
    """Collection of named selection sets bound to one model."""

    def __init__(self, model: Optional[StructuralModel] = None) -> None:
        self.model = model
        self._sets: List[SelectionSet] = []

    def __iter__(self) -> Iterator[SelectionSet]:
        return iter(self._sets)

    def __len__(self) -> int:
        return len(self._sets)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Selector):
            return NotImplemented
        return self._sets == other._sets

    def is_empty(self) -> bool:
        return not self._sets

    def add(self, name: str) -> SelectionSet:
        """Create a set named ``name`` or return the existing one."""
        if self.contains(name):
            logger.warning("The selection set named %s has been created already. Choose a different name", name)
        else:
            self._sets.append(SelectionSet(self.model, name))
        return self._sets[self.find(name)]

    def remove(self, name: str) -> bool:
        index = self.find(name)
        if index < 0:
            return False
        del self._sets[index]
        return True

    def clear(self) -> None:
        self._sets.clear()

    def get(self, index: int) -> SelectionSet:
        return self._sets[index]

    def find(self, name: str) -> int:
        for i, selection_set in enumerate(self._sets):
            if selection_set.name == name:
                return i
        return -1

    def contains(self, name: str) -> bool:
        return self.find(name) >= 0

    def set_model(self, model: StructuralModel) -> None:
        self.model = model
        self.update()

    def update(self) -> None:
        if self.model is None:
            return
        for selection_set in self._sets:
            selection_set.update(self.model)

    def all_selections(self) -> List[Selection]:
        """Selected elements of all sets, sorted and without duplicates."""
        merged = set()
        for selection_set in self._sets:
            merged.update(selection_set.selected())
        return sorted(merged)
