"""
Updating constraints applied to model variables.

This module defines the closed set of physical quantities which may be
adjusted during updating (``VariableKind``) and the registry of per-kind
settings (``Constraints``): whether a kind is updated at all, how the values
of a group of elements are aggregated into parameters, how they are scaled
and which bounds they must respect.

Aggregation modes
-----------------
united      : one parameter per element row, the remaining row entries keep
              their proportions with respect to the largest one.
multiplied  : one parameter for a whole group of elements.
independent : one parameter per value (neither united nor multiplied);
              ``nonzero`` additionally skips values which are zero.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple

import numpy as np

logger = logging.getLogger(__name__)

Bounds = Tuple[float, float]


class VariableKind(Enum):
    """Types of variables to be used for updating."""
    # Beams
    BEAM_STIFFNESS = "beam_stiffness"
    # Panels
    THICKNESS = "thickness"
    YOUNGS_MODULUS_1 = "youngs_modulus_1"
    YOUNGS_MODULUS_2 = "youngs_modulus_2"
    SHEAR_MODULUS = "shear_modulus"
    POISSON_RATIO = "poisson_ratio"
    # Springs
    SPRING_STIFFNESS = "spring_stiffness"


# Explicit iteration order of the variable kinds
VARIABLE_KINDS: Tuple[VariableKind, ...] = (
    VariableKind.BEAM_STIFFNESS,
    VariableKind.THICKNESS,
    VariableKind.YOUNGS_MODULUS_1,
    VariableKind.YOUNGS_MODULUS_2,
    VariableKind.SHEAR_MODULUS,
    VariableKind.POISSON_RATIO,
    VariableKind.SPRING_STIFFNESS,
)


@dataclass(frozen=True)
class VariableMetadata:
    """Static description of a variable kind.

    Attributes
    ----------
    name : str
        Human readable name.
    scale : float
        Default scale factor (0 selects logarithmic scaling).
    bounds : tuple of float
        Default physically plausible range of values.
    """
    name: str
    scale: float
    bounds: Bounds


VARIABLE_METADATA: Dict[VariableKind, VariableMetadata] = {
    VariableKind.BEAM_STIFFNESS: VariableMetadata("Beam stiffness", 1e-4, (0.0, 1e9)),
    VariableKind.THICKNESS: VariableMetadata("Thickness", 1e2, (1e-3, 0.2)),
    VariableKind.YOUNGS_MODULUS_1: VariableMetadata("Young's modulus 1", 1e-8, (1e2, 1e13)),
    VariableKind.YOUNGS_MODULUS_2: VariableMetadata("Young's modulus 2", 1e-8, (1e2, 1e13)),
    VariableKind.SHEAR_MODULUS: VariableMetadata("Shear modulus", 1e-8, (1e2, 1e13)),
    VariableKind.POISSON_RATIO: VariableMetadata("Poisson ratio", 1.0, (0.0, 1.0)),
    VariableKind.SPRING_STIFFNESS: VariableMetadata("Spring stiffness", 0.0, (1e-9, 1e9)),
}


@dataclass
class ConstraintEntry:
    """Updating settings of one variable kind."""
    enabled: bool = True
    united: bool = False
    multiplied: bool = False
    nonzero: bool = False
    scale: float = 1.0
    bounds: Bounds = (-np.inf, np.inf)


class Constraints:
    """Registry of updating settings for every variable kind.

    Notes
    -----
    - At most one of ``united``/``multiplied`` is set for a kind, and
      ``nonzero`` excludes both. A request breaking this rule is ignored,
      logged as a warning and reported by a ``False`` return value.
    - Defaults: every kind enabled except the Poisson ratio, nothing united,
      everything multiplied except springs, springs filtered by ``nonzero``.
    """

    def __init__(self) -> None:
        self._entries: Dict[VariableKind, ConstraintEntry] = {kind: ConstraintEntry() for kind in VARIABLE_KINDS}
        self._set_default_enabled()
        self._set_default_united()
        self._set_default_multiplied()
        self._set_default_nonzero()
        self._set_default_scales()
        self._set_default_bounds()

    @staticmethod
    def types() -> Tuple[VariableKind, ...]:
        """Retrieve all variable kinds in their canonical order."""
        return VARIABLE_KINDS

    def entry(self, kind: VariableKind) -> ConstraintEntry:
        """Return a copy of the settings of one kind."""
        return copy.copy(self._entries[kind])

    def copy(self) -> "Constraints":
        return copy.deepcopy(self)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Constraints):
            return NotImplemented
        return self._entries == other._entries

    # ---- queries ----
    def is_enabled(self, kind: VariableKind) -> bool:
        return self._entries[kind].enabled

    def is_united(self, kind: VariableKind) -> bool:
        return self._entries[kind].united

    def is_multiplied(self, kind: VariableKind) -> bool:
        return self._entries[kind].multiplied

    def is_nonzero(self, kind: VariableKind) -> bool:
        return self._entries[kind].nonzero

    def scale(self, kind: VariableKind) -> float:
        return self._entries[kind].scale

    def bounds(self, kind: VariableKind) -> Bounds:
        return self._entries[kind].bounds

    # ---- bulk setters ----
    def set_all_enabled(self, flag: bool) -> None:
        for kind in VARIABLE_KINDS:
            self.set_enabled(kind, flag)

    def set_all_united(self, flag: bool) -> None:
        for kind in VARIABLE_KINDS:
            self.set_united(kind, flag)

    def set_all_multiplied(self, flag: bool) -> None:
        for kind in VARIABLE_KINDS:
            self.set_multiplied(kind, flag)

    def set_all_nonzero(self, flag: bool) -> None:
        for kind in VARIABLE_KINDS:
            self.set_nonzero(kind, flag)

    def set_all_scale(self, value: float) -> None:
        for kind in VARIABLE_KINDS:
            self.set_scale(kind, value)

    def set_all_infinite_bounds(self) -> None:
        for kind in VARIABLE_KINDS:
            self.set_infinite_bounds(kind)

    # ---- setters ----
    def set_enabled(self, kind: VariableKind, flag: bool) -> None:
        """Enable the variable kind for updating."""
        self._entries[kind].enabled = bool(flag)

    def set_united(self, kind: VariableKind, flag: bool) -> bool:
        """Set the united state; rejected while multiplication is enabled."""
        entry = self._entries[kind]
        if flag and entry.multiplied:
            logger.warning("Multiplication is already enabled for type: %s. Unification request is ignored", kind.name)
            return False
        entry.united = bool(flag)
        return True

    def set_multiplied(self, kind: VariableKind, flag: bool) -> bool:
        """Set the multiplied state; rejected while unification is enabled."""
        entry = self._entries[kind]
        if flag and entry.united:
            logger.warning("Unification is already enabled for type: %s. Multiplication request is ignored", kind.name)
            return False
        entry.multiplied = bool(flag)
        return True

    def set_nonzero(self, kind: VariableKind, flag: bool) -> bool:
        """Set the nonzero state; rejected while unification or multiplication is enabled."""
        entry = self._entries[kind]
        if flag and (entry.united or entry.multiplied):
            logger.warning(
                "Unification or multiplication is already enabled for type: %s. Nonzero request is ignored", kind.name
            )
            return False
        entry.nonzero = bool(flag)
        return True

    def set_scale(self, kind: VariableKind, value: float) -> None:
        """Set the scale factor (0 selects logarithmic scaling)."""
        self._entries[kind].scale = float(value)

    def set_bounds(self, kind: VariableKind, bounds: Bounds) -> None:
        lower, upper = bounds
        self._entries[kind].bounds = (float(lower), float(upper))

    def set_infinite_bounds(self, kind: VariableKind) -> None:
        self._entries[kind].bounds = (-np.inf, np.inf)

    # ---- serialization ----
    def to_dict(self) -> Dict[str, dict]:
        result = {}
        for kind in VARIABLE_KINDS:
            entry = self._entries[kind]
            result[kind.value] = {
                "enabled": entry.enabled,
                "united": entry.united,
                "multiplied": entry.multiplied,
                "nonzero": entry.nonzero,
                "scale": entry.scale,
                "bounds": [entry.bounds[0], entry.bounds[1]],
            }
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, dict]) -> "Constraints":
        """Build constraints from defaults overridden by ``data``.

        Keys are variable kind values (e.g. ``"beam_stiffness"``). Flags are
        applied through the validating setters: flags are cleared before being
        set so that a consistent combination may be given in any order, while
        conflicting ones are rejected exactly like interactive requests.
        """
        result = cls()
        for key, fields in (data or {}).items():
            try:
                kind = VariableKind(key)
            except ValueError:
                raise KeyError(f"Unknown variable kind: {key}") from None
            if "enabled" in fields:
                result.set_enabled(kind, fields["enabled"])
            flags = [name for name in ("united", "multiplied", "nonzero") if name in fields]
            for name in flags:
                if not fields[name]:
                    getattr(result, f"set_{name}")(kind, False)
            for name in flags:
                if fields[name]:
                    getattr(result, f"set_{name}")(kind, True)
            if "scale" in fields:
                result.set_scale(kind, fields["scale"])
            if "bounds" in fields:
                if fields["bounds"] is None:
                    result.set_infinite_bounds(kind)
                else:
                    result.set_bounds(kind, tuple(fields["bounds"]))
        return result

    # ---- defaults ----
    def _set_default_enabled(self) -> None:
        self.set_all_enabled(True)
        self._entries[VariableKind.POISSON_RATIO].enabled = False

    def _set_default_united(self) -> None:
        self.set_all_united(False)

    def _set_default_multiplied(self) -> None:
        self.set_all_multiplied(True)
        self._entries[VariableKind.SPRING_STIFFNESS].multiplied = False

    def _set_default_nonzero(self) -> None:
        for entry in self._entries.values():
            entry.nonzero = False
        self._entries[VariableKind.SPRING_STIFFNESS].nonzero = True

    def _set_default_scales(self) -> None:
        for kind, meta in VARIABLE_METADATA.items():
            self._entries[kind].scale = meta.scale

    def _set_default_bounds(self) -> None:
        for kind, meta in VARIABLE_METADATA.items():
            self._entries[kind].bounds = meta.bounds
