"""
Modal Model Updating - Parametric calibration of structural models
==================================================================

Tools to adjust stiffness and material properties of a structural model so
that its computed vibration modes match a measured target modal set.

Author: Modal Updating Project
Date: October 19, 2026
"""

__version__ = "1.0.0"
__author__ = "Modal Updating Project"
__license__ = "Proprietary"

from .core import (
    Constraints,
    ModalSolution,
    OptimOptions,
    Selection,
    Selector,
    StructuralModel,
    VariableKind,
)
from .optimization import UpdateDriver, UpdateProblem

__all__ = [
    "Constraints",
    "ModalSolution",
    "OptimOptions",
    "Selection",
    "Selector",
    "StructuralModel",
    "VariableKind",
    "UpdateDriver",
    "UpdateProblem",
]
