"""Preprocessing module turning project dictionaries into models and update problems.

Exports
-------
All builders from the problem_builder module for easy access.
"""

from .problem_builder import (
    ProjectInput,
    build_model,
    build_problem,
    build_project,
    build_selector,
    build_target,
    load_project,
    model_to_dict,
    scale_model,
)

__all__ = [
    "ProjectInput",
    "build_model",
    "build_problem",
    "build_project",
    "build_selector",
    "build_target",
    "load_project",
    "model_to_dict",
    "scale_model",
]
