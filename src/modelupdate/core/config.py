"""
Configuration dataclasses for modal model updating.

This module contains the option bundles of the modal analysis, the flutter
analysis and the updating (optimization) procedure, together with the
project level configuration aggregating them.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict

from ..utils.io_utils import load_nested_config

logger = logging.getLogger(__name__)


def update_dataclass(instance, data: Dict[str, Any], section: str):
    """Assign known keys of ``data`` to ``instance``, warning about the others."""
    if data is None:
        return instance
    if not isinstance(data, dict):
        raise ValueError(f"Section '{section}' must be a mapping, got {type(data).__name__}")
    known = {item.name: item for item in fields(instance)}
    for key, value in data.items():
        if key not in known:
            logger.warning("Unknown key '%s' in section '%s' is ignored", key, section)
            continue
        current = getattr(instance, key)
        setattr(instance, key, type(current)(value) if current is not None else value)
    return instance


@dataclass
class ModalOptions:
    """Modal analysis options.

    Attributes
    ----------
    num_modes : int
        Number of modes to compute.
    timeout : float
        Seconds to wait for the eigen-analysis before its result is discarded.
    """
    num_modes: int = 20
    timeout: float = 10.0


@dataclass
class FlutterOptions:
    """Flutter analysis options.

    Attributes
    ----------
    num_modes : int
        Number of modes used by the flutter analysis.
    timeout : float
        Seconds to wait for the flutter analysis.
    """
    num_modes: int = 15
    timeout: float = 10.0


@dataclass
class OptimOptions:
    """Model updating options.

    Attributes
    ----------
    max_num_iterations : int
        Maximum number of solver iterations.
    timeout_iteration : float
        Seconds allowed for one eigen-analysis inside an iteration.
    num_threads : int
        Threads used to evaluate the numeric Jacobian (1 = sequential).
    diff_step_size : float
        Relative step of the finite differences.
    min_mac : float
        Minimal MAC value for two modes to be paired.
    penalty_mac : float
        Weight of the shape error relative to the frequency error.
    max_rel_error : float
        Relative frequency error below which updating stops successfully.
    num_modes : int
        Number of modes computed at each evaluation.
    """
    max_num_iterations: int = 512
    timeout_iteration: float = 1.0
    num_threads: int = 1
    diff_step_size: float = 1e-5
    min_mac: float = 0.5
    penalty_mac: float = 20.0
    max_rel_error: float = 1e-3
    num_modes: int = 20

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OptimOptions":
        return update_dataclass(cls(), data, "optim")


@dataclass
class ProjectConfig:
    """Top-level configuration holding all option bundles.

    Attributes
    ----------
    modal : ModalOptions
        Modal analysis options.
    flutter : FlutterOptions
        Flutter analysis options.
    optim : OptimOptions
        Updating options.
    """
    modal: ModalOptions = field(default_factory=ModalOptions)
    flutter: FlutterOptions = field(default_factory=FlutterOptions)
    optim: OptimOptions = field(default_factory=OptimOptions)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectConfig":
        """Build options from a mapping with ``modal``, ``flutter`` and ``optim`` sections."""
        result = cls()
        for key, value in (data or {}).items():
            if key not in ("modal", "flutter", "optim"):
                continue
            update_dataclass(getattr(result, key), value, key)
        return result

    @classmethod
    def load(cls, path: str | Path) -> "ProjectConfig":
        """Read the ``options`` section of a YAML project file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")
        data = load_nested_config(path)
        return cls.from_dict(data.get("options", {}))
