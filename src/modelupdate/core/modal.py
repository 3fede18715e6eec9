"""Modal data: geometry, modal solutions and their comparison.

A ``ModalSolution`` is produced either by the eigen-analysis of a structural
model or from measurements (the target of updating). Mode shapes are stored
as ``(num_vertices, 3)`` matrices; missing measured entries are NaN and are
excluded when shapes are compared.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy.spatial import cKDTree
from scipy.spatial.transform import Rotation

from .mathutils import compute_mac, pair_by_mac

ModalPair = Tuple[int, float]
VertexMatch = Tuple[int, int]

# Target frequencies below this value are not compared
FREQUENCY_EPS = np.finfo(float).eps


class Geometry:
    """Vertex positions and line connectivity."""

    def __init__(self, vertices=None, lines=None, names: Optional[List[str]] = None) -> None:
        self.vertices = np.zeros((0, 3)) if vertices is None else np.asarray(vertices, dtype=float).reshape(-1, 3)
        self.lines = np.zeros((0, 2), dtype=int) if lines is None or len(lines) == 0 \
            else np.asarray(lines, dtype=int).reshape(-1, 2)
        self.names = list(names) if names is not None else [str(i) for i in range(self.vertices.shape[0])]

    @property
    def num_vertices(self) -> int:
        return self.vertices.shape[0]

    def is_empty(self) -> bool:
        return self.num_vertices == 0

    def copy(self) -> "Geometry":
        return copy.deepcopy(self)

    def move(self, shift) -> None:
        """Translate all vertices by ``shift``."""
        self.vertices = self.vertices + np.asarray(shift, dtype=float).reshape(1, 3)

    def rotate(self, angle: float, axis: str = "z", degrees: bool = False) -> None:
        """Rotate all vertices around a coordinate axis passing through the origin."""
        axis = axis.lower()
        if axis not in ("x", "y", "z"):
            raise ValueError(f"Unknown rotation axis: {axis}")
        rotation = Rotation.from_euler(axis, angle, degrees=degrees)
        if self.num_vertices:
            self.vertices = rotation.apply(self.vertices)


def match_vertices(first: Geometry, second: Geometry, tolerance: float) -> List[VertexMatch]:
    """Pair every vertex of ``first`` with its nearest vertex of ``second``.

    Vertices without a neighbour closer than ``tolerance`` are left out.
    """
    if first.is_empty() or second.is_empty():
        return []
    tree = cKDTree(second.vertices)
    distances, indices = tree.query(first.vertices, k=1, distance_upper_bound=tolerance)
    return [(i, int(j)) for i, (d, j) in enumerate(zip(distances, indices)) if np.isfinite(d)]


@dataclass
class ModalComparison:
    """Result of the comparison of target modes with candidate modes.

    Attributes
    ----------
    pairs : list of (int, float)
        Matched candidate mode and its MAC value per target row,
        ``(-1, nan)`` if the row is unmatched.
    diff_frequencies : ndarray
        Signed frequency difference (candidate - target).
    error_frequencies : ndarray
        Relative frequency error.
    errors_mac : ndarray
        Shape error ``1 - MAC``.
    """
    pairs: List[ModalPair] = field(default_factory=list)
    diff_frequencies: np.ndarray = field(default_factory=lambda: np.zeros(0))
    error_frequencies: np.ndarray = field(default_factory=lambda: np.zeros(0))
    errors_mac: np.ndarray = field(default_factory=lambda: np.zeros(0))

    @classmethod
    def undefined(cls, num_modes: int) -> "ModalComparison":
        result = cls()
        result.resize(num_modes)
        return result

    def resize(self, num_modes: int) -> None:
        self.pairs = [(-1, np.nan)] * num_modes
        self.diff_frequencies = np.full(num_modes, np.nan)
        self.error_frequencies = np.full(num_modes, np.nan)
        self.errors_mac = np.full(num_modes, np.nan)

    @property
    def num_modes(self) -> int:
        return len(self.pairs)

    def is_empty(self) -> bool:
        return self.num_modes == 0

    def is_valid(self) -> bool:
        if self.is_empty():
            return False
        if any(index < 0 or np.isnan(score) for index, score in self.pairs):
            return False
        arrays = (self.diff_frequencies, self.error_frequencies, self.errors_mac)
        return not any(np.isnan(values).any() for values in arrays)


class ModalSolution:
    """Frequencies and mode shapes defined on a geometry."""

    def __init__(self, geometry: Optional[Geometry] = None, frequencies=None,
                 modeshapes: Optional[Sequence[np.ndarray]] = None, names: Optional[List[str]] = None) -> None:
        self.geometry = geometry if geometry is not None else Geometry()
        self.frequencies = np.zeros(0) if frequencies is None else np.asarray(frequencies, dtype=float).ravel()
        self.modeshapes: List[np.ndarray] = [np.asarray(item, dtype=float) for item in (modeshapes or [])]
        if len(self.modeshapes) != self.frequencies.size:
            raise ValueError(
                f"Number of mode shapes ({len(self.modeshapes)}) differs from number of frequencies "
                f"({self.frequencies.size})"
            )
        self.names = list(names) if names is not None else [f"Mode {i + 1}" for i in range(self.num_modes)]

    @property
    def num_modes(self) -> int:
        return self.frequencies.size

    @property
    def num_vertices(self) -> int:
        return self.geometry.num_vertices

    def is_empty(self) -> bool:
        return self.num_modes == 0

    def mac_table(self, other: "ModalSolution", indices: Optional[Sequence[int]] = None,
                  matches: Optional[Sequence[VertexMatch]] = None) -> np.ndarray:
        """MAC matrix between the selected modes of this set and all modes of ``other``."""
        if indices is None:
            indices = range(self.num_modes)
        base = [self.modeshapes[i] for i in indices]
        if not base or other.is_empty():
            return np.zeros((len(base), other.num_modes))
        return compute_mac(base, other.modeshapes, matches)

    def compare(self, other: "ModalSolution", indices: Sequence[int], matches: Optional[Sequence[VertexMatch]],
                min_mac: float) -> ModalComparison:
        """Compare the selected modes of this (target) set with the modes of ``other``.

        Parameters
        ----------
        other : ModalSolution
            Candidate modes, usually computed by a structural model.
        indices : sequence of int
            Modes of this set to compare.
        matches : sequence of (int, int)
            Vertex correspondences ``(vertex of self, vertex of other)``.
        min_mac : float
            MAC threshold for two modes to be paired.

        Returns
        -------
        ModalComparison
            One row per index. Rows that are unpaired or whose target
            frequency is zero keep NaN entries.
        """
        indices = list(indices)
        result = ModalComparison.undefined(len(indices))
        table = self.mac_table(other, indices, matches)
        result.pairs = pair_by_mac(table, min_mac) if table.size else result.pairs
        for i, base_index in enumerate(indices):
            compare_index = result.pairs[i][0]
            if compare_index < 0:
                continue
            base_frequency = self.frequencies[base_index]
            if abs(base_frequency) < FREQUENCY_EPS:
                continue
            diff = other.frequencies[compare_index] - base_frequency
            result.diff_frequencies[i] = diff
            result.error_frequencies[i] = diff / base_frequency
            result.errors_mac[i] = 1.0 - result.pairs[i][1]
        return result

    def to_dict(self) -> dict:
        return {
            "names": list(self.names),
            "frequencies": self.frequencies.tolist(),
        }


@dataclass
class FlutterSolution:
    """Opaque result of a flutter analysis."""
    flow_speeds: np.ndarray = field(default_factory=lambda: np.zeros(0))
    frequencies: np.ndarray = field(default_factory=lambda: np.zeros((0, 0)))
    dampings: np.ndarray = field(default_factory=lambda: np.zeros((0, 0)))
    critical_speed: float = np.nan
    critical_frequency: float = np.nan

    def is_empty(self) -> bool:
        return self.flow_speeds.size == 0
