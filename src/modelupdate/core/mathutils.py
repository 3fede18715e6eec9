"""
Numerical helpers for mode matching.
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

ShapeSet = Union[Sequence[np.ndarray], np.ndarray]


def _is_shape_set(data) -> bool:
    if isinstance(data, (list, tuple)):
        return True
    return isinstance(data, np.ndarray) and data.ndim == 3


def _slice_shape(shape: np.ndarray, vertices: Optional[np.ndarray]) -> np.ndarray:
    shape = np.asarray(shape)
    if vertices is not None:
        shape = shape[vertices]
    return shape.ravel()


def _mac_vectors(first: np.ndarray, second: np.ndarray) -> float:
    """MAC of two flat vectors over the entries defined in both of them."""
    common = np.isfinite(first) & np.isfinite(second)
    a = first[common]
    b = second[common]
    numerator = np.abs(np.vdot(a, b)) ** 2
    denominator = np.abs(np.vdot(a, a)) * np.abs(np.vdot(b, b))
    if denominator == 0.0:
        return 0.0
    return float(numerator / denominator)


def compute_mac(first, second, matches: Optional[Sequence[Tuple[int, int]]] = None):
    """Modal assurance criterion between mode shapes.

    MAC = |a . b|^2 / ((a . a) (b . b))

    Parameters
    ----------
    first, second : ndarray or sequence of ndarray
        A single mode shape (any shape, flattened) or a sequence of mode
        shapes (list, tuple or 3-D array).
    matches : sequence of (int, int), optional
        Vertex correspondences ``(first_vertex, second_vertex)``. When given,
        only the matched vertex rows of the shapes are compared.

    Returns
    -------
    float or ndarray
        A scalar when both operands are single shapes, otherwise the MAC
        matrix with rows indexing ``first`` and columns indexing ``second``.

    Notes
    -----
    Entries which are missing (non-finite) in either operand are excluded
    from both vectors before the products are formed. A zero norm yields 0.
    """
    first_vertices = second_vertices = None
    if matches is not None:
        pairs = np.asarray(matches, dtype=int).reshape(-1, 2)
        first_vertices, second_vertices = pairs[:, 0], pairs[:, 1]

    first_is_set = _is_shape_set(first)
    second_is_set = _is_shape_set(second)
    first_set = [_slice_shape(shape, first_vertices) for shape in (first if first_is_set else [first])]
    second_set = [_slice_shape(shape, second_vertices) for shape in (second if second_is_set else [second])]

    result = np.zeros((len(first_set), len(second_set)))
    for i, a in enumerate(first_set):
        for j, b in enumerate(second_set):
            if a.size != b.size:
                raise ValueError(f"Mode shapes have different sizes: {a.size} and {b.size}")
            result[i, j] = _mac_vectors(a, b)
    if not first_is_set and not second_is_set:
        return float(result[0, 0])
    return result


def pair_by_mac(mac: np.ndarray, threshold: float) -> List[Tuple[int, float]]:
    """Greedy one-to-one pairing of rows to columns of a MAC matrix.

    Rows are processed in order. Each row takes the unclaimed column with the
    largest absolute value provided that value exceeds ``threshold``; a column
    can be claimed only once. Ties are resolved in favour of the first column.
    Rows without an eligible column are paired with ``(-1, nan)``.
    """
    mac = np.atleast_2d(np.asarray(mac, dtype=float))
    claimed = set()
    result: List[Tuple[int, float]] = []
    for row in np.abs(mac):
        pair = (-1, np.nan)
        for column in np.argsort(-row, kind="stable"):
            if column in claimed:
                continue
            if row[column] > threshold:
                pair = (int(column), float(row[column]))
                claimed.add(int(column))
            break
        result.append(pair)
    return result


def row_indices_abs_max(data: np.ndarray) -> np.ndarray:
    """Column index of the largest absolute value of every row."""
    data = np.atleast_2d(np.asarray(data, dtype=float))
    if data.size == 0:
        return np.zeros(data.shape[0], dtype=int)
    return np.argmax(np.abs(data), axis=1)
