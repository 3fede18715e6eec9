import numpy as np
import pytest

from modelupdate.core import compute_mac, pair_by_mac, row_indices_abs_max


def test_mac_of_shape_with_itself_is_one():
    shape = np.array([[0.0, 0.0, 1.0], [0.0, 0.0, 2.5], [0.0, 0.0, -0.7]])
    assert compute_mac(shape, shape) == pytest.approx(1.0)
    assert compute_mac(shape, -3.0 * shape) == pytest.approx(1.0)


def test_mac_of_orthogonal_shapes_is_zero():
    assert compute_mac(np.array([1.0, 0.0, 1.0]), np.array([0.0, 1.0, 0.0])) == 0.0
    assert compute_mac(np.zeros(3), np.array([1.0, 2.0, 3.0])) == 0.0


def test_mac_ignores_missing_entries():
    first = np.array([1.0, 2.0, np.nan])
    second = np.array([2.0, 4.0, 5.0])
    assert compute_mac(first, second) == pytest.approx(1.0)


def test_mac_uses_vertex_matches():
    first = np.array([[0.0, 0.0, 1.0], [0.0, 0.0, 2.0]])
    second = np.array([[0.0, 0.0, 9.0], [0.0, 0.0, 2.0], [0.0, 0.0, 1.0]])
    assert compute_mac(first, second, [(0, 2), (1, 1)]) == pytest.approx(1.0)
    assert compute_mac(first, second, [(0, 0), (1, 1)]) < 1.0


def test_mac_matrix_of_shape_sets():
    shapes = [np.array([1.0, 0.0]), np.array([0.0, 1.0]), np.array([1.0, 1.0])]
    table = compute_mac(shapes[:2], shapes)
    assert table.shape == (2, 3)
    assert np.allclose(table, [[1.0, 0.0, 0.5], [0.0, 1.0, 0.5]])
    assert compute_mac(shapes[0], shapes).shape == (1, 3)


def test_mac_rejects_different_sizes():
    with pytest.raises(ValueError):
        compute_mac(np.ones(3), np.ones(4))


def test_pairing_takes_best_free_column():
    pairs = pair_by_mac(np.array([[0.9, 0.95], [0.2, 0.99]]), 0.5)
    assert pairs[0] == (1, 0.95)
    assert pairs[1][0] == -1
    assert np.isnan(pairs[1][1])


def test_pairing_never_reuses_a_column():
    pairs = pair_by_mac(np.array([[0.9, 0.1], [0.95, 0.2], [0.1, 0.8]]), 0.5)
    assert [index for index, _ in pairs] == [0, -1, 1]


def test_pairing_threshold_is_strict_and_ties_go_first():
    assert pair_by_mac(np.array([[0.5]]), 0.5)[0][0] == -1
    assert pair_by_mac(np.array([[0.8, 0.8]]), 0.5) == [(0, 0.8)]


def test_row_indices_abs_max():
    data = np.array([[1.0, -5.0, 2.0], [0.0, 0.0, 0.0], [3.0, 3.0, -1.0]])
    assert row_indices_abs_max(data).tolist() == [1, 0, 0]
