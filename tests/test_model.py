import numpy as np
import pytest

from modelupdate.core import Element, ElementType, SpringElement, StructuralModel, Surface
from modelupdate.preprocessing import scale_model

from conftest import make_cantilever


def test_eigen_frequencies_are_positive_and_ascending(cantilever):
    solution = cantilever.solve_eigen()
    assert solution.num_modes == 6
    assert np.all(solution.frequencies > 0.0)
    assert np.all(np.diff(solution.frequencies) > 0.0)
    assert solution.names[0] == "Mode 1"
    assert solution.modeshapes[0].shape == (6, 3)
    assert np.allclose(solution.modeshapes[0][0], 0.0)
    assert np.allclose(solution.modeshapes[0][:, :2], 0.0)


def test_scaling_all_stiffness_scales_frequencies(cantilever):
    stiffer = scale_model(cantilever, {"beam_stiffness": 1.44, "spring_stiffness": 1.44})
    base = cantilever.solve_eigen().frequencies
    scaled = stiffer.solve_eigen().frequencies
    assert np.allclose(scaled, 1.2 * base, rtol=1e-8)


def test_num_modes_limited_by_free_dofs():
    model = make_cantilever(num_vertices=3)
    model.set_num_modes(20)
    assert model.solve_eigen().num_modes == 4


def test_panel_adds_mass_and_stiffness():
    bare = make_cantilever(with_spring=False).solve_eigen().frequencies
    panelled = make_cantilever(with_spring=False, with_panel=True).solve_eigen().frequencies
    assert not np.allclose(bare, panelled)


def test_empty_model_gives_empty_solution():
    model = StructuralModel()
    assert model.is_empty()
    assert model.num_modes == 20
    assert model.solve_eigen().is_empty()


def test_element_access(cantilever):
    beam = cantilever.element(0, ElementType.BEAM, 2)
    assert beam.get()[4] == 1.0e4
    assert cantilever.element(0, ElementType.BEAM, 5) is None
    assert cantilever.element(3, ElementType.BEAM, 0) is None
    assert cantilever.element(-1, ElementType.SPRING, 0).vertex == 5
    assert cantilever.num_elements(0, ElementType.BEAM) == 5
    assert cantilever.num_elements(7, ElementType.BEAM) == 0
    assert cantilever.types(-1) == [ElementType.SPRING, ElementType.ANALYSIS_PARAMETERS]

    copy = cantilever.copy()
    copy.element(0, ElementType.BEAM, 2).set(np.zeros(8))
    assert cantilever.element(0, ElementType.BEAM, 2).get()[4] == 1.0e4


def test_element_size_is_validated():
    with pytest.raises(ValueError):
        Element(ElementType.BEAM, [0, 1, 2])
    element = Element(ElementType.MASS, [0, 1.0])
    with pytest.raises(ValueError):
        element.set([1.0, 2.0, 3.0])


def test_spring_from_diagonal():
    spring = SpringElement([1, 2, 3, 4, 5, 6], surface=1, vertex=3)
    assert spring.is_diagonal
    assert np.array_equal(np.diag(spring.get()), [1, 2, 3, 4, 5, 6])
    full = SpringElement(np.eye(6), num_values=36)
    assert not full.is_diagonal
    with pytest.raises(ValueError):
        SpringElement(np.zeros((3, 3)))


def test_element_codes():
    assert ElementType.from_code("pn") == ElementType.PANEL
    assert ElementType.MASS.code == "M3"
    with pytest.raises(KeyError):
        ElementType.from_code("XX")


def test_geometry_lines(cantilever):
    geometry = cantilever.geometry()
    assert geometry.num_vertices == 6
    assert geometry.lines.shape == (5, 2)
    assert geometry.lines[-1].tolist() == [4, 5]


def test_second_surface_offsets_vertices(cantilever):
    surface = Surface(name="tail", vertices=[[1.0, 0.0, 0.0], [1.0, 0.5, 0.0]])
    surface.add_element(Element(ElementType.BEAM, [0, 1, 2.0, 0.0, 1.0e3, 0.0, 0.0, 1.0e6]))
    cantilever.add_surface(surface)
    geometry = cantilever.geometry()
    assert geometry.num_vertices == 8
    assert geometry.lines[-1].tolist() == [6, 7]
    assert cantilever.solve_eigen().num_modes == 6


def test_flutter_is_not_available(cantilever):
    with pytest.raises(NotImplementedError):
        cantilever.solve_flutter()
