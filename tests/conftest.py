import time

import numpy as np
import pytest

from modelupdate.core import Element, ElementType, SpringElement, StructuralModel, Surface


class SlowModel(StructuralModel):
    """Model whose eigen-analysis takes longer than any iteration timeout."""

    delay = 0.5

    def solve_eigen(self):
        time.sleep(self.delay)
        return super().solve_eigen()


def make_cantilever(num_vertices=6, with_panel=False, with_spring=True, model_type=StructuralModel):
    y = np.linspace(0.0, 2.5, num_vertices)
    vertices = np.column_stack([np.zeros_like(y), y, np.zeros_like(y)])
    surface = Surface(name="wing", vertices=vertices)
    for i in range(num_vertices - 1):
        surface.add_element(Element(ElementType.BEAM, [i, i + 1, 5.0, 0.0, 1.0e4, 2.0e4, 5.0e3, 1.0e7]))
    surface.add_element(Element(ElementType.MASS, [num_vertices - 1, 2.0]))
    if with_panel:
        panel = np.zeros(18)
        panel[[0, 1, 2, 11, 12, 13, 14, 17]] = [num_vertices // 2, 0.25, 2700.0, 0.005, 7.0e10, 0.3, 2.7e10, 7.0e10]
        surface.add_element(Element(ElementType.PANEL, panel))
    special = Surface(name="special")
    if with_spring:
        special.add_element(SpringElement([0.0, 0.0, 500.0, 0.0, 0.0, 0.0], surface=0, vertex=num_vertices - 1))
    model = model_type([surface], special, name="cantilever")
    model.set_num_modes(6)
    return model


@pytest.fixture
def cantilever():
    return make_cantilever()


@pytest.fixture
def slow_cantilever():
    return make_cantilever(model_type=SlowModel)
