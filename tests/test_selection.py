import logging

from modelupdate.core import Element, ElementType, Selection, SelectionSet, Selector
from modelupdate.core.model import SPECIAL_SURFACE
from modelupdate.core.selection import model_selections


def test_model_selections_cover_all_elements(cantilever):
    selections = model_selections(cantilever)
    assert len(selections) == 8
    assert selections[0] == Selection(0, ElementType.BEAM, 0)
    assert Selection(0, ElementType.MASS, 0) in selections
    assert selections[-2:] == [
        Selection(SPECIAL_SURFACE, ElementType.SPRING, 0),
        Selection(SPECIAL_SURFACE, ElementType.ANALYSIS_PARAMETERS, 0),
    ]


def test_selection_set_operations(cantilever):
    selection_set = SelectionSet(cantilever, "wing")
    assert selection_set.num_selected() == 0

    selection_set.select_all()
    assert selection_set.num_selected() == len(selection_set) == 8

    selection_set.set_surface_selected(0, False, ElementType.MASS)
    assert not selection_set.is_selected(Selection(0, ElementType.MASS, 0))
    assert selection_set.is_selected(Selection(0, ElementType.BEAM, 3))

    selection_set.inverse()
    assert selection_set.selected() == [Selection(0, ElementType.MASS, 0)]

    selection_set.set_type_selected(ElementType.SPRING, True)
    selection_set.set_selected(Selection(0, ElementType.BEAM, 99), True)
    assert selection_set.num_selected() == 2

    selection_set.select_none()
    assert selection_set.num_selected() == 0


def test_selection_set_follows_model_changes(cantilever):
    selection_set = SelectionSet(cantilever, "wing")
    selection_set.set_selected(Selection(0, ElementType.BEAM, 1), True)

    cantilever.surface(0).add_element(Element(ElementType.MASS, [2, 0.5]))
    selection_set.update(cantilever)

    assert len(selection_set) == 9
    assert selection_set.is_selected(Selection(0, ElementType.BEAM, 1))
    assert not selection_set.is_selected(Selection(0, ElementType.MASS, 1))


def test_selector_merges_sets(cantilever, caplog):
    selector = Selector(cantilever)
    beams = selector.add("beams")
    beams.set_type_selected(ElementType.BEAM, True)
    springs = selector.add("springs")
    springs.set_surface_selected(SPECIAL_SURFACE, True, ElementType.SPRING)
    springs.set_selected(Selection(0, ElementType.BEAM, 0), True)

    with caplog.at_level(logging.WARNING, logger="modelupdate"):
        again = selector.add("beams")
    assert again is beams
    assert len(selector) == 2
    assert "has been created already" in caplog.text

    merged = selector.all_selections()
    assert len(merged) == 6
    assert merged == sorted(merged)
    assert merged[0] == Selection(SPECIAL_SURFACE, ElementType.SPRING, 0)
    assert merged[1:] == [Selection(0, ElementType.BEAM, index) for index in range(5)]


def test_selector_find_and_remove(cantilever):
    selector = Selector(cantilever)
    selector.add("first")
    selector.add("second")
    assert selector.find("second") == 1
    assert selector.contains("first")
    assert selector.remove("first")
    assert not selector.remove("missing")
    assert selector.get(0).name == "second"
    selector.clear()
    assert selector.is_empty()


def test_selection_dict_round_trip():
    selection = Selection(SPECIAL_SURFACE, ElementType.SPRING, 2)
    assert selection.is_special()
    assert Selection.from_dict(selection.to_dict()) == selection
