import pytest

from sti_manager.editor.selection_controller import SelectionController


def test_select_replaces_and_sets_anchor():
    selection = SelectionController(4)
    selection.select(1)
    selection.select(3)
    assert selection.selected == [3]
    assert selection.last_touched == 3


def test_toggle_adds_and_removes():
    selection = SelectionController(4)
    selection.toggle(0)
    selection.toggle(2)
    assert selection.selected == [0, 2]
    selection.toggle(0)
    assert selection.selected == [2]
    assert 2 in selection
    assert selection.last_touched == 0


def test_range_uses_display_order():
    selection = SelectionController(4)
    span = selection.select_range(3, 0, display_order=[3, 1, 0, 2])
    assert span == [3, 1, 0]
    assert selection.selected == [0, 1, 3]
    assert not selection.is_selected(2)
    assert selection.last_touched == 0


def test_range_without_order_is_positional():
    selection = SelectionController(5)
    selection.select_range(3, 1)
    assert selection.selected == [1, 2, 3]


def test_range_to_needs_anchor():
    selection = SelectionController(4)
    assert selection.select_range_to(2) == []
    assert selection.selected == []

    selection.select(1)
    selection.select_range_to(3)
    assert selection.selected == [1, 2, 3]


def test_clear_keeps_anchor():
    selection = SelectionController(4)
    selection.select(2)
    selection.clear()
    assert selection.selected == []
    assert selection.last_touched == 2
    selection.reset_anchor()
    assert selection.last_touched is None


def test_select_all():
    selection = SelectionController(3)
    selection.select_all()
    assert selection.selected == [0, 1, 2]
    assert len(selection) == 3


def test_out_of_range_index_raises():
    selection = SelectionController(2)
    with pytest.raises(IndexError):
        selection.select(2)
    with pytest.raises(IndexError):
        selection.toggle(-1)
    with pytest.raises(IndexError):
        selection.set_selected([0, 5])


def test_purge_drops_missing_frames():
    selection = SelectionController(4)
    selection.set_selected([0, 3])
    selection.last_touched = 3
    selection.purge(2)
    assert selection.selected == [0]
    assert selection.last_touched is None


def test_remap_follows_removal():
    selection = SelectionController(4)
    selection.set_selected([1, 3])
    selection.last_touched = 3
    # Frame 2 removed: 3 becomes 2.
    selection.remap({0: 0, 1: 1, 2: None, 3: 2}, 3)
    assert selection.selected == [1, 2]
    assert selection.last_touched == 2
