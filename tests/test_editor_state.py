import unittest

from sti_manager.core import config
from sti_manager.editor.editor_state import EditorState, ViewConfig


class TestEditorState(unittest.TestCase):
    def test_defaults(self):
        state = EditorState()
        self.assertEqual(state.active_tool, config.DEFAULT_TOOL)
        self.assertEqual(state.brush_size, 1)
        self.assertEqual(state.active_frame, 0)
        self.assertFalse(state.drawing)
        self.assertEqual(state.view.zoom, config.DEFAULT_ZOOM)

    def test_set_color_normalizes_lists(self):
        state = EditorState()
        state.set_color([1, 2, 3])
        self.assertEqual(state.selected_color, (1, 2, 3))
        state.set_color(4)
        self.assertEqual(state.selected_color, 4)

    def test_brush_size_is_clamped(self):
        state = EditorState()
        self.assertEqual(state.set_brush_size(0), 1)
        self.assertEqual(state.set_brush_size(500), config.MAX_BRUSH_SIZE)

    def test_reset_view(self):
        state = EditorState()
        state.view.zoom_in()
        state.reset_view()
        self.assertEqual(state.view.zoom, config.DEFAULT_ZOOM)


class TestViewConfig(unittest.TestCase):
    def test_zoom_stays_within_limits(self):
        view = ViewConfig(zoom=config.MAX_ZOOM)
        self.assertEqual(view.zoom_in(), config.MAX_ZOOM)
        view = ViewConfig(zoom=config.MIN_ZOOM)
        self.assertEqual(view.zoom_out(), config.MIN_ZOOM)

    def test_grid_hidden_below_threshold(self):
        self.assertTrue(ViewConfig(zoom=config.GRID_MIN_ZOOM).grid_visible)
        self.assertFalse(ViewConfig(zoom=config.GRID_MIN_ZOOM - 1).grid_visible)
        self.assertFalse(ViewConfig(show_grid=False).grid_visible)


if __name__ == "__main__":
    unittest.main()
