import unittest

from sti_manager.core import config
from sti_manager.editor.history_manager import HistoryManager, HistoryState
from sti_manager.editor.sprite_collection import PaletteTable, PixelBuffer, SpriteCollection


def _collection(value=0):
    return SpriteCollection(
        color_mode=config.COLOR_MODE_INDEXED,
        frames=[PixelBuffer.blank(2, 2, fill=value)],
        palette=PaletteTable([[0, 0, 0], [255, 255, 255]]),
    )


def _value(state):
    return state.restore().get_frame(0).get_sample(0, 0)


class TestHistoryManager(unittest.TestCase):
    def setUp(self):
        self.history = HistoryManager()
        self.history.reset(_collection(0), 0, "Open")

    def test_reset_seeds_loaded_state(self):
        self.assertEqual(len(self.history), 1)
        self.assertEqual(self.history.cursor, 0)
        self.assertFalse(self.history.can_undo)
        self.assertFalse(self.history.can_redo)

    def test_snapshot_after_undo_truncates_redo_branch(self):
        # Entries A, B, C; undo once; D replaces C.
        self.history.snapshot(_collection(1), 0, "B")
        self.history.snapshot(_collection(2), 0, "C")
        self.history.undo()
        self.history.snapshot(_collection(3), 0, "D")

        labels = [entry.label for entry in self.history.entries]
        self.assertEqual(labels, ["Open", "B", "D"])
        self.assertEqual(self.history.cursor, 2)
        self.assertFalse(self.history.can_redo)

    def test_undo_then_redo_returns_same_state(self):
        self.history.snapshot(_collection(1), 0, "Paint")
        current = self.history.current
        self.history.undo()
        self.assertEqual(self.history.redo(), current)
        self.assertEqual(_value(self.history.current), 1)

    def test_boundaries_are_silent(self):
        self.assertIsNone(self.history.undo())
        self.assertIsNone(self.history.redo())
        self.assertEqual(self.history.cursor, 0)

    def test_capacity_evicts_oldest(self):
        history = HistoryManager(max_states=3)
        history.reset(_collection(0), 0, "Open")
        for value in range(1, 5):
            history.snapshot(_collection(value), 0, f"Step {value}")
        self.assertEqual(len(history), 3)
        self.assertEqual(history.cursor, 2)
        self.assertEqual([entry.label for entry in history.entries], ["Step 2", "Step 3", "Step 4"])

    def test_default_capacity_comes_from_config(self):
        self.assertEqual(HistoryManager().max_states, config.UNDO_REDO_MAX_STATES)

    def test_explicit_zero_capacity_keeps_only_latest_entry(self):
        history = HistoryManager(max_states=0)
        self.assertEqual(history.max_states, 1)
        history.reset(_collection(0), 0, "Open")
        history.snapshot(_collection(1), 0, "Paint")
        self.assertEqual([entry.label for entry in history.entries], ["Paint"])

    def test_snapshots_are_ignored_while_replaying(self):
        with self.history.replaying():
            self.assertTrue(self.history.is_replaying)
            self.assertIsNone(self.history.snapshot(_collection(1), 0, "ignored"))
        self.assertFalse(self.history.is_replaying)
        self.assertEqual(len(self.history), 1)

    def test_stroke_records_only_when_dirty(self):
        self.history.begin_stroke()
        self.assertIsNone(self.history.end_stroke(_collection(0), 0))
        self.assertEqual(len(self.history), 1)

        self.history.begin_stroke()
        self.history.mark_stroke_dirty()
        recorded = self.history.end_stroke(_collection(1), 0, "Brush stroke")
        self.assertEqual(recorded.label, "Brush stroke")
        self.assertEqual(len(self.history), 2)
        self.assertFalse(self.history.stroke_active)


class TestHistoryState(unittest.TestCase):
    def test_restore_builds_independent_collections(self):
        collection = _collection(1)
        state = HistoryState.capture(collection, 0, "Open")
        collection.get_frame(0).set_sample(0, 0, 0)

        first = state.restore()
        second = state.restore()
        first.get_frame(0).set_sample(1, 1, 0)

        self.assertEqual(first.get_frame(0).get_sample(0, 0), 1)
        self.assertEqual(second.get_frame(0).get_sample(1, 1), 1)
        self.assertEqual(first.palette, collection.palette)

    def test_capture_keeps_metadata(self):
        collection = _collection(0)
        collection.file_path = "a.sti"
        collection.transparent_color = 3
        state = HistoryState.capture(collection, 5, "Open")
        restored = state.restore()
        self.assertEqual(state.active_index, 5)
        self.assertEqual(state.frame_count, 1)
        self.assertEqual(restored.file_path, "a.sti")
        self.assertEqual(restored.transparent_color, 3)


if __name__ == "__main__":
    unittest.main()
