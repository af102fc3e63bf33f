"""Edit mode for one sprite file: turns user intents into collection mutations."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sti_manager.core import config
from sti_manager.core.payload_validation import PayloadValidationError
from sti_manager.editor.editor_state import EditorState
from sti_manager.editor.errors import (
    ExternalServiceError,
    ServiceBusyError,
    SpriteFormatError,
    StiEditError,
)
from sti_manager.editor.history_manager import HistoryManager, HistoryState
from sti_manager.editor.pixel_painter import PaintResult, PixelPainter
from sti_manager.editor.reorder_staging import ReorderStagingEngine
from sti_manager.editor.selection_controller import SelectionController
from sti_manager.editor.sprite_collection import SpriteCollection
from sti_manager.editor.sprite_service import SpriteService


def describe_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Summarize a decoded payload the way the file browser shows it."""
    images = payload.get("images") or []
    first = images[0] if images else {}
    is_8bit = bool(payload.get("is_8bit"))
    flags = int(payload.get("flags", 0))
    return {
        "width": int(first.get("width", 0)),
        "height": int(first.get("height", 0)),
        "num_images": len(images),
        "is_8bit": is_8bit,
        "is_16bit": bool(payload.get("is_16bit")),
        "is_animated": len(images) > 1,
        "is_compressed": bool(flags & (config.STI_FLAG_ZLIB | config.STI_FLAG_ETRLE)),
        "palette_colors": len(payload.get("palette") or []) if is_8bit else 0,
        "file_size": int(payload.get("file_size") or 0),
    }


class EditSession:
    """Owns the live collection, its history, frame selection and staged reorder."""

    def __init__(
        self,
        service: SpriteService,
        path: str,
        *,
        max_history: Optional[int] = None,
        mirror_structural_edits: bool = False,
        painter: Optional[PixelPainter] = None,
    ):
        self.service = service
        self.path = path
        self.mirror_structural_edits = mirror_structural_edits
        self.painter = painter or PixelPainter()
        self.state = EditorState()
        self.collection: Optional[SpriteCollection] = None
        self.history = HistoryManager(max_history)
        self.selection = SelectionController(0)
        self.staging = ReorderStagingEngine(0)
        self._service_lock = threading.Lock()
        self._saved_state: Optional[HistoryState] = None
        self._unrecorded = False

    # --- Service access ---
    @contextmanager
    def _service_call(self, action: str):
        """Run one service round trip; a second one while it is outstanding is rejected."""
        if not self._service_lock.acquire(blocking=False):
            raise ServiceBusyError(f"Cannot {action}: another operation on {self.path} is still running.")
        try:
            yield self.service
        except ExternalServiceError:
            raise
        except PayloadValidationError as exc:
            raise SpriteFormatError(f"{action} failed: {exc}") from exc
        except OSError as exc:
            raise ExternalServiceError(f"{action} failed: {exc}") from exc
        finally:
            self._service_lock.release()

    @property
    def busy(self) -> bool:
        return self._service_lock.locked()

    def _load_collection(self, service: SpriteService) -> SpriteCollection:
        payload = service.enter_edit(self.path)
        collection = SpriteCollection.from_payload(payload, source=self.path)
        if not collection.file_path:
            collection.file_path = self.path
        return collection

    def file_info(self) -> Dict[str, Any]:
        with self._service_call("open file") as service:
            return describe_payload(service.decode(self.path))

    # --- Edit mode lifecycle ---
    @property
    def active(self) -> bool:
        return self.collection is not None

    def require_collection(self) -> SpriteCollection:
        if self.collection is None:
            raise StiEditError("Edit mode is not active. Call enter_edit() first.")
        return self.collection

    def enter_edit(self) -> SpriteCollection:
        with self._service_call("enter edit mode") as service:
            collection = self._load_collection(service)
        self._install_fresh(collection, active_index=0)
        print(f"Editing {self.path} ({collection.frame_count} frame(s), {collection.color_mode}).")
        return collection

    def _install_fresh(self, collection: SpriteCollection, active_index: int) -> None:
        self.collection = collection
        self.state.active_frame = max(0, min(int(active_index), collection.frame_count - 1))
        self.state.drawing = False
        self.history.reset(collection, self.state.active_frame, "Open")
        self._saved_state = self.history.current
        self._unrecorded = False
        self.selection = SelectionController(collection.frame_count)
        self.staging.reset(collection.frame_count)
        self.state.has_unsaved_changes = False

    def exit_edit(self) -> bool:
        """Discard the live collection; returns whether unsaved edits were dropped."""
        if self.busy:
            raise ServiceBusyError(f"Cannot exit edit mode while a save of {self.path} is running.")
        dropped = self.active and self.has_unsaved_changes
        self.collection = None
        self.history = HistoryManager(self.history.max_states)
        self.selection = SelectionController(0)
        self.staging.reset(0)
        self._saved_state = None
        self._unrecorded = False
        self.state.drawing = False
        self.state.has_unsaved_changes = False
        return dropped

    def save(self) -> SpriteCollection:
        """Encode the collection, drop the service cache and reload the saved file."""
        collection = self.require_collection()
        self._finish_stroke()
        if self.staging.dirty:
            print("Staged reorder is not committed and will not be saved.")
        with self._service_call("save") as service:
            service.encode(self.path, collection.to_payload())
            self._saved_state = self.history.current
            self.state.has_unsaved_changes = False
            service.invalidate_cache()
            fresh = self._load_collection(service)
        self._install_fresh(fresh, active_index=self.state.active_frame)
        print(f"Saved {self.path}.")
        return fresh

    @property
    def has_unsaved_changes(self) -> bool:
        if self.collection is None:
            return False
        return self._unrecorded or self.history.current is not self._saved_state

    def _refresh_unsaved(self) -> None:
        self.state.has_unsaved_changes = self.has_unsaved_changes

    # --- Frames ---
    @property
    def frame_count(self) -> int:
        return self.collection.frame_count if self.collection is not None else 0

    @property
    def display_order(self) -> List[int]:
        return self.staging.staged_order

    def set_active_frame(self, index: int) -> int:
        collection = self.require_collection()
        collection.get_frame(index)
        self._finish_stroke()
        self.state.active_frame = int(index)
        return self.state.active_frame

    # --- Painting ---
    def begin_stroke(self) -> None:
        self.require_collection()
        if self.history.stroke_active:
            self._finish_stroke()
        self.history.begin_stroke()
        self.state.drawing = True

    def stroke_to(self, x: int, y: int) -> PaintResult:
        collection = self.require_collection()
        tool = self.state.active_tool
        if self.painter.is_mutating(tool) and not self.history.stroke_active:
            self.begin_stroke()
        buffer = collection.get_frame(self.state.active_frame)
        result = self.painter.paint(
            buffer, collection, x, y, tool, self.state.selected_color, self.state.brush_size
        )
        if result.changed:
            self.history.mark_stroke_dirty()
            self._unrecorded = True
            self.state.has_unsaved_changes = True
        if result.picked is not None:
            self.state.set_color(result.picked)
            self.state.last_pick = result.picked
        return result

    def end_stroke(self, label: Optional[str] = None) -> Optional[HistoryState]:
        collection = self.require_collection()
        self.state.drawing = False
        label = label or f"{self.state.active_tool.title()} stroke"
        recorded = self.history.end_stroke(collection, self.state.active_frame, label)
        if recorded is not None:
            self._unrecorded = False
            if self.mirror_structural_edits:
                frame = collection.get_frame(self.state.active_frame)
                self._mirror("update image", "update_frame", self.state.active_frame, frame.to_payload())
        self._refresh_unsaved()
        return recorded

    def paint_at(self, x: int, y: int) -> PaintResult:
        """One click: a stroke of a single pixel."""
        self.begin_stroke()
        result = self.stroke_to(x, y)
        self.end_stroke()
        return result

    def paint_points(self, points: Iterable[Sequence[int]]) -> bool:
        """One drag gesture over several points; recorded as one history entry."""
        self.begin_stroke()
        changed = False
        for x, y in points:
            changed = self.stroke_to(x, y).changed or changed
        self.end_stroke()
        return changed

    def pick_color(self, x: int, y: int):
        collection = self.require_collection()
        picked = self.painter.pick(collection.get_frame(self.state.active_frame), collection, x, y)
        if picked is not None:
            self.state.set_color(picked)
            self.state.last_pick = picked
        return picked

    def _finish_stroke(self) -> None:
        if self.history.stroke_active:
            self.end_stroke()

    # --- Structural edits ---
    def _record_before(self) -> None:
        self._finish_stroke()
        if self._unrecorded:
            self.history.snapshot(self.collection, self.state.active_frame, "Unrecorded changes")
            self._unrecorded = False

    def _record_after(self, label: str) -> None:
        self.history.snapshot(self.collection, self.state.active_frame, label)
        self._refresh_unsaved()

    def _reset_staging(self) -> None:
        if self.staging.dirty:
            print("Discarding staged reorder after a structural edit.")
        self.staging.reset(self.frame_count)

    def _mirror(self, action: str, method: str, *args) -> None:
        with self._service_call(action) as service:
            getattr(service, method)(self.path, *args)
            service.invalidate_cache()

    def add_frame(
        self,
        width: Optional[int] = None,
        height: Optional[int] = None,
        fill_index: int = config.TRANSPARENT_INDEX,
    ) -> int:
        collection = self.require_collection()
        default_w, default_h = config.DEFAULT_NEW_FRAME_SIZE
        frame = collection.new_frame(
            default_w if width is None else width,
            default_h if height is None else height,
            fill_index,
        )
        self._record_before()
        new_index = collection.append_frame(frame)
        self.state.active_frame = new_index
        self.selection.clear()
        self.selection.purge(collection.frame_count)
        self._reset_staging()
        self._record_after("Add frame")
        if self.mirror_structural_edits:
            self._mirror("add image", "add_frame", frame.to_payload())
        return new_index

    def duplicate_frame(self, index: int) -> int:
        collection = self.require_collection()
        source = collection.get_frame(index)
        self._record_before()
        new_index = collection.insert_frame(index + 1, source.copy())
        self.state.active_frame = new_index
        self.selection.clear()
        self.selection.purge(collection.frame_count)
        self._reset_staging()
        self._record_after("Duplicate frame")
        if self.mirror_structural_edits:
            self._mirror("save", "encode", collection.to_payload())
        return new_index

    def remove_frames(self, indices: Iterable[int]) -> List[int]:
        collection = self.require_collection()
        doomed = collection.check_removal(indices)
        doomed_set = set(doomed)
        self._record_before()
        old_count = collection.frame_count
        collection.remove_frames(doomed)

        mapping: Dict[int, Optional[int]] = {}
        next_index = 0
        for old_index in range(old_count):
            if old_index in doomed_set:
                mapping[old_index] = None
            else:
                mapping[old_index] = next_index
                next_index += 1

        active = self.state.active_frame
        if mapping.get(active) is not None:
            self.state.active_frame = mapping[active]
        else:
            survivors_before = sum(1 for i in range(active) if i not in doomed_set)
            self.state.active_frame = max(0, survivors_before - 1)
        self.selection.remap(mapping, collection.frame_count)
        self._reset_staging()
        self._record_after(f"Delete {len(doomed)} frame(s)")
        if self.mirror_structural_edits:
            self._mirror("delete images", "delete_frames", doomed)
        return doomed

    def remove_selected_frames(self) -> List[int]:
        if not self.selection.selected:
            print("No frames selected.")
            return []
        return self.remove_frames(self.selection.selected)

    # --- Selection ---
    def select_frame(self, index: int) -> None:
        self.selection.select(index)
        self.set_active_frame(index)

    def toggle_frame(self, index: int) -> None:
        self.selection.toggle(index)

    def select_range(self, anchor_index: int, end_index: int) -> List[int]:
        return self.selection.select_range(anchor_index, end_index, self.display_order)

    def extend_selection(self, end_index: int) -> List[int]:
        return self.selection.select_range_to(end_index, self.display_order)

    def select_all(self) -> None:
        self.selection.select_all()

    def clear_selection(self) -> None:
        self.selection.clear()

    # --- Staged reorder ---
    def stage_order(self, order: Sequence[int]) -> bool:
        self.require_collection()
        return self.staging.stage(order)

    def move_frame_up(self, original_index: int) -> bool:
        self.require_collection()
        return self.staging.move_up(original_index)

    def move_frame_down(self, original_index: int) -> bool:
        self.require_collection()
        return self.staging.move_down(original_index)

    def move_selected_up(self) -> bool:
        self.require_collection()
        return self.staging.move_selection_up(self.selection.selected)

    def move_selected_down(self) -> bool:
        self.require_collection()
        return self.staging.move_selection_down(self.selection.selected)

    def cancel_reorder(self) -> None:
        self.staging.cancel()

    def commit_reorder(self) -> Optional[List[int]]:
        collection = self.require_collection()
        if not self.staging.dirty:
            print("No staged reorder to commit.")
            return None
        self._record_before()
        order = self.staging.commit()
        collection.apply_order(order)
        mapping = {old_index: position for position, old_index in enumerate(order)}
        self.state.active_frame = mapping[self.state.active_frame]
        self.selection.remap(mapping, collection.frame_count)
        self.staging.reset(collection.frame_count)
        self._record_after("Reorder frames")
        if self.mirror_structural_edits:
            self._mirror("reorder images", "reorder_frames", order)
        return order

    # --- History ---
    def undo(self) -> Optional[HistoryState]:
        self.require_collection()
        self._finish_stroke()
        restored = self.history.undo()
        if restored is not None:
            self._install_history_state(restored)
            print(f"Undid: {self.history.entries[self.history.cursor + 1].label}")
        return restored

    def redo(self) -> Optional[HistoryState]:
        self.require_collection()
        self._finish_stroke()
        restored = self.history.redo()
        if restored is not None:
            self._install_history_state(restored)
            print(f"Redid: {restored.label}")
        return restored

    def _install_history_state(self, history_state: HistoryState) -> None:
        with self.history.replaying():
            collection = history_state.restore()
            self.collection = collection
            self.state.active_frame = max(0, min(history_state.active_index, collection.frame_count - 1))
            # Indices may name different frames in the restored order.
            self.selection = SelectionController(collection.frame_count)
            self._reset_staging()
            self._unrecorded = False
        self._refresh_unsaved()

    # --- Inspection ---
    def snapshot_state(self) -> Dict[str, Any]:
        collection = self.collection
        return {
            "path": self.path,
            "active": collection is not None,
            "colorMode": collection.color_mode if collection is not None else None,
            "frameCount": self.frame_count,
            "activeFrame": self.state.active_frame,
            "activeTool": self.state.active_tool,
            "selectedColor": (
                list(self.state.selected_color)
                if isinstance(self.state.selected_color, tuple)
                else self.state.selected_color
            ),
            "brushSize": self.state.brush_size,
            "selection": {
                "selected": self.selection.selected,
                "lastTouched": self.selection.last_touched,
            },
            "staging": {
                "order": self.staging.staged_order,
                "dirty": self.staging.dirty,
            },
            "history": {
                "size": len(self.history),
                "cursor": self.history.cursor,
                "canUndo": self.history.can_undo,
                "canRedo": self.history.can_redo,
                "labels": [entry.label for entry in self.history.entries],
            },
            "unsavedChanges": self.has_unsaved_changes,
            "busy": self.busy,
        }
