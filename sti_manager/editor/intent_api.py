"""Command-driven intent layer over an edit session."""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from sti_manager.core import config
from sti_manager.editor.edit_session import EditSession
from sti_manager.editor.errors import (
    ExternalServiceError,
    InvalidPermutationError,
    LastFrameRemovalError,
    ServiceBusyError,
    StiEditError,
)
from sti_manager.editor.sprite_service import SpriteService


class IntentApiError(Exception):
    """Structured error for intent execution."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = int(status_code)
        self.message = str(message)


def _as_non_empty_string(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise IntentApiError(400, f"Field '{field}' must be a non-empty string.")
    return value.strip()


def _as_int(
    value: Any,
    field: str,
    *,
    minimum: Optional[int] = None,
    maximum: Optional[int] = None,
) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise IntentApiError(400, f"Field '{field}' must be an integer.")
    if minimum is not None and value < minimum:
        raise IntentApiError(400, f"Field '{field}' must be >= {minimum}.")
    if maximum is not None and value > maximum:
        raise IntentApiError(400, f"Field '{field}' must be <= {maximum}.")
    return value


def _as_int_list(value: Any, field: str) -> List[int]:
    if not isinstance(value, (list, tuple)):
        raise IntentApiError(400, f"Field '{field}' must be an array of integers.")
    return [_as_int(item, f"{field}[{index}]", minimum=0) for index, item in enumerate(value)]


def _as_color(value: Any, field: str = "color"):
    """A palette index, or an [r, g, b] array for packed sprites."""
    if isinstance(value, (list, tuple)):
        if len(value) != 3:
            raise IntentApiError(400, f"Field '{field}' must be an RGB array.")
        return tuple(
            _as_int(item, f"{field}[{index}]", minimum=0, maximum=255)
            for index, item in enumerate(value)
        )
    return _as_int(value, field, minimum=0, maximum=config.MAX_PALETTE_COLORS - 1)


def _as_point(value: Any, field: str = "point") -> Tuple[int, int]:
    if isinstance(value, Mapping):
        x = _as_int(value.get("x"), f"{field}.x")
        y = _as_int(value.get("y"), f"{field}.y")
        return x, y
    if isinstance(value, (list, tuple)) and len(value) == 2:
        x = _as_int(value[0], f"{field}[0]")
        y = _as_int(value[1], f"{field}[1]")
        return x, y
    raise IntentApiError(400, f"Field '{field}' must be an object with x/y or a two-item array.")


class IntentController:
    """Stateful command API: one edit session at a time, intents as JSON-like dicts."""

    def __init__(self, service: SpriteService, *, session_factory: Optional[Callable[..., EditSession]] = None) -> None:
        self.service = service
        self._session_factory = session_factory or EditSession
        self._session: Optional[EditSession] = None
        self._session_id = 0
        self._lock = threading.RLock()
        self._intents: Dict[str, Callable[[Dict[str, Any]], Any]] = {
            "set_tool": self._intent_set_tool,
            "set_color": self._intent_set_color,
            "set_brush_size": self._intent_set_brush_size,
            "set_active_frame": self._intent_set_active_frame,
            "paint": self._intent_paint,
            "begin_stroke": self._intent_begin_stroke,
            "stroke_to": self._intent_stroke_to,
            "end_stroke": self._intent_end_stroke,
            "pick_color": self._intent_pick_color,
            "add_frame": self._intent_add_frame,
            "duplicate_frame": self._intent_duplicate_frame,
            "remove_frames": self._intent_remove_frames,
            "remove_selected": self._intent_remove_selected,
            "select": self._intent_select,
            "toggle": self._intent_toggle,
            "select_range": self._intent_select_range,
            "extend_selection": self._intent_extend_selection,
            "select_all": self._intent_select_all,
            "clear_selection": self._intent_clear_selection,
            "stage_order": self._intent_stage_order,
            "move_up": self._intent_move_up,
            "move_down": self._intent_move_down,
            "move_selected_up": self._intent_move_selected_up,
            "move_selected_down": self._intent_move_selected_down,
            "commit_reorder": self._intent_commit_reorder,
            "cancel_reorder": self._intent_cancel_reorder,
            "undo": self._intent_undo,
            "redo": self._intent_redo,
            "save": self._intent_save,
        }

    @property
    def supported_intents(self) -> List[str]:
        return sorted(self._intents)

    def start_session(self, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        payload = payload or {}
        if not isinstance(payload, dict):
            raise IntentApiError(400, "Session payload must be a JSON object.")
        path = _as_non_empty_string(payload.get("path"), "path")
        mirror = payload.get("mirror", False)
        if not isinstance(mirror, bool):
            raise IntentApiError(400, "Field 'mirror' must be a boolean.")

        with self._lock:
            if self._session is not None and self._session.busy:
                raise IntentApiError(409, "A save is still running for the current session.")
            session = self._session_factory(self.service, path, mirror_structural_edits=mirror)
            self._run(session.enter_edit)
            self._session = session
            self._session_id += 1
            return {
                "status": "started",
                "sessionId": self._session_id,
                "state": self._session.snapshot_state(),
            }

    def end_session(self) -> Dict[str, Any]:
        with self._lock:
            session = self._require_session()
            dropped = self._run(session.exit_edit)
            self._session = None
            return {"status": "ended", "discardedChanges": dropped}

    def get_state(self) -> Dict[str, Any]:
        with self._lock:
            return self._require_session().snapshot_state()

    def execute_intent(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(payload, dict):
            raise IntentApiError(400, "Intent payload must be a JSON object.")

        intent = _as_non_empty_string(payload.get("intent"), "intent")
        handler = self._intents.get(intent)
        if handler is None:
            supported = ", ".join(self.supported_intents)
            raise IntentApiError(400, f"Unknown intent '{intent}'. Supported intents: {supported}")

        with self._lock:
            session = self._require_session()
            result = self._run(handler, payload)
            return {
                "status": "ok",
                "sessionId": self._session_id,
                "intent": intent,
                "result": result,
                "state": session.snapshot_state(),
            }

    def _require_session(self) -> EditSession:
        if self._session is None:
            raise IntentApiError(409, "No edit session is active. Call start_session first.")
        return self._session

    @staticmethod
    def _run(handler: Callable, *args):
        try:
            return handler(*args)
        except IntentApiError:
            raise
        except ServiceBusyError as exc:
            raise IntentApiError(409, str(exc)) from exc
        except ExternalServiceError as exc:
            raise IntentApiError(502, str(exc)) from exc
        except (InvalidPermutationError, LastFrameRemovalError) as exc:
            raise IntentApiError(400, str(exc)) from exc
        except IndexError as exc:
            raise IntentApiError(404, str(exc)) from exc
        except ValueError as exc:
            raise IntentApiError(400, str(exc)) from exc
        except StiEditError as exc:
            raise IntentApiError(409, str(exc)) from exc

    # --- Tool intents ---
    def _intent_set_tool(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._require_session()
        tool = _as_non_empty_string(payload.get("tool"), "tool")
        session.painter.get_tool(tool)
        session.state.set_tool(tool)
        return {"tool": tool}

    def _intent_set_color(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._require_session()
        color = _as_color(payload.get("color"))
        collection = session.require_collection()
        if collection.is_indexed:
            if isinstance(color, tuple):
                raise IntentApiError(400, "Indexed sprites take a palette index as 'color'.")
            if color >= len(collection.palette):
                raise IntentApiError(
                    400, f"Field 'color' must be a palette index below {len(collection.palette)}."
                )
        session.state.set_color(color)
        return {"color": list(color) if isinstance(color, tuple) else color}

    def _intent_set_brush_size(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._require_session()
        size = _as_int(payload.get("size"), "size", minimum=1, maximum=config.MAX_BRUSH_SIZE)
        return {"brushSize": session.state.set_brush_size(size)}

    def _intent_set_active_frame(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._require_session()
        index = _as_int(payload.get("index"), "index", minimum=0)
        return {"activeFrame": session.set_active_frame(index)}

    # --- Painting intents ---
    def _intent_paint(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._require_session()
        raw_points = payload.get("points")
        if not isinstance(raw_points, list) or not raw_points:
            raise IntentApiError(400, "Field 'points' must be a non-empty array.")
        points = [_as_point(point, f"points[{index}]") for index, point in enumerate(raw_points)]
        changed = session.paint_points(points)
        return {"changed": changed, "points": len(points)}

    def _intent_begin_stroke(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self._require_session().begin_stroke()
        return {"drawing": True}

    def _intent_stroke_to(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._require_session()
        x, y = _as_point(payload.get("point"))
        result = session.stroke_to(x, y)
        picked = result.picked
        return {
            "changed": result.changed,
            "picked": list(picked) if isinstance(picked, tuple) else picked,
        }

    def _intent_end_stroke(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        recorded = self._require_session().end_stroke()
        return {"recorded": recorded is not None}

    def _intent_pick_color(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._require_session()
        x, y = _as_point(payload.get("point"))
        picked = session.pick_color(x, y)
        return {"picked": list(picked) if isinstance(picked, tuple) else picked}

    # --- Frame intents ---
    def _intent_add_frame(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._require_session()
        width = payload.get("width")
        height = payload.get("height")
        if width is not None:
            width = _as_int(width, "width", minimum=1, maximum=config.MAX_FRAME_DIMENSION)
        if height is not None:
            height = _as_int(height, "height", minimum=1, maximum=config.MAX_FRAME_DIMENSION)
        fill = _as_int(payload.get("fill", config.TRANSPARENT_INDEX), "fill", minimum=0, maximum=0xFFFF)
        return {"index": session.add_frame(width, height, fill)}

    def _intent_duplicate_frame(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._require_session()
        index = _as_int(payload.get("index"), "index", minimum=0)
        return {"index": session.duplicate_frame(index)}

    def _intent_remove_frames(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._require_session()
        indices = _as_int_list(payload.get("indices"), "indices")
        return {"removed": session.remove_frames(indices)}

    def _intent_remove_selected(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {"removed": self._require_session().remove_selected_frames()}

    # --- Selection intents ---
    def _intent_select(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._require_session()
        session.select_frame(_as_int(payload.get("index"), "index", minimum=0))
        return {"selected": session.selection.selected}

    def _intent_toggle(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._require_session()
        session.toggle_frame(_as_int(payload.get("index"), "index", minimum=0))
        return {"selected": session.selection.selected}

    def _intent_select_range(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._require_session()
        anchor = _as_int(payload.get("anchor"), "anchor", minimum=0)
        end = _as_int(payload.get("end"), "end", minimum=0)
        return {"added": session.select_range(anchor, end), "selected": session.selection.selected}

    def _intent_extend_selection(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._require_session()
        end = _as_int(payload.get("end"), "end", minimum=0)
        return {"added": session.extend_selection(end), "selected": session.selection.selected}

    def _intent_select_all(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._require_session()
        session.select_all()
        return {"selected": session.selection.selected}

    def _intent_clear_selection(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._require_session()
        session.clear_selection()
        return {"selected": []}

    # --- Reorder intents ---
    def _intent_stage_order(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._require_session()
        order = _as_int_list(payload.get("order"), "order")
        return {"dirty": session.stage_order(order), "order": session.display_order}

    def _intent_move_up(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._require_session()
        moved = session.move_frame_up(_as_int(payload.get("index"), "index", minimum=0))
        return {"moved": moved, "order": session.display_order}

    def _intent_move_down(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._require_session()
        moved = session.move_frame_down(_as_int(payload.get("index"), "index", minimum=0))
        return {"moved": moved, "order": session.display_order}

    def _intent_move_selected_up(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._require_session()
        return {"moved": session.move_selected_up(), "order": session.display_order}

    def _intent_move_selected_down(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._require_session()
        return {"moved": session.move_selected_down(), "order": session.display_order}

    def _intent_commit_reorder(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        order = self._require_session().commit_reorder()
        return {"committed": order is not None, "order": order}

    def _intent_cancel_reorder(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        session = self._require_session()
        session.cancel_reorder()
        return {"order": session.display_order}

    # --- History and persistence ---
    def _intent_undo(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        restored = self._require_session().undo()
        return {"applied": restored is not None}

    def _intent_redo(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        restored = self._require_session().redo()
        return {"applied": restored is not None}

    def _intent_save(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        collection = self._require_session().save()
        return {"saved": True, "frameCount": collection.frame_count}
