import pytest

from sti_manager.core import config
from sti_manager.editor.errors import ExternalServiceError
from sti_manager.editor.intent_api import IntentApiError, IntentController
from sti_manager.editor.sprite_service import MemorySpriteService


def _payload():
    return {
        "is_8bit": True,
        "is_16bit": False,
        "palette": [[0, 0, 0], [255, 0, 0], [0, 255, 0], [0, 0, 255]],
        "images": [{"width": 4, "height": 4, "data": [i] * 16} for i in range(3)],
        "transparent_color": 0,
        "flags": config.STI_FLAG_INDEXED,
    }


@pytest.fixture
def service():
    return MemorySpriteService({"idle.sti": _payload()})


@pytest.fixture
def controller(service):
    controller = IntentController(service)
    controller.start_session({"path": "idle.sti"})
    return controller


def test_intents_require_session(service):
    controller = IntentController(service)
    with pytest.raises(IntentApiError) as error:
        controller.execute_intent({"intent": "undo"})
    assert error.value.status_code == 409
    assert "start_session" in error.value.message


def test_start_session_validates_path(service):
    controller = IntentController(service)
    with pytest.raises(IntentApiError) as error:
        controller.start_session({"path": "  "})
    assert error.value.status_code == 400

    with pytest.raises(IntentApiError) as error:
        controller.start_session({"path": "missing.sti"})
    assert error.value.status_code == 502


def test_start_session_returns_state(service):
    response = IntentController(service).start_session({"path": "idle.sti"})
    assert response["status"] == "started"
    assert response["sessionId"] == 1
    assert response["state"]["frameCount"] == 3


def test_unknown_intent_lists_supported(controller):
    with pytest.raises(IntentApiError) as error:
        controller.execute_intent({"intent": "explode"})
    assert error.value.status_code == 400
    assert "paint" in error.value.message


def test_paint_undo_redo_cycle(controller):
    controller.execute_intent({"intent": "set_color", "color": 2})
    response = controller.execute_intent({"intent": "paint", "points": [{"x": 1, "y": 1}, [2, 1]]})
    assert response["result"] == {"changed": True, "points": 2}
    assert response["state"]["history"]["size"] == 2

    picked = controller.execute_intent({"intent": "pick_color", "point": {"x": 2, "y": 1}})
    assert picked["result"]["picked"] == 2

    assert controller.execute_intent({"intent": "undo"})["result"]["applied"]
    assert controller.execute_intent({"intent": "pick_color", "point": [2, 1]})["result"]["picked"] == 0
    assert controller.execute_intent({"intent": "redo"})["result"]["applied"]
    assert not controller.execute_intent({"intent": "redo"})["result"]["applied"]


def test_manual_stroke_intents(controller):
    controller.execute_intent({"intent": "begin_stroke"})
    controller.execute_intent({"intent": "stroke_to", "point": [0, 0]})
    controller.execute_intent({"intent": "stroke_to", "point": [1, 0]})
    response = controller.execute_intent({"intent": "end_stroke"})
    assert response["result"]["recorded"]
    assert response["state"]["history"]["labels"] == ["Open", "Brush stroke"]


def test_tool_and_brush_validation(controller):
    with pytest.raises(IntentApiError) as error:
        controller.execute_intent({"intent": "set_tool", "tool": "lasso"})
    assert error.value.status_code == 400

    with pytest.raises(IntentApiError) as error:
        controller.execute_intent({"intent": "set_brush_size", "size": 0})
    assert error.value.status_code == 400

    response = controller.execute_intent({"intent": "set_brush_size", "size": 3})
    assert response["state"]["brushSize"] == 3
    response = controller.execute_intent({"intent": "set_tool", "tool": "fill"})
    assert response["state"]["activeTool"] == "fill"


def test_color_payload_validation(controller):
    with pytest.raises(IntentApiError):
        controller.execute_intent({"intent": "set_color", "color": [1, 2]})
    with pytest.raises(IntentApiError):
        controller.execute_intent({"intent": "set_color", "color": True})
    response = controller.execute_intent({"intent": "set_color", "color": 3})
    assert response["state"]["selectedColor"] == 3


def test_indexed_color_must_be_inside_palette(controller):
    for color in (4, 200, [10, 20, 30]):
        with pytest.raises(IntentApiError) as error:
            controller.execute_intent({"intent": "set_color", "color": color})
        assert error.value.status_code == 400
    assert controller.get_state()["selectedColor"] == 1


def test_packed_session_takes_rgb_color(service):
    service.files["rgb.sti"] = {
        "is_8bit": False,
        "is_16bit": True,
        "images": [{"width": 1, "height": 1, "data": [0, 0]}],
        "transparent_color": 0,
        "flags": config.STI_FLAG_RGB,
    }
    controller = IntentController(service)
    controller.start_session({"path": "rgb.sti"})
    response = controller.execute_intent({"intent": "set_color", "color": [10, 20, 30]})
    assert response["state"]["selectedColor"] == [10, 20, 30]


def test_add_frame_fill_outside_palette_is_bad_request(controller):
    with pytest.raises(IntentApiError) as error:
        controller.execute_intent({"intent": "add_frame", "width": 2, "height": 2, "fill": 300})
    assert error.value.status_code == 400
    assert controller.get_state()["frameCount"] == 3


def test_frame_errors_map_to_status_codes(controller):
    with pytest.raises(IntentApiError) as error:
        controller.execute_intent({"intent": "set_active_frame", "index": 7})
    assert error.value.status_code == 404

    with pytest.raises(IntentApiError) as error:
        controller.execute_intent({"intent": "remove_frames", "indices": [0, 1, 2]})
    assert error.value.status_code == 400

    with pytest.raises(IntentApiError) as error:
        controller.execute_intent({"intent": "stage_order", "order": [0, 0, 1]})
    assert error.value.status_code == 400


def test_frame_structure_intents(controller):
    assert controller.execute_intent({"intent": "add_frame", "width": 2, "height": 2})["result"]["index"] == 3
    assert controller.execute_intent({"intent": "duplicate_frame", "index": 0})["result"]["index"] == 1
    controller.execute_intent({"intent": "select", "index": 1})
    controller.execute_intent({"intent": "toggle", "index": 2})
    response = controller.execute_intent({"intent": "remove_selected"})
    assert response["result"]["removed"] == [1, 2]
    assert response["state"]["frameCount"] == 3


def test_selection_and_reorder_intents(controller):
    controller.execute_intent({"intent": "stage_order", "order": [2, 0, 1]})
    response = controller.execute_intent({"intent": "select_range", "anchor": 2, "end": 0})
    assert response["result"]["selected"] == [0, 2]

    response = controller.execute_intent({"intent": "commit_reorder"})
    assert response["result"] == {"committed": True, "order": [2, 0, 1]}
    assert response["state"]["staging"]["dirty"] is False

    controller.execute_intent({"intent": "move_down", "index": 0})
    response = controller.execute_intent({"intent": "cancel_reorder"})
    assert response["result"]["order"] == [0, 1, 2]

    controller.execute_intent({"intent": "clear_selection"})
    controller.execute_intent({"intent": "select", "index": 0})
    response = controller.execute_intent({"intent": "extend_selection", "end": 1})
    assert response["result"]["selected"] == [0, 1]
    response = controller.execute_intent({"intent": "move_selected_down"})
    assert response["result"] == {"moved": True, "order": [2, 0, 1]}


def test_save_and_end_session(controller, service):
    controller.execute_intent({"intent": "paint", "points": [[0, 0]]})
    response = controller.execute_intent({"intent": "save"})
    assert response["result"] == {"saved": True, "frameCount": 3}
    assert service.files["idle.sti"]["images"][0]["data"][0] == 1

    assert controller.end_session() == {"status": "ended", "discardedChanges": False}
    with pytest.raises(IntentApiError):
        controller.get_state()


def test_service_failure_maps_to_bad_gateway(controller, service, monkeypatch):
    def _fail(path, payload):
        raise ExternalServiceError("disk gone")

    monkeypatch.setattr(service, "encode", _fail)
    with pytest.raises(IntentApiError) as error:
        controller.execute_intent({"intent": "save"})
    assert error.value.status_code == 502
