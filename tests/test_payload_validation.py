import pytest

from sti_manager.core.payload_validation import (
    PayloadValidationError,
    validate_editable_payload,
    validate_frame_payload,
)


def _valid_payload():
    return {
        "file_path": "sprites/a.sti",
        "is_8bit": True,
        "is_16bit": False,
        "palette": [[0, 0, 0], [10, 20, 30]],
        "images": [{"width": 2, "height": 1, "data": [0, 1]}],
        "transparent_color": 0,
        "flags": 9,
    }


def test_valid_payload_passes_and_is_normalized():
    payload = validate_editable_payload(_valid_payload())
    assert payload["images"][0]["data"] == [0, 1]
    assert "file_size" not in payload


def test_packed_payload_without_palette_passes():
    payload = _valid_payload()
    payload.update(is_8bit=False, is_16bit=True, palette=None)
    payload["images"][0]["data"] = [0, 0, 255, 255]
    assert validate_editable_payload(payload)["is_16bit"] is True


def test_both_color_modes_rejected():
    payload = _valid_payload()
    payload["is_16bit"] = True
    with pytest.raises(PayloadValidationError) as error:
        validate_editable_payload(payload, source="a.sti")
    assert "a.sti validation failed" in str(error.value)


def test_data_length_must_match_dimensions():
    payload = _valid_payload()
    payload["images"][0]["data"] = [0]
    with pytest.raises(PayloadValidationError, match="must contain 2 bytes"):
        validate_editable_payload(payload)


def test_indexed_payload_needs_palette():
    payload = _valid_payload()
    payload["palette"] = None
    with pytest.raises(PayloadValidationError, match="palette"):
        validate_editable_payload(payload)


def test_palette_entries_are_checked():
    payload = _valid_payload()
    payload["palette"] = [[0, 0, 0], [0, 0, 300]]
    with pytest.raises(PayloadValidationError) as error:
        validate_editable_payload(payload)
    assert error.value.errors[0]["loc"] == ("palette",)


def test_empty_image_list_rejected():
    payload = _valid_payload()
    payload["images"] = []
    with pytest.raises(PayloadValidationError):
        validate_editable_payload(payload)


def test_error_message_lists_nested_locations():
    payload = _valid_payload()
    payload["images"][0]["width"] = 0
    with pytest.raises(PayloadValidationError) as error:
        validate_editable_payload(payload)
    assert "images[0].width" in str(error.value)


def test_frame_payload_rejects_non_byte_samples():
    with pytest.raises(PayloadValidationError, match="byte value"):
        validate_frame_payload({"width": 1, "height": 1, "data": [256]})
    assert validate_frame_payload({"width": 1, "height": 1, "data": [7]})["data"] == [7]


def test_validation_error_is_value_error():
    with pytest.raises(ValueError):
        validate_editable_payload({"images": []})
