"""Sprite persistence/codec service: the protocol the editor consumes and two stores."""

from __future__ import annotations

import copy
import json
import os
from typing import Any, Dict, List, Optional, Protocol, Sequence

from sti_manager.core.payload_validation import (
    PayloadValidationError,
    validate_editable_payload,
    validate_frame_payload,
)
from sti_manager.editor.errors import ExternalServiceError, SpriteFormatError, SpriteReadError
from sti_manager.editor.sprite_collection import is_permutation

Payload = Dict[str, Any]


class SpriteService(Protocol):
    def decode(self, path: str) -> Payload: ...

    def encode(self, path: str, payload: Payload) -> None: ...

    def enter_edit(self, path: str) -> Payload: ...

    def update_frame(self, path: str, index: int, frame: Payload) -> None: ...

    def add_frame(self, path: str, frame: Payload) -> int: ...

    def reorder_frames(self, path: str, order: Sequence[int]) -> None: ...

    def delete_frames(self, path: str, indices: Sequence[int]) -> None: ...

    def invalidate_cache(self) -> None: ...


class PayloadSpriteService:
    """Shared decode cache and incremental mirrors over a raw read/write pair."""

    def __init__(self) -> None:
        self._cache: Dict[str, Payload] = {}

    def _read(self, path: str) -> Any:
        raise NotImplementedError

    def _write(self, path: str, payload: Payload) -> None:
        raise NotImplementedError

    def _size_of(self, path: str, payload: Payload) -> int:
        return len(json.dumps(payload))

    def _load(self, path: str) -> Payload:
        raw = self._read(path)
        try:
            payload = validate_editable_payload(raw, source=path)
        except PayloadValidationError as exc:
            raise SpriteFormatError(str(exc)) from exc
        payload["file_path"] = path
        payload["file_size"] = self._size_of(path, raw)
        return payload

    def _validated_for_write(self, path: str, payload: Payload) -> Payload:
        try:
            data = validate_editable_payload(payload, source=path)
        except PayloadValidationError as exc:
            raise SpriteFormatError(str(exc)) from exc
        data["file_path"] = path
        data.pop("file_size", None)
        return data

    def decode(self, path: str) -> Payload:
        cached = self._cache.get(path)
        if cached is None:
            cached = self._load(path)
            self._cache[path] = cached
        return copy.deepcopy(cached)

    def enter_edit(self, path: str) -> Payload:
        return self.decode(path)

    def encode(self, path: str, payload: Payload) -> None:
        self._write(path, self._validated_for_write(path, payload))

    def invalidate_cache(self) -> None:
        self._cache.clear()

    # --- Incremental mirrors, always against the stored file ---
    def update_frame(self, path: str, index: int, frame: Payload) -> None:
        payload = self._load(path)
        if not 0 <= index < len(payload["images"]):
            raise SpriteFormatError(f"Image index {index} out of bounds for {path}.")
        payload["images"][index] = self._validated_frame(path, frame)
        self.encode(path, payload)

    def add_frame(self, path: str, frame: Payload) -> int:
        payload = self._load(path)
        payload["images"].append(self._validated_frame(path, frame))
        self.encode(path, payload)
        return len(payload["images"]) - 1

    def reorder_frames(self, path: str, order: Sequence[int]) -> None:
        payload = self._load(path)
        images = payload["images"]
        if not is_permutation(order, len(images)):
            raise SpriteFormatError(f"Order {list(order)} is not a permutation of the images in {path}.")
        payload["images"] = [images[int(i)] for i in order]
        self.encode(path, payload)

    def delete_frames(self, path: str, indices: Sequence[int]) -> None:
        payload = self._load(path)
        doomed = {int(i) for i in indices}
        kept = [image for i, image in enumerate(payload["images"]) if i not in doomed]
        if not kept:
            raise SpriteFormatError(f"Refusing to delete every image in {path}.")
        payload["images"] = kept
        self.encode(path, payload)

    @staticmethod
    def _validated_frame(path: str, frame: Payload) -> Payload:
        try:
            return validate_frame_payload(frame, source=path)
        except PayloadValidationError as exc:
            raise SpriteFormatError(str(exc)) from exc


class MemorySpriteService(PayloadSpriteService):
    """Keeps editable payloads in a dict keyed by path; used headless and in tests."""

    def __init__(self, files: Optional[Dict[str, Payload]] = None) -> None:
        super().__init__()
        self.files: Dict[str, Payload] = {
            path: copy.deepcopy(payload) for path, payload in (files or {}).items()
        }
        self.writes: List[str] = []

    def _read(self, path: str) -> Any:
        if path not in self.files:
            raise SpriteReadError(f"File does not exist: {path}")
        return copy.deepcopy(self.files[path])

    def _write(self, path: str, payload: Payload) -> None:
        self.files[path] = copy.deepcopy(payload)
        self.writes.append(path)


class JsonSpriteStore(PayloadSpriteService):
    """Stores editable payloads as JSON documents on disk.

    Writes go to a sibling ``.tmp`` file that replaces the target in one
    step, so a failed write leaves the previous file untouched.
    """

    def _read(self, path: str) -> Any:
        try:
            with open(path, "r", encoding="utf-8") as handle:
                return json.load(handle)
        except OSError as exc:
            raise SpriteReadError(f"Failed to read file {path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise SpriteFormatError(f"Failed to parse {path}: {exc}") from exc

    def _size_of(self, path: str, payload: Payload) -> int:
        return os.path.getsize(path)

    def _write(self, path: str, payload: Payload) -> None:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{path}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as handle:
                json.dump(payload, handle)
            os.replace(tmp_path, path)
        except OSError as exc:
            raise ExternalServiceError(f"Failed to write file {path}: {exc}") from exc
        finally:
            if os.path.exists(tmp_path):
                try:
                    os.remove(tmp_path)
                except OSError:
                    pass
