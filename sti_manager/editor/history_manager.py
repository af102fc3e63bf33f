import zlib
from contextlib import contextmanager
from dataclasses import dataclass
from typing import List, Optional, Tuple

from sti_manager.core import config
from sti_manager.editor.sprite_collection import (
    PaletteTable,
    PixelBuffer,
    SpriteCollection,
    StiFlags,
)


@dataclass(frozen=True)
class _FrameSnapshot:
    width: int
    height: int
    bytes_per_pixel: int
    pixels: bytes  # zlib-compressed samples


@dataclass(frozen=True)
class HistoryState:
    """Immutable capture of a collection, the active frame and an action label."""

    color_mode: str
    frames: Tuple[_FrameSnapshot, ...]
    palette: Optional[Tuple[Tuple[int, int, int], ...]]
    transparent_color: int
    flags: StiFlags
    file_path: str
    file_size: Optional[int]
    active_index: int
    label: str

    @classmethod
    def capture(cls, collection: SpriteCollection, active_index: int, label: str) -> "HistoryState":
        frames = tuple(
            _FrameSnapshot(
                width=frame.width,
                height=frame.height,
                bytes_per_pixel=frame.bytes_per_pixel,
                pixels=zlib.compress(bytes(frame.samples), level=config.SNAPSHOT_COMPRESSION_LEVEL),
            )
            for frame in collection.frames
        )
        return cls(
            color_mode=collection.color_mode,
            frames=frames,
            palette=collection.palette.colors if collection.palette is not None else None,
            transparent_color=collection.transparent_color,
            flags=collection.flags,
            file_path=collection.file_path,
            file_size=collection.file_size,
            active_index=int(active_index),
            label=str(label),
        )

    @property
    def frame_count(self) -> int:
        return len(self.frames)

    def restore(self) -> SpriteCollection:
        """Build a fresh collection; every call returns independent buffers."""
        frames = [
            PixelBuffer(snap.width, snap.height, zlib.decompress(snap.pixels), snap.bytes_per_pixel)
            for snap in self.frames
        ]
        return SpriteCollection(
            color_mode=self.color_mode,
            frames=frames,
            palette=PaletteTable(self.palette) if self.palette is not None else None,
            transparent_color=self.transparent_color,
            flags=self.flags,
            file_path=self.file_path,
            file_size=self.file_size,
        )


class HistoryManager:
    """Bounded snapshot log with a cursor; undo and redo move the cursor."""

    def __init__(self, max_states: Optional[int] = None):
        if max_states is None:
            max_states = config.UNDO_REDO_MAX_STATES
        # Entry 0 always holds the loaded state.
        self.max_states = max(1, int(max_states))
        self._entries: List[HistoryState] = []
        self._cursor = -1
        self._replaying = False
        self._stroke_active = False
        self._stroke_dirty = False

    @property
    def entries(self) -> List[HistoryState]:
        return list(self._entries)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current(self) -> Optional[HistoryState]:
        if 0 <= self._cursor < len(self._entries):
            return self._entries[self._cursor]
        return None

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return 0 <= self._cursor < len(self._entries) - 1

    @property
    def is_replaying(self) -> bool:
        return self._replaying

    @property
    def stroke_active(self) -> bool:
        return self._stroke_active

    def __len__(self) -> int:
        return len(self._entries)

    def reset(self, collection: SpriteCollection, active_index: int = 0, label: str = "Open") -> HistoryState:
        """Drop all entries and seed entry 0 with the collection as loaded."""
        self._entries = []
        self._cursor = -1
        self._replaying = False
        self._stroke_active = False
        self._stroke_dirty = False
        return self._append(HistoryState.capture(collection, active_index, label))

    def snapshot(self, collection: SpriteCollection, active_index: int, label: str) -> Optional[HistoryState]:
        """Record the collection's current state after the cursor."""
        if self._replaying:
            return None
        return self._append(HistoryState.capture(collection, active_index, label))

    def _append(self, state: HistoryState) -> HistoryState:
        del self._entries[self._cursor + 1:]
        self._entries.append(state)
        self._cursor = len(self._entries) - 1
        if len(self._entries) > self.max_states:
            del self._entries[0]
            self._cursor -= 1
        return state

    def undo(self) -> Optional[HistoryState]:
        """Step back one entry; the caller installs the returned state."""
        if not self.can_undo:
            print("Nothing to undo.")
            return None
        self._cursor -= 1
        return self._entries[self._cursor]

    def redo(self) -> Optional[HistoryState]:
        """Step forward one entry; the caller installs the returned state."""
        if not self.can_redo:
            print("Nothing to redo.")
            return None
        self._cursor += 1
        return self._entries[self._cursor]

    @contextmanager
    def replaying(self):
        """Suppress snapshots while a restored state is being installed."""
        previous = self._replaying
        self._replaying = True
        try:
            yield self
        finally:
            self._replaying = previous

    # --- Stroke batching ---
    def begin_stroke(self) -> None:
        self._stroke_active = True
        self._stroke_dirty = False

    def mark_stroke_dirty(self) -> None:
        if self._stroke_active:
            self._stroke_dirty = True

    def end_stroke(self, collection: SpriteCollection, active_index: int, label: str = "Paint") -> Optional[HistoryState]:
        """Close the gesture and record one entry if any pixel changed."""
        was_active, dirty = self._stroke_active, self._stroke_dirty
        self._stroke_active = False
        self._stroke_dirty = False
        if not (was_active and dirty):
            return None
        return self.snapshot(collection, active_index, label)
