from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence

from sti_manager.core import config
from sti_manager.core.payload_validation import validate_editable_payload
from sti_manager.editor.errors import (
    InvalidCoordinateError,
    InvalidPermutationError,
    LastFrameRemovalError,
)

Color = tuple[int, int, int]


def pack_rgb565(color: Sequence[int]) -> int:
    """Pack an (r, g, b) triple into a 5-6-5 sample, truncating low bits."""
    r, g, b = (int(channel) & 0xFF for channel in color[:3])
    return ((r >> 3) << 11) | ((g >> 2) << 5) | (b >> 3)


def unpack_rgb565(value: int) -> Color:
    value = int(value) & 0xFFFF
    r = ((value >> 11) & 0x1F) << 3
    g = ((value >> 5) & 0x3F) << 2
    b = (value & 0x1F) << 3
    return (r, g, b)


def is_permutation(order: Sequence[int], frame_count: int) -> bool:
    if len(order) != frame_count:
        return False
    try:
        return sorted(int(i) for i in order) == list(range(frame_count))
    except (TypeError, ValueError):
        return False


class PaletteTable:
    """Ordered, read-only table of up to 256 (r, g, b) colors."""

    def __init__(self, colors: Iterable[Sequence[int]] = ()) -> None:
        normalized = []
        for index, color in enumerate(colors):
            if len(color) != 3:
                raise ValueError(f"Palette entry {index} must be an (r, g, b) triple.")
            r, g, b = (int(channel) for channel in color)
            if not all(0 <= channel <= 255 for channel in (r, g, b)):
                raise ValueError(f"Palette entry {index} has a channel outside 0..255.")
            normalized.append((r, g, b))
        if len(normalized) > config.MAX_PALETTE_COLORS:
            raise ValueError(
                f"Palette holds at most {config.MAX_PALETTE_COLORS} colors (got {len(normalized)})."
            )
        self._colors: tuple[Color, ...] = tuple(normalized)

    def __len__(self) -> int:
        return len(self._colors)

    def __getitem__(self, index: int) -> Color:
        return self._colors[index]

    def __iter__(self):
        return iter(self._colors)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PaletteTable):
            return NotImplemented
        return self._colors == other._colors

    @property
    def colors(self) -> tuple[Color, ...]:
        return self._colors

    def color_for(self, index: int) -> Color:
        if 0 <= index < len(self._colors):
            return self._colors[index]
        return config.INVALID_INDEX_COLOR

    def copy(self) -> "PaletteTable":
        # Entries are tuples, so sharing them is safe.
        return PaletteTable(self._colors)

    def to_payload(self) -> list[list[int]]:
        return [list(color) for color in self._colors]


class PixelBuffer:
    """One frame's samples: a palette index per pixel or a little-endian RGB565 pair."""

    def __init__(self, width: int, height: int, samples: bytes | bytearray | Sequence[int], bytes_per_pixel: int = 1) -> None:
        if int(width) < 1 or int(height) < 1:
            raise ValueError(f"Frame dimensions must be positive (got {width}x{height}).")
        if bytes_per_pixel not in (1, 2):
            raise ValueError("bytes_per_pixel must be 1 (indexed) or 2 (packed).")
        self.width = int(width)
        self.height = int(height)
        self.bytes_per_pixel = bytes_per_pixel
        self.samples = bytearray(samples)
        self._check_length()

    @classmethod
    def blank(cls, width: int, height: int, bytes_per_pixel: int = 1, fill: int = 0) -> "PixelBuffer":
        if bytes_per_pixel == 1:
            pattern = bytes([int(fill) & 0xFF])
        else:
            pattern = (int(fill) & 0xFFFF).to_bytes(2, "little")
        return cls(width, height, pattern * (int(width) * int(height)), bytes_per_pixel)

    def _check_length(self) -> None:
        expected = self.width * self.height * self.bytes_per_pixel
        if len(self.samples) != expected:
            raise ValueError(
                f"Sample array holds {len(self.samples)} bytes; "
                f"{self.width}x{self.height} needs {expected}."
            )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PixelBuffer):
            return NotImplemented
        return (
            self.width == other.width
            and self.height == other.height
            and self.bytes_per_pixel == other.bytes_per_pixel
            and self.samples == other.samples
        )

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    def contains(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def _offset(self, x: int, y: int) -> int:
        if not self.contains(x, y):
            raise InvalidCoordinateError(x, y, self.width, self.height)
        return (y * self.width + x) * self.bytes_per_pixel

    def get_sample(self, x: int, y: int) -> int:
        offset = self._offset(x, y)
        if self.bytes_per_pixel == 1:
            return self.samples[offset]
        return self.samples[offset] | (self.samples[offset + 1] << 8)

    def set_sample(self, x: int, y: int, value: int) -> bool:
        """Write one sample; returns True when the stored value changed."""
        offset = self._offset(x, y)
        if self.bytes_per_pixel == 1:
            new = bytes([int(value) & 0xFF])
        else:
            new = (int(value) & 0xFFFF).to_bytes(2, "little")
        end = offset + self.bytes_per_pixel
        if self.samples[offset:end] == new:
            return False
        self.samples[offset:end] = new
        return True

    def resize(self, width: int, height: int, fill: int = 0) -> None:
        """Reallocate to width x height, keeping the overlapping top-left region."""
        resized = PixelBuffer.blank(width, height, self.bytes_per_pixel, fill)
        bpp = self.bytes_per_pixel
        keep_w = min(self.width, resized.width) * bpp
        for y in range(min(self.height, resized.height)):
            src = y * self.width * bpp
            dst = y * resized.width * bpp
            resized.samples[dst:dst + keep_w] = self.samples[src:src + keep_w]
        self.width = resized.width
        self.height = resized.height
        self.samples = resized.samples
        self._check_length()

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self.width, self.height, bytes(self.samples), self.bytes_per_pixel)

    def to_bytes(self) -> bytes:
        return bytes(self.samples)

    def to_payload(self) -> dict[str, Any]:
        return {"width": self.width, "height": self.height, "data": list(self.samples)}


@dataclass(frozen=True)
class StiFlags:
    transparent: bool = False
    alpha: bool = False
    rgb: bool = False
    indexed: bool = False
    zlib_compressed: bool = False
    etrle_compressed: bool = False

    @classmethod
    def from_int(cls, flags: int) -> "StiFlags":
        flags = int(flags)
        return cls(
            transparent=bool(flags & config.STI_FLAG_TRANSPARENT),
            alpha=bool(flags & config.STI_FLAG_ALPHA),
            rgb=bool(flags & config.STI_FLAG_RGB),
            indexed=bool(flags & config.STI_FLAG_INDEXED),
            zlib_compressed=bool(flags & config.STI_FLAG_ZLIB),
            etrle_compressed=bool(flags & config.STI_FLAG_ETRLE),
        )

    def to_int(self) -> int:
        flags = 0
        if self.transparent:
            flags |= config.STI_FLAG_TRANSPARENT
        if self.alpha:
            flags |= config.STI_FLAG_ALPHA
        if self.rgb:
            flags |= config.STI_FLAG_RGB
        if self.indexed:
            flags |= config.STI_FLAG_INDEXED
        if self.zlib_compressed:
            flags |= config.STI_FLAG_ZLIB
        if self.etrle_compressed:
            flags |= config.STI_FLAG_ETRLE
        return flags


@dataclass
class SpriteCollection:
    """A decoded sprite file under edit: palette, color mode, flags and frames."""

    color_mode: str
    frames: list[PixelBuffer]
    palette: Optional[PaletteTable] = None
    transparent_color: int = config.TRANSPARENT_INDEX
    flags: StiFlags = field(default_factory=StiFlags)
    file_path: str = ""
    file_size: Optional[int] = None

    def __post_init__(self) -> None:
        if self.color_mode not in (config.COLOR_MODE_INDEXED, config.COLOR_MODE_PACKED):
            raise ValueError(f"Unknown color mode '{self.color_mode}'.")
        if self.color_mode == config.COLOR_MODE_INDEXED and self.palette is None:
            raise ValueError("Indexed collections need a palette.")
        if self.color_mode == config.COLOR_MODE_PACKED:
            self.palette = None
        if not self.frames:
            raise ValueError("A sprite collection holds at least one frame.")
        for index, frame in enumerate(self.frames):
            if frame.bytes_per_pixel != self.bytes_per_pixel:
                raise ValueError(f"Frame {index} does not match the collection's color mode.")

    @classmethod
    def from_payload(cls, payload: dict[str, Any], *, source: str = "editable sprite") -> "SpriteCollection":
        data = validate_editable_payload(payload, source=source)
        indexed = bool(data["is_8bit"])
        bpp = 1 if indexed else 2
        frames = [
            PixelBuffer(image["width"], image["height"], image["data"], bpp)
            for image in data["images"]
        ]
        return cls(
            color_mode=config.COLOR_MODE_INDEXED if indexed else config.COLOR_MODE_PACKED,
            frames=frames,
            palette=PaletteTable(data["palette"]) if indexed else None,
            transparent_color=int(data.get("transparent_color", config.TRANSPARENT_INDEX)),
            flags=StiFlags.from_int(data.get("flags", 0)),
            file_path=str(data.get("file_path", "")),
            file_size=data.get("file_size"),
        )

    def to_payload(self) -> dict[str, Any]:
        payload = {
            "file_path": self.file_path,
            "is_8bit": self.is_indexed,
            "is_16bit": self.is_packed,
            "palette": self.palette.to_payload() if self.palette is not None else None,
            "images": [frame.to_payload() for frame in self.frames],
            "transparent_color": int(self.transparent_color),
            "flags": self.flags.to_int(),
        }
        if self.file_size is not None:
            payload["file_size"] = int(self.file_size)
        return payload

    def copy(self) -> "SpriteCollection":
        return SpriteCollection(
            color_mode=self.color_mode,
            frames=[frame.copy() for frame in self.frames],
            palette=self.palette.copy() if self.palette is not None else None,
            transparent_color=self.transparent_color,
            flags=self.flags,
            file_path=self.file_path,
            file_size=self.file_size,
        )

    @property
    def is_indexed(self) -> bool:
        return self.color_mode == config.COLOR_MODE_INDEXED

    @property
    def is_packed(self) -> bool:
        return self.color_mode == config.COLOR_MODE_PACKED

    @property
    def bytes_per_pixel(self) -> int:
        return 1 if self.is_indexed else 2

    @property
    def frame_count(self) -> int:
        return len(self.frames)

    @property
    def is_animated(self) -> bool:
        return len(self.frames) > 1

    @property
    def is_compressed(self) -> bool:
        return self.flags.zlib_compressed or self.flags.etrle_compressed

    def get_frame(self, index: int) -> PixelBuffer:
        if not 0 <= index < len(self.frames):
            raise IndexError(f"Frame index {index} out of range 0..{len(self.frames) - 1}.")
        return self.frames[index]

    def new_frame(self, width: int, height: int, fill: int = config.TRANSPARENT_INDEX) -> PixelBuffer:
        fill = int(fill)
        if self.is_indexed and not 0 <= fill < len(self.palette):
            raise ValueError(f"Fill index {fill} is outside the {len(self.palette)}-color palette.")
        if self.is_packed and not 0 <= fill <= 0xFFFF:
            raise ValueError(f"Fill value {fill} is not a 16-bit sample.")
        return PixelBuffer.blank(width, height, self.bytes_per_pixel, fill)

    def append_frame(self, frame: PixelBuffer) -> int:
        if frame.bytes_per_pixel != self.bytes_per_pixel:
            raise ValueError("Frame does not match the collection's color mode.")
        self.frames.append(frame)
        return len(self.frames) - 1

    def insert_frame(self, index: int, frame: PixelBuffer) -> int:
        if frame.bytes_per_pixel != self.bytes_per_pixel:
            raise ValueError("Frame does not match the collection's color mode.")
        index = max(0, min(int(index), len(self.frames)))
        self.frames.insert(index, frame)
        return index

    def check_removal(self, indices: Iterable[int]) -> list[int]:
        """Validate a removal without mutating; returns the sorted unique indices."""
        unique = sorted({int(i) for i in indices})
        for index in unique:
            if not 0 <= index < len(self.frames):
                raise IndexError(f"Frame index {index} out of range 0..{len(self.frames) - 1}.")
        if len(unique) >= len(self.frames):
            raise LastFrameRemovalError(len(self.frames))
        return unique

    def remove_frames(self, indices: Iterable[int]) -> list[int]:
        unique = self.check_removal(indices)
        doomed = set(unique)
        self.frames = [frame for index, frame in enumerate(self.frames) if index not in doomed]
        return unique

    def apply_order(self, order: Sequence[int]) -> None:
        """Reorder frames so that position i holds the frame previously at order[i]."""
        if not is_permutation(order, len(self.frames)):
            raise InvalidPermutationError(order, len(self.frames))
        self.frames = [self.frames[int(i)] for i in order]

    def frame_to_rgb(self, index: int) -> bytes:
        """Expand a frame to packed 24-bit RGB bytes."""
        frame = self.get_frame(index)
        out = bytearray()
        if self.is_indexed:
            palette = self.palette
            for sample in frame.samples:
                out.extend(palette.color_for(sample))
        else:
            data = frame.samples
            for offset in range(0, len(data), 2):
                out.extend(unpack_rgb565(data[offset] | (data[offset + 1] << 8)))
        return bytes(out)
