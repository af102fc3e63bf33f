# pixel_painter.py

"""Applies editing tools (Brush, Eraser, Eyedropper, Fill, Pan) to one frame."""

from dataclasses import dataclass
from typing import Any, Optional

from sti_manager.core import config
from sti_manager.editor.errors import InvalidCoordinateError
from sti_manager.editor.sprite_collection import (
    PixelBuffer,
    SpriteCollection,
    pack_rgb565,
    unpack_rgb565,
)


@dataclass
class PaintResult:
    changed: bool = False
    picked: Optional[Any] = None


def resolve_sample(collection: SpriteCollection, color) -> Optional[int]:
    """Turn a selected color into the raw sample the frame stores.

    Indexed collections take a palette index. Packed collections take an
    (r, g, b) triple, or a palette index resolved through the palette when the
    collection carries one.
    """
    if color is None:
        return None
    if collection.is_indexed:
        if isinstance(color, (tuple, list)):
            return None
        index = int(color)
        if not 0 <= index < len(collection.palette):
            return None
        return index
    if isinstance(color, (tuple, list)):
        return pack_rgb565(color)
    if collection.palette is not None and 0 <= int(color) < len(collection.palette):
        return pack_rgb565(collection.palette[int(color)])
    return None


def _brush_points(x, y, brush_size):
    half_brush = (max(1, int(brush_size)) - 1) // 2
    for dy in range(-half_brush, half_brush + 1):
        for dx in range(-half_brush, half_brush + 1):
            yield x + dx, y + dy


def _write(buffer: PixelBuffer, x: int, y: int, sample: int) -> bool:
    try:
        return buffer.set_sample(x, y, sample)
    except InvalidCoordinateError:
        # Drag events report positions off the canvas; those are ignored.
        return False


# --- Base Tool ---
class BaseTool:
    name = "tool"
    mutates = True

    def apply(self, buffer, collection, x, y, color, brush_size=1) -> PaintResult:
        raise NotImplementedError


# --- Brush Tool ---
class BrushTool(BaseTool):
    name = config.TOOL_BRUSH

    def apply(self, buffer, collection, x, y, color, brush_size=1):
        sample = resolve_sample(collection, color)
        if sample is None:
            return PaintResult()
        changed = False
        for px, py in _brush_points(x, y, brush_size):
            changed = _write(buffer, px, py, sample) or changed
        return PaintResult(changed=changed)


# --- Eraser Tool ---
class EraserTool(BaseTool):
    name = config.TOOL_ERASER

    def apply(self, buffer, collection, x, y, color, brush_size=1):
        if not collection.is_indexed:
            return PaintResult()
        changed = False
        for px, py in _brush_points(x, y, brush_size):
            changed = _write(buffer, px, py, config.TRANSPARENT_INDEX) or changed
        return PaintResult(changed=changed)


# --- Eyedropper Tool ---
class EyedropperTool(BaseTool):
    name = config.TOOL_EYEDROPPER
    mutates = False

    def apply(self, buffer, collection, x, y, color, brush_size=1):
        if not buffer.contains(x, y):
            return PaintResult()
        sample = buffer.get_sample(x, y)
        if collection.is_indexed:
            return PaintResult(picked=sample)
        return PaintResult(picked=unpack_rgb565(sample))


# --- Fill Tool ---
class FillTool(BaseTool):
    name = config.TOOL_FILL

    def apply(self, buffer, collection, x, y, color, brush_size=1):
        sample = resolve_sample(collection, color)
        if sample is None or not buffer.contains(x, y):
            return PaintResult()
        target = buffer.get_sample(x, y)
        if target == sample:
            return PaintResult()

        stack = [(x, y)]
        visited = {(x, y)}
        while stack:
            cx, cy = stack.pop()
            if buffer.get_sample(cx, cy) != target:
                continue
            buffer.set_sample(cx, cy, sample)
            for dx, dy in ((0, 1), (0, -1), (1, 0), (-1, 0)):
                nx, ny = cx + dx, cy + dy
                if buffer.contains(nx, ny) and (nx, ny) not in visited:
                    visited.add((nx, ny))
                    stack.append((nx, ny))
        return PaintResult(changed=True)


# --- Pan Tool ---
class PanTool(BaseTool):
    name = config.TOOL_PAN
    mutates = False

    def apply(self, buffer, collection, x, y, color, brush_size=1):
        # Panning moves the viewport, which the host owns.
        return PaintResult()


class PixelPainter:
    """Stateless dispatcher from tool name to tool behaviour."""

    def __init__(self):
        self.tools = {
            config.TOOL_BRUSH: BrushTool(),
            config.TOOL_ERASER: EraserTool(),
            config.TOOL_EYEDROPPER: EyedropperTool(),
            config.TOOL_FILL: FillTool(),
            config.TOOL_PAN: PanTool(),
        }

    def get_tool(self, tool_name: str) -> BaseTool:
        try:
            return self.tools[tool_name]
        except KeyError:
            supported = ", ".join(sorted(self.tools))
            raise ValueError(f"Unknown tool '{tool_name}'. Supported tools: {supported}") from None

    def is_mutating(self, tool_name: str) -> bool:
        return self.get_tool(tool_name).mutates

    def paint(
        self,
        buffer: PixelBuffer,
        collection: SpriteCollection,
        x: int,
        y: int,
        tool: str,
        color,
        brush_size: int = 1,
    ) -> PaintResult:
        return self.get_tool(tool).apply(buffer, collection, int(x), int(y), color, brush_size)

    def pick(self, buffer: PixelBuffer, collection: SpriteCollection, x: int, y: int):
        return self.paint(buffer, collection, x, y, config.TOOL_EYEDROPPER, None).picked
