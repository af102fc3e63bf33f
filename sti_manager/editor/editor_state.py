from dataclasses import dataclass, field
from typing import Any, Optional

from sti_manager.core import config


@dataclass
class ViewConfig:
    """View preferences handed to the rendering layer by the host."""

    zoom: int = config.DEFAULT_ZOOM
    show_grid: bool = True
    pan_x: int = 0
    pan_y: int = 0

    def zoom_in(self) -> int:
        self.zoom = min(config.MAX_ZOOM, self.zoom * 2)
        return self.zoom

    def zoom_out(self) -> int:
        self.zoom = max(config.MIN_ZOOM, self.zoom // 2)
        return self.zoom

    @property
    def grid_visible(self) -> bool:
        return self.show_grid and self.zoom >= config.GRID_MIN_ZOOM


@dataclass
class EditorState:
    """Container for editor state that changes during interaction."""

    # Core editing state
    active_tool: str = config.DEFAULT_TOOL
    # Palette index for indexed sprites, (r, g, b) for packed sprites
    selected_color: Any = 1
    brush_size: int = 1
    active_frame: int = 0
    has_unsaved_changes: bool = False

    # Stroke state
    drawing: bool = False
    last_pick: Optional[Any] = None

    # View state
    view: ViewConfig = field(default_factory=ViewConfig)

    def set_color(self, color: Any) -> None:
        if isinstance(color, list):
            color = tuple(color)
        self.selected_color = color

    def set_tool(self, tool_name: str) -> None:
        self.active_tool = tool_name

    def set_brush_size(self, size: int) -> int:
        self.brush_size = max(1, min(int(size), config.MAX_BRUSH_SIZE))
        return self.brush_size

    def reset_view(self) -> None:
        self.view = ViewConfig()
