"""Turns frames of a sprite collection into pygame surfaces for display."""

from typing import Optional

import pygame

from sti_manager.core import config
from sti_manager.editor.editor_state import ViewConfig
from sti_manager.editor.sprite_collection import SpriteCollection


def frame_to_surface(collection: SpriteCollection, index: int) -> pygame.Surface:
    """Native-size surface; for indexed sprites only samples at index 0 are transparent."""
    frame = collection.get_frame(index)
    rgb = collection.frame_to_rgb(index)
    if not collection.is_indexed:
        return pygame.image.frombuffer(rgb, frame.size, "RGB").copy()

    rgba = bytearray()
    for offset, sample in enumerate(frame.samples):
        rgba.extend(rgb[offset * 3:offset * 3 + 3])
        rgba.append(0 if sample == config.TRANSPARENT_INDEX else 255)
    return pygame.image.frombuffer(bytes(rgba), frame.size, "RGBA").copy()


def render_frame(
    collection: SpriteCollection,
    index: int,
    view: Optional[ViewConfig] = None,
) -> pygame.Surface:
    """Scale a frame by the view's zoom and overlay the pixel grid when enabled."""
    view = view or ViewConfig()
    native = frame_to_surface(collection, index)
    zoom = max(config.MIN_ZOOM, min(int(view.zoom), config.MAX_ZOOM))
    width, height = native.get_size()
    scaled = pygame.transform.scale(native, (width * zoom, height * zoom))
    if not view.grid_visible:
        return scaled

    canvas = pygame.Surface(scaled.get_size(), pygame.SRCALPHA)
    canvas.blit(scaled, (0, 0))
    grid = pygame.Surface(scaled.get_size(), pygame.SRCALPHA)
    for px in range(width + 1):
        x = min(px * zoom, scaled.get_width() - 1)
        pygame.draw.line(grid, config.GRID_COLOR, (x, 0), (x, scaled.get_height() - 1))
    for py in range(height + 1):
        y = min(py * zoom, scaled.get_height() - 1)
        pygame.draw.line(grid, config.GRID_COLOR, (0, y), (scaled.get_width() - 1, y))
    canvas.blit(grid, (0, 0))
    return canvas
