"""Error kinds raised by the sprite editing engine."""


class StiEditError(Exception):
    """Base class for editing engine errors."""


class InvalidCoordinateError(StiEditError, IndexError):
    """A pixel coordinate fell outside the frame. Painting suppresses it."""

    def __init__(self, x: int, y: int, width: int, height: int) -> None:
        super().__init__(f"Pixel ({x}, {y}) is outside the {width}x{height} frame.")
        self.x = x
        self.y = y


class InvalidPermutationError(StiEditError, ValueError):
    """A staged frame order is not a permutation of the current frames."""

    def __init__(self, order, frame_count: int) -> None:
        super().__init__(
            f"Frame order {list(order)} is not a permutation of 0..{frame_count - 1}."
        )
        self.order = list(order)
        self.frame_count = frame_count


class LastFrameRemovalError(StiEditError, ValueError):
    """Removing the requested frames would leave the collection empty."""

    def __init__(self, frame_count: int) -> None:
        super().__init__(
            f"Cannot remove all {frame_count} frame(s); a sprite keeps at least one frame."
        )
        self.frame_count = frame_count


class ExternalServiceError(StiEditError):
    """A call into the sprite persistence/codec service failed."""


class SpriteReadError(ExternalServiceError):
    """The sprite path could not be read."""


class SpriteFormatError(ExternalServiceError):
    """The sprite payload failed structural validation."""


class ServiceBusyError(ExternalServiceError):
    """Another service call is still outstanding for the same collection."""
