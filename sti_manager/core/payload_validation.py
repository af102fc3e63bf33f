from __future__ import annotations

from typing import Any, Dict, Sequence, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from sti_manager.core import config


class PayloadValidationError(ValueError):
    """Raised when a sprite payload from the service fails schema validation."""

    def __init__(self, source: str, errors: Sequence[Dict[str, Any]]) -> None:
        self.source = source
        self.errors = [self._normalize_error(error) for error in errors]
        super().__init__(self._build_message())

    @staticmethod
    def _normalize_error(error: Dict[str, Any]) -> Dict[str, Any]:
        loc = error.get("loc", ())
        if not isinstance(loc, tuple):
            if isinstance(loc, list):
                loc = tuple(loc)
            else:
                loc = (loc,)
        msg = str(error.get("msg", "Unknown validation error."))
        return {"loc": loc, "msg": msg}

    @staticmethod
    def _format_loc(loc: Tuple[Any, ...]) -> str:
        if not loc:
            return "<root>"
        parts = []
        for item in loc:
            if isinstance(item, int):
                parts.append(f"[{item}]")
            else:
                text = str(item)
                if not parts:
                    parts.append(text)
                else:
                    parts.append(f".{text}")
        return "".join(parts)

    def _build_message(self) -> str:
        lines = [f"{self.source} validation failed ({len(self.errors)} error(s))."]
        for error in self.errors:
            lines.append(f"- {self._format_loc(error['loc'])}: {error['msg']}")
        return "\n".join(lines)

    @classmethod
    def from_pydantic(cls, source: str, exc: ValidationError) -> "PayloadValidationError":
        return cls(source=source, errors=exc.errors())


class _SchemaModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class _EditableImageModel(_SchemaModel):
    width: int = Field(ge=1, le=config.MAX_FRAME_DIMENSION)
    height: int = Field(ge=1, le=config.MAX_FRAME_DIMENSION)
    data: list[int]

    @field_validator("data")
    @classmethod
    def _validate_bytes(cls, value: list[int]) -> list[int]:
        for index, sample in enumerate(value):
            if sample < 0 or sample > 255:
                raise ValueError(f"data[{index}] must be a byte value 0..255 (got {sample}).")
        return value


class _EditableStiModel(_SchemaModel):
    file_path: str = ""
    is_8bit: bool
    is_16bit: bool
    palette: list[list[int]] | None = None
    images: list[_EditableImageModel]
    transparent_color: int = Field(default=config.TRANSPARENT_INDEX, ge=0)
    flags: int = Field(default=0, ge=0)
    file_size: int | None = Field(default=None, ge=0)

    @field_validator("palette")
    @classmethod
    def _validate_palette(cls, value: list[list[int]] | None) -> list[list[int]] | None:
        if value is None:
            return value
        if len(value) > config.MAX_PALETTE_COLORS:
            raise ValueError(
                f"palette may hold at most {config.MAX_PALETTE_COLORS} colors (got {len(value)})."
            )
        for index, color in enumerate(value):
            if len(color) != 3:
                raise ValueError(f"palette[{index}] must be an [r, g, b] triple.")
            for channel in color:
                if channel < 0 or channel > 255:
                    raise ValueError(f"palette[{index}] channels must be within 0..255.")
        return value

    @model_validator(mode="after")
    def _validate_shape(self) -> "_EditableStiModel":
        if self.is_8bit == self.is_16bit:
            raise ValueError("Sprite must be exactly one of 8-bit indexed or 16-bit packed.")
        if not self.images:
            raise ValueError("Sprite must contain at least one image.")
        if self.is_8bit and self.palette is None:
            raise ValueError("8-bit sprites must carry a palette.")
        bytes_per_pixel = 1 if self.is_8bit else 2
        for index, image in enumerate(self.images):
            expected = image.width * image.height * bytes_per_pixel
            if len(image.data) != expected:
                raise ValueError(
                    f"images[{index}].data must contain {expected} bytes for "
                    f"{image.width}x{image.height} (got {len(image.data)})."
                )
        return self


def _validate_model(model: Any, payload: Any, *, source: str) -> Any:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise PayloadValidationError.from_pydantic(source, exc) from exc


def validate_editable_payload(payload: Any, *, source: str = "editable sprite") -> dict[str, Any]:
    """Validate an editable STI payload and return a normalized copy."""
    validated = _validate_model(_EditableStiModel, payload, source=source)
    return validated.model_dump(exclude_none=True)


def validate_frame_payload(payload: Any, *, source: str = "image") -> dict[str, Any]:
    validated = _validate_model(_EditableImageModel, payload, source=source)
    return validated.model_dump(exclude_none=True)
