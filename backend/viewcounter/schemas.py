# backend/viewcounter/schemas.py
from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .domain.glyphs import parse_order, resolve_order
from .domain.render import RenderConfig

MAX_NAME_LEN = 128
MAX_PREFIX_LEN = 32


# -------------------- Counter badge query --------------------

class CounterQuery(BaseModel):
    """Query string of GET /@{name}. Values arrive as strings; pydantic coerces."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    theme: Literal["southpark"] = "southpark"
    padding: int = Field(default=7, ge=1, le=16)
    offset: int = Field(default=0, ge=-500, le=500)
    scale: float = Field(default=1.0, ge=0.1, le=2.0, allow_inf_nan=False)
    align: Literal["top", "center", "bottom"] = "top"
    pixelated: int = Field(default=1, ge=0, le=1)
    darkmode: Literal["0", "1", "auto"] = "auto"
    num: int = Field(default=0, ge=0)
    prefix: str = Field(default="", max_length=MAX_PREFIX_LEN)
    inc: int = Field(default=1, ge=0, le=1)
    order: Optional[str] = None

    @field_validator("prefix")
    @classmethod
    def _no_control_chars(cls, v: str) -> str:
        if any(ord(c) < 32 for c in v):
            raise ValueError("prefix must not contain control characters")
        return v

    def character_order(self) -> tuple[str, ...]:
        keys = parse_order(self.order)
        return resolve_order(keys) if keys else ()

    def to_render_config(self) -> RenderConfig:
        return RenderConfig(
            padding=self.padding,
            offset=self.offset,
            scale=self.scale,
            align=self.align,
            darkmode=self.darkmode,
            pixelated=bool(self.pixelated),
            prefix=self.prefix,
            character_order=self.character_order(),
            num=self.num,
        )


def valid_name(name: Optional[str]) -> bool:
    return bool(name) and isinstance(name, str) and len(name) <= MAX_NAME_LEN


# -------------------- Introspection --------------------

class GlyphOut(BaseModel):
    key: str
    source_path: str
    intrinsic_width: float
    intrinsic_height: float
    render_scale: float
    anchor: tuple[float, float]
    rotation_deg: float


class GlyphsOut(BaseModel):
    default_order: list[str]
    glyphs: list[GlyphOut]


class HealthOut(BaseModel):
    ok: bool
    backend: str
    cached_assets: int
