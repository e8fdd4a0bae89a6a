# backend/viewcounter/domain/layout.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Sequence

from .glyphs import GLYPHS, GlyphMetadata, glyph_for

Align = Literal["top", "center", "bottom"]

FONT_SIZE_RATIO = 0.6  # label font size as a fraction of its glyph box height


def render_value(value: int, padding: int) -> str:
    """
    Zero-pad to at least `padding` digits. Wider values are never truncated.
      render_value(5, 7)        -> "0000005"
      render_value(12345678, 3) -> "12345678"
    """
    v = max(0, int(value))
    return str(v).rjust(max(0, int(padding)), "0")


def display_string(value: int, padding: int, prefix: str = "") -> str:
    return f"{prefix or ''}{render_value(value, padding)}"


def assign_glyphs(display: str, order: Sequence[str]) -> list[str]:
    """Cyclic reuse: character i gets order[i % len(order)]."""
    if not order:
        raise ValueError("glyph order must not be empty")
    n = len(order)
    return [order[i % n] for i in range(len(display))]


@dataclass(frozen=True)
class PlacedGlyph:
    index: int
    char: str
    glyph: GlyphMetadata
    x: float
    y: float
    width: float
    height: float
    anchor_x: float
    anchor_y: float
    rotation_deg: float
    font_size: float


@dataclass(frozen=True)
class LayoutResult:
    width: float
    height: float
    glyphs: list[PlacedGlyph]


def compute_layout(
    display: str,
    order: Sequence[str],
    *,
    gap: float,
    base_padding: float,
    offset: float = 0.0,
    glyphs: dict[str, GlyphMetadata] = GLYPHS,
) -> LayoutResult:
    """
    Left-to-right boxes of (intrinsic size x render_scale), `gap` apart,
    starting at offset + base_padding.

    Canvas height is the tallest box; shorter boxes sit on the bottom edge.
    Canvas width is boxes + gaps + 2*base_padding (offset only shifts content).
    Each label is drawn at the glyph's fractional anchor, rotated about it.
    """
    keys = assign_glyphs(display, order) if display else []
    metas = [glyph_for(k, glyphs) for k in keys]

    height = max((m.box_height for m in metas), default=0.0)
    boxes_w = sum(m.box_width for m in metas)
    gaps_w = gap * max(0, len(metas) - 1)
    width = boxes_w + gaps_w + 2 * base_padding

    placed: list[PlacedGlyph] = []
    x = offset + base_padding
    for i, (ch, m) in enumerate(zip(display, metas)):
        w, h = m.box_width, m.box_height
        y = height - h
        fx, fy = m.anchor
        placed.append(
            PlacedGlyph(
                index=i,
                char=ch,
                glyph=m,
                x=x,
                y=y,
                width=w,
                height=h,
                anchor_x=x + fx * w,
                anchor_y=y + fy * h,
                rotation_deg=m.rotation_deg,
                font_size=h * FONT_SIZE_RATIO,
            )
        )
        x += w + gap

    return LayoutResult(width=width, height=height, glyphs=placed)


def vertical_shift(height: float, scale: float, align: Align) -> float:
    if align == "top":
        return 0.0
    if align == "center":
        return height * (1 - scale) / 2
    if align == "bottom":
        return height * (1 - scale)
    raise ValueError(f"unknown align: {align!r}")
