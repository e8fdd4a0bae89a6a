# backend/viewcounter/domain/glyphs.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence


@dataclass(frozen=True)
class GlyphMetadata:
    key: str
    source_path: str
    intrinsic_width: float
    intrinsic_height: float
    render_scale: float = 1.0  # 0 < s <= 1
    anchor: tuple[float, float] = (0.5, 0.67)  # fractional (x, y) inside the box
    rotation_deg: float = 0.0

    def __post_init__(self) -> None:
        if not (0.0 < self.render_scale <= 1.0):
            raise ValueError(f"{self.key}: render_scale must be in (0, 1]")
        if self.intrinsic_width <= 0 or self.intrinsic_height <= 0:
            raise ValueError(f"{self.key}: intrinsic size must be positive")
        fx, fy = self.anchor
        if not (0.0 <= fx <= 1.0 and 0.0 <= fy <= 1.0):
            raise ValueError(f"{self.key}: anchor must be fractional")

    @property
    def box_width(self) -> float:
        return self.intrinsic_width * self.render_scale

    @property
    def box_height(self) -> float:
        return self.intrinsic_height * self.render_scale


def _table(entries: Iterable[GlyphMetadata]) -> dict[str, GlyphMetadata]:
    out: dict[str, GlyphMetadata] = {}
    for g in entries:
        if g.key in out:
            raise ValueError(f"duplicate glyph key: {g.key}")
        out[g.key] = g
    return out


# Keep this table boring + deterministic. Sizes describe the intended artwork, not
# the files on disk: every image is scaled into its box, so placeholder art still lays out.
GLYPHS: dict[str, GlyphMetadata] = _table(
    [
        GlyphMetadata("cartman", "cartman.png", 140, 112, 1.0, (0.5, 0.67), 0.0),
        GlyphMetadata("mr_mackey", "mr_mackey.png", 112, 160, 0.8, (0.5, 0.72), -4.0),
        GlyphMetadata("stan", "stan.png", 128, 128, 0.9, (0.5, 0.62), 3.0),
        GlyphMetadata("kenny", "kenny.png", 124, 136, 0.85, (0.5, 0.7), 0.0),
        GlyphMetadata("timmy", "timmy.png", 150, 120, 0.95, (0.55, 0.66), -2.0),
        GlyphMetadata("wendy", "wendy.png", 120, 150, 0.85, (0.48, 0.7), 5.0),
    ]
)

DEFAULT_ORDER: tuple[str, ...] = ("cartman", "mr_mackey", "stan", "kenny", "timmy", "wendy")

DEFAULT_GLYPH: GlyphMetadata = GLYPHS[DEFAULT_ORDER[0]]


def glyph_for(key: str, glyphs: dict[str, GlyphMetadata] = GLYPHS) -> GlyphMetadata:
    """Unknown keys render as the default glyph."""
    return glyphs.get(key, DEFAULT_GLYPH)


def parse_order(raw: str | None) -> tuple[str, ...]:
    """'stan, kenny,,Stan' -> ('stan', 'kenny', 'stan'). Order and repeats kept."""
    if not raw:
        return ()
    return tuple(p.strip().lower() for p in raw.split(",") if p.strip())


def resolve_order(
    keys: Sequence[str] | None,
    glyphs: dict[str, GlyphMetadata] = GLYPHS,
) -> tuple[str, ...]:
    """
    Drop unknown keys. An order that ends up empty falls back to DEFAULT_ORDER,
    so cyclic assignment never indexes an empty sequence.
    """
    known = tuple(k for k in (keys or ()) if k in glyphs)
    return known or DEFAULT_ORDER


def source_paths(order: Sequence[str], glyphs: dict[str, GlyphMetadata] = GLYPHS) -> list[str]:
    return list(dict.fromkeys(glyph_for(k, glyphs).source_path for k in order))
