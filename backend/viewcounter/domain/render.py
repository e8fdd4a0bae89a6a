# backend/viewcounter/domain/render.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional, Protocol
from xml.sax.saxutils import escape

from .glyphs import GLYPHS, GlyphMetadata, resolve_order
from .layout import Align, LayoutResult, compute_layout, display_string, vertical_shift

DarkMode = Literal["0", "1", "auto"]

FONT_FAMILY = "system-ui, -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif"


@dataclass(frozen=True)
class Palette:
    bg: str
    frame: str
    digit_bg: str
    digit_border: str
    text: str


LIGHT_PALETTE = Palette(bg="#f4efe0", frame="#222222", digit_bg="#ffe6b3", digit_border="#111111", text="#222222")
DARK_PALETTE = Palette(bg="#1f242b", frame="#f8f8f8", digit_bg="#384453", digit_border="#f8f8f8", text="#fdfdfd")


def pick_palette(darkmode: DarkMode, prefers_dark: bool = False) -> Palette:
    """'1' forces dark, '0' forces light, 'auto' follows prefers_dark (no server-side signal: light)."""
    if darkmode == "1":
        return DARK_PALETTE
    if darkmode == "0":
        return LIGHT_PALETTE
    return DARK_PALETTE if prefers_dark else LIGHT_PALETTE


@dataclass(frozen=True)
class RenderConfig:
    padding: int = 7
    offset: int = 0
    scale: float = 1.0
    align: Align = "top"
    darkmode: DarkMode = "auto"
    pixelated: bool = True
    prefix: str = ""
    character_order: tuple[str, ...] = field(default_factory=tuple)
    num: int = 0  # > 0 overrides the displayed value; the counter is untouched by this

    def __post_init__(self) -> None:
        if not (1 <= int(self.padding) <= 16):
            raise ValueError("padding must be in [1, 16]")
        if not (-500 <= int(self.offset) <= 500):
            raise ValueError("offset must be in [-500, 500]")
        if not (0.1 <= float(self.scale) <= 2.0):
            raise ValueError("scale must be in [0.1, 2]")
        if self.align not in ("top", "center", "bottom"):
            raise ValueError("align must be top|center|bottom")
        if self.darkmode not in ("0", "1", "auto"):
            raise ValueError("darkmode must be 0|1|auto")
        if int(self.num) < 0:
            raise ValueError("num must be >= 0")

    def effective_value(self, value: int) -> int:
        return int(self.num) if int(self.num) > 0 else int(value)


class EncodedImageSource(Protocol):
    def get_encoded(self, path: str): ...


def _n(v: float) -> str:
    """Compact, deterministic number formatting for markup."""
    s = f"{float(v):.3f}".rstrip("0").rstrip(".")
    return "0" if s in ("-0", "") else s


def _attr(v: str) -> str:
    return escape(v, {'"': "&quot;"})


class CounterRenderer:
    """
    Composes layout geometry and embedded glyph images into one standalone SVG.
    """

    def __init__(
        self,
        assets: EncodedImageSource,
        *,
        gap: float = 0.0,
        base_padding: float = 8.0,
        glyphs: dict[str, GlyphMetadata] = GLYPHS,
    ) -> None:
        self.assets = assets
        self.gap = float(gap)
        self.base_padding = float(base_padding)
        self.glyphs = glyphs

    def layout(self, value: int, config: RenderConfig) -> tuple[str, LayoutResult]:
        text = display_string(config.effective_value(value), config.padding, config.prefix)
        order = resolve_order(config.character_order, self.glyphs)
        result = compute_layout(
            text,
            order,
            gap=self.gap,
            base_padding=self.base_padding,
            offset=config.offset,
            glyphs=self.glyphs,
        )
        return text, result

    def render(self, value: int, config: RenderConfig, *, prefers_dark: Optional[bool] = None) -> str:
        palette = pick_palette(config.darkmode, bool(prefers_dark))
        _text, lay = self.layout(value, config)

        scale = float(config.scale)
        shift = vertical_shift(lay.height, scale, config.align)
        shape_rendering = "crispEdges" if config.pixelated else "auto"
        image_rendering = ' style="image-rendering: pixelated"' if config.pixelated else ""

        parts: list[str] = []
        for pg in lay.glyphs:
            asset = self.assets.get_encoded(pg.glyph.source_path)
            rot = ""
            if pg.rotation_deg:
                rot = f' transform="rotate({_n(pg.rotation_deg)} {_n(pg.anchor_x)} {_n(pg.anchor_y)})"'
            parts.append(
                f'    <g data-glyph="{_attr(pg.glyph.key)}" data-index="{pg.index}">\n'
                f'      <rect x="{_n(pg.x)}" y="{_n(pg.y)}" width="{_n(pg.width)}" height="{_n(pg.height)}"'
                f' fill="{palette.digit_bg}" stroke="{palette.digit_border}" stroke-width="1" />\n'
                f'      <image href="{_attr(asset.data_uri)}" x="{_n(pg.x)}" y="{_n(pg.y)}"'
                f' width="{_n(pg.width)}" height="{_n(pg.height)}"'
                f' preserveAspectRatio="xMidYMid slice"{image_rendering} />\n'
                f'      <text x="{_n(pg.anchor_x)}" y="{_n(pg.anchor_y)}"{rot} text-anchor="middle"'
                f' font-family="{_attr(FONT_FAMILY)}" font-size="{_n(pg.font_size)}" font-weight="700"'
                f' fill="{palette.text}">{escape(pg.char)}</text>\n'
                f"    </g>\n"
            )

        return (
            '<?xml version="1.0" encoding="UTF-8"?>\n'
            f'<svg xmlns="http://www.w3.org/2000/svg" width="{_n(lay.width * scale)}" height="{_n(lay.height * scale)}"'
            f' viewBox="0 0 {_n(lay.width)} {_n(lay.height)}" shape-rendering="{shape_rendering}">\n'
            "  <defs>\n"
            '    <filter id="soft-shadow" x="-20%" y="-20%" width="140%" height="140%">\n'
            '      <feDropShadow dx="0" dy="3" stdDeviation="3" flood-color="#000000" flood-opacity="0.35" />\n'
            "    </filter>\n"
            "  </defs>\n"
            f'  <g transform="translate(0, {_n(shift)}) scale({_n(scale)})">\n'
            f'    <rect x="0" y="0" rx="10" ry="10" width="{_n(lay.width)}" height="{_n(lay.height)}"'
            f' fill="{palette.bg}" stroke="{palette.frame}" stroke-width="2" filter="url(#soft-shadow)" />\n'
            + "".join(parts)
            + "  </g>\n"
            "</svg>\n"
        )
