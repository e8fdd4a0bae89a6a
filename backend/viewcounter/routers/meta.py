# backend/viewcounter/routers/meta.py
from __future__ import annotations

from fastapi import APIRouter, Request

from ..domain.glyphs import DEFAULT_ORDER, GLYPHS
from ..schemas import GlyphOut, GlyphsOut, HealthOut

router = APIRouter(tags=["meta"])


@router.get("/health", response_model=HealthOut)
def health(request: Request):
    store = request.app.state.counter_store
    cache = request.app.state.asset_cache
    return HealthOut(ok=True, backend=store.backend_name, cached_assets=len(cache))


@router.get("/glyphs", response_model=GlyphsOut)
def glyphs():
    return GlyphsOut(
        default_order=list(DEFAULT_ORDER),
        glyphs=[
            GlyphOut(
                key=g.key,
                source_path=g.source_path,
                intrinsic_width=g.intrinsic_width,
                intrinsic_height=g.intrinsic_height,
                render_scale=g.render_scale,
                anchor=g.anchor,
                rotation_deg=g.rotation_deg,
            )
            for g in GLYPHS.values()
        ],
    )
