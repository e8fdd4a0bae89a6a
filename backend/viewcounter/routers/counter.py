# backend/viewcounter/routers/counter.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, Response
from pydantic import ValidationError

from ..domain.render import CounterRenderer
from ..schemas import CounterQuery, valid_name
from ..services.counter_store import CounterStore
from ..services.runtime_metrics import METRICS

router = APIRouter(tags=["counter"])

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def get_store(request: Request) -> CounterStore:
    return request.app.state.counter_store


def get_renderer(request: Request) -> CounterRenderer:
    return request.app.state.renderer


def _usage(base_url: str) -> str:
    return "\n".join(
        [
            "South Park Profile Counter",
            "",
            "Usage:",
            "  GET /@:name",
            "",
            "Example:",
            "  /@masonliiu?theme=southpark&padding=7&darkmode=auto",
            "",
            "Query params:",
            "  theme      = southpark (for now, only theme implemented)",
            "  padding    = 1-16 (min digits, default 7)",
            "  offset     = -500..500 (horizontal shift of the digits, default 0)",
            "  scale      = 0.1-2 (image scale, default 1)",
            "  align      = top|center|bottom (vertical alignment, default top)",
            "  pixelated  = 0|1 (shape rendering hint, default 1)",
            "  darkmode   = 0|1|auto (palette, default auto)",
            "  num        = override display number (0 to disable, default 0)",
            "  prefix     = optional prefix string (like \"SP-\")",
            "  inc        = 0|1 (increment on view, default 1)",
            "  order      = comma separated characters, e.g. stan,kenny (default: all)",
            "",
            "Every path is rate limited per client IP (429 with Retry-After).",
            "",
            "Embed in Markdown:",
            f"  ![southpark-counter]({base_url.rstrip('/')}/@your-name?theme=southpark)",
        ]
    )


@router.get("/", response_class=PlainTextResponse)
def usage(request: Request):
    return _usage(request.app.state.settings.public_base_url)


@router.get("/@{name}")
def counter_badge(
    name: str,
    request: Request,
    store: CounterStore = Depends(get_store),
    renderer: CounterRenderer = Depends(get_renderer),
):
    if not valid_name(name):
        return PlainTextResponse("Invalid name", status_code=400)

    try:
        q = CounterQuery.model_validate(dict(request.query_params))
    except ValidationError:
        return PlainTextResponse("Invalid query params", status_code=400)

    config = q.to_render_config()

    # num only overrides what is displayed; the counter itself still moves
    value = store.increment_and_get(name) if q.inc == 1 else store.peek(name)
    METRICS.inc("badge_views")

    svg = renderer.render(value, config)
    return Response(content=svg, media_type="image/svg+xml", headers=dict(NO_CACHE_HEADERS))
