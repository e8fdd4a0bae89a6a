# backend/viewcounter/routers/metrics.py
from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from ..services.runtime_metrics import METRICS

router = APIRouter(prefix="/metrics", tags=["ops"])

METRIC_PREFIX = "viewcounter_"


@router.get("", response_class=PlainTextResponse)
def metrics():
    # Prometheus text exposition, counters only
    lines: list[str] = []
    for name, value in METRICS:
        series = METRIC_PREFIX + name
        help_text = METRICS.help_for(name)
        if help_text:
            lines.append(f"# HELP {series} {help_text}")
        lines.append(f"# TYPE {series} counter")
        lines.append(f"{series} {value}")
    return "\n".join(lines) + "\n"
