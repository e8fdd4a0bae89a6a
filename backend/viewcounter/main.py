# backend/viewcounter/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from .config import Settings, settings as default_settings
from .domain.glyphs import DEFAULT_ORDER, source_paths
from .domain.render import CounterRenderer
from .logging_config import configure_logging
from .middleware.rate_limit import RateLimitMiddleware
from .middleware.request_id import RequestIdMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware
from .routers.counter import router as counter_router
from .routers.meta import router as meta_router
from .routers.metrics import router as metrics_router
from .services.asset_cache import ASSETS_URL_PREFIX, AssetCache, build_asset_cache
from .services.counter_store import CounterStore, build_counter_store
from .services.rate_limit import FixedWindowLimiter

APP_VERSION = "1.0.0"


def create_app(
    cfg: Optional[Settings] = None,
    *,
    counter_store: Optional[CounterStore] = None,
    asset_cache: Optional[AssetCache] = None,
) -> FastAPI:
    cfg = cfg or default_settings

    store = counter_store or build_counter_store(cfg)
    store.open()

    cache = asset_cache or build_asset_cache(cfg)
    # default glyphs are embedded before the first request
    cache.warm(source_paths(DEFAULT_ORDER))

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        try:
            yield
        finally:
            store.close()

    app = FastAPI(title="View Counter", version=APP_VERSION, lifespan=lifespan)

    app.state.settings = cfg
    app.state.counter_store = store
    app.state.asset_cache = cache
    app.state.renderer = CounterRenderer(cache)

    # added inner to outer: rate limit, request log, request id (outermost)
    if cfg.rate_limit_enabled:
        app.add_middleware(
            RateLimitMiddleware,
            limiter=FixedWindowLimiter(
                max_requests=cfg.rate_limit_max_requests,
                window_seconds=cfg.rate_limit_window_seconds,
            ),
        )
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    if Path(cfg.assets_dir).is_dir():
        app.mount(ASSETS_URL_PREFIX, StaticFiles(directory=cfg.assets_dir), name="assets")

    app.include_router(meta_router)
    app.include_router(metrics_router)
    app.include_router(counter_router)

    return app


configure_logging()
app = create_app()
