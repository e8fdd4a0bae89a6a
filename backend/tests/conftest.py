# backend/tests/conftest.py
from __future__ import annotations

import pytest

from viewcounter.config import Settings
from viewcounter.services.runtime_metrics import METRICS


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for k in ("KV_REST_API_URL", "KV_REST_API_TOKEN", "VERCEL", "AWS_LAMBDA_FUNCTION_NAME"):
        monkeypatch.delenv(k, raising=False)
    METRICS.reset()
    yield
    METRICS.reset()


@pytest.fixture
def make_settings(tmp_path):
    def _make(**overrides) -> Settings:
        base = {
            "counter_file_path": str(tmp_path / "counters.json"),
            "kv_rest_api_url": None,
            "kv_rest_api_token": None,
            "rate_limit_enabled": False,
        }
        base.update(overrides)
        return Settings(**base)

    return _make
