from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    public_base_url: str = "http://localhost:3000"

    # ---- Counter store ----
    counter_file_path: str = str(PACKAGE_DIR.parent / "counters.json")

    # Remote KV (Vercel KV / Upstash REST). Both must be set to use it.
    kv_rest_api_url: str | None = None
    kv_rest_api_token: str | None = None
    kv_store_key: str = "counters"
    kv_timeout_seconds: float = 5.0

    # ---- Glyph assets ----
    assets_dir: str = str(PACKAGE_DIR / "assets")
    asset_max_dimension: int = 256
    asset_transform_enabled: bool = True

    # ---- Rate limiting ----
    rate_limit_enabled: bool = True
    rate_limit_window_seconds: int = 60
    rate_limit_max_requests: int = 120

    def remote_store_configured(self) -> bool:
        return bool((self.kv_rest_api_url or "").strip() and (self.kv_rest_api_token or "").strip())

    def model_post_init(self, __context) -> None:
        env = (self.app_env or "local").strip().lower()
        is_prod = env in ("prod", "production")

        if is_prod and not self.rate_limit_enabled:
            raise ValueError("rate_limit_enabled=False is not allowed in prod")

        if int(self.rate_limit_max_requests) < 1 or int(self.rate_limit_window_seconds) < 1:
            raise ValueError("rate limit window and max requests must be >= 1")


settings = Settings()
