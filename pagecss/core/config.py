"""Application configuration using Pydantic settings."""

from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central application configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PAGECSS_",
        case_sensitive=False,
    )

    app_name: str = "PageCSS Optimizer"
    environment: str = "development"
    # Diagnostic mode: readable fingerprints, no drain cooldown.
    debug: bool = False

    api_v1_prefix: str = "/v1"
    cors_allowed_origins: List[str] = ["*"]
    admin_redirect_url: str = "/"

    redis_url: str = "redis://localhost:6379/0"
    celery_broker_url: str | None = None
    celery_result_backend: str | None = None
    celery_always_eager: bool = False
    cron_interval_seconds: int = 60

    auth_token: str = "change-me"
    auth_token_header: str = "Authorization"

    # Vary
    hash_secret: str = "change-me"
    guest_mode: bool = False
    vary_cookie_name: str = "_pagecss_vary"
    login_vary_cookie: Optional[str] = None
    password_cookie_name: str = "pagecss-postpass"
    vary_groups: Dict[str, int] = {}
    vary_cookie_lifetime_seconds: int = 2 * 24 * 3600
    cache_mobile: bool = False

    # CSS optimization
    ccss_per_url: bool = False
    ccss_default_css: str = ""
    ucss_whitelist: List[str] = []
    html_lazy_selectors: List[str] = []
    disallowed_font_hosts: List[str] = ["fonts.googleapis.com"]

    # Storage
    static_dir: Path = Path("var/static")
    state_path: Path = Path("var/summary.json")
    index_path: Path = Path("var/url_index.json")
    tenant_id: Optional[str] = None

    # Site being optimized
    site_url: str = "http://localhost:8080"
    css_allowed_hosts: List[str] = []
    fetch_timeout_seconds: float = 30.0
    session_header: str = "X-PageCSS-Uid"

    # Generation service
    generation_service_url: str = "http://localhost:9000"
    generation_api_key: Optional[str] = None
    generation_daily_quota: Optional[int] = None

    # Policy values
    cooldown_seconds: int = 300
    batch_cap: int = 4
    generation_time_budget_seconds: int = 120
    generation_timeout_seconds: float = 30.0
    probe_timeout_seconds: float = 180.0


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


settings = get_settings()
