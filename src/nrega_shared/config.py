"""
config.py — pydantic-settings Settings class.

All environment variables for nrega-pulse are declared here. The pipeline
and the API services import `settings` from this module, or accept an
explicitly constructed Settings instance.

Usage:
    from nrega_shared.config import settings
    print(settings.data_gov_api_url)
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CachePolicyName = Literal["none", "read_through", "write_through"]


def _find_dotenv() -> Path | None:
    """Walk up from CWD to find the nearest .env file."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        candidate = parent / ".env"
        if candidate.is_file():
            return candidate
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_find_dotenv() or ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Upstream: data.gov.in MGNREGA district-wise dataset
    # -------------------------------------------------------------------------
    data_gov_api_url: str = Field(
        default="https://api.data.gov.in/resource/ee03643a-ee4c-48c2-ac30-9f2ff26ab722"
    )
    data_gov_api_key: str = Field(default="")
    upstream_timeout_seconds: float = Field(default=30.0, ge=1.0, le=60.0)
    upstream_page_limit: int = Field(default=1000, ge=1)

    # -------------------------------------------------------------------------
    # Supabase
    # -------------------------------------------------------------------------
    supabase_url: str = Field(default="http://localhost:54321")
    supabase_anon_key: str = Field(default="")
    supabase_service_key: str = Field(default="")

    # -------------------------------------------------------------------------
    # Caching
    # -------------------------------------------------------------------------
    cache_policy: CachePolicyName = Field(default="read_through")
    cache_expiry_hours: float = Field(default=6.0, gt=0)
    response_cache_list_ttl_seconds: float = Field(default=3600.0, ge=0)
    response_cache_record_ttl_seconds: float = Field(default=1800.0, ge=0)
    performance_retention_days: int = Field(default=7, ge=1)

    # -------------------------------------------------------------------------
    # Batch sync
    # -------------------------------------------------------------------------
    default_financial_year: str = Field(default="2024-2025", pattern=r"^\d{4}-\d{4}$")
    sync_delay_ms: int = Field(default=500, ge=0)
    rate_limit_backoff_seconds: float = Field(default=5.0, ge=0)
    sync_page_limit: int = Field(default=100, ge=1)

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_format: Literal["json", "console"] = Field(default="console")

    # -------------------------------------------------------------------------
    # Derived / computed
    # -------------------------------------------------------------------------
    @property
    def cache_window_seconds(self) -> float:
        return self.cache_expiry_hours * 3600

    @field_validator("supabase_url", "data_gov_api_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") if isinstance(v, str) else v


# ---------------------------------------------------------------------------
# Module-level singleton — import this everywhere
# ---------------------------------------------------------------------------
settings = Settings()
