"""Application settings for the Vitrine checkout pipeline."""
from __future__ import annotations

import secrets
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Centralised configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_prefix="VITRINE_", case_sensitive=False)

    app_name: str = "Vitrine"
    environment: Literal["development", "staging", "production"] = "development"
    secret_key: str = Field(default_factory=lambda: secrets.token_urlsafe(48))
    log_level: str = "INFO"
    log_renderer: Literal["json", "console"] = "json"

    # Database
    data_dir: Path = Field(default_factory=lambda: Path.cwd() / "instance")
    database_url: str | None = None

    # Catalog
    plans_table: str = "subscription_plans"
    catalog_poll_interval_seconds: float = 5.0

    # Storage
    storage_backend: Literal["local", "s3"] = "local"
    storage_local_path: Path = Field(
        default_factory=lambda: Path.cwd() / "instance" / "uploads"
    )
    storage_public_base_url: str | None = None
    storage_s3_endpoint: str | None = None
    storage_s3_region: str | None = None
    storage_s3_access_key: str | None = None
    storage_s3_secret_key: str | None = None

    # Identity verification
    verification_bucket: str = "verifications"
    verification_parallel_uploads: bool = False
    verification_compensate_uploads: bool = True
    preview_max_side: int = 480

    # Payments
    payment_settlement_delay_seconds: float = 2.0
    payment_timeout_seconds: float = 30.0
    pix_reference_code: str = (
        "00020126580014br.gov.bcb.pix0136123e4567-e12b-12d1-a456-426655440000"
    )
    pix_validity_minutes: int = 30

    # Client-side checkout session
    session_dir: Path | None = None
    checkout_registry_capacity: int = 1000

    # Rate limiting / monitoring
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 60
    rate_limit_storage_url: str | None = None
    redis_url: str | None = None
    sentry_dsn: str | None = None
    sentry_traces_sample_rate: float = 0.2
    enable_prometheus: bool = True
    metrics_namespace: str = "vitrine"

    @property
    def resolved_database_url(self) -> str:
        """Return the configured database URL defaulting to a local SQLite file."""
        if self.database_url:
            return self.database_url

        self.data_dir.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{(self.data_dir / 'vitrine.db').as_posix()}"

    @property
    def resolved_rate_limit_storage(self) -> str:
        if self.rate_limit_storage_url:
            return self.rate_limit_storage_url
        if self.redis_url:
            return f"redis://{self.redis_url.split('://')[-1]}"
        return "memory://"

    @property
    def resolved_storage_path(self) -> Path:
        path = self.storage_local_path
        path.mkdir(parents=True, exist_ok=True)
        return path

    @property
    def resolved_session_dir(self) -> Path:
        path = self.session_dir or self.data_dir / "sessions"
        path.mkdir(parents=True, exist_ok=True)
        return path


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""
    settings = Settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    return settings


__all__ = ["Settings", "get_settings"]
