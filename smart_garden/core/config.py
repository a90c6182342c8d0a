from __future__ import annotations

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="APP_",
        case_sensitive=False,
    )

    env: str = Field(default="development")
    debug: bool = Field(default=False)
    docs_enabled: bool = Field(default=True)
    log_level: str = Field(default="INFO")

    cors_origins: list[str] = Field(default_factory=list)
    trusted_hosts: list[str] = Field(default_factory=list)

    influx_url: AnyHttpUrl = Field(default="http://influxdb:8086")
    influx_token: str = Field(min_length=10)
    influx_org: str = Field(min_length=1)
    influx_bucket: str = Field(min_length=1)
    influx_timeout_ms: int = Field(default=5_000, ge=1000, le=120_000)

    database_url: str = Field(default="sqlite:///./database.sqlite", min_length=1)

    # Prefix for stored image references, e.g. "https://api.example.com".
    api_domain: str = Field(default="")
    upload_dir: str = Field(default="./public/uploads")
    upload_max_bytes: int = Field(default=5 * 1024 * 1024, ge=1024)

    vapid_private_key: str = Field(default="")
    vapid_subject: str = Field(default="mailto:admin@example.com")
    push_timeout_seconds: float = Field(default=5.0, ge=0.5, le=60.0)
    push_ttl_seconds: int = Field(default=60 * 60 * 12, ge=0)

    notify_min_interval_seconds: int = Field(default=3 * 60 * 60, ge=0)
    moisture_alert_floor: int = Field(default=5, ge=0, le=100)
    fanout_workers: int = Field(default=8, ge=1, le=64)

    alert_sweep_enabled: bool = Field(default=False)
    alert_sweep_interval_seconds: float = Field(default=300.0, ge=1.0, le=86_400.0)

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"


def load_settings() -> Settings:
    settings = Settings()
    if not settings.cors_origins:
        settings.cors_origins = ["http://localhost:3000", "http://localhost:3001"]
    return settings
