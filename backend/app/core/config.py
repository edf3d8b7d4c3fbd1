from __future__ import annotations

import json
from datetime import timedelta, timezone, tzinfo
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Ward HIS API"
    app_version: str = "0.1.0"
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    database_url: str = "sqlite:///./ward_his.db"

    cors_allowed_origins: str = "http://localhost:3000"

    rate_limit_mutating_per_user: str = "60/minute"
    rate_limit_mutating_per_ip: str = "120/minute"
    rate_limit_read_per_user: str = "180/minute"
    rate_limit_enabled: bool = True

    # Civil timezone used for day buckets and for clinic-local appointment slots.
    timeline_utc_offset_minutes: int = Field(default=330, ge=-14 * 60, le=14 * 60)
    timeline_fetch_timeout_seconds: float = Field(default=10.0, gt=0)
    timeline_include_clinical_records: bool = True
    clinical_note_preview_chars: int = Field(default=50, ge=1)

    pharmacy_rounded_total_tolerance: float = Field(default=0.01, ge=0)
    pharmacy_raw_amount_tolerance: float = Field(default=0.05, ge=0)

    @property
    def is_local_dev(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def timeline_timezone(self) -> tzinfo:
        return timezone(timedelta(minutes=self.timeline_utc_offset_minutes))

    @property
    def cors_allowed_origins_list(self) -> list[str]:
        raw = self.cors_allowed_origins.strip()
        if not raw:
            return []
        if raw.startswith("["):
            parsed = json.loads(raw)
            if not isinstance(parsed, list):
                raise ValueError("CORS_ALLOWED_ORIGINS JSON must be an array")
            return [str(x) for x in parsed]
        return [part.strip() for part in raw.split(",") if part.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
