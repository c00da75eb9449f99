from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven settings (SPECTYPE_* variables, optional .env file)."""

    model_config = SettingsConfigDict(env_prefix="SPECTYPE_", env_file=".env", extra="ignore")

    log_level: str = "WARNING"
    log_format: Literal["rich", "json"] = "rich"

    openapi_url: str = "/openapi"

    # unset = documents are cached in memory only
    cache_db_path: Optional[Path] = None

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return str(v).strip().upper()


@lru_cache
def get_settings() -> Settings:
    return Settings()
