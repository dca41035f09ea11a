import os
from typing import List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator


class Settings(BaseModel):
    DATABASE_URL: str = "sqlite+aiosqlite:///./shopqueue.db"
    REDIS_URL: str = "redis://redis:6379/0"
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "/tmp/logs"

    ANALYTICS_CACHE_TTL_SECONDS: int = Field(300, gt=0)
    ANALYTICS_TIMEZONE: str = "UTC"
    BULK_BATCH_SIZE: int = Field(10, gt=0)
    BULK_MAX_ITEMS: int = Field(100, gt=0)

    @field_validator("ANALYTICS_TIMEZONE")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown ANALYTICS_TIMEZONE '{v}'") from e
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    @classmethod
    def load_from_env(cls):
        values = {}
        for name in (
            "DATABASE_URL",
            "REDIS_URL",
            "ENVIRONMENT",
            "LOG_LEVEL",
            "LOG_DIR",
            "ANALYTICS_TIMEZONE",
        ):
            value = os.getenv(name)
            if value:
                values[name] = value

        for name in ("ANALYTICS_CACHE_TTL_SECONDS", "BULK_BATCH_SIZE", "BULK_MAX_ITEMS"):
            value = os.getenv(name)
            if value:
                try:
                    values[name] = int(value)
                except ValueError as e:
                    raise ValueError(f"{name} must be an integer, got '{value}'") from e

        cors_origins_str = os.getenv("CORS_ORIGINS")
        if cors_origins_str:
            values["CORS_ORIGINS"] = [origin.strip() for origin in cors_origins_str.split(",") if origin.strip()]

        return cls(**values)


# Load settings immediately so a bad environment fails at startup/import time.
settings = Settings.load_from_env()
