from __future__ import annotations

import os
from functools import lru_cache
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, HttpUrl, ValidationError, field_validator


class Settings(BaseModel):
    supabase_url: HttpUrl
    supabase_service_key: str
    supabase_anon_key: str | None = None
    environment: Literal["local", "staging", "production"] = "local"

    # Whether the host keeps running work after a response has been sent.
    # Serverless hosts do not, so processing waits for the trigger call.
    background_processing: bool = False
    require_auth: bool = True

    max_upload_mb: int = Field(default=10, ge=1)
    storage_bucket: str = "documents"
    upload_timeout_seconds: float = 30.0
    process_timeout_seconds: float = 300.0
    job_data_retry_attempts: int = Field(default=2, ge=1)
    job_data_retry_delay_seconds: float = Field(default=1.0, ge=0)
    progress_update_interval: int = Field(default=10, ge=1)

    bot_token: str | None = None
    reminder_chat_ids: list[int] = Field(default_factory=list)
    reminder_hour: int = Field(default=9, ge=0, le=23)

    @field_validator("reminder_chat_ids", mode="before")
    @classmethod
    def _split_chat_ids(cls, value: object) -> object:
        if isinstance(value, str):
            return [int(part) for part in value.split(",") if part.strip()]
        return value

    @property
    def is_debug(self) -> bool:
        return self.environment == "local"

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


_OPTIONAL_ENV = {
    "supabase_anon_key": "SUPABASE_ANON_KEY",
    "environment": "ENVIRONMENT",
    "background_processing": "BACKGROUND_PROCESSING",
    "require_auth": "REQUIRE_AUTH",
    "max_upload_mb": "MAX_UPLOAD_MB",
    "storage_bucket": "STORAGE_BUCKET",
    "upload_timeout_seconds": "UPLOAD_TIMEOUT_SECONDS",
    "process_timeout_seconds": "PROCESS_TIMEOUT_SECONDS",
    "job_data_retry_attempts": "JOB_DATA_RETRY_ATTEMPTS",
    "job_data_retry_delay_seconds": "JOB_DATA_RETRY_DELAY_SECONDS",
    "progress_update_interval": "PROGRESS_UPDATE_INTERVAL",
    "bot_token": "BOT_TOKEN",
    "reminder_chat_ids": "REMINDER_CHAT_IDS",
    "reminder_hour": "REMINDER_HOUR",
}


def _build_settings() -> Settings:
    # Load .env file once on first settings build (for local development)
    load_dotenv()

    optional = {
        field: os.environ[env_key]
        for field, env_key in _OPTIONAL_ENV.items()
        if os.getenv(env_key)
    }

    try:
        return Settings(
            supabase_url=os.environ["SUPABASE_URL"],
            supabase_service_key=os.environ["SUPABASE_SERVICE_KEY"],
            **optional,
        )
    except KeyError as exc:
        required_keys = ("SUPABASE_URL", "SUPABASE_SERVICE_KEY")
        missing = [key for key in required_keys if key not in os.environ]
        raise RuntimeError(
            f"Missing required environment variables: {', '.join(missing)}"
        ) from exc
    except (ValidationError, ValueError) as exc:
        raise RuntimeError(f"Invalid settings: {exc}") from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Reads environment variables once and validates them with Pydantic.
    """

    return _build_settings()
