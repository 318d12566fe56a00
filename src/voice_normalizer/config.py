"""Configuration objects for the normalizer service."""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from voice_common.timeutils import DEFAULT_TIMEZONE, is_valid_timezone

from .dob_normalizer import VALIDATION_LEVELS


class Settings(BaseSettings):
    """Runtime configuration sourced from environment variables."""

    host: str = Field("0.0.0.0")
    port: int = Field(8080, alias="PORT")
    log_level: str = Field("INFO")
    default_timezone: str = Field(DEFAULT_TIMEZONE)
    dob_validation_level: str = Field("standard")
    cache_enabled: bool = Field(True)
    cache_ttl_seconds: float = Field(300.0)
    cache_max_entries: int = Field(2048)

    model_config = SettingsConfigDict(
        env_prefix="VOICE_NORMALIZER_",
        env_file=(".env",),
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("default_timezone")
    @classmethod
    def known_timezone(cls, value: str) -> str:
        if not is_valid_timezone(value):
            raise ValueError(f"unknown IANA timezone: {value}")
        return value

    @field_validator("dob_validation_level")
    @classmethod
    def known_level(cls, value: str) -> str:
        level = value.lower()
        if level not in VALIDATION_LEVELS:
            raise ValueError(f"dob_validation_level must be one of {VALIDATION_LEVELS}")
        return level
