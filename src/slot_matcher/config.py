"""Configuration objects for the slot matcher service."""

from __future__ import annotations

from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .store import SLOTS_COLLECTION

STORE_BACKENDS = ("firestore", "memory")


class Settings(BaseSettings):
    """Runtime configuration sourced from environment variables."""

    host: str = Field("0.0.0.0")
    port: int = Field(8080, alias="PORT")
    log_level: str = Field("INFO")

    gcp_project_id: Optional[str] = Field(None, alias="GCP_PROJECT_ID")
    webhook_secret: Optional[SecretStr] = Field(None, alias="BLAND_WEBHOOK_SECRET")
    skip_signature_validation: bool = Field(False, alias="SKIP_SIGNATURE_VALIDATION")

    store_backend: str = Field("firestore")
    slots_collection: str = Field(SLOTS_COLLECTION)
    firestore_timeout_seconds: float = Field(10.0)
    firestore_max_attempts: int = Field(3)

    max_results: int = Field(5)
    fallback_page_size: int = Field(20)
    summary_page_size: int = Field(500)
    range_page_size: int = Field(500)
    disconnect_poll_seconds: float = Field(0.5)

    cache_enabled: bool = Field(True)
    cache_ttl_seconds: float = Field(60.0)

    model_config = SettingsConfigDict(
        env_prefix="SLOT_MATCHER_",
        env_file=(".env",),
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("store_backend")
    @classmethod
    def known_backend(cls, value: str) -> str:
        backend = value.lower()
        if backend not in STORE_BACKENDS:
            raise ValueError(f"store_backend must be one of {STORE_BACKENDS}")
        return backend

    @property
    def webhook_secret_value(self) -> Optional[str]:
        return self.webhook_secret.get_secret_value() if self.webhook_secret else None
