"""
Process configuration for the marketplace functions.

Settings are read from the environment (and an optional .env file next to the
project root) once, then handed to whatever needs them. Nothing else in the
code base reads os.environ.

Missing credentials fail closed: ``Settings.require`` raises a
ConfigurationError naming the setting instead of falling back to a default.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.errors import ConfigurationError

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Environment-backed settings. Field names map to upper-case env vars."""

    # Record store (backend-as-a-service)
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    supabase_anon_key: str = ""
    record_store_backend: Literal["rest", "memory"] = "rest"
    data_dir: Path = _PROJECT_ROOT / "data"

    # Payment processor
    stripe_secret_key: str = ""
    stripe_publishable_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_api_version: str = "2023-10-16"

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=_PROJECT_ROOT / ".env",
        extra="ignore",
    )

    @field_validator(
        "supabase_url",
        "supabase_service_role_key",
        "supabase_anon_key",
        "stripe_secret_key",
        "stripe_publishable_key",
        "stripe_webhook_secret",
        mode="after",
    )
    @classmethod
    def strip_credentials(cls, v: str) -> str:
        return (v or "").strip()

    def require(self, field: str, message: Optional[str] = None) -> str:
        """
        Return a non-empty setting or raise ConfigurationError.

        Args:
            field: Settings attribute name (e.g. "stripe_secret_key")
            message: Caller-facing message; defaults to naming the env var

        Raises:
            ConfigurationError: If the setting is empty
        """
        value = getattr(self, field)
        if not value:
            raise ConfigurationError(message or f"{field.upper()} not configured")
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings singleton, built on first use."""
    return Settings()
