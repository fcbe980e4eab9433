"""Application configuration using pydantic-settings."""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_VALUE_TYPE_NAMES = {"str", "int", "float", "bool", "none", "number"}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite:///./preferences.db"

    # Preference cache (bulk and name-listing reads)
    PREFERENCE_CACHE_ENABLED: bool = True
    PREFERENCE_CACHE_TTL_SECONDS: int = 0  # 0 = entries never expire

    # Optional comma-separated narrowing of the default value whitelist,
    # e.g. "str,bool,none". Empty keeps the full default.
    PREFERENCE_ALLOWED_VALUE_TYPES: str = ""

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize LOG_LEVEL to an uppercase Python logging level."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"LOG_LEVEL must be one of {valid}, got {v!r}")
        return v.upper()

    @field_validator("PREFERENCE_CACHE_TTL_SECONDS")
    @classmethod
    def validate_cache_ttl(cls, v: int) -> int:
        """Reject negative TTLs."""
        if v < 0:
            raise ValueError("PREFERENCE_CACHE_TTL_SECONDS must be >= 0")
        return v

    @field_validator("PREFERENCE_ALLOWED_VALUE_TYPES", mode="before")
    @classmethod
    def validate_value_types(cls, v: str) -> str:
        """Normalize the type list and reject unknown type names."""
        names = [part.strip().lower() for part in (v or "").split(",") if part.strip()]
        unknown = set(names) - _VALUE_TYPE_NAMES
        if unknown:
            raise ValueError(
                f"PREFERENCE_ALLOWED_VALUE_TYPES has unknown types {sorted(unknown)}, "
                f"expected any of {sorted(_VALUE_TYPE_NAMES)}"
            )
        return ",".join(names)

    # App settings
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"


settings = Settings()
