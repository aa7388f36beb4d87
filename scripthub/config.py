"""
Application Configuration - Pydantic Settings for type-safe config.

NO DICTIONARIES - All configuration is strongly typed.
FAIL FAST - Critical config is validated at startup.
"""

import sys

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration - NO DEFAULT for production safety
    database_url: str = ""
    database_pool_size: int = 10
    database_max_overflow: int = 10
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_title: str = "ScriptHub API"
    api_version: str = "0.1.0"
    api_description: str = "Premium entitlement and redeem code service for ScriptHub"

    # Identity provider - Firebase project whose ID tokens we accept
    firebase_project_id: str = ""

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True

    # Observability - Tracing
    tracing_enabled: bool = False
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    tracing_sample_ratio: float = 1.0  # share of root traces kept
    service_name: str = "scripthub-api"

    # Document store
    store_transaction_max_attempts: int = 5
    store_watch_interval_seconds: float = 2.0

    # Redeem codes
    default_code_usage_limit: int = 1

    # Daily gacha
    gacha_win_chance: float = 0.25
    gacha_prize_duration_ms: int = HOUR_MS
    gacha_cooldown_ms: int = DAY_MS

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        The app MUST NOT start if critical config is missing.
        """
        errors: list[str] = []

        if not self.database_url:
            errors.append("DATABASE_URL is required but empty or missing")
        elif not self.database_url.startswith(("postgresql", "postgres", "sqlite")):
            errors.append(
                f"DATABASE_URL must be a PostgreSQL or SQLite URL, got: {self.database_url[:20]}..."
            )

        if self.store_transaction_max_attempts < 1:
            errors.append("STORE_TRANSACTION_MAX_ATTEMPTS must be at least 1")

        if self.store_watch_interval_seconds <= 0:
            errors.append("STORE_WATCH_INTERVAL_SECONDS must be positive")

        if not 0.0 <= self.tracing_sample_ratio <= 1.0:
            errors.append(
                f"TRACING_SAMPLE_RATIO must be within [0, 1], got: {self.tracing_sample_ratio}"
            )

        if not 0.0 <= self.gacha_win_chance <= 1.0:
            errors.append(f"GACHA_WIN_CHANCE must be within [0, 1], got: {self.gacha_win_chance}")

        if self.default_code_usage_limit < 1:
            errors.append("DEFAULT_CODE_USAGE_LIMIT must be at least 1")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self

    @property
    def is_sqlite(self) -> bool:
        """True when the document store is backed by SQLite (local development)."""
        return self.database_url.startswith("sqlite")


# Global settings instance - validates at import time
settings = Settings()
