"""Application settings loaded from environment variables.

Environment Configuration:
    PRECIOUS_ENV: Deployment environment (local | test | staging | prod)
    DATABASE_URL: PostgreSQL connection string (required)
    JWT_SECRET: Session token signing secret (required in staging/prod)

Identity Provider Configuration:
    APPLE_CLIENT_IDS: Comma-separated list of accepted Apple audiences (bundle/service ids)
    GOOGLE_CLIENT_IDS: Comma-separated list of accepted Google OAuth client ids

Push Configuration:
    FIREBASE_PROJECT_ID / FIREBASE_CLIENT_EMAIL / FIREBASE_PRIVATE_KEY:
        Service account used for FCM. Push is disabled when any is missing.
    PUSH_SCHEDULE: Comma-separated daily triggers, cron ("0 10 * * *") or "HH:MM"
    SCHEDULER_ENABLED: Start the push scheduler inside the API process
"""

import re
from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

DEV_JWT_SECRET = "development-secret-change-me"

_HHMM_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


class Environment(str, Enum):
    """Valid deployment environments."""

    LOCAL = "local"
    TEST = "test"
    STAGING = "staging"
    PROD = "prod"


def parse_daily_time(expression: str) -> tuple[int, int]:
    """Parse a daily trigger expression into (hour, minute).

    Accepts a five-field cron expression whose day/month/weekday fields are
    all "*" (e.g. "0 10 * * *"), or a plain "HH:MM" wall-clock time.

    Raises:
        ValueError: If the expression is not a daily time.
    """
    expression = expression.strip()

    match = _HHMM_PATTERN.match(expression)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
    else:
        fields = expression.split()
        if len(fields) != 5 or fields[2:] != ["*", "*", "*"]:
            raise ValueError(f"Not a daily schedule expression: {expression!r}")
        try:
            minute, hour = int(fields[0]), int(fields[1])
        except ValueError as e:
            raise ValueError(f"Not a daily schedule expression: {expression!r}") from e

    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Time out of range in schedule expression: {expression!r}")
    return hour, minute


class Settings(BaseSettings):
    """Application configuration.

    Validation rules:
    - DATABASE_URL is always required
    - JWT_SECRET must be set explicitly in staging and prod
    - Every PUSH_SCHEDULE entry must be a daily time
    """

    precious_env: Environment = Field(default=Environment.LOCAL, alias="PRECIOUS_ENV")
    database_url: Annotated[str, Field(alias="DATABASE_URL")]
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")

    # Session tokens
    jwt_secret: str | None = Field(default=None, alias="JWT_SECRET")
    access_token_ttl_s: int = Field(default=15 * 60, alias="ACCESS_TOKEN_TTL_S")
    refresh_token_ttl_s: int = Field(default=30 * 24 * 3600, alias="REFRESH_TOKEN_TTL_S")

    # Identity providers
    apple_client_ids: str | None = Field(default=None, alias="APPLE_CLIENT_IDS")
    google_client_ids: str | None = Field(default=None, alias="GOOGLE_CLIENT_IDS")

    # Firebase Cloud Messaging
    firebase_project_id: str | None = Field(default=None, alias="FIREBASE_PROJECT_ID")
    firebase_client_email: str | None = Field(default=None, alias="FIREBASE_CLIENT_EMAIL")
    firebase_private_key: str | None = Field(default=None, alias="FIREBASE_PRIVATE_KEY")
    push_title: str = Field(default="precious.you", alias="PUSH_TITLE")
    push_timeout_s: float = Field(default=10.0, alias="PUSH_TIMEOUT_S")

    # Scheduler
    push_schedule: str = Field(
        default="0 10 * * *,0 15 * * *,0 20 * * *", alias="PUSH_SCHEDULE"
    )
    scheduler_enabled: bool = Field(default=True, alias="SCHEDULER_ENABLED")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @model_validator(mode="after")
    def validate_required_settings(self) -> "Settings":
        """Ensure environment-dependent settings are present and well formed."""
        if self.precious_env in (Environment.STAGING, Environment.PROD):
            if not self.jwt_secret:
                raise ValueError(
                    f"JWT_SECRET is required for PRECIOUS_ENV={self.precious_env.value}"
                )

        if self.access_token_ttl_s < 1 or self.refresh_token_ttl_s < 1:
            raise ValueError("ACCESS_TOKEN_TTL_S and REFRESH_TOKEN_TTL_S must be >= 1")

        if self.push_timeout_s <= 0:
            raise ValueError("PUSH_TIMEOUT_S must be > 0")

        for expression in self.push_schedule_list:
            parse_daily_time(expression)

        return self

    @property
    def effective_jwt_secret(self) -> str:
        """Return the signing secret, falling back to the development default."""
        return self.jwt_secret or DEV_JWT_SECRET

    @property
    def apple_audience_list(self) -> list[str]:
        """Parse comma-separated Apple audiences into a list."""
        return _split_csv(self.apple_client_ids)

    @property
    def google_audience_list(self) -> list[str]:
        """Parse comma-separated Google audiences into a list."""
        return _split_csv(self.google_client_ids)

    @property
    def push_schedule_list(self) -> list[str]:
        """Parse comma-separated schedule expressions into a list."""
        return _split_csv(self.push_schedule)

    @property
    def push_schedule_times(self) -> list[tuple[int, int]]:
        """Daily (hour, minute) pairs for the push scheduler."""
        return [parse_daily_time(expression) for expression in self.push_schedule_list]

    @property
    def firebase_configured(self) -> bool:
        """Whether all Firebase service account fields are present."""
        return bool(
            self.firebase_project_id and self.firebase_client_email and self.firebase_private_key
        )

    @property
    def normalized_firebase_private_key(self) -> str | None:
        """Private key with escaped newlines restored (env files store it on one line)."""
        if self.firebase_private_key:
            return self.firebase_private_key.replace("\\n", "\n")
        return None


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If required settings are missing or invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_settings.cache_clear()
