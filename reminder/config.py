"""Application configuration."""

from __future__ import annotations

from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven settings validated at startup."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    database_path: Path = Field(default=Path("reminder.db"), alias="REMINDER_DATABASE_PATH")
    timezone: str = Field(default="UTC", alias="REMINDER_TIMEZONE")
    app_name: str = Field(default="Daily Reading", alias="REMINDER_APP_NAME")
    notification_title: str = Field(default="Daily reading reminder", alias="REMINDER_NOTIFICATION_TITLE")
    default_message: str = Field(
        default="It's time for today's reading! 📖",
        alias="REMINDER_DEFAULT_MESSAGE",
    )
    test_message: str = Field(default="This is a test notification 📖", alias="REMINDER_TEST_MESSAGE")
    # Notifications sharing a tag replace each other instead of stacking.
    notification_tag: str = Field(default="daily-reading", alias="REMINDER_NOTIFICATION_TAG")
    icon: str = Field(default="/icon-192x192.png", alias="REMINDER_ICON")
    require_interaction: bool = Field(default=False, alias="REMINDER_REQUIRE_INTERACTION")
    default_route: str = Field(default="/dashboard", alias="REMINDER_DEFAULT_ROUTE")
    app_base_url: str = Field(default="http://localhost:3000", alias="REMINDER_APP_BASE_URL")
    agent_scope: str = Field(default="/", alias="REMINDER_AGENT_SCOPE")
    agent_script_version: str = Field(default="reading-reminder-v1", alias="REMINDER_AGENT_SCRIPT_VERSION")
    agent_activation_timeout_seconds: float = Field(
        default=5.0,
        alias="REMINDER_AGENT_ACTIVATION_TIMEOUT_SECONDS",
    )
    notify_send_path: str = Field(default="notify-send", alias="REMINDER_NOTIFY_SEND_PATH")
    open_command: str = Field(default="xdg-open", alias="REMINDER_OPEN_COMMAND")

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value


def load_settings() -> Settings:
    """Load and validate settings."""

    return Settings()


def local_zone(settings: Settings) -> ZoneInfo:
    """Return the zone whose wall clock the daily schedule follows."""
    return ZoneInfo(settings.timezone)
