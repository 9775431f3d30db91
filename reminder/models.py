"""Core domain models used across layers."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, time
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DESCRIPTOR_VERSION = 1

_TIME_OF_DAY = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


class PermissionStatus(str, Enum):
    """Notification consent as reported by the platform."""

    UNSET = "unset"
    GRANTED = "granted"
    DENIED = "denied"


class ScheduleState(str, Enum):
    DISABLED = "disabled"
    ARMING = "arming"
    ARMED = "armed"
    FIRING = "firing"


class AgentState(str, Enum):
    """Lifecycle stages of a background agent registration."""

    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


class AgentMessageType(str, Enum):
    DELIVER = "DELIVER"
    QUERY_PERMISSION = "QUERY_PERMISSION"


def parse_time_of_day(value: str) -> time:
    """Parse a 24-hour ``HH:MM`` string.

    Raises:
        ValueError: if the value is not a valid time of day.
    """
    match = _TIME_OF_DAY.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise ValueError(f"Invalid time of day {value!r}, expected HH:MM")
    return time(hour=int(match.group(1)), minute=int(match.group(2)))


def normalize_time_of_day(value: str) -> str:
    return parse_time_of_day(value).strftime("%H:%M")


class ScheduleDescriptor(BaseModel):
    """Persisted description of the single recurring daily notification."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    version: int = DESCRIPTOR_VERSION
    time_of_day: str = Field(alias="timeOfDay")
    message: str
    enabled: bool = True
    next_fire_at: datetime = Field(alias="nextFireAt")

    @field_validator("version")
    @classmethod
    def _supported_version(cls, value: int) -> int:
        if value != DESCRIPTOR_VERSION:
            raise ValueError(f"Unsupported schedule version {value} (expected {DESCRIPTOR_VERSION})")
        return value

    @field_validator("time_of_day")
    @classmethod
    def _valid_time_of_day(cls, value: str) -> str:
        return normalize_time_of_day(value)

    @field_validator("next_fire_at")
    @classmethod
    def _aware_timestamp(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("nextFireAt must carry a UTC offset")
        return value


@dataclass(slots=True)
class NotificationAction:
    action: str
    title: str


@dataclass(slots=True)
class Notification:
    """A platform notification ready to be rendered."""

    title: str
    body: str
    tag: str
    icon: str | None = None
    actions: list[NotificationAction] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    require_interaction: bool = False


@dataclass(slots=True)
class AppClient:
    """An open window of the app that a notification click can focus."""

    client_id: str
    url: str


@dataclass(slots=True, frozen=True)
class NavigationTarget:
    """Outcome of a notification click: focus, open or nothing."""

    kind: str
    route: str | None = None

    @property
    def is_noop(self) -> bool:
        return self.kind == "none"


@dataclass(slots=True)
class NotificationStatus:
    permission: PermissionStatus
    scheduled: bool
    next_fire_at: datetime | None = None
    supported: bool = True
    agent_active: bool = False
    last_delivery_error: str | None = None
