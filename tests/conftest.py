from __future__ import annotations

import asyncio
import threading
from datetime import datetime, timezone
from typing import Callable

import pytest
import pytest_asyncio

from reminder.agent import AgentHost
from reminder.clock import Clock, TriggerCallback
from reminder.config import Settings
from reminder.db import Database
from reminder.models import AppClient, Notification, PermissionStatus
from reminder.platform.base import NotificationPlatform
from reminder.service import create_service

START = datetime(2024, 1, 1, 21, 0, tzinfo=timezone.utc)


class FakeTrigger:
    def __init__(self, when: datetime, callback: TriggerCallback) -> None:
        self.when = when
        self.callback = callback
        self.fired = False
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True


class FakeClock(Clock):
    """Deterministic clock; triggers fire only when the test advances time."""

    def __init__(self, start: datetime = START) -> None:
        self._now = start
        self.triggers: list[FakeTrigger] = []

    def now(self) -> datetime:
        return self._now

    def set(self, moment: datetime) -> None:
        self._now = moment

    def call_at(self, when: datetime, callback: TriggerCallback) -> FakeTrigger:
        trigger = FakeTrigger(when, callback)
        self.triggers.append(trigger)
        return trigger

    @property
    def pending(self) -> list[FakeTrigger]:
        return [t for t in self.triggers if not t.cancelled and not t.fired]

    async def advance_to(self, moment: datetime) -> None:
        while True:
            due = [t for t in self.pending if t.when <= moment]
            if not due:
                break
            trigger = min(due, key=lambda t: t.when)
            trigger.fired = True
            self._now = max(self._now, trigger.when)
            await trigger.callback()
        self._now = max(self._now, moment)


class FakePlatform(NotificationPlatform):
    def __init__(
        self,
        permission: PermissionStatus = PermissionStatus.GRANTED,
        notifications: bool = True,
        agents: bool = True,
        prompt_answer: PermissionStatus = PermissionStatus.GRANTED,
    ) -> None:
        self.status = permission
        self.notifications = notifications
        self.agents = agents
        self.prompt_answer = prompt_answer
        self.prompts = 0
        self.fail_show = False
        self.shown: list[Notification] = []
        self.clients: list[AppClient] = []
        self.focused: list[AppClient] = []
        self.opened: list[str] = []
        self._lock = threading.Lock()

    def supports_notifications(self) -> bool:
        return self.notifications

    def supports_background_agents(self) -> bool:
        return self.agents

    def permission(self) -> PermissionStatus:
        return self.status

    async def prompt_permission(self) -> PermissionStatus:
        self.prompts += 1
        await asyncio.sleep(0)
        self.status = self.prompt_answer
        return self.status

    async def show_notification(self, notification: Notification) -> None:
        if self.fail_show:
            raise RuntimeError("notification daemon unavailable")
        with self._lock:
            self.shown.append(notification)

    async def open_clients(self) -> list[AppClient]:
        return list(self.clients)

    async def focus_client(self, client: AppClient) -> None:
        self.focused.append(client)

    async def open_window(self, route: str) -> None:
        self.opened.append(route)


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until work done on an agent thread becomes visible."""

    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        REMINDER_DATABASE_PATH=tmp_path / "reminder.db",
        REMINDER_TIMEZONE="UTC",
        REMINDER_AGENT_ACTIVATION_TIMEOUT_SECONDS=2.0,
    )


@pytest.fixture()
def db(settings: Settings) -> Database:
    database = Database(settings.database_path)
    database.initialize()
    return database


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture()
def host() -> AgentHost:
    return AgentHost()


@pytest_asyncio.fixture()
async def service(settings, platform, db, clock, host):
    svc = create_service(settings, platform, db, clock=clock, host=host)
    yield svc
    await svc.shutdown()
