"""Notification interface exposed to the surrounding app."""

from __future__ import annotations

import logging
from typing import Any

from reminder.agent import AgentHost, AgentRegistrar
from reminder.bootstrap import BootstrapState, bootstrap
from reminder.clock import AsyncioClock, Clock
from reminder.config import Settings, local_zone
from reminder.db import Database
from reminder.delivery import DeliveryChannel
from reminder.errors import DeliveryError, PermissionDeniedError, UnsupportedPlatformError
from reminder.models import NavigationTarget, NotificationStatus, PermissionStatus, ScheduleDescriptor
from reminder.permissions import PermissionGate
from reminder.platform.base import NotificationPlatform
from reminder.scheduler import Scheduler

LOGGER = logging.getLogger(__name__)


class NotificationService:
    """Enable/disable, set time, test-fire and status for daily reminders."""

    def __init__(
        self,
        settings: Settings,
        gate: PermissionGate,
        registrar: AgentRegistrar,
        channel: DeliveryChannel,
        scheduler: Scheduler,
        bootstrap_state: BootstrapState | None = None,
    ) -> None:
        self._settings = settings
        self._gate = gate
        self._registrar = registrar
        self._channel = channel
        self._scheduler = scheduler
        self._bootstrap_state = bootstrap_state or BootstrapState()

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    async def start(self) -> ScheduleDescriptor | None:
        return await bootstrap(self._bootstrap_state, self._registrar, self._scheduler, self._gate)

    async def shutdown(self) -> None:
        self._scheduler.shutdown()
        await self._registrar.unregister()
        LOGGER.info("Notification service stopped")

    async def enable_notifications(self, time_of_day: str, message: str | None = None) -> ScheduleDescriptor:
        """Ask for permission if needed, then arm the daily reminder.

        Raises:
            UnsupportedPlatformError: if the platform cannot show notifications.
            PermissionDeniedError: if the user declined, now or earlier.
        """
        if not self._gate.check_support():
            raise UnsupportedPlatformError()
        status = await self._gate.request_permission()
        if status is not PermissionStatus.GRANTED:
            raise PermissionDeniedError()
        return self._scheduler.enable(time_of_day, message or self._settings.default_message)

    def disable_notifications(self) -> None:
        self._scheduler.disable()

    def update_notification_time(self, time_of_day: str) -> ScheduleDescriptor | None:
        return self._scheduler.update_time(time_of_day)

    def update_notification_message(self, message: str) -> ScheduleDescriptor | None:
        return self._scheduler.update_message(message)

    async def send_test_notification(self, message: str | None = None) -> None:
        """Deliver one notification right away, bypassing the schedule.

        Raises:
            DeliveryError: if notifications are unsupported, not permitted,
                or no delivery path worked.
        """
        if not self._gate.check_support():
            raise DeliveryError(UnsupportedPlatformError.user_message)
        if self._gate.current_status() is not PermissionStatus.GRANTED:
            raise DeliveryError("Notification permission not granted")
        if self._registrar.handle is None:
            await self._registrar.register()
        await self._channel.deliver_now(message or self._settings.test_message)

    def get_notification_status(self) -> NotificationStatus:
        descriptor = self._scheduler.descriptor
        scheduled = self._scheduler.is_armed
        error = self._scheduler.last_delivery_error
        return NotificationStatus(
            permission=self._gate.current_status(),
            scheduled=scheduled,
            next_fire_at=descriptor.next_fire_at if scheduled and descriptor else None,
            supported=self._gate.check_support(),
            agent_active=self._registrar.handle is not None,
            last_delivery_error=str(error) if error else None,
        )

    async def handle_notification_click(
        self,
        action_id: str | None,
        data: dict[str, Any] | None = None,
    ) -> NavigationTarget:
        return await self._channel.handle_activation(action_id, data)


def create_service(
    settings: Settings,
    platform: NotificationPlatform,
    db: Database,
    clock: Clock | None = None,
    host: AgentHost | None = None,
    bootstrap_state: BootstrapState | None = None,
) -> NotificationService:
    """Wire the notification subsystem from its collaborators."""

    gate = PermissionGate(platform)
    registrar = AgentRegistrar(platform, host or AgentHost(), settings)
    channel = DeliveryChannel(gate, registrar, platform, settings)
    scheduler = Scheduler(db, channel, gate, clock or AsyncioClock(local_zone(settings)))
    return NotificationService(settings, gate, registrar, channel, scheduler, bootstrap_state)
