"""Delivery channel: show a notification now through the agent or directly."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any

from reminder.agent import AgentHandle, AgentRegistrar
from reminder.config import Settings
from reminder.errors import DeliveryError
from reminder.models import AgentMessageType, NavigationTarget, PermissionStatus
from reminder.notifications import activate, build_notification
from reminder.permissions import PermissionGate
from reminder.platform.base import NotificationPlatform

LOGGER = logging.getLogger(__name__)


class DeliveryTarget(ABC):
    """One way of getting a notification on screen."""

    name: str

    @abstractmethod
    async def deliver(self, message: str) -> None:
        """Show ``message`` or raise."""


class AgentDeliveryTarget(DeliveryTarget):
    """Hands the message to the background agent and returns immediately."""

    name = "agent"

    def __init__(self, handle: AgentHandle) -> None:
        self._handle = handle

    async def deliver(self, message: str) -> None:
        self._handle.post({"type": AgentMessageType.DELIVER.value, "message": message})


class DirectDeliveryTarget(DeliveryTarget):
    """Renders the notification from the calling context."""

    name = "direct"

    def __init__(self, platform: NotificationPlatform, settings: Settings) -> None:
        self._platform = platform
        self._settings = settings

    async def deliver(self, message: str) -> None:
        await self._platform.show_notification(build_notification(message, self._settings))


class DeliveryChannel:
    """Chooses a delivery target per call and falls back to direct rendering."""

    def __init__(
        self,
        gate: PermissionGate,
        registrar: AgentRegistrar,
        platform: NotificationPlatform,
        settings: Settings,
    ) -> None:
        self._gate = gate
        self._registrar = registrar
        self._platform = platform
        self._settings = settings

    def select_target(self) -> DeliveryTarget:
        handle = self._registrar.handle
        if handle is not None:
            return AgentDeliveryTarget(handle)
        return DirectDeliveryTarget(self._platform, self._settings)

    async def deliver_now(self, message: str) -> DeliveryTarget:
        """Show exactly one notification and return the target that took it.

        Raises:
            DeliveryError: if permission is missing or every path failed.
        """
        if self._gate.current_status() is not PermissionStatus.GRANTED:
            raise DeliveryError("Notification permission not granted")

        target = self.select_target()
        try:
            await target.deliver(message)
        except Exception as exc:  # noqa: BLE001
            if isinstance(target, DirectDeliveryTarget):
                raise DeliveryError(f"Direct notification failed: {exc}") from exc
            LOGGER.warning("Agent delivery failed, falling back to direct delivery: %s", exc)
        else:
            LOGGER.info("Notification handed to %s target", target.name)
            return target

        direct = DirectDeliveryTarget(self._platform, self._settings)
        try:
            await direct.deliver(message)
        except Exception as exc:  # noqa: BLE001
            raise DeliveryError(f"Direct notification failed: {exc}") from exc
        LOGGER.info("Notification handed to %s target", direct.name)
        return direct

    async def handle_activation(
        self,
        action_id: str | None,
        data: dict[str, Any] | None = None,
    ) -> NavigationTarget:
        """Resolve a click on a delivered notification."""

        handle = self._registrar.handle
        if handle is not None:
            return await asyncio.wrap_future(handle.click(action_id, data))
        return await activate(self._platform, action_id, data, self._settings.default_route)
