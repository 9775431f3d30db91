"""Permission gate in front of the platform consent API."""

from __future__ import annotations

import asyncio
import logging

from reminder.models import PermissionStatus
from reminder.platform.base import NotificationPlatform

LOGGER = logging.getLogger(__name__)


class PermissionGate:
    """Reads and requests notification consent; never overrides the platform."""

    def __init__(self, platform: NotificationPlatform) -> None:
        self._platform = platform
        self._prompt_lock = asyncio.Lock()

    def check_support(self) -> bool:
        return self._platform.supports_notifications() and self._platform.supports_background_agents()

    def current_status(self) -> PermissionStatus:
        if not self._platform.supports_notifications():
            return PermissionStatus.DENIED
        return self._platform.permission()

    async def request_permission(self) -> PermissionStatus:
        """Return the consent state, prompting only when it is still unset."""

        if not self.check_support():
            LOGGER.info("Notifications are not supported on this platform")
            return PermissionStatus.DENIED

        async with self._prompt_lock:
            status = self.current_status()
            if status is PermissionStatus.GRANTED:
                LOGGER.debug("Notification permission already granted")
                return status
            if status is PermissionStatus.DENIED:
                LOGGER.info("Notification permission previously denied; not prompting again")
                return status

            LOGGER.info("Requesting notification permission")
            try:
                status = await self._platform.prompt_permission()
            except Exception:  # noqa: BLE001
                LOGGER.exception("Notification permission prompt failed")
                return PermissionStatus.DENIED
            LOGGER.info("Notification permission result: %s", status.value)
            return status
