"""Desktop platform backed by notify-send and xdg-open."""

from __future__ import annotations

import asyncio
import logging
import shutil
from typing import Awaitable, Callable
from urllib.parse import urljoin

from reminder.db import Database
from reminder.models import AppClient, Notification, PermissionStatus
from reminder.platform.base import NotificationPlatform

LOGGER = logging.getLogger(__name__)

_CONSENT_QUESTION = "Allow {app} to show a daily reading reminder? [y/N] "


async def console_prompt(question: str) -> bool:
    """Ask on stdin without blocking the event loop."""

    answer = await asyncio.to_thread(input, question)
    return answer.strip().lower() in {"y", "yes"}


class DesktopPlatform(NotificationPlatform):
    """Renders notifications through the freedesktop notify-send tool.

    Consent lives in the local database, the same way a browser keeps
    per-site notification permission outside the page.
    """

    def __init__(
        self,
        db: Database,
        app_name: str,
        app_base_url: str,
        notify_send_path: str = "notify-send",
        open_command: str = "xdg-open",
        prompt: Callable[[str], Awaitable[bool]] = console_prompt,
    ) -> None:
        self._db = db
        self._app_name = app_name
        self._app_base_url = app_base_url
        self._notify_send_path = notify_send_path
        self._open_command = open_command
        self._prompt = prompt

    def supports_notifications(self) -> bool:
        return shutil.which(self._notify_send_path) is not None

    def supports_background_agents(self) -> bool:
        return True

    def permission(self) -> PermissionStatus:
        return self._db.load_permission()

    async def prompt_permission(self) -> PermissionStatus:
        allowed = await self._prompt(_CONSENT_QUESTION.format(app=self._app_name))
        status = PermissionStatus.GRANTED if allowed else PermissionStatus.DENIED
        self._db.save_permission(status)
        return status

    async def show_notification(self, notification: Notification) -> None:
        args = [
            self._notify_send_path,
            "--app-name",
            self._app_name,
            # Both hints make notification daemons replace the previous bubble with the same tag.
            "--hint",
            f"string:x-canonical-private-synchronous:{notification.tag}",
            "--hint",
            f"string:x-dunst-stack-tag:{notification.tag}",
        ]
        if notification.icon:
            args.extend(["--icon", notification.icon])
        if notification.require_interaction:
            args.extend(["--urgency", "critical"])
        args.extend([notification.title, notification.body])

        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await process.communicate()
        if process.returncode != 0:
            raise RuntimeError(f"notify-send failed: {stderr.decode().strip()}")

    async def open_clients(self) -> list[AppClient]:
        # Browser windows are not observable from here.
        return []

    async def focus_client(self, client: AppClient) -> None:
        await self.open_window(client.url)

    async def open_window(self, route: str) -> None:
        url = urljoin(self._app_base_url, route)
        process = await asyncio.create_subprocess_exec(
            self._open_command,
            url,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await process.communicate()
        if process.returncode != 0:
            LOGGER.warning("Could not open %s: %s", url, stderr.decode().strip())
