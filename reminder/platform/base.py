"""Notification platform interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from reminder.models import AppClient, Notification, PermissionStatus


class NotificationPlatform(ABC):
    """Host capabilities the notification subsystem depends on.

    The platform owns the real permission state; nothing in the subsystem
    writes it except through ``prompt_permission``.
    """

    @abstractmethod
    def supports_notifications(self) -> bool:
        """Whether notifications can be rendered at all."""

    @abstractmethod
    def supports_background_agents(self) -> bool:
        """Whether a long-lived background agent can be hosted."""

    @abstractmethod
    def permission(self) -> PermissionStatus:
        """Read the current consent state without prompting."""

    @abstractmethod
    async def prompt_permission(self) -> PermissionStatus:
        """Show the consent prompt and return the user's decision."""

    @abstractmethod
    async def show_notification(self, notification: Notification) -> None:
        """Render a notification, replacing any visible one with the same tag."""

    @abstractmethod
    async def open_clients(self) -> list[AppClient]:
        """Return currently open app windows."""

    @abstractmethod
    async def focus_client(self, client: AppClient) -> None:
        """Bring an open app window to the foreground."""

    @abstractmethod
    async def open_window(self, route: str) -> None:
        """Open the app at ``route`` in a new window."""
