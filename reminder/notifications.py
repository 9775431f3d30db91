"""Notification content and click handling shared by both delivery paths."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from reminder.config import Settings
from reminder.models import NavigationTarget, Notification, NotificationAction
from reminder.platform.base import NotificationPlatform

OPEN_ACTION = "open"
CLOSE_ACTION = "close"

LOGGER = logging.getLogger(__name__)


def build_notification(message: str | None, settings: Settings) -> Notification:
    """Build the reminder notification with the stable tag and default action."""

    body = (message or "").strip() or settings.default_message
    return Notification(
        title=settings.notification_title,
        body=body,
        tag=settings.notification_tag,
        icon=settings.icon,
        require_interaction=settings.require_interaction,
        actions=[
            NotificationAction(action=OPEN_ACTION, title="Open app"),
            NotificationAction(action=CLOSE_ACTION, title="Dismiss"),
        ],
        data={
            "url": settings.default_route,
            "created_at": datetime.now(timezone.utc).isoformat(),
        },
    )


def resolve_route(action_id: str | None, data: dict[str, Any] | None, default_route: str) -> str | None:
    """Map a click to a route; None means the click dismisses the notification."""

    if action_id == CLOSE_ACTION:
        return None
    route = (data or {}).get("url")
    return route if isinstance(route, str) and route else default_route


async def activate(
    platform: NotificationPlatform,
    action_id: str | None,
    data: dict[str, Any] | None,
    default_route: str,
) -> NavigationTarget:
    """Carry out a notification click, focusing an open window when possible."""

    route = resolve_route(action_id, data, default_route)
    if route is None:
        return NavigationTarget(kind="none")

    for client in await platform.open_clients():
        if client.url == route:
            await platform.focus_client(client)
            LOGGER.info("Focused open client %s at %s", client.client_id, route)
            return NavigationTarget(kind="focus", route=route)

    await platform.open_window(route)
    LOGGER.info("Opened new client at %s", route)
    return NavigationTarget(kind="open", route=route)
