"""Error taxonomy for notification features."""

from __future__ import annotations


class NotificationError(Exception):
    """Base class; ``user_message`` is copy suitable for the end user."""

    user_message = "Notifications are unavailable."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.user_message)


class NotificationPermissionError(NotificationError):
    """Notifications cannot be scheduled because consent is missing."""


class UnsupportedPlatformError(NotificationPermissionError):
    user_message = "This device does not support reminder notifications."


class PermissionDeniedError(NotificationPermissionError):
    user_message = "You need to allow notifications first."
    remediation = (
        "Notifications are blocked for this app. Allow them again in your system "
        "notification settings (or run `reminder permission reset`), then retry."
    )


class RegistrationError(NotificationError):
    """The background agent failed to install or activate."""

    user_message = "Background delivery is unavailable."


class DeliveryError(NotificationError):
    """No delivery path could show the notification."""

    user_message = "The notification could not be shown."
