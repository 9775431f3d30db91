"""Application entrypoint."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from reminder.config import load_settings
from reminder.db import Database
from reminder.errors import DeliveryError, NotificationPermissionError, PermissionDeniedError
from reminder.models import PermissionStatus
from reminder.platform.desktop import DesktopPlatform
from reminder.service import NotificationService, create_service

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="reminder", description="Daily reading reminder notifications")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Restore the schedule and keep delivering reminders")

    enable = sub.add_parser("enable", help="Enable the daily reminder at TIME (HH:MM)")
    enable.add_argument("time")
    enable.add_argument("--message", default=None)

    sub.add_parser("disable", help="Disable the daily reminder")

    set_time = sub.add_parser("set-time", help="Move the daily reminder to TIME (HH:MM)")
    set_time.add_argument("time")

    set_message = sub.add_parser("set-message", help="Change the reminder text")
    set_message.add_argument("message")

    test = sub.add_parser("test", help="Send a test notification now")
    test.add_argument("--message", default=None)

    sub.add_parser("status", help="Show permission and schedule status")

    click = sub.add_parser("click", help="Act on a delivered notification")
    click.add_argument("action", nargs="?", default="open")
    click.add_argument("--route", default=None)

    permission = sub.add_parser("permission", help="Change the stored notification consent")
    permission.add_argument("decision", choices=["grant", "deny", "reset"])
    return parser


async def _serve(service: NotificationService) -> None:
    descriptor = await service.start()
    if descriptor is None:
        LOGGER.info("Nothing scheduled yet; run `reminder enable HH:MM` and restart")
    await asyncio.Event().wait()


async def run(args: argparse.Namespace) -> int:
    """Initialize app layers and run one command."""

    settings = load_settings()

    db = Database(settings.database_path)
    db.initialize()

    if args.command == "permission":
        if args.decision == "reset":
            db.clear_permission()
        else:
            db.save_permission(PermissionStatus.GRANTED if args.decision == "grant" else PermissionStatus.DENIED)
        print(f"Notification permission: {db.load_permission().value}")
        return 0

    platform = DesktopPlatform(
        db,
        app_name=settings.app_name,
        app_base_url=settings.app_base_url,
        notify_send_path=settings.notify_send_path,
        open_command=settings.open_command,
    )
    service = create_service(settings, platform, db)

    try:
        if args.command == "serve":
            await _serve(service)
            return 0

        await service.start()
        if args.command == "enable":
            descriptor = await service.enable_notifications(args.time, args.message)
            print(f"Daily reminder set for {descriptor.time_of_day}; next at {descriptor.next_fire_at.isoformat()}")
        elif args.command == "disable":
            service.disable_notifications()
            print("Daily reminder disabled")
        elif args.command == "set-time":
            descriptor = service.update_notification_time(args.time)
            print(f"Next reminder at {descriptor.next_fire_at.isoformat()}" if descriptor else "No reminder is enabled")
        elif args.command == "set-message":
            descriptor = service.update_notification_message(args.message)
            print("Reminder text updated" if descriptor else "No reminder is enabled")
        elif args.command == "test":
            await service.send_test_notification(args.message)
            print("Test notification sent")
        elif args.command == "status":
            status = service.get_notification_status()
            print(f"supported:   {status.supported}")
            print(f"permission:  {status.permission.value}")
            print(f"scheduled:   {status.scheduled}")
            if status.next_fire_at is not None:
                print(f"next fire:   {status.next_fire_at.isoformat()}")
            print(f"background:  {'agent' if status.agent_active else 'direct'}")
        elif args.command == "click":
            data = {"url": args.route} if args.route else None
            target = await service.handle_notification_click(args.action, data)
            print(f"{target.kind} {target.route or ''}".strip())
    except PermissionDeniedError as exc:
        print(f"{exc.user_message}\n{exc.remediation}", file=sys.stderr)
        return 1
    except NotificationPermissionError as exc:
        print(exc.user_message, file=sys.stderr)
        return 1
    except DeliveryError as exc:
        print(f"{exc.user_message} ({exc})", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    finally:
        await service.shutdown()
    return 0


def main(argv: list[str] | None = None) -> None:
    """Synchronous wrapper for asyncio entrypoint."""

    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    try:
        code = asyncio.run(run(args))
    except KeyboardInterrupt:
        LOGGER.info("Interrupted")
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
