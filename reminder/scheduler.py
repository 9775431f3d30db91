"""Recurring daily notification schedule."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone, tzinfo

from reminder.clock import Clock, Trigger, seconds_until
from reminder.db import Database
from reminder.delivery import DeliveryChannel
from reminder.errors import DeliveryError, PermissionDeniedError
from reminder.models import PermissionStatus, ScheduleDescriptor, ScheduleState, parse_time_of_day
from reminder.permissions import PermissionGate

LOGGER = logging.getLogger(__name__)


def next_fire_at(time_of_day: str, now: datetime) -> datetime:
    """Return the soonest instant strictly after ``now`` showing ``time_of_day``.

    The wall clock of ``now``'s timezone is used, so the result is today at
    that time if it has not passed yet, otherwise tomorrow. A time equal to
    the current minute counts as passed.
    """
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    at = parse_time_of_day(time_of_day)
    candidate = _wall_clock(now.date(), at, now.tzinfo)
    if seconds_until(candidate, now) <= 0:
        candidate = _wall_clock(now.date() + timedelta(days=1), at, now.tzinfo)
    return candidate


def _wall_clock(day: date, at: time, zone: tzinfo) -> datetime:
    local = datetime.combine(day, at, tzinfo=zone)
    # Round-trip through UTC so wall times inside a DST gap land on a real instant.
    return local.astimezone(timezone.utc).astimezone(zone)


class Scheduler:
    """Owns the single daily schedule and its deferred trigger.

    State machine: disabled -> arming -> armed -> firing -> armed. At most one
    trigger is live at a time; every arm cancels the previous one first.
    """

    def __init__(
        self,
        db: Database,
        channel: DeliveryChannel,
        gate: PermissionGate,
        clock: Clock,
    ) -> None:
        self._db = db
        self._channel = channel
        self._gate = gate
        self._clock = clock
        self._state = ScheduleState.DISABLED
        self._descriptor: ScheduleDescriptor | None = None
        self._trigger: Trigger | None = None
        self.last_delivery_error: DeliveryError | None = None

    @property
    def state(self) -> ScheduleState:
        return self._state

    @property
    def descriptor(self) -> ScheduleDescriptor | None:
        return self._descriptor

    @property
    def is_armed(self) -> bool:
        return self._state in (ScheduleState.ARMED, ScheduleState.FIRING) and self._descriptor is not None

    def persisted(self) -> ScheduleDescriptor | None:
        return self._db.load_schedule()

    def enable(self, time_of_day: str, message: str) -> ScheduleDescriptor:
        """Persist and arm the daily schedule.

        Raises:
            PermissionDeniedError: if notification permission is not granted.
            ValueError: if ``time_of_day`` is not ``HH:MM``.
        """
        if self._gate.current_status() is not PermissionStatus.GRANTED:
            raise PermissionDeniedError("Cannot schedule notifications without permission")
        return self._arm(time_of_day, message)

    def disable(self) -> None:
        """Cancel the trigger and forget the schedule. Safe to repeat."""

        was_scheduled = self._state is not ScheduleState.DISABLED
        self._cancel_trigger()
        self._db.delete_schedule()
        self._descriptor = None
        self._state = ScheduleState.DISABLED
        if was_scheduled:
            LOGGER.info("Daily notification disabled")

    def update_time(self, time_of_day: str) -> ScheduleDescriptor | None:
        parse_time_of_day(time_of_day)
        descriptor = self._descriptor
        if descriptor is None or not self.is_armed:
            LOGGER.debug("No schedule armed; time change not applied")
            return None
        return self._arm(time_of_day, descriptor.message)

    def update_message(self, message: str) -> ScheduleDescriptor | None:
        descriptor = self._descriptor
        if descriptor is None or not self.is_armed:
            LOGGER.debug("No schedule armed; message change not applied")
            return None
        return self._arm(descriptor.time_of_day, message)

    def restore(self, descriptor: ScheduleDescriptor) -> ScheduleDescriptor:
        """Re-arm from a persisted descriptor, ignoring its stale fire time."""

        return self._arm(descriptor.time_of_day, descriptor.message)

    def shutdown(self) -> None:
        """Drop the live trigger but keep the persisted schedule."""

        self._cancel_trigger()
        self._state = ScheduleState.DISABLED
        self._descriptor = None

    def _arm(
        self,
        time_of_day: str,
        message: str,
        after: datetime | None = None,
        strict: bool = True,
    ) -> ScheduleDescriptor:
        now = self._clock.now()
        reference = now if after is None or seconds_until(after, now) < 0 else after
        fire_at = next_fire_at(time_of_day, reference)
        descriptor = ScheduleDescriptor(
            time_of_day=time_of_day,
            message=message,
            enabled=True,
            next_fire_at=fire_at,
        )

        self._state = ScheduleState.ARMING
        self._cancel_trigger()
        try:
            self._db.save_schedule(descriptor)
        except Exception:
            if strict:
                self._state = ScheduleState.DISABLED
                self._descriptor = None
                raise
            LOGGER.exception("Could not persist notification schedule; keeping it armed in memory")
        self._descriptor = descriptor
        self._trigger = self._bind_trigger(fire_at)
        self._state = ScheduleState.ARMED
        LOGGER.info(
            "Daily notification armed for %s (in %d minutes)",
            fire_at.isoformat(),
            round(seconds_until(fire_at, now) / 60),
        )
        return descriptor

    def _cancel_trigger(self) -> None:
        if self._trigger is not None:
            self._trigger.cancel()
            self._trigger = None

    def _bind_trigger(self, fire_at: datetime) -> Trigger:
        trigger: Trigger | None = None

        async def fire() -> None:
            await self._on_trigger(trigger)

        trigger = self._clock.call_at(fire_at, fire)
        return trigger

    def _reload(self) -> ScheduleDescriptor | None:
        """Return the stored schedule, disarming when another process removed it."""

        stored = self._db.load_schedule()
        if stored is None or not stored.enabled:
            LOGGER.info("Stored notification schedule is gone; disarming")
            self._cancel_trigger()
            self._descriptor = None
            self._state = ScheduleState.DISABLED
            return None
        return stored

    async def _on_trigger(self, trigger: Trigger | None) -> None:
        descriptor = self._descriptor
        if trigger is not self._trigger or descriptor is None or self._state is not ScheduleState.ARMED:
            return

        stored = self._reload()
        if stored is None:
            return
        if stored.time_of_day != descriptor.time_of_day:
            LOGGER.info("Stored schedule moved to %s; re-arming", stored.time_of_day)
            self._arm(stored.time_of_day, stored.message, strict=False)
            return

        self._state = ScheduleState.FIRING
        fired_at = descriptor.next_fire_at
        LOGGER.info("Sending scheduled notification for %s", descriptor.time_of_day)
        try:
            await self._channel.deliver_now(stored.message)
            self.last_delivery_error = None
        except DeliveryError as exc:
            self.last_delivery_error = exc
            LOGGER.error("Scheduled notification failed: %s", exc)
        except Exception as exc:  # noqa: BLE001
            self.last_delivery_error = DeliveryError(str(exc))
            LOGGER.exception("Scheduled notification failed unexpectedly")

        # A disable or update during delivery already replaced this firing.
        if self._state is not ScheduleState.FIRING or self._descriptor is not descriptor:
            return
        stored = self._reload()
        if stored is None:
            return
        self._arm(stored.time_of_day, stored.message, after=fired_at, strict=False)
