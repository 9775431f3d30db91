"""Process-start restore of the background agent and daily schedule."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from reminder.agent import AgentHandle, AgentRegistrar
from reminder.models import PermissionStatus, ScheduleDescriptor
from reminder.permissions import PermissionGate
from reminder.scheduler import Scheduler

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class BootstrapState:
    """Per-process restore guard; share one instance between entry points."""

    restored: bool = False
    agent: AgentHandle | None = None


async def bootstrap(
    state: BootstrapState,
    registrar: AgentRegistrar,
    scheduler: Scheduler,
    gate: PermissionGate,
) -> ScheduleDescriptor | None:
    """Register the agent and re-arm a persisted schedule, at most once."""

    if state.restored:
        LOGGER.debug("Notifications already restored in this process")
        return scheduler.descriptor
    # Set before awaiting so a concurrent entry point cannot arm a second trigger.
    state.restored = True

    state.agent = await registrar.register()
    if state.agent is None:
        LOGGER.info("No background agent; notifications will be delivered directly")

    descriptor = scheduler.persisted()
    if descriptor is None or not descriptor.enabled:
        LOGGER.info("No scheduled notifications to restore")
        return None

    permission = gate.current_status()
    if permission is not PermissionStatus.GRANTED:
        LOGGER.info("Not restoring notifications: permission is %s", permission.value)
        return None

    restored = scheduler.restore(descriptor)
    LOGGER.info("Scheduled notifications restored")
    return restored
