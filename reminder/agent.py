"""Background delivery agent and its registrar.

The agent is a long-lived worker that owns its own asyncio event loop on a
daemon thread. The foreground talks to it only by posting small tagged
messages (``{"type": "DELIVER", "message": ...}``), fire-and-forget.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import contextlib
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Callable

from reminder.config import Settings
from reminder.errors import RegistrationError
from reminder.models import AgentMessageType, AgentState, NavigationTarget, PermissionStatus
from reminder.notifications import activate, build_notification
from reminder.platform.base import NotificationPlatform

LOGGER = logging.getLogger(__name__)


class BackgroundAgent:
    """Delivery worker with an independent event loop."""

    def __init__(self, platform: NotificationPlatform, settings: Settings) -> None:
        self.agent_id = uuid.uuid4().hex
        self.scope = settings.agent_scope
        self.script_version = settings.agent_script_version
        self.state = AgentState.INSTALLING
        self.failed_deliveries = 0
        self._platform = platform
        self._settings = settings
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._activated = threading.Event()
        self._stop_requested = threading.Event()
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def is_active(self) -> bool:
        return (
            self.state is AgentState.ACTIVATED
            and self._thread is not None
            and self._thread.is_alive()
        )

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._run,
            name=f"reminder-agent-{self.agent_id[:8]}",
            daemon=True,
        )
        self._thread.start()

    def wait_activated(self, timeout: float) -> bool:
        """Block until the agent is activated; False on timeout."""
        return self._activated.wait(timeout)

    def _run(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        try:
            if self._stop_requested.is_set():
                return
            self.state = AgentState.INSTALLED
            self.state = AgentState.ACTIVATING
            loop.call_soon(self._activate)
            loop.run_forever()
        finally:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            loop.close()
            self.state = AgentState.REDUNDANT

    def _activate(self) -> None:
        self.state = AgentState.ACTIVATED
        self._activated.set()
        LOGGER.info("Background agent %s activated for scope %s", self.agent_id, self.scope)

    def post_message(self, message: dict[str, Any]) -> None:
        """Queue a message on the agent loop without waiting for it."""

        loop = self._loop
        if loop is None or not self.is_active:
            raise RegistrationError(f"Background agent {self.agent_id} is not active")
        loop.call_soon_threadsafe(self._dispatch, dict(message))

    def request(self, message: dict[str, Any]) -> concurrent.futures.Future[Any]:
        """Send a message and get a future for the agent's answer."""

        loop = self._loop
        if loop is None or not self.is_active:
            raise RegistrationError(f"Background agent {self.agent_id} is not active")
        return asyncio.run_coroutine_threadsafe(self._handle_message(dict(message)), loop)

    def click(self, action_id: str | None, data: dict[str, Any] | None) -> concurrent.futures.Future[NavigationTarget]:
        loop = self._loop
        if loop is None or not self.is_active:
            raise RegistrationError(f"Background agent {self.agent_id} is not active")
        return asyncio.run_coroutine_threadsafe(
            activate(self._platform, action_id, data, self._settings.default_route),
            loop,
        )

    def _dispatch(self, message: dict[str, Any]) -> None:
        task = asyncio.get_running_loop().create_task(self._handle_message(message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _handle_message(self, message: dict[str, Any]) -> PermissionStatus | None:
        kind = message.get("type")
        if kind == AgentMessageType.DELIVER.value:
            await self._deliver(message.get("message"))
            return None
        if kind == AgentMessageType.QUERY_PERMISSION.value:
            status = self._platform.permission()
            LOGGER.debug("Background agent sees permission %s", status.value)
            return status
        LOGGER.warning("Background agent ignoring message type %r", kind)
        return None

    async def _deliver(self, text: Any) -> None:
        notification = build_notification(text if isinstance(text, str) else None, self._settings)
        try:
            await self._platform.show_notification(notification)
        except Exception:  # noqa: BLE001
            self.failed_deliveries += 1
            LOGGER.exception("Background agent %s failed to show notification", self.agent_id)
            return
        LOGGER.info("Background agent %s showed notification %r", self.agent_id, notification.tag)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_requested.set()
        self.state = AgentState.REDUNDANT
        loop = self._loop
        if loop is not None:
            with contextlib.suppress(RuntimeError):
                # The loop may already be closed.
                loop.call_soon_threadsafe(loop.stop)
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)


@dataclass(frozen=True, slots=True)
class AgentHandle:
    """Process-lifetime reference to an active agent registration."""

    agent: BackgroundAgent

    @property
    def agent_id(self) -> str:
        return self.agent.agent_id

    def is_alive(self) -> bool:
        return self.agent.is_active

    def post(self, message: dict[str, Any]) -> None:
        self.agent.post_message(message)

    def request(self, message: dict[str, Any]) -> concurrent.futures.Future[Any]:
        return self.agent.request(message)

    def click(self, action_id: str | None, data: dict[str, Any] | None) -> concurrent.futures.Future[NavigationTarget]:
        return self.agent.click(action_id, data)


class AgentHost:
    """Registrations per scope, shared by every registrar of one origin."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._registrations: dict[str, list[BackgroundAgent]] = {}

    def registrations(self, scope: str) -> list[BackgroundAgent]:
        with self._lock:
            return list(self._registrations.get(scope, []))

    def install(self, agent: BackgroundAgent) -> None:
        with self._lock:
            self._registrations.setdefault(agent.scope, []).append(agent)
        agent.start()

    def unregister(self, agent: BackgroundAgent) -> None:
        with self._lock:
            agents = self._registrations.get(agent.scope, [])
            if agent in agents:
                agents.remove(agent)
        agent.stop()


AgentFactory = Callable[[NotificationPlatform, Settings], BackgroundAgent]


class AgentRegistrar:
    """Installs the background agent and keeps the only handle to it."""

    def __init__(
        self,
        platform: NotificationPlatform,
        host: AgentHost,
        settings: Settings,
        agent_factory: AgentFactory = BackgroundAgent,
    ) -> None:
        self._platform = platform
        self._host = host
        self._settings = settings
        self._agent_factory = agent_factory
        self._handle: AgentHandle | None = None
        self._lock = asyncio.Lock()

    @property
    def handle(self) -> AgentHandle | None:
        if self._handle is not None and self._handle.is_alive():
            return self._handle
        return None

    async def register(self) -> AgentHandle | None:
        """Return a live agent handle, or None when only direct delivery is possible."""

        if not self._platform.supports_background_agents():
            LOGGER.info("Background agents are not supported; using direct delivery")
            return None

        async with self._lock:
            if self.handle is not None:
                return self._handle
            try:
                self._handle = await self._install()
            except RegistrationError as exc:
                LOGGER.warning("%s; using direct delivery", exc)
                self._handle = None
            except Exception:  # noqa: BLE001
                LOGGER.exception("Background agent registration failed; using direct delivery")
                self._handle = None
            return self._handle

    async def _install(self) -> AgentHandle:
        scope = self._settings.agent_scope
        version = self._settings.agent_script_version

        for existing in self._host.registrations(scope):
            if existing.script_version == version and existing.is_active:
                LOGGER.info("Reusing background agent %s", existing.agent_id)
                return AgentHandle(existing)
            LOGGER.info(
                "Unregistering stale background agent %s (%s)",
                existing.agent_id,
                existing.script_version,
            )
            await asyncio.to_thread(self._host.unregister, existing)

        agent = self._agent_factory(self._platform, self._settings)
        self._host.install(agent)
        timeout = self._settings.agent_activation_timeout_seconds
        activated = await asyncio.to_thread(agent.wait_activated, timeout)
        if not activated:
            await asyncio.to_thread(self._host.unregister, agent)
            raise RegistrationError(f"Background agent did not activate within {timeout}s")
        return AgentHandle(agent)

    async def unregister(self) -> None:
        """Stop every agent registered for this scope."""

        async with self._lock:
            for agent in self._host.registrations(self._settings.agent_scope):
                await asyncio.to_thread(self._host.unregister, agent)
            self._handle = None
