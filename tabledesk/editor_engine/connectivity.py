"""
Connectivity monitor.

Tracks ONLINE / OFFLINE / DEGRADED from two independent sources:
- network events reported by the host (``handle_network_offline`` /
  ``handle_network_online``)
- a recurring liveness probe against the remote service

Signals are applied in the order they resolve. Network-down is authoritative:
probe or save results that arrive while the network is reported down are
ignored, so the state always matches the last event that could change it.
Probe failures and timeouts only lower confidence; they never raise.
"""

import asyncio
from datetime import datetime
from typing import Awaitable, Callable, Optional

import structlog

from tabledesk.editor_engine.events import ConnectivityChanged, EventBus, SessionEvent
from tabledesk.editor_engine.models import ConnectivityState, ConnectivityStatus
from tabledesk.services.notification_service import (
    CONNECTION_WARNING,
    OFFLINE_NOTICE,
    ONLINE_NOTICE,
    NotificationCenter,
    NotificationPriority,
)

logger = structlog.get_logger(__name__)

ProbeFn = Callable[[], Awaitable[bool]]
FlushFn = Callable[[], Awaitable[bool]]

DEFAULT_PROBE_INTERVAL = 30.0
DEFAULT_PROBE_TIMEOUT = 3.0


class SystemClock:
    """Wall clock and event-loop sleep."""

    def now(self) -> datetime:
        return datetime.utcnow()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class ConnectivityMonitor:
    """
    Connection state machine for an editing session.

    Transitions:
        network offline              -> OFFLINE (submit disabled)
        network online, nothing due  -> ONLINE
        network online, unsaved work -> DEGRADED, flush, then ONLINE on success
        probe failure while ONLINE   -> DEGRADED
        probe success while DEGRADED -> ONLINE
    """

    def __init__(
        self,
        probe: ProbeFn,
        clock: Optional[SystemClock] = None,
        events: Optional[EventBus] = None,
        notifications: Optional[NotificationCenter] = None,
        probe_interval: float = DEFAULT_PROBE_INTERVAL,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
        network_online: bool = True,
    ):
        self._probe = probe
        self._clock = clock or SystemClock()
        self._events = events or EventBus()
        self._notifications = notifications or NotificationCenter()
        self.probe_interval = probe_interval
        self.probe_timeout = probe_timeout

        self._network_online = network_online
        self._state = ConnectivityState.ONLINE if network_online else ConnectivityState.OFFLINE
        self._submit_enabled = network_online
        self._last_known_good: Optional[datetime] = self._clock.now() if network_online else None
        self._task: Optional[asyncio.Task] = None

        # Wired by the owning session
        self.has_pending: Callable[[], bool] = lambda: False
        self.flush_pending: Optional[FlushFn] = None

    # ---------- state ----------
    @property
    def state(self) -> ConnectivityState:
        return self._state

    @property
    def status(self) -> ConnectivityStatus:
        return ConnectivityStatus(
            state=self._state,
            last_known_good=self._last_known_good,
            submit_enabled=self._submit_enabled,
        )

    @property
    def network_online(self) -> bool:
        return self._network_online

    @property
    def is_offline(self) -> bool:
        return self._state == ConnectivityState.OFFLINE

    @property
    def submit_enabled(self) -> bool:
        return self._submit_enabled

    # ---------- network events ----------
    def handle_network_offline(self) -> None:
        """The host reports the network is down."""
        self._network_online = False
        self._transition(ConnectivityState.OFFLINE, source="network_event", submit_enabled=False)
        self._notifications.error(
            OFFLINE_NOTICE,
            "You're offline. Don't refresh the page or you may lose unsaved changes. "
            "We'll save when the connection returns.",
            priority=NotificationPriority.HIGH,
            sticky=True,
        )

    async def handle_network_online(self) -> bool:
        """
        The host reports the network is back.

        Returns:
            False if pending changes could not be saved, True otherwise.
        """
        self._network_online = True
        self._submit_enabled = True
        self._notifications.dismiss(OFFLINE_NOTICE)

        if not self.has_pending() or self.flush_pending is None:
            self._transition(ConnectivityState.ONLINE, source="network_event", submit_enabled=True)
            self._notifications.success(ONLINE_NOTICE, "You're back online! Your changes will now be saved.")
            return True

        # Not confirmed until the pending save reaches the remote store
        self._transition(ConnectivityState.DEGRADED, source="network_event", submit_enabled=True)
        try:
            saved = bool(await self.flush_pending())
        except Exception as e:
            logger.error("reconnect_flush_failed", error=str(e), error_type=type(e).__name__)
            saved = False

        if saved:
            self.report_remote_success()
            if self._state == ConnectivityState.ONLINE:
                self._notifications.success(ONLINE_NOTICE, "You're back online! Your changes have been saved.")
        elif self._network_online:
            self.report_remote_failure()
            self._notifications.warning(
                CONNECTION_WARNING,
                "Server connection lost. Changes will be saved locally until connection returns.",
                duration_seconds=5,
            )
        return saved

    # ---------- remote call outcomes ----------
    def report_remote_success(self) -> None:
        if not self._network_online:
            return
        self._last_known_good = self._clock.now()
        if self._state != ConnectivityState.ONLINE:
            self._transition(ConnectivityState.ONLINE, source="remote_call")

    def report_remote_failure(self) -> None:
        if not self._network_online:
            return
        if self._state == ConnectivityState.ONLINE:
            self._transition(ConnectivityState.DEGRADED, source="remote_call")

    # ---------- liveness probe ----------
    async def probe_once(self) -> Optional[bool]:
        """
        Run one bounded liveness probe.

        Returns:
            The probe outcome, or None when skipped because the network is down.
        """
        if not self._network_online:
            return None

        try:
            healthy = bool(await asyncio.wait_for(self._probe(), timeout=self.probe_timeout))
        except asyncio.TimeoutError:
            logger.info("liveness_probe_timeout", timeout=self.probe_timeout)
            healthy = False
        except Exception as e:
            logger.info("liveness_probe_failed", error=str(e), error_type=type(e).__name__)
            healthy = False

        self._apply_probe_result(healthy)
        return healthy

    def _apply_probe_result(self, healthy: bool) -> None:
        if not self._network_online:
            logger.debug("liveness_probe_ignored", healthy=healthy)
            return

        if healthy:
            self._last_known_good = self._clock.now()
            if self._state == ConnectivityState.DEGRADED:
                self._transition(ConnectivityState.ONLINE, source="probe")
            return

        if self._state == ConnectivityState.ONLINE:
            self._transition(ConnectivityState.DEGRADED, source="probe")
            self._notifications.warning(
                CONNECTION_WARNING,
                "Connection to server is unstable. Your changes will be backed up locally.",
                duration_seconds=5,
            )

    def start(self) -> None:
        """Schedule the recurring probe on the running event loop."""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.get_running_loop().create_task(self._probe_loop())
        logger.debug("liveness_probe_started", interval=self.probe_interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _probe_loop(self) -> None:
        while True:
            await self._clock.sleep(self.probe_interval)
            if self._network_online:
                await self.probe_once()

    # ---------- transitions ----------
    def _transition(
        self,
        state: ConnectivityState,
        source: str,
        submit_enabled: Optional[bool] = None,
    ) -> None:
        previous = self.status
        self._state = state
        if submit_enabled is not None:
            self._submit_enabled = submit_enabled
        current = self.status

        if previous.state == current.state and previous.submit_enabled == current.submit_enabled:
            return

        # Banners always describe the current state
        if current.state == ConnectivityState.ONLINE:
            self._notifications.dismiss(CONNECTION_WARNING)
        else:
            self._notifications.dismiss(ONLINE_NOTICE)

        logger.info(
            "connectivity_changed",
            previous=previous.state.value,
            current=current.state.value,
            source=source,
        )
        self._events.emit(
            SessionEvent.CONNECTIVITY_CHANGED,
            ConnectivityChanged(previous=previous, current=current, source=source),
        )
