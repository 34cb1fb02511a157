"""Connectivity tracking for client controllers."""

import asyncio
from collections.abc import Callable

from loguru import logger

from livebroker.utils.app_errors import AppError, AppErrorCode

from .gateway_client import GatewayClient
from .scheduler import Scheduler, TimerHandle

NetworkListener = Callable[["NetworkMonitor"], None]


class NetworkMonitor:
    """Tracks online/offline transitions.

    Coming back online after more than `offline_threshold` seconds offline
    opens a `reconnect_window` during which `is_reconnecting` is True.
    Controllers use it to hold back error banners while connections recover.
    The signal is advisory.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        *,
        online: bool = True,
        offline_threshold: float = 5.0,
        reconnect_window: float = 3.0,
    ) -> None:
        self._scheduler = scheduler
        self.offline_threshold = offline_threshold
        self.reconnect_window = reconnect_window

        self.is_online = online
        self.is_reconnecting = False
        self.reconnect_attempts = 0
        self.last_disconnected: float | None = None

        self._window: TimerHandle | None = None
        self._listeners: list[NetworkListener] = []

    def add_listener(self, listener: NetworkListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: NetworkListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def set_offline(self) -> None:
        if not self.is_online:
            return
        self.is_online = False
        self.last_disconnected = self._scheduler.now()
        logger.warning("Network offline")
        self._notify()

    def set_online(self) -> None:
        if self.is_online:
            return
        self.is_online = True
        self.is_reconnecting = False
        self.reconnect_attempts = 0

        offline_for = (
            self._scheduler.now() - self.last_disconnected
            if self.last_disconnected is not None
            else 0.0
        )
        logger.info(f"Network online after {offline_for:.1f}s")

        if offline_for > self.offline_threshold:
            self.start_reconnecting()
            if self._window is not None:
                self._window.cancel()
            self._window = self._scheduler.call_later(self.reconnect_window, self.stop_reconnecting)
        self._notify()

    def start_reconnecting(self) -> None:
        self.is_reconnecting = True
        self.reconnect_attempts += 1

    def stop_reconnecting(self) -> None:
        self._window = None
        if self.is_reconnecting:
            self.is_reconnecting = False
            self._notify()


class ConnectivityChecker:
    """Polls the gateway's health endpoint and feeds a NetworkMonitor."""

    def __init__(self, client: GatewayClient, monitor: NetworkMonitor, interval: float = 5.0):
        self.client = client
        self.monitor = monitor
        self.interval = interval
        self._task: asyncio.Task | None = None

    async def check(self) -> bool:
        """Check once. Returns True when the gateway answered."""
        try:
            await self.client.health()
        except AppError as e:
            if e.errcode in (AppErrorCode.E_NETWORK_ERROR, AppErrorCode.E_TIMEOUT):
                self.monitor.set_offline()
                return False
            # The gateway answered, even if with an error
            logger.warning(f"Health check returned {e.errcode}: {e.errmesg}")
        self.monitor.set_online()
        return True

    async def _run(self) -> None:
        while True:
            await self.check()
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
