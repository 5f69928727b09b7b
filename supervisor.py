# supervisor.py

"""
Idle reset for the dashboard.

A watcher is armed for the two surfaces of one channel. Clicks on either
surface push its deadline back; when the deadline passes untouched the
supervisor puts the panel back on Home and arms a fresh watcher.
"""

import asyncio
from enum import Enum
from typing import Awaitable, Callable, Optional, Tuple

from loguru import logger

from codec import is_panel_token


class WatcherState(str, Enum):
    ARMED = "armed"
    STOPPED = "stopped"


class StopReason(str, Enum):
    IDLE = "idle"
    SUPERSEDED = "superseded"
    SHUTDOWN = "shutdown"


class IdleWatcher:
    """One cancellable idle timer scoped to a fixed pair of message ids."""

    def __init__(
        self,
        idle_seconds: float,
        surface_ids: Tuple[Optional[int], Optional[int]],
        on_end: Callable[["IdleWatcher", StopReason], Awaitable[None]],
    ):
        self.idle_seconds = idle_seconds
        self.surface_ids = tuple(i for i in surface_ids if i is not None)
        self.state = WatcherState.STOPPED
        self.stop_reason: Optional[StopReason] = None
        self._on_end = on_end
        self._deadline = 0.0
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        loop = asyncio.get_running_loop()
        self._deadline = loop.time() + self.idle_seconds
        self.state = WatcherState.ARMED
        self._task = loop.create_task(self._run(), name="panel-idle-watcher")

    def matches(self, message_id: Optional[int], custom_id: Optional[str]) -> bool:
        return message_id in self.surface_ids and is_panel_token(custom_id)

    def reset(self) -> None:
        if self.state is WatcherState.ARMED:
            self._deadline = asyncio.get_running_loop().time() + self.idle_seconds

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            while True:
                remaining = self._deadline - loop.time()
                if remaining <= 0:
                    break
                await asyncio.sleep(remaining)
        except asyncio.CancelledError:
            return
        self.state = WatcherState.STOPPED
        self.stop_reason = StopReason.IDLE
        await self._on_end(self, StopReason.IDLE)

    async def stop(self, reason: StopReason) -> None:
        """Stops the timer without firing. Safe to call more than once."""
        if self.state is WatcherState.STOPPED:
            return
        self.state = WatcherState.STOPPED
        self.stop_reason = reason
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._on_end(self, reason)


class InactivitySupervisor:
    """
    Owns the single watcher of one panel.

    `on_timeout` is awaited when the panel sat idle; whatever it raises is
    logged and a new watcher is armed anyway.
    """

    def __init__(
        self,
        idle_seconds: float,
        surfaces: Callable[[], Tuple[Optional[int], Optional[int]]],
        on_timeout: Callable[[], Awaitable[None]],
    ):
        self.idle_seconds = idle_seconds
        self._surfaces = surfaces
        self._on_timeout = on_timeout
        self.watcher: Optional[IdleWatcher] = None
        self.resets = 0
        self._closed = False

    @property
    def state(self) -> WatcherState:
        if self.watcher is None:
            return WatcherState.STOPPED
        return self.watcher.state

    async def install(self) -> IdleWatcher:
        """Stops the current watcher (if any) and arms a new one."""
        self._closed = False
        previous, self.watcher = self.watcher, None
        if previous is not None:
            await previous.stop(StopReason.SUPERSEDED)
        return self._arm()

    def _arm(self) -> IdleWatcher:
        watcher = IdleWatcher(self.idle_seconds, self._surfaces(), self._handle_end)
        self.watcher = watcher
        watcher.start()
        logger.debug(f"Idle watcher armed for {watcher.surface_ids} ({self.idle_seconds}s)")
        return watcher

    def touch(self, message_id: Optional[int], custom_id: Optional[str]) -> bool:
        """Pushes the deadline back if the click targets one of our surfaces."""
        watcher = self.watcher
        if watcher is None or not watcher.matches(message_id, custom_id):
            return False
        watcher.reset()
        return True

    async def shutdown(self) -> None:
        self._closed = True
        previous, self.watcher = self.watcher, None
        if previous is not None:
            await previous.stop(StopReason.SHUTDOWN)

    async def _handle_end(self, watcher: IdleWatcher, reason: StopReason) -> None:
        if reason is not StopReason.IDLE:
            logger.debug(f"Idle watcher stopped: {reason.value}")
            return
        if watcher is not self.watcher:
            return
        self.watcher = None
        logger.info("Panel idle, resetting to Home")
        try:
            await self._on_timeout()
            self.resets += 1
        except Exception as e:
            logger.error(f"Idle refresh failed: {e}", exc_info=True)
        finally:
            # install() may already have armed a replacement meanwhile
            if self.watcher is None and not self._closed:
                self._arm()
