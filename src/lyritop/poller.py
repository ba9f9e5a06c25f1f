"""Periodic re-evaluation and guarded asynchronous position queries.

Position responses may arrive after the player they were asked of has paused,
changed track, or lost the selection to another player. Each request carries
a snapshot of what justified it; a response whose snapshot no longer matches
the current selection is dropped instead of being shown.
"""
from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any

from lyritop.exceptions import ProviderError
from lyritop.logging_config import get_logger
from lyritop.media import MediaProvider, MediaSource, PlayerStatus
from lyritop.registry import track_key

logger = get_logger('poller')


@dataclass(frozen=True)
class PositionRequest:
    """Snapshot of a source taken when its position was requested."""

    source: MediaSource
    status: PlayerStatus
    title: str
    artists: str
    duration_us: int

    @classmethod
    def capture(cls, source: MediaSource) -> PositionRequest:
        return cls(
            source=source,
            status=source.status,
            title=source.title,
            artists=source.artists,
            duration_us=source.duration_us,
        )

    @property
    def key(self) -> str:
        return track_key(self.title, self.artists)


# Completion callback: the request and the position (None when unknown)
ResultHandler = Callable[[PositionRequest, "int | None"], None]
# Guard: is the request still relevant right now?
Guard = Callable[[PositionRequest], bool]


class PositionPoller:
    """Recurring timer plus the in-flight position queries it leads to."""

    def __init__(
        self,
        provider: MediaProvider,
        on_tick: Callable[[], None],
        interval_ms: int,
        is_current: Guard,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._provider = provider
        self._on_tick = on_tick
        self._is_current = is_current
        self._loop = loop
        self.interval_ms = interval_ms
        self._handle: asyncio.TimerHandle | None = None
        self._pending: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        """Start ticking. No-op if already running."""
        if self._handle is not None:
            return
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        self._schedule()
        logger.debug(f"Polling every {self.interval_ms} ms")

    def stop(self) -> None:
        """Stop ticking.

        The pending timer handle is cancelled, so no tick runs after this
        returns. Queries already in flight are left to their guard.
        """
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def shutdown(self) -> None:
        """Stop ticking and cancel every in-flight task."""
        self.stop()
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()

    def set_interval(self, interval_ms: int) -> None:
        """Change the interval, restarting the timer if it is running."""
        self.interval_ms = interval_ms
        if self.running:
            self.stop()
            self.start()

    def _schedule(self) -> None:
        self._handle = self._loop.call_later(self.interval_ms / 1000, self._tick)

    def _tick(self) -> None:
        # Reschedule first so a failing tick does not end the loop
        self._schedule()
        try:
            self._on_tick()
        except Exception:
            logger.exception("Poll tick failed")

    def spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        """Run *coro* as a task that ``shutdown`` cancels."""
        loop = self._loop or asyncio.get_running_loop()
        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    # -- position queries ----------------------------------------------------

    def request_position(self, source: MediaSource, on_result: ResultHandler) -> asyncio.Task:
        """Ask *source* for its position without waiting for the answer.

        *on_result* runs on the event loop once the answer arrives, and only
        if the guard still accepts the request.
        """
        request = PositionRequest.capture(source)
        return self.spawn(self._fetch(request, on_result))

    async def _fetch(self, request: PositionRequest, on_result: ResultHandler) -> None:
        position: int | None
        try:
            position = await self._provider.fetch_position(request.source)
        except ProviderError as e:
            logger.warning(f"Cannot fetch position of {request.source.name}: {e}")
            position = None
        except Exception as e:
            logger.warning(f"Unexpected error fetching position of {request.source.name}: {e!r}")
            position = None

        if not self._is_current(request):
            logger.debug(f"Discarding stale position response from {request.source.name}")
            return
        try:
            on_result(request, position)
        except Exception:
            logger.exception(f"Applying position of {request.source.name} failed")
