"""Decide which media source drives the display.

Selection is recomputed from scratch on every trigger: the first playing
source wins, then the first paused one, otherwise nothing is shown. "First"
means first discovered; sources present at startup are discovered in the
provider's enumeration order.
"""
from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import ExitStack
from dataclasses import dataclass

from lyritop.config import (
    LYRIC_ADVANCE_MS,
    ONLY_SHOW_TRANSLATION,
    UPDATE_INTERVAL,
    ConfigManager,
)
from lyritop.display import compose_text
from lyritop.exceptions import ProviderError
from lyritop.logging_config import get_logger
from lyritop.media import MediaProvider, MediaSource, PlayerStatus
from lyritop.poller import PositionPoller, PositionRequest
from lyritop.registry import LyricSourceRegistry
from lyritop.signals import Subscription

logger = get_logger('arbiter')

DisplaySink = Callable[[str], None]


@dataclass
class PlayerRecord:
    source: MediaSource
    subscription: Subscription
    last_known_status: PlayerStatus

    def release(self) -> None:
        self.subscription.close()


class PlaybackArbiter:
    """Tracks known media sources and shows the lyric of the selected one."""

    def __init__(
        self,
        provider: MediaProvider,
        registry: LyricSourceRegistry,
        sink: DisplaySink,
        config: ConfigManager,
    ) -> None:
        self._provider = provider
        self._registry = registry
        self._sink = sink
        self._config = config
        # dict keeps insertion order, which is the discovery order
        self._records: dict[MediaSource, PlayerRecord] = {}
        self._subscriptions = ExitStack()
        self._selected: MediaSource | None = None
        self._shown: str | None = None
        self._refreshing: asyncio.Task | None = None
        self.poller = PositionPoller(
            provider,
            on_tick=self.on_tick,
            interval_ms=config.get(UPDATE_INTERVAL),
            is_current=self.is_current,
        )

    @property
    def selected(self) -> MediaSource | None:
        return self._selected

    @property
    def records(self) -> list[PlayerRecord]:
        return list(self._records.values())

    # -- lifecycle -----------------------------------------------------------

    def enable(self) -> None:
        """Subscribe to the provider, adopt current sources and start polling.

        Must be called from within a running event loop.
        """
        stack = self._subscriptions
        stack.enter_context(self._provider.source_added.connect(self._add_source))
        stack.enter_context(self._provider.source_removed.connect(self._remove_source))
        stack.enter_context(self._config.connect(UPDATE_INTERVAL, self._on_interval_changed))

        for source in self._provider.sources:
            self._add_source(source, evaluate=False)

        self.poller.start()
        self.evaluate()

    def disable(self) -> None:
        """Stop polling and release every subscription."""
        self.poller.shutdown()
        self._refreshing = None
        self._subscriptions.close()
        for record in self._records.values():
            record.release()
        self._records.clear()
        self._selected = None
        self._show("")

    # -- triggers ------------------------------------------------------------

    def on_tick(self) -> None:
        if self._refreshing is not None and not self._refreshing.done():
            # Previous sweep still running; go on with what is known
            self.evaluate()
            return
        self._refreshing = self.poller.spawn(self._refresh_and_evaluate())

    async def _refresh_and_evaluate(self) -> None:
        try:
            await self._provider.refresh()
        except ProviderError as e:
            logger.warning(f"Cannot refresh media sources: {e}")
        except Exception:
            logger.exception("Refreshing media sources failed")
        self.evaluate()

    def _add_source(self, source: MediaSource, evaluate: bool = True) -> None:
        if source in self._records:
            return
        subscription = source.changed.connect(self._on_source_changed)
        self._records[source] = PlayerRecord(source, subscription, source.status)
        logger.debug(f"Tracking {source.name}")
        if evaluate:
            self.evaluate()

    def _remove_source(self, source: MediaSource) -> None:
        record = self._records.pop(source, None)
        if record is None:
            return
        record.release()
        logger.debug(f"Stopped tracking {source.name}")
        self.evaluate()

    def _on_source_changed(self, source: MediaSource) -> None:
        record = self._records.get(source)
        if record is not None:
            record.last_known_status = source.status
        self.evaluate()

    def _on_interval_changed(self, key: str, interval_ms: int) -> None:
        self.poller.set_interval(interval_ms)

    # -- selection -----------------------------------------------------------

    def select(self) -> MediaSource | None:
        """Pick the source to display: first playing, else first paused."""
        for record in self._records.values():
            record.last_known_status = record.source.status

        for wanted in (PlayerStatus.PLAYING, PlayerStatus.PAUSED):
            for record in self._records.values():
                if record.last_known_status is wanted:
                    return record.source
        return None

    def evaluate(self) -> None:
        """Re-run selection and, if a ready source is selected, query it."""
        source = self.select()
        if source is not self._selected:
            logger.debug(f"Selected source: {source.name if source else 'none'}")
        self._selected = source

        if source is None:
            self._show("")
            return

        # An empty title or artist means the player has not loaded the track yet
        if not source.title or not source.artists:
            return

        self.poller.request_position(source, self._apply_position)

    def is_current(self, request: PositionRequest) -> bool:
        """Whether a position response still describes what is selected."""
        source = request.source
        return (
            source is self._selected
            and source in self._records
            and source.status is request.status
            and source.title == request.title
            and source.artists == request.artists
        )

    # -- display -------------------------------------------------------------

    def _apply_position(self, request: PositionRequest, position_us: int | None) -> None:
        if position_us is None:
            self._show(request.title)
            return

        advance_us = self._config.get(LYRIC_ADVANCE_MS) * 1000
        lyric = self._registry.get_lyric(request.key, position_us + advance_us)
        self._show(compose_text(
            request.title,
            lyric,
            position_us=position_us,
            duration_us=request.duration_us,
            only_translation=self._config.get(ONLY_SHOW_TRANSLATION),
        ))

    def _show(self, text: str) -> None:
        if text == self._shown:
            return
        self._shown = text
        self._sink(text)
