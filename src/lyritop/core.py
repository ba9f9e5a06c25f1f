"""lyritop core orchestrator.

Wires configuration, the lyric registry, a media provider and a display sink
together and runs them on an asyncio event loop.
"""
from __future__ import annotations

import asyncio
from collections.abc import Sequence

from lyritop.arbiter import DisplaySink, PlaybackArbiter
from lyritop.config import ConfigManager
from lyritop.exceptions import ProviderError
from lyritop.logging_config import get_logger
from lyritop.media import MediaProvider
from lyritop.registry import LyricSourceRegistry

logger = get_logger('core')

# How often the config file is checked for edits, in seconds
CONFIG_POLL_INTERVAL = 1.0


class LyriTop:
    """Main lyritop orchestrator.

    ``enable`` and ``disable`` bracket the lifetime of every subscription,
    timer and cache; ``run`` does both around an endless config watch.
    """

    def __init__(
        self,
        config: ConfigManager,
        provider: MediaProvider,
        sink: DisplaySink,
        extra_lyric_files: Sequence[str] = (),
    ) -> None:
        """Initialize lyritop.

        Args:
            config: Configuration source.
            provider: Media-source provider to follow.
            sink: Callable receiving the text to display ('' clears).
            extra_lyric_files: Mapping files loaded after the configured ones.
        """
        self.config = config
        self.provider = provider
        self.registry = LyricSourceRegistry()
        self.arbiter = PlaybackArbiter(provider, self.registry, sink, config)
        self._extra_lyric_files = list(extra_lyric_files)
        self.enabled = False

    async def enable(self) -> None:
        """Load lyric mappings and start following players."""
        if self.enabled:
            return
        self.registry.enable(self.config, self._extra_lyric_files)
        logger.debug(f"Loaded lyric mappings for {len(self.registry)} tracks")
        # Discover players before the arbiter adopts them
        try:
            await self.provider.refresh()
        except ProviderError as e:
            logger.warning(f"Cannot discover media sources: {e}")
        self.arbiter.enable()
        self.enabled = True

    def disable(self) -> None:
        if not self.enabled:
            return
        self.arbiter.disable()
        self.registry.disable()
        self.enabled = False

    async def run(self) -> None:
        """Run until cancelled, re-reading the config file when it changes."""
        await self.enable()
        try:
            while True:
                await asyncio.sleep(CONFIG_POLL_INTERVAL)
                self.config.poll()
        finally:
            self.disable()
