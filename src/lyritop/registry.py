"""Map playing tracks to lyric files and cache their parsed timelines.

Mapping files are JSON arrays of ``{"title": ..., "artists": ..., "path": ...}``
objects. A track is identified by ``title + artists`` exactly as the player
reports them.
"""
from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path

from lyritop.config import LYRIC_FILES, ConfigManager
from lyritop.exceptions import LyricFileError, MappingFileError
from lyritop.logging_config import get_logger
from lyritop.lyrics import LyricCursor, Timeline, parse_lrc

logger = get_logger('registry')


def track_key(title: str, artists: str) -> str:
    """Build the lookup key of a track. No normalisation is applied."""
    return title + artists


@dataclass
class CacheEntry:
    timeline: Timeline
    cursor: LyricCursor


@dataclass
class RegistryState:
    """Mapping and cache built together by one reload."""

    mapping: dict[str, str] = field(default_factory=dict)
    cache: dict[str, CacheEntry] = field(default_factory=dict)


def load_mapping_file(path: str | Path) -> list[dict]:
    """Read one mapping file.

    Args:
        path: Path of the JSON mapping file.

    Returns:
        The decoded JSON array.

    Raises:
        MappingFileError: If the file is unreadable, not JSON, or not an array.
    """
    path = Path(path).expanduser()
    try:
        with open(path, encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise MappingFileError(str(path), f"invalid JSON: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise MappingFileError(str(path), str(e)) from e

    if not isinstance(data, list):
        raise MappingFileError(str(path), "expected a JSON array of mappings")
    return data


def read_lyric_file(path: str) -> Timeline:
    """Read and parse a lyric file.

    Raises:
        LyricFileError: If the file cannot be read.
    """
    try:
        text = Path(path).read_text(encoding='utf-8', errors='replace')
    except OSError as e:
        raise LyricFileError(path, str(e)) from e
    return parse_lrc(text)


def _resolve_lyric_path(lyric_path: str, mapping_file: Path) -> str:
    resolved = Path(lyric_path).expanduser()
    if not resolved.is_absolute():
        resolved = mapping_file.expanduser().parent / resolved
    return str(resolved)


class LyricSourceRegistry:
    """Owns the track-to-lyric mapping and the cache of parsed timelines.

    Each cached timeline has exactly one cursor. The whole state is replaced
    in one assignment on reload, so a lookup never sees a partial mapping.
    """

    def __init__(self) -> None:
        self._state = RegistryState()
        self._subscriptions = ExitStack()

    # -- lifecycle -----------------------------------------------------------

    def enable(self, config: ConfigManager, extra_files: Sequence[str] = ()) -> None:
        """Load the configured mapping files and follow changes to them.

        Args:
            config: Configuration source providing ``lyric_files``.
            extra_files: Mapping files loaded after the configured ones.
        """
        extra = list(extra_files)

        def on_files_changed(key: str, files: list[str]) -> None:
            logger.info("Lyric mapping files changed, reloading")
            self.reload([*files, *extra])

        self._subscriptions.enter_context(config.connect(LYRIC_FILES, on_files_changed))
        self.reload([*config.get(LYRIC_FILES, []), *extra])

    def disable(self) -> None:
        """Release the config subscription and drop mapping and cache."""
        self._subscriptions.close()
        self._state = RegistryState()

    # -- operations ----------------------------------------------------------

    def reload(self, mapping_files: Iterable[str | Path]) -> None:
        """Rebuild the mapping from scratch and clear the lyric cache.

        Files are applied in order; a later file overrides an earlier one for
        the same track. Unloadable files and malformed records are skipped.
        """
        state = RegistryState()

        for mapping_file in mapping_files:
            mapping_file = Path(mapping_file)
            try:
                records = load_mapping_file(mapping_file)
            except MappingFileError as e:
                logger.warning(str(e))
                continue

            loaded = 0
            for index, record in enumerate(records):
                if not isinstance(record, dict):
                    logger.warning(f"{mapping_file}: entry {index} is not an object, skipped")
                    continue
                title = record.get('title')
                lyric_path = record.get('path')
                artists = record.get('artists') or ''
                if not title or not lyric_path:
                    logger.warning(f"{mapping_file}: entry {index} lacks 'title' or 'path', skipped")
                    continue
                if not all(isinstance(v, str) for v in (title, lyric_path, artists)):
                    logger.warning(f"{mapping_file}: entry {index} has non-string fields, skipped")
                    continue
                state.mapping[track_key(title, artists)] = _resolve_lyric_path(lyric_path, mapping_file)
                loaded += 1

            logger.debug(f"Loaded {loaded} mappings from {mapping_file}")

        self._state = state
        logger.debug(f"Registry holds {len(state.mapping)} tracks")

    def get_lyric(self, key: str, position_us: int) -> str | None:
        """Return the lyric line showing at *position_us* for a track.

        Returns ``None`` when the track has no mapping, its lyric file cannot
        be loaded, or the position is before the first line.
        """
        if not key:
            return None

        state = self._state
        lyric_path = state.mapping.get(key)
        if lyric_path is None:
            return None

        entry = state.cache.get(lyric_path)
        if entry is None:
            try:
                timeline = read_lyric_file(lyric_path)
            except LyricFileError as e:
                logger.warning(str(e))
                # Remember the failure so the next tick does not retry
                state.cache[lyric_path] = CacheEntry((), LyricCursor(()))
                return None
            logger.debug(f"Parsed {len(timeline)} lines from {lyric_path}")
            entry = CacheEntry(timeline, LyricCursor(timeline))
            state.cache[lyric_path] = entry

        return entry.cursor.lookup(position_us)

    # -- introspection -------------------------------------------------------

    def lyric_path(self, key: str) -> str | None:
        return self._state.mapping.get(key)

    def is_cached(self, lyric_path: str) -> bool:
        return lyric_path in self._state.cache

    def __len__(self) -> int:
        return len(self._state.mapping)
