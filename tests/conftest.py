"""Test configuration and fixtures.

Provides reusable fixtures for:
- Temporary files and directories
- Lyric files and mapping files
- An in-memory media provider whose position queries the test answers
"""

import asyncio
import json
import tempfile
from pathlib import Path
from typing import Dict, List, Tuple

import pytest

from lyritop.config import ConfigManager
from lyritop.exceptions import PositionUnavailable
from lyritop.media import MediaProvider, MediaSource, PlayerStatus, TrackState


SAMPLE_LRC = """[ti:Sample]
[ar:Tester]
[00:00.00]first
[00:01.00]second
[00:02.00]third  third translated
"""


# =============================================================================
# Basic Fixtures
# =============================================================================


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def lrc_file(temp_dir):
    """A small lyric file with three timed lines."""
    path = temp_dir / "sample.lrc"
    path.write_text(SAMPLE_LRC, encoding="utf-8")
    return path


def write_mapping(path: Path, entries: List[Dict]) -> Path:
    path.write_text(json.dumps(entries), encoding="utf-8")
    return path


@pytest.fixture
def mapping_file(temp_dir, lrc_file):
    """A mapping file pointing "SongArtist" at the sample lyric file."""
    return write_mapping(
        temp_dir / "mapping.json",
        [{"title": "Song", "artists": "Artist", "path": str(lrc_file)}],
    )


@pytest.fixture
def config(mapping_file, temp_dir):
    """In-memory configuration using the sample mapping file."""
    return ConfigManager(
        config={"lyric_files": [str(mapping_file)], "update_interval": 1000},
        config_path=temp_dir / "config.json",
    )


# =============================================================================
# Media provider double
# =============================================================================


def make_source(name: str, status: PlayerStatus = PlayerStatus.OTHER,
                title: str = "Song", artists: str = "Artist",
                duration_us: int = 0) -> MediaSource:
    return MediaSource(name, TrackState(status, title, artists, duration_us))


def set_status(source: MediaSource, status: PlayerStatus) -> None:
    state = source.state
    source.update(TrackState(status, state.title, state.artists, state.duration_us))


class FakeProvider(MediaProvider):
    """Provider whose position queries stay pending until the test answers."""

    def __init__(self, sources=()):
        super().__init__()
        self._sources: List[MediaSource] = list(sources)
        self.requests: List[Tuple[MediaSource, asyncio.Future]] = []
        self.refreshes = 0

    @property
    def sources(self):
        return list(self._sources)

    def add(self, source: MediaSource) -> None:
        self._sources.append(source)
        self.source_added.emit(source)

    def remove(self, source: MediaSource) -> None:
        self._sources.remove(source)
        self.source_removed.emit(source)

    async def refresh(self) -> None:
        self.refreshes += 1

    async def fetch_position(self, source):
        future = asyncio.get_running_loop().create_future()
        self.requests.append((source, future))
        return await future

    def answer(self, index: int, position: int) -> None:
        self.requests[index][1].set_result(position)

    def fail(self, index: int) -> None:
        self.requests[index][1].set_exception(PositionUnavailable("gone"))


async def settle(rounds: int = 5) -> None:
    """Let pending tasks and callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)
