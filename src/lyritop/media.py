"""Media sources as the rest of lyritop sees them, independent of transport."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, auto

from lyritop.signals import Signal


class PlayerStatus(Enum):
    PLAYING = auto()
    PAUSED = auto()
    OTHER = auto()  # stopped, no track, or anything a player invents


@dataclass(frozen=True)
class TrackState:
    """What a media source currently reports."""

    status: PlayerStatus = PlayerStatus.OTHER
    title: str = ""
    artists: str = ""
    duration_us: int = 0  # 0 when unknown


class MediaSource:
    """One media player known to a provider.

    ``changed`` is emitted with the source whenever its state changes.
    """

    def __init__(self, name: str, state: TrackState | None = None) -> None:
        self.name = name
        self.state = state or TrackState()
        self.changed = Signal(f'{name}::changed')

    @property
    def status(self) -> PlayerStatus:
        return self.state.status

    @property
    def title(self) -> str:
        return self.state.title

    @property
    def artists(self) -> str:
        return self.state.artists

    @property
    def duration_us(self) -> int:
        return self.state.duration_us

    def update(self, state: TrackState) -> bool:
        """Store a new state, emitting ``changed`` if it differs."""
        if state == self.state:
            return False
        self.state = state
        self.changed.emit(self)
        return True

    def __repr__(self) -> str:
        return f"<MediaSource {self.name} {self.status.name}>"


class MediaProvider(ABC):
    """Enumerates media sources and fetches their playback position.

    Subclasses emit ``source_added`` / ``source_removed`` with the affected
    :class:`MediaSource` and keep ``sources`` in enumeration order.
    """

    def __init__(self) -> None:
        self.source_added = Signal('source-added')
        self.source_removed = Signal('source-removed')

    @property
    @abstractmethod
    def sources(self) -> list[MediaSource]:
        """Currently active sources, in enumeration order."""

    @abstractmethod
    async def fetch_position(self, source: MediaSource) -> int:
        """Return the playback position of *source* in microseconds.

        Raises:
            PositionUnavailable: If the position cannot be read.
        """

    async def refresh(self) -> None:
        """Re-read source state. Awaited on every poll tick.

        Signals are emitted on the event loop. Providers that are notified
        by their transport leave this a no-op.
        """

    def close(self) -> None:
        """Release transport resources."""
