"""Detect media players via the MPRIS2 D-Bus interface."""

from __future__ import annotations

import asyncio
import re
import threading
from concurrent.futures import ThreadPoolExecutor

import dbus

from lyritop.exceptions import PositionUnavailable, ProviderError
from lyritop.logging_config import get_logger
from lyritop.media import MediaProvider, MediaSource, PlayerStatus, TrackState

logger = get_logger('mpris')

MPRIS_PREFIX = "org.mpris.MediaPlayer2."
MPRIS_PATH = "/org/mpris/MediaPlayer2"
PLAYER_IFACE = "org.mpris.MediaPlayer2.Player"
PROPS_IFACE = "org.freedesktop.DBus.Properties"

_STATUSES = {
    "Playing": PlayerStatus.PLAYING,
    "Paused": PlayerStatus.PAUSED,
}


def _get_bus(private: bool = False) -> dbus.SessionBus:
    return dbus.SessionBus(private=private)


def list_players() -> list[str]:
    """Return a list of running MPRIS2 player bus names."""
    bus = _get_bus()
    names: list[str] = bus.list_names()
    return [str(n) for n in names if n.startswith(MPRIS_PREFIX)]


def friendly_name(bus_name: str) -> str:
    """Extract the human-friendly player name from the bus name."""
    name = bus_name.removeprefix(MPRIS_PREFIX)
    # Remove instance suffix like '.instance12345'
    name = re.sub(r"\.instance\d+$", "", name)
    return name.capitalize()


def _join_artists(value) -> str:
    if isinstance(value, (list, tuple, dbus.Array)):
        return ", ".join(str(a) for a in value)
    return str(value) if value else ""


def _query_state(bus: dbus.SessionBus, bus_name: str) -> TrackState:
    proxy = bus.get_object(bus_name, MPRIS_PATH)
    props = dbus.Interface(proxy, PROPS_IFACE)

    metadata = props.Get(PLAYER_IFACE, "Metadata")
    status = str(props.Get(PLAYER_IFACE, "PlaybackStatus"))

    return TrackState(
        status=_STATUSES.get(status, PlayerStatus.OTHER),
        title=str(metadata.get("xesam:title", "")),
        artists=_join_artists(metadata.get("xesam:artist", [])),
        duration_us=int(metadata.get("mpris:length", 0)),
    )


class MprisProvider(MediaProvider):
    """Media sources backed by MPRIS2 players on the session bus.

    Without a D-Bus main loop there are no signals to listen to, so player
    appearance, disappearance and state changes are detected in ``refresh``
    by diffing against the previous snapshot. Every blocking D-Bus call runs
    on a single worker thread that owns a private bus connection. Signals are
    emitted back on the event loop.
    """

    def __init__(self) -> None:
        super().__init__()
        self._sources: dict[str, MediaSource] = {}
        self._local = threading.local()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='lyritop-dbus')
        self._closed = False
        # Connect now so a missing session bus fails here, not on the first tick
        try:
            self._executor.submit(self._worker_bus).result()
        except dbus.DBusException:
            self._executor.shutdown(wait=False)
            raise

    @property
    def sources(self) -> list[MediaSource]:
        return list(self._sources.values())

    def _worker_bus(self) -> dbus.SessionBus:
        bus = getattr(self._local, 'bus', None)
        if bus is None:
            bus = _get_bus(private=True)
            self._local.bus = bus
        return bus

    def _scan(self) -> dict[str, TrackState] | None:
        """Read the state of every player. Runs on the worker thread.

        Returns None when the player list itself cannot be read.
        """
        bus = self._worker_bus()
        try:
            names = [str(n) for n in bus.list_names() if n.startswith(MPRIS_PREFIX)]
        except dbus.DBusException as e:
            logger.warning(f"Cannot list MPRIS players: {e}")
            return None

        states: dict[str, TrackState] = {}
        for bus_name in names:
            try:
                states[bus_name] = _query_state(bus, bus_name)
            except (dbus.DBusException, TypeError, ValueError) as e:
                # Player is exiting, lacks the Player interface or sends odd metadata
                logger.debug(f"Cannot query {bus_name}: {e}")
                states[bus_name] = TrackState()
        return states

    async def refresh(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            states = await loop.run_in_executor(self._executor, self._scan)
        except RuntimeError as e:
            # Executor already shut down during teardown
            raise ProviderError(str(e)) from e
        if states is None or self._closed:
            return
        self._apply(states)

    def _apply(self, states: dict[str, TrackState]) -> None:
        for bus_name in list(self._sources):
            if bus_name not in states:
                source = self._sources.pop(bus_name)
                logger.debug(f"Player vanished: {bus_name}")
                self.source_removed.emit(source)

        for bus_name, state in states.items():
            source = self._sources.get(bus_name)
            if source is None:
                source = MediaSource(bus_name, state)
                self._sources[bus_name] = source
                logger.debug(f"Player appeared: {bus_name}")
                self.source_added.emit(source)
            else:
                source.update(state)

    def _read_position(self, bus_name: str) -> int:
        proxy = self._worker_bus().get_object(bus_name, MPRIS_PATH)
        props = dbus.Interface(proxy, PROPS_IFACE)
        return int(props.Get(PLAYER_IFACE, "Position"))

    async def fetch_position(self, source: MediaSource) -> int:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(self._executor, self._read_position, source.name)
        except dbus.DBusException as e:
            raise PositionUnavailable(f"{friendly_name(source.name)}: {e}") from e
        except (TypeError, ValueError) as e:
            raise PositionUnavailable(f"{friendly_name(source.name)}: bad Position value: {e}") from e
        except RuntimeError as e:
            raise ProviderError(str(e)) from e

    def close(self) -> None:
        self._closed = True
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._sources.clear()
