"""Lightweight signals with scoped subscription handles.

Every ``connect`` returns a :class:`Subscription`. Closing it (directly, by
leaving a ``with`` block, or through a :class:`contextlib.ExitStack` the
owner closes on teardown) detaches the callback; closing twice is harmless.
"""
from __future__ import annotations

from collections.abc import Callable
from typing import Any

from lyritop.logging_config import get_logger

logger = get_logger('signals')


class Subscription:
    """Handle for one connected callback."""

    def __init__(self, signal: Signal, callback: Callable[..., Any]) -> None:
        self._signal: Signal | None = signal
        self.callback = callback

    @property
    def active(self) -> bool:
        return self._signal is not None

    def close(self) -> None:
        if self._signal is not None:
            self._signal._detach(self)
            self._signal = None

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class Signal:
    """A named notification with any number of subscribers.

    Subscribers run synchronously in connection order. An exception raised by
    one subscriber is logged and does not prevent the others from running.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._subscriptions: list[Subscription] = []

    def connect(self, callback: Callable[..., Any]) -> Subscription:
        subscription = Subscription(self, callback)
        self._subscriptions.append(subscription)
        return subscription

    def emit(self, *args: Any) -> None:
        # Snapshot: callbacks may connect or close subscriptions while we iterate
        for subscription in list(self._subscriptions):
            if not subscription.active:
                continue
            try:
                subscription.callback(*args)
            except Exception:
                logger.exception(f"Subscriber of '{self.name}' failed")

    def __len__(self) -> int:
        return len(self._subscriptions)

    def _detach(self, subscription: Subscription) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass
