"""Typed publish/subscribe channels."""

from __future__ import annotations

import logging
from typing import Callable, Generic, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Subscriber = Callable[[T], None]


class Channel(Generic[T]):
    """
    One topic, one payload type.

    Subscribers are called synchronously in subscription order. A subscriber
    that raises is logged and skipped; delivery to the rest continues.
    """

    def __init__(self, name: str = "channel"):
        self.name = name
        self._subscribers: List[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback``; the returned function unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, payload: T) -> None:
        for callback in list(self._subscribers):
            try:
                callback(payload)
            except Exception:
                logger.exception(f"Subscriber {callback!r} on {self.name} failed")

    def __len__(self) -> int:
        return len(self._subscribers)


__all__ = ["Channel", "Subscriber"]
