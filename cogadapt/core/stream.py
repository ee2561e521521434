"""
Single-slot latest-value stream.

Publishing overwrites the slot; there is no queue and no backpressure.
Subscribers are called synchronously on every publish.
"""

from __future__ import annotations

from typing import Callable, Generic, List, Optional, TypeVar
from loguru import logger

T = TypeVar("T")


class LatestValue(Generic[T]):
    """Holds the most recently published value."""

    def __init__(self, initial: Optional[T] = None):
        self._value: Optional[T] = initial
        self._version = 0
        self._read_version = 0
        self._subscribers: List[Callable[[Optional[T]], None]] = []

    def publish(self, value: Optional[T]):
        self._value = value
        self._version += 1
        for callback in list(self._subscribers):
            try:
                callback(value)
            except Exception as e:
                logger.error(f"Stream subscriber failed: {e}")

    @property
    def value(self) -> Optional[T]:
        return self._value

    @property
    def version(self) -> int:
        """Number of publishes so far."""
        return self._version

    def take(self) -> Optional[T]:
        """
        Return the latest value if it has not been taken yet, else None.

        Values published between two takes are lost; only the last survives.
        """
        if self._read_version == self._version:
            return None
        self._read_version = self._version
        return self._value

    def subscribe(self, callback: Callable[[Optional[T]], None]) -> Callable[[], None]:
        """
        Register a callback.

        Returns:
            A function that removes the callback
        """
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
