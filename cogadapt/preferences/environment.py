"""
System environment signals.

Python analogue of the browser's accessibility media queries
(prefers-color-scheme, prefers-contrast, prefers-reduced-motion).
Platform integrations flip the signals; the preference store listens.
"""

from __future__ import annotations

from typing import Callable, Dict, List
from loguru import logger


class EnvironmentSignal:
    """A boolean system signal with change listeners."""

    def __init__(self, name: str, matches: bool = False):
        self.name = name
        self._matches = matches
        self._listeners: List[Callable[[EnvironmentSignal], None]] = []

    @property
    def matches(self) -> bool:
        return self._matches

    def set(self, matches: bool):
        if matches == self._matches:
            return
        self._matches = matches
        logger.debug(f"Environment signal {self.name} -> {matches}")
        for listener in list(self._listeners):
            listener(self)

    def add_listener(self, listener: Callable[[EnvironmentSignal], None]):
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[EnvironmentSignal], None]):
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


class EnvironmentMonitor:
    """The three accessibility signals the preference store synchronizes with."""

    def __init__(
        self,
        dark_mode: bool = False,
        high_contrast: bool = False,
        reduced_motion: bool = False,
    ):
        self.dark_mode = EnvironmentSignal("dark_mode", dark_mode)
        self.high_contrast = EnvironmentSignal("high_contrast", high_contrast)
        self.reduced_motion = EnvironmentSignal("reduced_motion", reduced_motion)

    @property
    def signals(self) -> Dict[str, EnvironmentSignal]:
        return {
            "dark_mode": self.dark_mode,
            "high_contrast": self.high_contrast,
            "reduced_motion": self.reduced_motion,
        }

    def add_listener(self, listener: Callable[[EnvironmentSignal], None]) -> Callable[[], None]:
        """
        Listen to every signal.

        Returns:
            A function that removes the listener from every signal
        """
        for signal in self.signals.values():
            signal.add_listener(listener)

        def remove():
            for signal in self.signals.values():
                signal.remove_listener(listener)

        return remove
