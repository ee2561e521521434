"""
Event sources for the signal processor.

A source delivers normalized samples; it knows nothing about kinematics.
Handlers are registered as a group and removed as a group, so a
processor that stops never keeps receiving events.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union
from loguru import logger

from cogadapt.core.contracts import (
    Point,
    RawClick,
    RawScroll,
    SampleEvent,
    TargetBounds,
)


@dataclass(eq=False)
class Handlers:
    on_sample: Callable[[SampleEvent], None]
    on_click: Callable[[RawClick], None]
    on_scroll: Callable[[RawScroll], None]


class EventSource:
    """Base event source with symmetric subscription."""

    available: bool = True

    def __init__(self):
        self._handlers: List[Handlers] = []

    def subscribe(
        self,
        on_sample: Callable[[SampleEvent], None],
        on_click: Callable[[RawClick], None],
        on_scroll: Callable[[RawScroll], None],
    ) -> Callable[[], None]:
        """
        Register a handler group.

        Returns:
            A function that removes exactly this group
        """
        handlers = Handlers(on_sample, on_click, on_scroll)
        self._handlers.append(handlers)

        def unsubscribe():
            if handlers in self._handlers:
                self._handlers.remove(handlers)

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._handlers)

    def _emit_sample(self, event: SampleEvent):
        for handlers in list(self._handlers):
            handlers.on_sample(event)

    def _emit_click(self, event: RawClick):
        for handlers in list(self._handlers):
            handlers.on_click(event)

    def _emit_scroll(self, event: RawScroll):
        for handlers in list(self._handlers):
            handlers.on_scroll(event)


class ManualEventSource(EventSource):
    """Source driven by explicit calls, e.g. from a UI toolkit's callbacks."""

    def move(self, x: float, y: float, timestamp: float, pressure: float = 0.5):
        self._emit_sample(SampleEvent(Point(x, y), timestamp, pressure))

    def click(
        self,
        x: float,
        y: float,
        timestamp: float,
        target: Optional[TargetBounds] = None,
    ):
        self._emit_click(RawClick(Point(x, y), target, timestamp))

    def wheel(self, delta_x: float, delta_y: float, timestamp: float):
        self._emit_scroll(RawScroll(delta_x, delta_y, timestamp))


class NullEventSource(EventSource):
    """Stand-in for an environment without capture APIs."""

    available = False


class RecordedEventSource(EventSource):
    """
    Replays a recorded session from a JSON-lines file.

    Each line is one event:
        {"type": "move", "x": 10, "y": 20, "t": 1050.0, "pressure": 0.5}
        {"type": "click", "x": 10, "y": 20, "t": 1100.0,
         "target": {"left": 0, "top": 0, "width": 40, "height": 20}}
        {"type": "scroll", "dx": 0, "dy": 120, "t": 1200.0}

    Malformed lines are skipped with a warning.
    """

    def __init__(self, path: Union[str, Path]):
        super().__init__()
        self.path = Path(path)
        self._events: List[Union[SampleEvent, RawClick, RawScroll]] = []
        self.skipped_lines = 0
        self._load()

    def _load(self):
        with open(self.path) as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    self._events.append(self._parse(json.loads(line)))
                except (ValueError, KeyError, TypeError) as e:
                    self.skipped_lines += 1
                    logger.warning(f"{self.path}:{line_number}: skipping malformed event ({e})")

        logger.info(f"Loaded {len(self._events)} events from {self.path}")

    @staticmethod
    def _parse(record: Dict) -> Union[SampleEvent, RawClick, RawScroll]:
        kind = record["type"]
        timestamp = float(record["t"])

        if kind == "move":
            return SampleEvent(
                Point(float(record["x"]), float(record["y"])),
                timestamp,
                float(record.get("pressure", 0.5)),
            )
        if kind == "click":
            target = record.get("target")
            bounds = None
            if target is not None:
                bounds = TargetBounds(
                    float(target["left"]),
                    float(target["top"]),
                    float(target["width"]),
                    float(target["height"]),
                )
            return RawClick(Point(float(record["x"]), float(record["y"])), bounds, timestamp)
        if kind == "scroll":
            return RawScroll(float(record.get("dx", 0.0)), float(record.get("dy", 0.0)), timestamp)

        raise ValueError(f"unknown event type {kind!r}")

    def __len__(self) -> int:
        return len(self._events)

    def play(self) -> int:
        """
        Deliver every recorded event to the current subscribers.

        Returns:
            Number of events delivered
        """
        for event in self._events:
            if isinstance(event, SampleEvent):
                self._emit_sample(event)
            elif isinstance(event, RawClick):
                self._emit_click(event)
            else:
                self._emit_scroll(event)
        return len(self._events)
