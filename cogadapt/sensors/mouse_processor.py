"""
Mouse Signal Processor.

Turns raw pointer, click and wheel events into kinematic samples and
windowed behavior metrics (speed, smoothness, tremor, accuracy, dwell,
hesitation).

Guarantees:
- The kinematic window never exceeds its capacity (oldest evicted first)
- Bounded metrics are always within [0, 1]
- Hesitations are only counted against a prior sample
- Every event handler runs to completion synchronously
"""

from __future__ import annotations

import time
from collections import Counter
from typing import Callable, List, Optional, Tuple
import numpy as np
from loguru import logger

from cogadapt.capture.event_source import EventSource
from cogadapt.core.contracts import (
    ClickEvent,
    KinematicSample,
    MouseMetrics,
    RawClick,
    RawScroll,
    SampleEvent,
    ScrollDirection,
    ScrollEvent,
    ScrollSummary,
    TrackerConfig,
)
from cogadapt.core.errors import ConfigurationError
from cogadapt.core.ring_buffer import RingBuffer
from cogadapt.core.stream import LatestValue
from cogadapt.sensors import kinematics


def _now_ms() -> float:
    return time.time() * 1000.0


class MouseSignalProcessor:
    """
    Ingests pointer telemetry and publishes mouse metrics.

    Samples are throttled to one per sampling interval. A sample that
    arrives inside the current interval is held as pending and replaced
    by any later one. When a sample arrives at or after the interval
    boundary, the pending sample is processed first and the new one is
    then throttled against it. ``stop()`` flushes a pending sample so
    the trailing edge is not lost.

    Timestamps must not move backwards relative to the last valid
    sample, pending or accepted.

    Metrics are published on a single-slot stream after every accepted
    sample or click. Readers only ever see the latest value.
    """

    def __init__(
        self,
        config: Optional[TrackerConfig] = None,
        source: Optional[EventSource] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the processor.

        Args:
            config: Tracker configuration (uses defaults if None)
            source: Event source to subscribe to on start(); if None,
                events are fed by calling the on_* handlers directly
            clock: Millisecond clock, used for the session start time
        """
        self.config = config or TrackerConfig()
        problems = self.config.validate()
        if problems:
            raise ConfigurationError("; ".join(problems))

        self._source = source
        self._clock = clock or _now_ms

        self._window: RingBuffer[KinematicSample] = RingBuffer(self.config.window_capacity)
        self._clicks: RingBuffer[ClickEvent] = RingBuffer(self.config.click_history_capacity)
        self._scrolls: RingBuffer[ScrollEvent] = RingBuffer(self.config.scroll_history_capacity)

        self._hesitation_count = 0
        self._is_tracking = False
        self._session_start: Optional[float] = None

        # Throttle state
        self._last_accepted_time: Optional[float] = None
        self._last_seen_time: Optional[float] = None
        self._pending: Optional[SampleEvent] = None

        self._last_scroll_time: Optional[float] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

        self._metrics = LatestValue[MouseMetrics]()

        self.dropped_samples = 0

    # ------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------

    def start(self) -> bool:
        """
        Start a tracking session.

        Idempotent while tracking. Clears the window, the click and
        scroll histories and the hesitation counter.

        Returns:
            True if tracking is active, False if capture is unavailable
        """
        if self._is_tracking:
            return True

        if self._source is not None and not self._source.available:
            logger.warning("Capture source unavailable, mouse tracking disabled")
            return False

        self._clear_session()
        self._session_start = self._clock()
        self._is_tracking = True

        if self._source is not None:
            self._unsubscribe = self._source.subscribe(
                self.on_sample, self.on_click, self.on_scroll
            )

        logger.info("Mouse tracking started")
        return True

    def stop(self):
        """
        Stop tracking and publish final metrics.

        The window stays inspectable until the next start() or reset().
        """
        self._detach()

        if self._is_tracking and self._pending is not None:
            pending, self._pending = self._pending, None
            self._accept(pending)

        self._is_tracking = False
        self._metrics.publish(self.metrics())
        logger.info(
            f"Mouse tracking stopped: {len(self._window)} samples, "
            f"{len(self._clicks)} clicks, {self._hesitation_count} hesitations"
        )

    def reset(self):
        """Clear all accumulated state including the published metrics."""
        self._clear_session()
        self._metrics.publish(None)
        logger.debug("Mouse signal processor reset")

    def _detach(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _clear_session(self):
        self._window.clear()
        self._clicks.clear()
        self._scrolls.clear()
        self._hesitation_count = 0
        self._last_accepted_time = None
        self._last_seen_time = None
        self._pending = None
        self._last_scroll_time = None

    # ------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------

    def on_sample(self, event: SampleEvent):
        """Handle a pointer-move sample."""
        if not self._is_tracking:
            return

        is_valid, reason = self._validate_sample(event)
        if not is_valid:
            self.dropped_samples += 1
            logger.debug(f"Dropped sample: {reason}")
            return

        self._last_seen_time = event.timestamp

        # The interval closed: its most recent sample is processed first
        if self._pending is not None and self._interval_elapsed(event):
            pending, self._pending = self._pending, None
            self._accept(pending)

        if self._interval_elapsed(event):
            self._accept(event)
        else:
            self._pending = event

    def on_click(self, event: RawClick):
        """Handle a click on a target."""
        if not self._is_tracking:
            return

        if not (np.isfinite(event.position.x) and np.isfinite(event.position.y)
                and np.isfinite(event.timestamp)):
            logger.debug("Dropped click with non-finite coordinates")
            return

        last = self._window.last()
        reaction_time = max(0.0, event.timestamp - last.timestamp) if last else 0.0

        click = ClickEvent(
            position=event.position,
            target_bounds=event.target_bounds,
            accuracy=kinematics.click_accuracy(event.position, event.target_bounds),
            timestamp=event.timestamp,
            reaction_time=reaction_time,
        )
        self._clicks.append(click)
        self._metrics.publish(self.metrics())

    def on_scroll(self, event: RawScroll):
        """Handle a wheel event."""
        if not self._is_tracking:
            return

        if not all(np.isfinite(v) for v in (event.delta_x, event.delta_y, event.timestamp)):
            logger.debug("Dropped scroll with non-finite deltas")
            return

        distance = abs(event.delta_x) + abs(event.delta_y)

        speed = distance
        if self._last_scroll_time is not None:
            dt = event.timestamp - self._last_scroll_time
            if dt > 0:
                speed = distance / dt
        self._last_scroll_time = event.timestamp

        self._scrolls.append(ScrollEvent(
            direction=self._scroll_direction(event),
            distance=distance,
            speed=speed,
            timestamp=event.timestamp,
        ))

    # ------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------

    def _interval_elapsed(self, event: SampleEvent) -> bool:
        return (
            self._last_accepted_time is None
            or event.timestamp - self._last_accepted_time >= self.config.sample_rate_ms
        )

    def _accept(self, event: SampleEvent):
        previous = self._window.last()

        if previous is not None:
            if event.timestamp - previous.timestamp > self.config.hesitation_threshold_ms:
                self._hesitation_count += 1

        self._window.append(kinematics.derive_sample(event, previous))
        self._last_accepted_time = event.timestamp
        self._metrics.publish(self.metrics())

    def _validate_sample(self, event: SampleEvent) -> Tuple[bool, Optional[str]]:
        """
        Validate a raw sample.

        Returns:
            Tuple of (is_valid, rejection_reason)
        """
        x, y = event.position.x, event.position.y

        if not (np.isfinite(x) and np.isfinite(y)):
            return (False, f"non-finite coordinates ({x}, {y})")
        if not np.isfinite(event.timestamp):
            return (False, f"non-finite timestamp {event.timestamp}")
        if x < 0 or y < 0:
            return (False, f"negative coordinates ({x}, {y})")

        width = self.config.viewport_width
        height = self.config.viewport_height
        if (width is not None and x > width) or (height is not None and y > height):
            return (False, f"coordinates ({x}, {y}) outside viewport")

        if not (np.isfinite(event.pressure) and 0.0 <= event.pressure <= 1.0):
            return (False, f"pressure {event.pressure} outside [0, 1]")

        if self._last_seen_time is not None and event.timestamp < self._last_seen_time:
            return (False, f"timestamp {event.timestamp} moves backwards")

        return (True, None)

    @staticmethod
    def _scroll_direction(event: RawScroll) -> ScrollDirection:
        # Ties resolve to vertical
        if abs(event.delta_y) >= abs(event.delta_x):
            return ScrollDirection.DOWN if event.delta_y > 0 else ScrollDirection.UP
        return ScrollDirection.RIGHT if event.delta_x > 0 else ScrollDirection.LEFT

    # ------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------

    def metrics(self) -> MouseMetrics:
        """Compute metrics from the current window and click history."""
        window = self._window.to_list()
        return MouseMetrics(
            average_speed=kinematics.average_speed(window),
            smoothness=kinematics.smoothness(window),
            accuracy=kinematics.mean_click_accuracy(self._clicks.to_list()),
            hesitation_count=self._hesitation_count,
            tremor=kinematics.tremor(window),
            dwell_time=kinematics.dwell_time(window, self.config.dwell_distance_threshold_px),
        )

    def scroll_summary(self) -> ScrollSummary:
        scrolls = self._scrolls.to_list()
        if not scrolls:
            return ScrollSummary()

        directions = Counter(s.direction for s in scrolls)
        return ScrollSummary(
            count=len(scrolls),
            total_distance=float(sum(s.distance for s in scrolls)),
            mean_speed=float(np.mean([s.speed for s in scrolls])),
            dominant_direction=directions.most_common(1)[0][0],
        )

    @property
    def metrics_stream(self) -> LatestValue[MouseMetrics]:
        return self._metrics

    @property
    def current_metrics(self) -> Optional[MouseMetrics]:
        """Last published metrics, or None before the first publish / after reset."""
        return self._metrics.value

    @property
    def window(self) -> List[KinematicSample]:
        return self._window.to_list()

    @property
    def clicks(self) -> List[ClickEvent]:
        return self._clicks.to_list()

    @property
    def scrolls(self) -> List[ScrollEvent]:
        return self._scrolls.to_list()

    @property
    def hesitation_count(self) -> int:
        return self._hesitation_count

    @property
    def is_tracking(self) -> bool:
        return self._is_tracking

    @property
    def session_start(self) -> Optional[float]:
        return self._session_start
