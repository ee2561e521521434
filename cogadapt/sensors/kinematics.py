"""
Kinematic derivation and windowed metrics.

Pure functions over sequences of kinematic samples. Every bounded
metric is clamped into [0, 1].
"""

from __future__ import annotations

from typing import Optional, Sequence
import numpy as np

from cogadapt.core.contracts import (
    Acceleration,
    ClickEvent,
    KinematicSample,
    Point,
    SampleEvent,
    TargetBounds,
    Velocity,
)

# Normalizers for the 0-1 scores
JERK_NORMALIZER = 100.0
TREMOR_NORMALIZER = 1000.0

MIN_SAMPLES_SMOOTHNESS = 3
MIN_SAMPLES_TREMOR = 5


def clamp01(value: float) -> float:
    return float(min(1.0, max(0.0, value)))


def derive_sample(
    event: SampleEvent,
    previous: Optional[KinematicSample],
) -> KinematicSample:
    """
    Derive velocity and acceleration for a new sample.

    Args:
        event: Accepted raw sample
        previous: Last sample in the window, if any

    Returns:
        Kinematic sample with derivatives flagged as defined or not
    """
    if previous is None:
        return KinematicSample(
            position=event.position,
            velocity=Velocity(),
            acceleration=Acceleration(),
            timestamp=event.timestamp,
            pressure=event.pressure,
        )

    dt = event.timestamp - previous.timestamp
    if dt <= 0:
        # Coincident timestamps carry no rate information
        return KinematicSample(
            position=event.position,
            velocity=previous.velocity,
            acceleration=Acceleration(),
            timestamp=event.timestamp,
            pressure=event.pressure,
            has_velocity=previous.has_velocity,
            has_acceleration=False,
        )

    velocity = Velocity(
        (event.position.x - previous.position.x) / dt,
        (event.position.y - previous.position.y) / dt,
    )

    acceleration = Acceleration()
    has_acceleration = previous.has_velocity
    if has_acceleration:
        acceleration = Acceleration(
            (velocity.vx - previous.velocity.vx) / dt,
            (velocity.vy - previous.velocity.vy) / dt,
        )

    return KinematicSample(
        position=event.position,
        velocity=velocity,
        acceleration=acceleration,
        timestamp=event.timestamp,
        pressure=event.pressure,
        has_velocity=True,
        has_acceleration=has_acceleration,
    )


def _speeds(window: Sequence[KinematicSample]) -> np.ndarray:
    return np.array([s.velocity.magnitude for s in window if s.has_velocity], dtype=np.float64)


def average_speed(window: Sequence[KinematicSample]) -> float:
    """Mean speed in px/ms over samples with a defined velocity."""
    if len(window) < 2:
        return 0.0
    speeds = _speeds(window)
    if speeds.size == 0:
        return 0.0
    return float(np.mean(speeds))


def smoothness(window: Sequence[KinematicSample]) -> float:
    """
    Inverse of mean jerk, normalized to 0-1.

    Jerk is the magnitude of the change in acceleration between
    consecutive samples that both have a defined acceleration.
    """
    if len(window) < MIN_SAMPLES_SMOOTHNESS:
        return 1.0

    jerks = []
    for prev, curr in zip(window, list(window)[1:]):
        if not (prev.has_acceleration and curr.has_acceleration):
            continue
        jerks.append(np.hypot(
            curr.acceleration.ax - prev.acceleration.ax,
            curr.acceleration.ay - prev.acceleration.ay,
        ))

    if not jerks:
        return 1.0

    return clamp01(1.0 - float(np.mean(jerks)) / JERK_NORMALIZER)


def tremor(window: Sequence[KinematicSample]) -> float:
    """Speed variance, normalized to 0-1."""
    if len(window) < MIN_SAMPLES_TREMOR:
        return 0.0
    speeds = _speeds(window)
    if speeds.size == 0:
        return 0.0
    return clamp01(float(np.var(speeds)) / TREMOR_NORMALIZER)


def dwell_time(window: Sequence[KinematicSample], distance_threshold: float) -> float:
    """Mean gap (ms) between consecutive samples that barely moved."""
    gaps = [
        curr.timestamp - prev.timestamp
        for prev, curr in zip(window, list(window)[1:])
        if prev.position.distance_to(curr.position) < distance_threshold
    ]
    if not gaps:
        return 0.0
    return float(np.mean(gaps))


def click_accuracy(position: Point, bounds: Optional[TargetBounds]) -> float:
    """
    Closeness of a click to its target's centre.

    1 at the centre, 0 at or beyond the corners. Zero-area targets
    count as a perfect hit; a click with no target scores 0.
    """
    if bounds is None:
        return 0.0
    if bounds.area == 0 or bounds.half_diagonal == 0:
        return 1.0
    distance = position.distance_to(bounds.center)
    return clamp01(1.0 - distance / bounds.half_diagonal)


def mean_click_accuracy(clicks: Sequence[ClickEvent]) -> float:
    if len(clicks) == 0:
        return 1.0
    return clamp01(float(np.mean([c.accuracy for c in clicks])))
