"""
Core contracts and primitives for the adaptation pipeline.

Pipeline order (NEVER REORDER):
1. Ingest raw pointer/click/wheel events
2. Derive kinematics (velocity, acceleration)
3. Aggregate windowed metrics
4. Recommend adaptations from the external cognitive state
5. Apply recommendations through the single preference owner
"""

from .contracts import (
    Level,
    Provenance,
    SampleEvent,
    KinematicSample,
    ClickEvent,
    ScrollEvent,
    MouseMetrics,
    CognitiveState,
    AdaptiveUIConfig,
    AccessibilityPreferences,
    AdaptationRecommendation,
    TrackerConfig,
)
from .errors import CogAdaptError, ConfigurationError, PersistenceError
from .ring_buffer import RingBuffer
from .stream import LatestValue
