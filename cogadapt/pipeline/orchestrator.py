"""
Pipeline Orchestrator.

Connects the pipeline stages in strict order:

1. Capture source delivers normalized events
2. Mouse signal processor derives kinematics and publishes metrics
3. External cognitive state is pushed in on demand
4. Adaptation engine recommends a preference patch
5. Preference store applies, persists and publishes it

Metrics and cognitive state are independent inputs: the pipeline never
derives cognitive state from metrics itself.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from loguru import logger

from cogadapt.capture.event_source import EventSource
from cogadapt.config import Settings
from cogadapt.core.contracts import AdaptationRecommendation, CognitiveState
from cogadapt.preferences.environment import EnvironmentMonitor
from cogadapt.preferences.storage import JsonFileStorage, KeyValueStorage
from cogadapt.preferences.store import AdaptivePreferenceStore
from cogadapt.sensors.mouse_processor import MouseSignalProcessor


class AdaptivePipeline:
    """
    Owns one processor and one preference store.

    Every listener registered by start() is removed by stop(), so a
    stopped pipeline does no background work.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        source: Optional[EventSource] = None,
        storage: Optional[KeyValueStorage] = None,
        environment: Optional[EnvironmentMonitor] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.settings = settings or Settings()

        if storage is None and self.settings.storage.path:
            storage = JsonFileStorage(self.settings.storage.path)

        self.processor = MouseSignalProcessor(self.settings.tracker, source=source, clock=clock)
        self.store = AdaptivePreferenceStore(
            storage=storage,
            storage_key=self.settings.storage.key,
            adaptive_config=self.settings.adaptive,
        )
        self._environment = environment
        self._running = False

        logger.info("Adaptive pipeline initialized")

    def start(self) -> bool:
        """
        Start tracking and environment synchronization.

        Returns:
            True if mouse tracking is active
        """
        if self._running:
            return self.processor.is_tracking

        tracking = self.processor.start()
        if not tracking:
            logger.warning("Mouse tracking unavailable, metrics stay at defaults")

        if self._environment is not None:
            self.store.attach_environment(self._environment)

        self._running = True
        logger.info("Pipeline started")
        return tracking

    def stop(self):
        if not self._running:
            return
        self.processor.stop()
        self.store.detach_environment()
        self._running = False
        logger.info("Pipeline stopped")

    def apply_cognitive_state(
        self,
        state: Optional[CognitiveState],
    ) -> Optional[AdaptationRecommendation]:
        return self.store.update_cognitive_state(state)

    def snapshot(self) -> Dict[str, Any]:
        """Plain-data view of metrics and preferences, for reporting."""
        metrics = self.processor.current_metrics or self.processor.metrics()
        scroll = self.processor.scroll_summary()
        state = self.store.cognitive_state
        recommendation = self.store.last_recommendation

        return {
            "metrics": {
                "average_speed": metrics.average_speed,
                "smoothness": metrics.smoothness,
                "accuracy": metrics.accuracy,
                "hesitation_count": metrics.hesitation_count,
                "tremor": metrics.tremor,
                "dwell_time": metrics.dwell_time,
            },
            "samples": len(self.processor.window),
            "clicks": len(self.processor.clicks),
            "scroll": {
                "count": scroll.count,
                "total_distance": scroll.total_distance,
                "mean_speed": scroll.mean_speed,
                "dominant_direction": (
                    scroll.dominant_direction.value if scroll.dominant_direction else None
                ),
            },
            "cognitive_state": state.to_dict() if state else None,
            "intensity": recommendation.intensity.value if recommendation else None,
            "preferences": self.store.preferences.to_dict(),
            "provenance": {name: tag.value for name, tag in self.store.provenance.items()},
        }

    @property
    def is_running(self) -> bool:
        return self._running

    def __enter__(self) -> AdaptivePipeline:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
