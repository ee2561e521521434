"""
Adaptive Preference Store.

The single owner of accessibility preferences, cognitive state and
adaptive config. Orchestrates:
- The auto-apply cascade (state -> recommendation -> preference write -> persistence)
- Persistence to a durable key-value slot
- One-directional synchronization with system environment signals

Every preference field carries a provenance tag (default, user, auto,
system). Automatic writes remember what they replaced, so they can be
reverted without touching anything the user chose.
"""

from __future__ import annotations

import json
from enum import Enum
from dataclasses import fields, replace
from typing import Any, Callable, Dict, List, Optional, Tuple
from loguru import logger

from cogadapt.adaptation.engine import AdaptationEngine, FLAG_CATEGORIES
from cogadapt.core.contracts import (
    AccessibilityPreferences,
    AdaptationRecommendation,
    AdaptationSpeed,
    AdaptiveUIConfig,
    CognitiveState,
    Level,
    Provenance,
    coerce_enum,
)
from cogadapt.core.errors import ConfigurationError
from cogadapt.core.stream import LatestValue
from cogadapt.preferences.environment import EnvironmentMonitor, EnvironmentSignal
from cogadapt.preferences.storage import KeyValueStorage

DEFAULT_STORAGE_KEY = "adaptive-preferences"
PERSIST_FORMAT_VERSION = 1

_CONFIG_FIELDS = {f.name for f in fields(AdaptiveUIConfig)}
_CONFIG_ENUMS = {
    "sensitivity_level": Level,
    "adaptation_speed": AdaptationSpeed,
}

# field -> (value, provenance)
Assignment = Dict[str, Tuple[Any, Provenance]]


class AdaptivePreferenceStore:
    """
    Owner of preference, cognitive-state and config state.

    Startup precedence: compiled defaults < persisted value < explicit
    overrides. Persistence is best-effort: failures are logged and the
    in-memory state carries on.
    """

    def __init__(
        self,
        storage: Optional[KeyValueStorage] = None,
        storage_key: str = DEFAULT_STORAGE_KEY,
        initial_preferences: Optional[Dict[str, Any]] = None,
        adaptive_config: Optional[AdaptiveUIConfig] = None,
        engine: Optional[AdaptationEngine] = None,
    ):
        """
        Initialize the store.

        Args:
            storage: Durable key-value slot (None = in-memory only)
            storage_key: Key under which preferences are persisted
            initial_preferences: Startup overrides, applied as user values
            adaptive_config: Startup adaptive config (compiled defaults if None)
            engine: Adaptation engine (default rules if None)
        """
        self._storage = storage
        self.storage_key = storage_key
        self._engine = engine or AdaptationEngine()

        self._preferences = AccessibilityPreferences()
        self._provenance: Dict[str, Provenance] = {
            f.name: Provenance.DEFAULT for f in fields(AccessibilityPreferences)
        }
        # Values that automatic writes replaced, for reverting
        self._auto_prior: Assignment = {}

        self._cognitive_state: Optional[CognitiveState] = None
        self._config = replace(adaptive_config) if adaptive_config else AdaptiveUIConfig()
        self._last_recommendation: Optional[AdaptationRecommendation] = None

        self._cascading = False
        self._detach_environment: Optional[Callable[[], None]] = None
        self._stream = LatestValue[AccessibilityPreferences]()

        self.persistence_failures = 0

        self._load(initial_preferences or {})

    # ------------------------------------------------------------
    # Loading & persistence
    # ------------------------------------------------------------

    def _load(self, overrides: Dict[str, Any]):
        raw = None
        if self._storage is not None:
            try:
                raw = self._storage.get(self.storage_key)
            except Exception as e:
                self.persistence_failures += 1
                logger.warning(f"Could not load preferences from storage: {e}")

        if raw is not None:
            try:
                values, provenance, auto_prior = self._decode(raw)
            except ConfigurationError as e:
                logger.warning(f"Ignoring malformed persisted preferences: {e}")
            else:
                for name, value in values.items():
                    setattr(self._preferences, name, value)
                    self._provenance[name] = provenance.get(name, Provenance.USER)
                self._auto_prior = auto_prior

        coerced = AccessibilityPreferences.coerce_patch(overrides)
        for name in coerced:
            self._auto_prior.pop(name, None)
        self._commit({name: (value, Provenance.USER) for name, value in coerced.items()})
        if not coerced:
            self._persist()
            self._stream.publish(self.preferences)

    @staticmethod
    def _decode(raw: str) -> Tuple[Dict[str, Any], Dict[str, Provenance], Assignment]:
        """
        Parse a persisted blob.

        Accepts the versioned format and a flat legacy preference object.

        Raises:
            ConfigurationError: if the blob is malformed in any way
        """
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise ConfigurationError(f"invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError("persisted preferences are not an object")

        try:
            if "preferences" not in data:
                values = AccessibilityPreferences.coerce_patch(data)
                return values, {name: Provenance.USER for name in values}, {}

            values = AccessibilityPreferences.coerce_patch(data["preferences"])
            provenance = {
                name: Provenance(tag) for name, tag in data.get("provenance", {}).items()
                if name in values
            }
            auto_prior: Assignment = {}
            for name, entry in data.get("auto_prior", {}).items():
                value = AccessibilityPreferences.coerce_patch({name: entry["value"]})[name]
                auto_prior[name] = (value, Provenance(entry["provenance"]))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise ConfigurationError(str(e)) from e

        return values, provenance, auto_prior

    def _encode(self) -> str:
        return json.dumps({
            "version": PERSIST_FORMAT_VERSION,
            "preferences": self._preferences.to_dict(),
            "provenance": {name: tag.value for name, tag in self._provenance.items()},
            "auto_prior": {
                name: {
                    "value": value.value if isinstance(value, Enum) else value,
                    "provenance": tag.value,
                }
                for name, (value, tag) in self._auto_prior.items()
            },
        })

    def _persist(self):
        if self._storage is None:
            return
        try:
            self._storage.set(self.storage_key, self._encode())
        except Exception as e:
            self.persistence_failures += 1
            logger.warning(f"Could not save preferences: {e}")

    # ------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------

    def _commit(self, assignment: Assignment):
        """Write values with their provenance, then persist and publish once."""
        if not assignment:
            return
        for name, (value, provenance) in assignment.items():
            setattr(self._preferences, name, value)
            self._provenance[name] = provenance
        self._persist()
        self._stream.publish(self.preferences)

    def update_preferences(
        self,
        patch: Dict[str, Any],
        source: Provenance = Provenance.USER,
    ) -> AccessibilityPreferences:
        """
        Shallow-merge a patch into the current preferences.

        A user write takes ownership of the field: any pending automatic
        revert for it is forgotten.

        Raises:
            ValueError: on unknown fields or invalid values
        """
        if source == Provenance.AUTO:
            raise ValueError("Automatic writes go through update_cognitive_state")

        coerced = AccessibilityPreferences.coerce_patch(patch)
        for name in coerced:
            self._auto_prior.pop(name, None)
        self._commit({name: (value, source) for name, value in coerced.items()})
        return self.preferences

    def update_cognitive_state(
        self,
        state: Optional[CognitiveState],
    ) -> Optional[AdaptationRecommendation]:
        """
        Replace the cognitive state and, if auto-adjust is on, apply the
        recommendation for it.

        The cascade never re-enters this method; a call made from inside
        it (e.g. by a preference subscriber) is refused.

        Returns:
            The applied recommendation, or None if nothing was applied
        """
        if self._cascading:
            logger.warning("Refusing cognitive state update from inside the adaptation cascade")
            return None

        self._cognitive_state = state
        if not self._config.auto_adjust:
            return None

        self._cascading = True
        try:
            recommendation = self._engine.recommend(state, self._config)
            applied, reverted = self._apply_recommendation(recommendation)
            self._last_recommendation = recommendation
        finally:
            self._cascading = False

        if applied or reverted:
            logger.info(
                f"Adaptation ({recommendation.intensity.value}): "
                f"applied {sorted(applied)}, reverted {sorted(reverted)}"
            )
        return recommendation

    def _apply_recommendation(
        self,
        recommendation: AdaptationRecommendation,
    ) -> Tuple[List[str], List[str]]:
        gated = self._engine.gate(recommendation.patch, self._config)
        assignment: Assignment = {}

        for name, value in gated.items():
            current = getattr(self._preferences, name)
            if current == value:
                continue
            if name not in self._auto_prior:
                self._auto_prior[name] = (current, self._provenance[name])
            assignment[name] = (value, Provenance.AUTO)

        # Earlier automatic writes that are no longer recommended
        reverted = []
        for name in list(self._auto_prior):
            if name in gated or not self._category_enabled(name):
                continue
            assignment[name] = self._auto_prior.pop(name)
            reverted.append(name)

        applied = [name for name in assignment if name not in reverted]
        self._commit(assignment)
        return applied, reverted

    def _category_enabled(self, name: str) -> bool:
        return getattr(self._config, FLAG_CATEGORIES.get(name, ""), True)

    def revert_auto_adjustments(self) -> List[str]:
        """
        Undo every automatic write still in effect.

        Returns:
            Names of the reverted fields
        """
        assignment = dict(self._auto_prior)
        self._auto_prior.clear()
        self._commit(assignment)
        if assignment:
            logger.info(f"Reverted automatic adjustments: {sorted(assignment)}")
        return list(assignment)

    def update_adaptive_config(self, patch: Dict[str, Any]) -> AdaptiveUIConfig:
        """
        Merge a patch into the adaptive config.

        Already-applied preferences are not revisited.

        Raises:
            ValueError: on unknown fields or invalid values
        """
        coerced = {}
        for key, value in patch.items():
            if key not in _CONFIG_FIELDS:
                raise ValueError(f"Unknown adaptive config field: {key}")
            if key in _CONFIG_ENUMS:
                coerced[key] = coerce_enum(_CONFIG_ENUMS[key], value, key)
            elif isinstance(value, bool):
                coerced[key] = value
            else:
                raise ValueError(f"Adaptive config {key} must be a boolean, got {value!r}")

        self._config = replace(self._config, **coerced)
        return self.adaptive_config

    def reset_preferences(self):
        """Restore preferences, cognitive state and config to compiled defaults."""
        self._preferences = AccessibilityPreferences()
        self._provenance = {name: Provenance.DEFAULT for name in self._provenance}
        self._auto_prior = {}
        self._cognitive_state = None
        self._config = AdaptiveUIConfig()
        self._last_recommendation = None
        self._persist()
        self._stream.publish(self.preferences)
        logger.info("Preferences reset to defaults")

    # ------------------------------------------------------------
    # Environment synchronization
    # ------------------------------------------------------------

    def attach_environment(self, monitor: EnvironmentMonitor) -> Callable[[], None]:
        """
        Synchronize with system signals now and on every change.

        Returns:
            A function that removes the listeners (same as detach_environment)
        """
        self.detach_environment()

        def on_change(signal: EnvironmentSignal):
            self.sync_environment(monitor)

        self._detach_environment = monitor.add_listener(on_change)
        self.sync_environment(monitor)
        return self.detach_environment

    def detach_environment(self):
        if self._detach_environment is not None:
            self._detach_environment()
            self._detach_environment = None

    def sync_environment(self, monitor: EnvironmentMonitor):
        """
        Merge forced-on flags from the environment.

        Signals may only turn flags on. Dark mode is applied only while
        the field has never been set; contrast and motion override even
        an explicit user False.
        """
        forced = []
        if monitor.dark_mode.matches and self._preferences.dark_mode is None:
            forced.append("dark_mode")
        if monitor.high_contrast.matches:
            forced.append("high_contrast")
        if monitor.reduced_motion.matches:
            forced.append("reduced_motion")

        assignment: Assignment = {}
        for name in forced:
            if getattr(self._preferences, name) is True and self._provenance[name] != Provenance.AUTO:
                continue
            self._auto_prior.pop(name, None)
            assignment[name] = (True, Provenance.SYSTEM)

        if assignment:
            logger.info(f"Environment forced on: {sorted(assignment)}")
        self._commit(assignment)

    # ------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------

    @property
    def preferences(self) -> AccessibilityPreferences:
        return replace(self._preferences)

    @property
    def provenance(self) -> Dict[str, Provenance]:
        return dict(self._provenance)

    def provenance_of(self, name: str) -> Provenance:
        return self._provenance[name]

    @property
    def cognitive_state(self) -> Optional[CognitiveState]:
        return self._cognitive_state

    @property
    def adaptive_config(self) -> AdaptiveUIConfig:
        return replace(self._config)

    @property
    def last_recommendation(self) -> Optional[AdaptationRecommendation]:
        return self._last_recommendation

    @property
    def preferences_stream(self) -> LatestValue[AccessibilityPreferences]:
        return self._stream

    def subscribe(
        self,
        callback: Callable[[Optional[AccessibilityPreferences]], None],
    ) -> Callable[[], None]:
        """Register a listener for preference changes (e.g. the style layer)."""
        return self._stream.subscribe(callback)
