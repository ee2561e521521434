import json

import pytest

from cogadapt.core.contracts import (
    AccessibilityPreferences,
    AdaptationSpeed,
    AdaptiveUIConfig,
    CognitiveState,
    FontSize,
    Level,
    Provenance,
)
from cogadapt.core.errors import PersistenceError
from cogadapt.preferences.environment import EnvironmentMonitor
from cogadapt.preferences.storage import JsonFileStorage, KeyValueStorage, MemoryStorage
from cogadapt.preferences.store import DEFAULT_STORAGE_KEY, AdaptivePreferenceStore


ADVERSE = CognitiveState(
    attention_level=Level.LOW,
    cognitive_load=Level.HIGH,
    fatigue_level=Level.HIGH,
    stress_level=Level.HIGH,
)
CALM = CognitiveState()

AUTO_FLAGS = (
    "simplified_layout",
    "content_summaries",
    "large_click_targets",
    "reduced_motion",
    "navigation_assist",
)


class BrokenStorage(KeyValueStorage):
    def get(self, key):
        raise PersistenceError("disk on fire")

    def set(self, key, value):
        raise PersistenceError("disk on fire")

    def remove(self, key):
        raise PersistenceError("disk on fire")


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def auto_store(storage):
    return AdaptivePreferenceStore(storage=storage, adaptive_config=AdaptiveUIConfig(auto_adjust=True))


# ------------------------------------------------------------
# Defaults & loading
# ------------------------------------------------------------

def test_fresh_store_has_defaults(storage):
    store = AdaptivePreferenceStore(storage=storage)
    assert store.preferences == AccessibilityPreferences()
    assert store.cognitive_state is None
    assert store.adaptive_config == AdaptiveUIConfig()
    assert set(store.provenance.values()) == {Provenance.DEFAULT}
    assert storage.get(DEFAULT_STORAGE_KEY) is not None


def test_initial_overrides_beat_persisted_values(storage):
    storage.set(DEFAULT_STORAGE_KEY, json.dumps({"high_contrast": True, "content_summaries": True}))
    store = AdaptivePreferenceStore(
        storage=storage,
        initial_preferences={"high_contrast": False, "font_size": "large"},
    )
    prefs = store.preferences
    assert prefs.high_contrast is False
    assert prefs.content_summaries is True
    assert prefs.font_size == FontSize.LARGE
    assert store.provenance_of("font_size") == Provenance.USER


def test_legacy_flat_blob_is_tagged_user(storage):
    storage.set(DEFAULT_STORAGE_KEY, json.dumps({"large_click_targets": True, "line_spacing": "relaxed"}))
    store = AdaptivePreferenceStore(storage=storage)
    assert store.preferences.large_click_targets is True
    assert store.provenance_of("large_click_targets") == Provenance.USER
    assert store.provenance_of("high_contrast") == Provenance.DEFAULT


@pytest.mark.parametrize("blob", [
    "{not json",
    "[1, 2, 3]",
    json.dumps({"preferences": {"font_size": "huge"}}),
    json.dumps({"preferences": {"high_contrast": True}, "provenance": {"high_contrast": "alien"}}),
    json.dumps({"preferences": {}, "auto_prior": {"reduced_motion": {"value": False}}}),
    json.dumps({"bogus_field": True}),
])
def test_malformed_blob_falls_back_to_defaults(storage, blob):
    storage.set(DEFAULT_STORAGE_KEY, blob)
    store = AdaptivePreferenceStore(storage=storage)
    assert store.preferences == AccessibilityPreferences()


def test_failing_storage_never_breaks_the_store():
    store = AdaptivePreferenceStore(storage=BrokenStorage())
    assert store.preferences == AccessibilityPreferences()

    prefs = store.update_preferences({"high_contrast": True})
    assert prefs.high_contrast is True
    assert store.persistence_failures >= 3


def test_round_trip_through_memory_storage(storage):
    store = AdaptivePreferenceStore(storage=storage)
    store.update_preferences({"font_size": "extra-large", "dark_mode": True})

    reloaded = AdaptivePreferenceStore(storage=storage)
    assert reloaded.preferences == store.preferences
    assert reloaded.provenance == store.provenance


def test_round_trip_through_json_file(tmp_path):
    path = tmp_path / "state" / "prefs.json"
    store = AdaptivePreferenceStore(storage=JsonFileStorage(path))
    store.update_preferences({"reduced_motion": True, "focus_indicators": "enhanced"})

    assert path.exists()
    reloaded = AdaptivePreferenceStore(storage=JsonFileStorage(path))
    assert reloaded.preferences == store.preferences


def test_custom_storage_key(storage):
    store = AdaptivePreferenceStore(storage=storage, storage_key="alice")
    store.update_preferences({"high_contrast": True})
    assert storage.get("alice") is not None
    assert storage.get(DEFAULT_STORAGE_KEY) is None


# ------------------------------------------------------------
# User writes
# ------------------------------------------------------------

def test_update_preferences_merges_and_publishes_once(storage):
    store = AdaptivePreferenceStore(storage=storage)
    seen = []
    store.subscribe(seen.append)

    store.update_preferences({"high_contrast": True, "font_size": FontSize.SMALL, "simplified_layout": True})

    assert len(seen) == 1
    assert seen[0].high_contrast is True
    assert seen[0].font_size == FontSize.SMALL
    assert store.preferences.reduced_motion is False


@pytest.mark.parametrize("patch", [
    {"not_a_field": True},
    {"font_size": "huge"},
    {"high_contrast": "yes"},
])
def test_invalid_patch_raises_and_changes_nothing(storage, patch):
    store = AdaptivePreferenceStore(storage=storage)
    with pytest.raises(ValueError):
        store.update_preferences(patch)
    assert store.preferences == AccessibilityPreferences()


def test_auto_source_is_reserved_for_the_cascade(storage):
    store = AdaptivePreferenceStore(storage=storage)
    with pytest.raises(ValueError):
        store.update_preferences({"reduced_motion": True}, source=Provenance.AUTO)


def test_returned_preferences_are_a_copy(storage):
    store = AdaptivePreferenceStore(storage=storage)
    prefs = store.preferences
    prefs.high_contrast = True
    assert store.preferences.high_contrast is False


# ------------------------------------------------------------
# Auto-adjust cascade
# ------------------------------------------------------------

def test_auto_adjust_off_never_mutates_preferences(storage):
    store = AdaptivePreferenceStore(storage=storage)
    before = store.preferences

    assert store.update_cognitive_state(ADVERSE) is None
    assert store.cognitive_state == ADVERSE
    assert store.preferences == before


def test_auto_adjust_applies_recommendation(auto_store):
    recommendation = auto_store.update_cognitive_state(ADVERSE)

    assert recommendation.intensity == Level.HIGH
    prefs = auto_store.preferences
    for name in AUTO_FLAGS:
        assert getattr(prefs, name) is True
        assert auto_store.provenance_of(name) == Provenance.AUTO
    assert prefs.high_contrast is False
    assert auto_store.last_recommendation is recommendation


def test_recovery_reverts_only_automatic_writes(auto_store):
    auto_store.update_preferences({"simplified_layout": True})
    auto_store.update_cognitive_state(ADVERSE)
    assert auto_store.provenance_of("simplified_layout") == Provenance.USER

    auto_store.update_cognitive_state(CALM)

    prefs = auto_store.preferences
    assert prefs.simplified_layout is True
    assert auto_store.provenance_of("simplified_layout") == Provenance.USER
    for name in ("content_summaries", "large_click_targets", "reduced_motion", "navigation_assist"):
        assert getattr(prefs, name) is False
        assert auto_store.provenance_of(name) == Provenance.DEFAULT


def test_user_write_takes_ownership_of_auto_field(auto_store):
    auto_store.update_cognitive_state(ADVERSE)
    auto_store.update_preferences({"reduced_motion": True})

    auto_store.update_cognitive_state(CALM)
    assert auto_store.preferences.reduced_motion is True
    assert auto_store.provenance_of("reduced_motion") == Provenance.USER


def test_revert_auto_adjustments(auto_store):
    auto_store.update_cognitive_state(ADVERSE)
    reverted = auto_store.revert_auto_adjustments()

    assert sorted(reverted) == sorted(AUTO_FLAGS)
    assert auto_store.preferences == AccessibilityPreferences()
    assert auto_store.revert_auto_adjustments() == []


def test_auto_revert_survives_reload(storage, auto_store):
    auto_store.update_cognitive_state(ADVERSE)

    reloaded = AdaptivePreferenceStore(storage=storage)
    assert reloaded.provenance_of("reduced_motion") == Provenance.AUTO
    assert sorted(reloaded.revert_auto_adjustments()) == sorted(AUTO_FLAGS)
    assert reloaded.preferences == AccessibilityPreferences()


def test_disabled_category_is_never_changed(storage):
    config = AdaptiveUIConfig(auto_adjust=True, adjust_layout=False)
    store = AdaptivePreferenceStore(storage=storage, adaptive_config=config)

    store.update_cognitive_state(ADVERSE)

    prefs = store.preferences
    assert prefs.simplified_layout is False
    assert prefs.content_summaries is False
    assert prefs.large_click_targets is False
    assert prefs.reduced_motion is True
    assert prefs.navigation_assist is True


def test_config_change_is_not_retroactive(auto_store):
    auto_store.update_cognitive_state(ADVERSE)
    auto_store.update_adaptive_config({"adjust_layout": False})
    assert auto_store.preferences.simplified_layout is True

    # Layout is now off-limits, so its earlier writes stay put
    auto_store.update_cognitive_state(CALM)
    prefs = auto_store.preferences
    assert prefs.simplified_layout is True
    assert prefs.large_click_targets is True
    assert prefs.reduced_motion is False
    assert prefs.navigation_assist is False


def test_cascade_refuses_reentry(auto_store):
    nested = []

    def on_change(prefs):
        nested.append(auto_store.update_cognitive_state(CALM))

    auto_store.subscribe(on_change)
    recommendation = auto_store.update_cognitive_state(ADVERSE)

    assert recommendation is not None
    assert nested == [None]
    assert auto_store.cognitive_state == ADVERSE
    assert auto_store.preferences.reduced_motion is True


def test_cascade_publishes_once(auto_store):
    stream = auto_store.preferences_stream
    version = stream.version
    auto_store.update_cognitive_state(ADVERSE)
    assert stream.version == version + 1


def test_none_state_reverts_automatic_writes(auto_store):
    auto_store.update_cognitive_state(ADVERSE)
    recommendation = auto_store.update_cognitive_state(None)
    assert recommendation.patch == {}
    assert auto_store.preferences == AccessibilityPreferences()


# ------------------------------------------------------------
# Adaptive config
# ------------------------------------------------------------

def test_update_adaptive_config_coerces_enums(storage):
    store = AdaptivePreferenceStore(storage=storage)
    config = store.update_adaptive_config({"sensitivity_level": "high", "adaptation_speed": "fast"})
    assert config.sensitivity_level == Level.HIGH
    assert config.adaptation_speed == AdaptationSpeed.FAST
    assert store.adaptive_config.auto_adjust is False


@pytest.mark.parametrize("patch", [
    {"auto_adjust_everything": True},
    {"auto_adjust": 1},
    {"sensitivity_level": "extreme"},
])
def test_update_adaptive_config_rejects_bad_patches(storage, patch):
    store = AdaptivePreferenceStore(storage=storage)
    with pytest.raises(ValueError):
        store.update_adaptive_config(patch)
    assert store.adaptive_config == AdaptiveUIConfig()


# ------------------------------------------------------------
# Reset
# ------------------------------------------------------------

def test_reset_restores_exact_defaults(storage, auto_store):
    auto_store.update_preferences({"font_size": "large", "dark_mode": False})
    auto_store.update_cognitive_state(ADVERSE)

    auto_store.reset_preferences()

    assert auto_store.preferences == AccessibilityPreferences()
    assert auto_store.cognitive_state is None
    assert auto_store.adaptive_config == AdaptiveUIConfig()
    assert set(auto_store.provenance.values()) == {Provenance.DEFAULT}
    assert auto_store.revert_auto_adjustments() == []

    reloaded = AdaptivePreferenceStore(storage=storage)
    assert reloaded.preferences == AccessibilityPreferences()


# ------------------------------------------------------------
# Environment
# ------------------------------------------------------------

def test_contrast_and_motion_override_user_false(storage):
    store = AdaptivePreferenceStore(storage=storage)
    store.update_preferences({"high_contrast": False, "reduced_motion": False})

    store.attach_environment(EnvironmentMonitor(high_contrast=True, reduced_motion=True))

    prefs = store.preferences
    assert prefs.high_contrast is True
    assert prefs.reduced_motion is True
    assert store.provenance_of("high_contrast") == Provenance.SYSTEM


def test_dark_mode_respects_explicit_choice(storage):
    store = AdaptivePreferenceStore(storage=storage)
    store.update_preferences({"dark_mode": False})

    store.attach_environment(EnvironmentMonitor(dark_mode=True))
    assert store.preferences.dark_mode is False


def test_dark_mode_applies_when_never_set(storage):
    store = AdaptivePreferenceStore(storage=storage)
    store.attach_environment(EnvironmentMonitor(dark_mode=True))
    assert store.preferences.dark_mode is True
    assert store.provenance_of("dark_mode") == Provenance.SYSTEM


def test_environment_changes_are_followed_until_detached(storage):
    store = AdaptivePreferenceStore(storage=storage)
    monitor = EnvironmentMonitor()
    detach = store.attach_environment(monitor)
    assert monitor.reduced_motion.listener_count == 1

    monitor.reduced_motion.set(True)
    assert store.preferences.reduced_motion is True

    # Signals only ever turn flags on
    monitor.reduced_motion.set(False)
    assert store.preferences.reduced_motion is True

    detach()
    assert all(signal.listener_count == 0 for signal in monitor.signals.values())
    monitor.high_contrast.set(True)
    assert store.preferences.high_contrast is False


def test_environment_claims_auto_written_field(auto_store):
    auto_store.update_cognitive_state(ADVERSE)
    auto_store.attach_environment(EnvironmentMonitor(reduced_motion=True))
    assert auto_store.provenance_of("reduced_motion") == Provenance.SYSTEM

    auto_store.update_cognitive_state(CALM)
    assert auto_store.preferences.reduced_motion is True


def test_reattach_replaces_previous_monitor(storage):
    store = AdaptivePreferenceStore(storage=storage)
    first, second = EnvironmentMonitor(), EnvironmentMonitor()
    store.attach_environment(first)
    store.attach_environment(second)
    assert first.dark_mode.listener_count == 0
    assert second.dark_mode.listener_count == 1
    store.detach_environment()
    assert second.dark_mode.listener_count == 0
