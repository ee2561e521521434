import itertools

import pytest

from cogadapt.adaptation.engine import (
    DEFAULT_RULES,
    AdaptationEngine,
    AdaptationRule,
    adverse_dimensions,
)
from cogadapt.core.contracts import AdaptiveUIConfig, CognitiveState, Level


ALL_STATES = [
    CognitiveState(attention, load, fatigue, stress)
    for attention, load, fatigue, stress in itertools.product(list(Level), repeat=4)
]

_RANK = {Level.LOW: 0, Level.MEDIUM: 1, Level.HIGH: 2}


@pytest.fixture
def engine():
    return AdaptationEngine()


def test_all_adverse_state_turns_everything_on(engine):
    state = CognitiveState(
        attention_level=Level.LOW,
        cognitive_load=Level.HIGH,
        fatigue_level=Level.HIGH,
        stress_level=Level.HIGH,
    )
    recommendation = engine.recommend(state)
    assert recommendation.patch == {
        "simplified_layout": True,
        "content_summaries": True,
        "large_click_targets": True,
        "reduced_motion": True,
        "navigation_assist": True,
    }
    assert recommendation.intensity == Level.HIGH
    assert recommendation.rules_fired == tuple(rule.name for rule in DEFAULT_RULES)


@pytest.mark.parametrize("state", [
    None,
    CognitiveState(Level.MEDIUM, Level.MEDIUM, Level.MEDIUM, Level.MEDIUM),
    CognitiveState(),
])
def test_benign_states_recommend_nothing(engine, state):
    recommendation = engine.recommend(state)
    assert recommendation.patch == {}
    assert recommendation.intensity == Level.LOW
    assert recommendation.rules_fired == ()


def test_high_stress_alone(engine):
    recommendation = engine.recommend(CognitiveState(stress_level=Level.HIGH))
    assert recommendation.patch == {
        "large_click_targets": True,
        "reduced_motion": True,
        "simplified_layout": True,
    }
    assert recommendation.intensity == Level.LOW


def test_low_attention_alone(engine):
    recommendation = engine.recommend(CognitiveState(attention_level=Level.LOW))
    assert recommendation.patch == {
        "simplified_layout": True,
        "content_summaries": True,
        "navigation_assist": True,
    }


def test_patch_never_contains_false(engine):
    for state in ALL_STATES:
        assert all(engine.recommend(state).patch.values())


def test_recommend_is_pure(engine):
    state = CognitiveState(cognitive_load=Level.HIGH, fatigue_level=Level.HIGH)
    first = engine.recommend(state)
    second = engine.recommend(state)
    assert first == second
    assert first.intensity == Level.MEDIUM


def test_category_toggles_do_not_change_recommendation(engine):
    state = CognitiveState(stress_level=Level.HIGH)
    closed = AdaptiveUIConfig(adjust_layout=False, adjust_animations=False, adjust_navigation=False)
    assert engine.recommend(state, closed) == engine.recommend(state)


def _worse_or_equal(a: CognitiveState, b: CognitiveState) -> bool:
    """True if b is at least as adverse as a on every dimension."""
    return (
        _RANK[b.cognitive_load] >= _RANK[a.cognitive_load]
        and _RANK[b.fatigue_level] >= _RANK[a.fatigue_level]
        and _RANK[b.stress_level] >= _RANK[a.stress_level]
        and _RANK[b.attention_level] <= _RANK[a.attention_level]
    )


def test_intensity_is_monotonic():
    for a, b in itertools.product(ALL_STATES, repeat=2):
        if _worse_or_equal(a, b):
            assert _RANK[AdaptationEngine.intensity(b)] >= _RANK[AdaptationEngine.intensity(a)]


def test_intensity_counts_adverse_dimensions():
    assert adverse_dimensions(CognitiveState()) == []
    two = CognitiveState(attention_level=Level.LOW, stress_level=Level.HIGH)
    assert adverse_dimensions(two) == ["stress_level", "attention_level"]
    assert AdaptationEngine.intensity(two) == Level.MEDIUM
    assert AdaptationEngine.intensity(None) == Level.LOW


def test_rules_merge_monotonically():
    rules = (
        AdaptationRule("on", lambda s: True, ("reduced_motion",)),
        AdaptationRule("never", lambda s: False, ("reduced_motion",)),
    )
    recommendation = AdaptationEngine(rules).recommend(CognitiveState())
    assert recommendation.patch == {"reduced_motion": True}
    assert recommendation.rules_fired == ("on",)


def test_gate_drops_disabled_categories():
    patch = {
        "simplified_layout": True,
        "content_summaries": True,
        "large_click_targets": True,
        "reduced_motion": True,
        "navigation_assist": True,
    }
    config = AdaptiveUIConfig(adjust_layout=False, adjust_navigation=False)
    assert AdaptationEngine.gate(patch, config) == {"reduced_motion": True}
    assert AdaptationEngine.gate(patch, AdaptiveUIConfig()) == patch
