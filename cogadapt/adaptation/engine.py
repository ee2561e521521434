"""
Adaptation Engine.

Maps a cognitive state to a recommended preference patch and a coarse
intensity level. Pure and stateless: it never touches stored preferences.

Rules are evaluated in a fixed order and merged monotonically, so a
flag set by an earlier rule is never cleared by a later one.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from cogadapt.core.contracts import (
    AdaptationRecommendation,
    AdaptiveUIConfig,
    CognitiveState,
    Level,
)


@dataclass(frozen=True)
class AdaptationRule:
    """A predicate over cognitive state and the flags it turns on."""
    name: str
    predicate: Callable[[CognitiveState], bool]
    flags: Tuple[str, ...]


DEFAULT_RULES: Tuple[AdaptationRule, ...] = (
    AdaptationRule(
        name="needs_simplification",
        predicate=lambda s: s.cognitive_load == Level.HIGH or s.attention_level == Level.LOW,
        flags=("simplified_layout", "content_summaries"),
    ),
    AdaptationRule(
        name="needs_larger_targets",
        predicate=lambda s: s.fatigue_level == Level.HIGH or s.stress_level == Level.HIGH,
        flags=("large_click_targets",),
    ),
    AdaptationRule(
        name="needs_reduced_stimuli",
        predicate=lambda s: s.stress_level == Level.HIGH or s.cognitive_load == Level.HIGH,
        flags=("reduced_motion", "simplified_layout"),
    ),
    AdaptationRule(
        name="needs_enhanced_focus",
        predicate=lambda s: s.attention_level == Level.LOW,
        flags=("navigation_assist",),
    ),
)

# Config toggle that governs each flag
FLAG_CATEGORIES: Dict[str, str] = {
    "simplified_layout": "adjust_layout",
    "content_summaries": "adjust_layout",
    "large_click_targets": "adjust_layout",
    "reduced_motion": "adjust_animations",
    "navigation_assist": "adjust_navigation",
}


def adverse_dimensions(state: CognitiveState) -> List[str]:
    """Names of the cognitive-state dimensions that are currently adverse."""
    checks = (
        ("cognitive_load", state.cognitive_load == Level.HIGH),
        ("fatigue_level", state.fatigue_level == Level.HIGH),
        ("stress_level", state.stress_level == Level.HIGH),
        ("attention_level", state.attention_level == Level.LOW),
    )
    return [name for name, adverse in checks if adverse]


class AdaptationEngine:
    """
    Rule-based adaptation recommender.

    Missing state is not an error: it yields an empty patch and LOW
    intensity.
    """

    def __init__(self, rules: Sequence[AdaptationRule] = DEFAULT_RULES):
        self.rules = tuple(rules)

    def recommend(
        self,
        state: Optional[CognitiveState],
        config: Optional[AdaptiveUIConfig] = None,
    ) -> AdaptationRecommendation:
        """
        Recommend preference changes for a cognitive state.

        Args:
            state: Current cognitive state (None = unknown)
            config: Adaptive config; category toggles are not consulted
                here but by gate() at the apply stage

        Returns:
            Recommendation whose patch holds only flags turned on
        """
        if state is None:
            return AdaptationRecommendation()

        patch: Dict[str, bool] = {}
        fired = []
        for rule in self.rules:
            if not rule.predicate(state):
                continue
            fired.append(rule.name)
            for flag in rule.flags:
                patch[flag] = True

        return AdaptationRecommendation(
            patch=patch,
            intensity=self.intensity(state),
            rules_fired=tuple(fired),
        )

    @staticmethod
    def intensity(state: Optional[CognitiveState]) -> Level:
        if state is None:
            return Level.LOW

        count = len(adverse_dimensions(state))
        if count >= 3:
            return Level.HIGH
        if count >= 2:
            return Level.MEDIUM
        return Level.LOW

    @staticmethod
    def gate(patch: Dict[str, bool], config: AdaptiveUIConfig) -> Dict[str, bool]:
        """Drop flags whose category toggle is off."""
        return {
            flag: value
            for flag, value in patch.items()
            if getattr(config, FLAG_CATEGORIES.get(flag, ""), True)
        }
