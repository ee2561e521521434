"""
Core data contracts for the cognitive adaptation pipeline.

All components must adhere to these contracts for:
- Deterministic, explainable behavior
- Bounded memory (every history is capacity-limited)
- A single owner for every piece of mutable state
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Optional, List, Dict, Any, Tuple
import numpy as np
from numpy.typing import NDArray


# ============================================================
# ENUMERATIONS
# ============================================================

class Level(Enum):
    """Tri-level scale used by cognitive state, sensitivity and intensity."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AdaptationSpeed(Enum):
    """How quickly adaptations are rolled out by the rendering layer."""
    SLOW = "slow"
    MEDIUM = "medium"
    FAST = "fast"


class ScrollDirection(Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


class Provenance(Enum):
    """Origin of a stored preference value."""
    DEFAULT = "default"
    USER = "user"
    AUTO = "auto"        # Written by the adaptation cascade
    SYSTEM = "system"    # Forced on by an environment signal


class FontSize(Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    EXTRA_LARGE = "extra-large"


class FontFamily(Enum):
    DEFAULT = "default"
    DYSLEXIC = "dyslexic"


class LineSpacing(Enum):
    TIGHT = "tight"
    NORMAL = "normal"
    RELAXED = "relaxed"


class FocusIndicators(Enum):
    MINIMAL = "minimal"
    ENHANCED = "enhanced"


# ============================================================
# GEOMETRY & KINEMATICS
# ============================================================

@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def distance_to(self, other: Point) -> float:
        return float(np.hypot(self.x - other.x, self.y - other.y))


@dataclass(frozen=True)
class Velocity:
    """Pixels per millisecond."""
    vx: float = 0.0
    vy: float = 0.0

    @property
    def magnitude(self) -> float:
        return float(np.hypot(self.vx, self.vy))


@dataclass(frozen=True)
class Acceleration:
    """Pixels per millisecond squared."""
    ax: float = 0.0
    ay: float = 0.0


@dataclass(frozen=True)
class TargetBounds:
    """Bounding rectangle of a click target."""
    left: float
    top: float
    width: float
    height: float

    @property
    def center(self) -> Point:
        return Point(self.left + self.width / 2, self.top + self.height / 2)

    @property
    def half_diagonal(self) -> float:
        return float(np.hypot(self.width / 2, self.height / 2))

    @property
    def area(self) -> float:
        return self.width * self.height


# ============================================================
# INPUT EVENTS
# ============================================================

@dataclass(frozen=True)
class SampleEvent:
    """
    A raw pointer-move sample from the capture layer.

    Consumed immediately; never retained by the processor.
    """
    position: Point
    timestamp: float  # milliseconds
    pressure: float = 0.5  # Fallback for devices without pressure


@dataclass(frozen=True)
class RawClick:
    """A raw click from the capture layer, with the bounds of the clicked target."""
    position: Point
    target_bounds: Optional[TargetBounds]
    timestamp: float


@dataclass(frozen=True)
class RawScroll:
    """A raw wheel event; deltas follow the DOM sign convention (positive = down/right)."""
    delta_x: float
    delta_y: float
    timestamp: float


# ============================================================
# DERIVED RECORDS
# ============================================================

@dataclass(frozen=True)
class KinematicSample:
    """
    Position plus first and second time derivatives.

    The first sample of a session has no velocity, and a sample whose
    predecessor had no velocity has no acceleration. Undefined
    derivatives are stored as zero and flagged.
    """
    position: Point
    velocity: Velocity
    acceleration: Acceleration
    timestamp: float
    pressure: float = 0.5
    has_velocity: bool = False
    has_acceleration: bool = False


@dataclass(frozen=True)
class ClickEvent:
    position: Point
    target_bounds: Optional[TargetBounds]
    accuracy: float  # 0-1, 1 = dead centre
    timestamp: float
    # Motion latency heuristic: time since the last kinematic sample,
    # not a true stimulus-response measurement.
    reaction_time: float


@dataclass(frozen=True)
class ScrollEvent:
    direction: ScrollDirection
    distance: float
    speed: float
    timestamp: float


@dataclass
class MouseMetrics:
    """Current mouse-behavior metrics over the kinematic window."""
    average_speed: float = 0.0
    smoothness: float = 1.0  # 0-1, 1 = perfectly smooth
    accuracy: float = 1.0    # Mean click accuracy
    hesitation_count: int = 0
    tremor: float = 0.0      # 0-1
    dwell_time: float = 0.0  # milliseconds

    FEATURE_ORDER = (
        "average_speed",
        "smoothness",
        "accuracy",
        "hesitation_count",
        "tremor",
        "dwell_time",
    )

    def as_array(self) -> NDArray[np.float64]:
        """Metrics as a float vector in FEATURE_ORDER."""
        return np.array([float(getattr(self, name)) for name in self.FEATURE_ORDER])


@dataclass
class ScrollSummary:
    count: int = 0
    total_distance: float = 0.0
    mean_speed: float = 0.0
    dominant_direction: Optional[ScrollDirection] = None


# ============================================================
# COGNITIVE STATE & POLICY
# ============================================================

@dataclass(frozen=True)
class CognitiveState:
    """Externally supplied estimate of the user's cognitive state."""
    attention_level: Level = Level.MEDIUM
    cognitive_load: Level = Level.MEDIUM
    fatigue_level: Level = Level.LOW
    stress_level: Level = Level.LOW

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> CognitiveState:
        kwargs = {}
        for key, value in data.items():
            if key not in _COGNITIVE_FIELDS:
                raise ValueError(f"Unknown cognitive state field: {key}")
            kwargs[key] = coerce_enum(Level, value, key)
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, str]:
        return {f.name: getattr(self, f.name).value for f in fields(self)}


@dataclass
class AdaptiveUIConfig:
    """
    Policy knobs for automatic adaptation.

    The adjust_* toggles gate flags by category at apply time. The
    default rules never recommend contrast or font-size changes, so
    adjust_contrast and adjust_font_size are kept and persisted but
    currently gate nothing.
    """
    auto_adjust: bool = False
    sensitivity_level: Level = Level.MEDIUM
    adaptation_speed: AdaptationSpeed = AdaptationSpeed.MEDIUM

    # Which feature categories may be changed automatically
    adjust_contrast: bool = True
    adjust_font_size: bool = True
    adjust_layout: bool = True
    adjust_animations: bool = True
    adjust_navigation: bool = True


@dataclass
class AccessibilityPreferences:
    """Canonical UI-affecting preference state."""
    # Visual
    high_contrast: bool = False
    reduced_motion: bool = False
    dark_mode: Optional[bool] = None  # None = never set

    # Typography
    font_size: FontSize = FontSize.MEDIUM
    font_family: FontFamily = FontFamily.DEFAULT
    line_spacing: LineSpacing = LineSpacing.NORMAL

    # Interaction
    large_click_targets: bool = False
    focus_indicators: FocusIndicators = FocusIndicators.MINIMAL

    # Cognitive support
    simplified_layout: bool = False
    content_summaries: bool = False
    navigation_assist: bool = False

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            result[f.name] = value.value if isinstance(value, Enum) else value
        return result

    @classmethod
    def coerce_patch(cls, patch: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate a partial preference patch and convert enum strings.

        Raises:
            ValueError: on unknown fields or values of the wrong type
        """
        coerced: Dict[str, Any] = {}
        for key, value in patch.items():
            if key not in _PREFERENCE_FIELDS:
                raise ValueError(f"Unknown preference field: {key}")
            enum_type = _PREFERENCE_ENUMS.get(key)
            if enum_type is not None:
                coerced[key] = coerce_enum(enum_type, value, key)
            elif key == "dark_mode" and value is None:
                coerced[key] = None
            elif isinstance(value, bool):
                coerced[key] = value
            else:
                raise ValueError(f"Preference {key} must be a boolean, got {value!r}")
        return coerced


@dataclass
class AdaptationRecommendation:
    """
    Output of the adaptation engine.

    Never mutates state directly; the preference store decides what to apply.
    """
    patch: Dict[str, bool] = field(default_factory=dict)
    intensity: Level = Level.LOW
    rules_fired: Tuple[str, ...] = ()


# ============================================================
# CONFIGURATION
# ============================================================

@dataclass
class TrackerConfig:
    """Configuration for mouse signal processing."""
    sample_rate_ms: float = 50.0
    hesitation_threshold_ms: float = 200.0
    window_capacity: int = 100
    dwell_distance_threshold_px: float = 10.0

    # Session histories are bounded too
    click_history_capacity: int = 500
    scroll_history_capacity: int = 500

    # Optional viewport; coordinates outside it are rejected
    viewport_width: Optional[float] = None
    viewport_height: Optional[float] = None

    def validate(self) -> List[str]:
        """Return a list of problems (empty when valid)."""
        problems = []
        for name in ("window_capacity", "click_history_capacity", "scroll_history_capacity"):
            if getattr(self, name) < 1:
                problems.append(f"{name} must be >= 1")
        for name in ("sample_rate_ms", "hesitation_threshold_ms", "dwell_distance_threshold_px"):
            value = getattr(self, name)
            if not (np.isfinite(value) and value >= 0):
                problems.append(f"{name} must be a finite number >= 0")
        for name in ("viewport_width", "viewport_height"):
            value = getattr(self, name)
            if value is not None and not (np.isfinite(value) and value > 0):
                problems.append(f"{name} must be a finite number > 0")
        return problems


# ============================================================
# HELPERS
# ============================================================

_COGNITIVE_FIELDS = {f.name for f in fields(CognitiveState)}
_PREFERENCE_FIELDS = {f.name for f in fields(AccessibilityPreferences)}
_PREFERENCE_ENUMS = {
    "font_size": FontSize,
    "font_family": FontFamily,
    "line_spacing": LineSpacing,
    "focus_indicators": FocusIndicators,
}


def coerce_enum(enum_type, value, name: str):
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        raise ValueError(f"{name} must be one of [{allowed}], got {value!r}") from None
