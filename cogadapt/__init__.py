"""
Cognitive Adaptation Pipeline

Infers how much strain a user is under from pointer, click and scroll
telemetry, and turns an externally supplied cognitive state plus policy
knobs into recommended accessibility adjustments.

Top Priorities (strict order):
1. Never break the user's explicit choices
2. Deterministic, explainable behavior
3. Bounded memory and constant-time event handling
4. Degrade to safe defaults instead of failing
"""

__version__ = "0.1.0"
__author__ = "Cognitive Adaptation Team"
