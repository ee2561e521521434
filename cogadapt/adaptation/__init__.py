"""
Adaptation Module.

Stateless mapping from cognitive state to recommended preference changes.
"""

from .engine import AdaptationEngine, AdaptationRule, DEFAULT_RULES
