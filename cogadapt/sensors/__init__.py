"""
Sensors Module - Pointer Behavior Signals.

Responsibilities:
- Throttled sample ingestion
- Velocity / acceleration derivation over a bounded window
- Smoothness, tremor, accuracy, dwell and hesitation metrics
"""

from .mouse_processor import MouseSignalProcessor
