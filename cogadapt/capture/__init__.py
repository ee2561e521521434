"""
Capture Module.

Responsibilities:
- Normalized pointer/click/wheel event delivery
- Symmetric listener registration (every subscribe has an unsubscribe)
- Replay of recorded sessions
"""

from .event_source import (
    EventSource,
    ManualEventSource,
    NullEventSource,
    RecordedEventSource,
)
