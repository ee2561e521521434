"""
Preferences Module - Single Owner of UI-Affecting State.

Responsibilities:
- Preference merging with provenance tracking
- Auto-apply cascade from cognitive state
- Best-effort persistence
- Environment signal synchronization
"""

from .store import AdaptivePreferenceStore, DEFAULT_STORAGE_KEY
from .storage import KeyValueStorage, MemoryStorage, JsonFileStorage
from .environment import EnvironmentMonitor, EnvironmentSignal
