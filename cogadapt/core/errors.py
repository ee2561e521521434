"""
Error types for the adaptation pipeline.

None of these are fatal: every component catches them at its boundary
and degrades to a safe default.
"""


class CogAdaptError(Exception):
    """Base class for pipeline errors."""


class ConfigurationError(CogAdaptError):
    """Malformed settings file or persisted preference blob."""


class PersistenceError(CogAdaptError):
    """A storage backend could not read or write."""
