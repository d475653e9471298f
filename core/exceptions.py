"""Custom exception hierarchy for the scheduled content core.

This module centralises the error types emitted across subsystems so callers
can decide explicitly which failures degrade and which abort.

Updates:
    v0.1 - 2026-03-02 - Defined SCB error hierarchy for configuration, parsing,
        storage and scheduling concerns.
    v0.2 - 2026-03-09 - Added ContentError for malformed serialized blocks.
"""

from __future__ import annotations


class SCBError(Exception):
    """Base class for all scheduled-content errors."""


class ConfigError(SCBError):
    """Raised when application configuration is missing or invalid."""


class ParseError(SCBError):
    """Raised when a configured date/time string cannot be interpreted."""


class ContentError(SCBError):
    """Raised when serialized block content cannot be decoded."""


class StoreError(SCBError):
    """Raised when the persistent key-value layer fails."""


class StoreCorrupt(StoreError):
    """Raised when a stored event set does not have the expected shape."""


class SchedulerError(SCBError):
    """Raised when the deferred-task scheduler rejects an operation."""


class SchedulerUnavailable(SchedulerError):
    """Raised when an external capability needed at fire time is absent."""


class HealthCheckError(SCBError):
    """Raised when critical startup diagnostics fail."""
