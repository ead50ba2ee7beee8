"""
Engine Exceptions

Error conditions signalled to callers of the engine. Validation problems are
never raised; they are returned as data in a ValidationResult.
"""

from __future__ import annotations


class TopologyEngineError(Exception):
    """Base class for all engine errors."""


class NotFoundError(TopologyEngineError, KeyError):
    """An identifier (simulation, message, dead-letter target) could not be resolved."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        # KeyError would otherwise quote the message
        return self.message


class InvalidConfigurationError(TopologyEngineError, ValueError):
    """A simulation or settings value was rejected before any work started."""


class BrokerError(TopologyEngineError):
    """Broker I/O failed (publish, consume, management API)."""
