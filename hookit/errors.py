"""Exception hierarchy for the hookit execution engine."""

from __future__ import annotations


class HookitError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(HookitError):
    """A step payload field is missing or has the wrong shape."""


MissingConfiguration = ConfigurationError


class UpstreamFailure(HookitError):
    """A delegated external call failed or timed out."""


class StorageError(HookitError):
    """Repository or ledger I/O failed."""


class NotFound(StorageError):
    """The requested workflow does not exist."""


class UnsupportedType(HookitError):
    """A closed enum value (operation, method, operator) was not recognised."""


class DestinationUnsupported(UnsupportedType):
    """An action's destination kind has no registered sink."""


class StepRejected(HookitError):
    """Raised by a filter to stop a run without marking it as failed."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason
