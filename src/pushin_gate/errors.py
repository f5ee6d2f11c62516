"""Error taxonomy for the access gate.

Wrong-state commands are not errors: the state machine ignores them.
"""


class PushinGateError(Exception):
    """Base class for all gate errors."""


class InvalidDuration(PushinGateError, ValueError):
    """An unlock session was requested with a non-positive length."""

    def __init__(self, duration_seconds: int):
        self.duration_seconds = duration_seconds
        super().__init__(f"duration_seconds must be positive (got {duration_seconds})")


class InvalidAmount(PushinGateError, ValueError):
    """A ledger delta was zero or negative."""

    def __init__(self, seconds: int):
        self.seconds = seconds
        super().__init__(f"seconds must be positive (got {seconds})")


class StorageUnavailable(PushinGateError):
    """The persistence collaborator failed to read or write."""
