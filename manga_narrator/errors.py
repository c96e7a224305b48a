"""Exception types raised inside the narration core."""


class NarratorError(Exception):
    """Base class for narration errors."""


class SynthesisUnavailable(NarratorError):
    """Speech provider failed: network, auth, rate limit or empty audio."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class DecodeFailure(NarratorError):
    """Audio bytes could not be decoded."""


class StorageError(NarratorError):
    """Persistent store read or write failed."""
