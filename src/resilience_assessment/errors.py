"""Exception hierarchy for the Resilience Assessment service.

Expected outcomes of code validation (invalid, expired, retake blocked) are
returned as values by the retake state machine and are never raised. The
exceptions below cover caller mistakes and missing records; unexpected data
store failures propagate as whatever the store raised.
"""


class ResilienceError(Exception):
    """Base class for all service errors."""


class NotFoundError(ResilienceError):
    """Raised when a requested record does not exist."""


class ConflictError(ResilienceError):
    """Raised when a write conflicts with the current state of a record."""


class ValidationError(ResilienceError):
    """Raised when caller-supplied input is malformed or out of range."""


class SessionNotFoundError(NotFoundError):
    """Raised when no assessment session exists for the given id."""


class SessionCompletedError(ConflictError):
    """Raised when writing responses to a session that is already complete."""


class AccessDeniedError(ResilienceError):
    """Raised when a session is requested for a code that fails an access gate."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class RetakeNotAllowedError(ConflictError):
    """Raised when a new attempt is forced but the retake policy forbids it."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class InvalidResponseError(ValidationError):
    """Raised when a response references an unknown question or an out-of-scale value."""


class ScoreRangeError(ValidationError):
    """Raised when a set of score ranges does not partition the score scale."""
