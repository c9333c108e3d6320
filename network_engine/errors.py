"""
Error taxonomy for the Network Commission Engine.

ValidationError     - bad input shape (recoverable, usually HTTP 400)
PolicyViolation     - business-rule breach on a payment or payout
DataIntegrityWarning - tolerated data problem, collected and logged, never raised
"""


class EngineError(Exception):
    """Base class for all engine errors."""


class ValidationError(EngineError, ValueError):
    """Input could not be parsed or does not have the expected shape."""


class PolicyViolation(EngineError):
    """
    A business rule rejected the operation.

    `reason` is a stable machine-readable code. When the rejection itself
    caused a state change (late payment force-cancels its parent), the
    resulting Transition is attached so the caller can persist it.
    """

    def __init__(self, reason: str, message: str, transition=None):
        super().__init__(message)
        self.reason = reason
        self.message = message
        self.transition = transition


class DataIntegrityWarning(UserWarning):
    """A record references data that does not exist or is inconsistent."""

    def __init__(self, record_id: str, message: str):
        super().__init__(f"{record_id}: {message}")
        self.record_id = record_id
        self.message = message


class NotFoundError(EngineError, LookupError):
    """A referenced member, sale or investment is not in the snapshot."""
