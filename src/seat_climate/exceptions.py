"""Exceptions raised by the seat climate library."""

from typing import Optional


class SeatClimateError(Exception):
    """Base class for all library errors."""


class ValidationError(SeatClimateError):
    """A request payload had the wrong shape or type.

    Raised before any state is touched, so the request is rejected as a whole.
    """

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class ConfigRejected(SeatClimateError):
    """A config update violated the threshold or duration rules."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class NotificationDeliveryFailure(SeatClimateError):
    """A lifecycle notification could not be delivered."""

    def __init__(self, target: Optional[str], kind: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Failed to deliver {kind} notification to {target}: {cause}")
        self.target = target
        self.kind = kind
        self.cause = cause
