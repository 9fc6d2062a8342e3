"""Data models for the seat climate library.

This module defines the core data structures used throughout the library.
All state classes are frozen (immutable) so that the engine can swap them
atomically and hand out snapshots without copying.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional


class ReservationPhase(Enum):
    """Phase of the seat reservation."""

    CLOSED = "closed"
    OPEN_OCCUPIED = "open_occupied"  # Open, seat not known to be vacant
    OPEN_VACANT_PENDING_EXPIRY = "open_vacant_pending_expiry"  # Expiry armed


class LifecycleEventKind(Enum):
    """Kind of reservation lifecycle event."""

    RESERVATION = "reservation"  # Reservation opened
    AUTO_EXPIRED = "auto_expired"  # Grace period ran out while vacant
    MANUAL_CLOSED = "manual_closed"  # Closed by toggle


@dataclass(frozen=True)
class SeatConfig:
    """Tunable thresholds for the seat.

    Attributes:
        ac_on_temp: Temperature at or above which the AC turns on.
        ac_off_temp: Temperature at or below which the AC turns off.
            Must be strictly lower than ac_on_temp.
        grace_duration: How long a reservation survives vacancy.
        stale_window: Maximum sensor silence before presence is
            treated as vacant.
    """

    ac_on_temp: float = 27.0
    ac_off_temp: float = 24.0
    grace_duration: timedelta = field(default_factory=lambda: timedelta(minutes=3))
    stale_window: timedelta = field(default_factory=lambda: timedelta(seconds=30))

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form (camelCase keys, durations in seconds)."""
        return {
            "acOnTemp": self.ac_on_temp,
            "acOffTemp": self.ac_off_temp,
            "graceDuration": self.grace_duration.total_seconds(),
            "staleWindow": self.stale_window.total_seconds(),
        }


@dataclass(frozen=True)
class PresenceState:
    """Derived occupancy of the seat.

    Attributes:
        occupied: True/False once known; None until the first sample
            arrives (or the staleness window from start has elapsed).
        last_sample_at: When the most recent raw sample was received.
    """

    occupied: Optional[bool] = None
    last_sample_at: Optional[datetime] = None


@dataclass(frozen=True)
class PendingExpiry:
    """A scheduled reservation expiry.

    The generation identifies the arming. A fire request only applies if
    its generation equals the one stored in the live reservation state.
    """

    generation: int
    due_at: datetime


@dataclass(frozen=True)
class ReservationState:
    """Runtime state of the reservation.

    Attributes:
        open: Whether the seat is currently reserved.
        opened_at: When the reservation was opened.
        pending_expiry: Armed expiry, present only while open and vacant.
        notify_target: Opaque subscriber id for lifecycle notifications.
    """

    open: bool = False
    opened_at: Optional[datetime] = None
    pending_expiry: Optional[PendingExpiry] = None
    notify_target: Optional[str] = None

    @property
    def phase(self) -> ReservationPhase:
        if not self.open:
            return ReservationPhase.CLOSED
        if self.pending_expiry is not None:
            return ReservationPhase.OPEN_VACANT_PENDING_EXPIRY
        return ReservationPhase.OPEN_OCCUPIED


@dataclass(frozen=True)
class ThermostatState:
    """Actuator command. The fan always mirrors the AC."""

    ac_on: bool = False
    fan_on: bool = False

    @classmethod
    def from_ac(cls, ac_on: bool) -> "ThermostatState":
        return cls(ac_on=ac_on, fan_on=ac_on)


@dataclass(frozen=True)
class PresenceChanged:
    """Emitted by the presence tracker when the derived value flips.

    Attributes:
        occupied: The new presence value.
        timestamp: When the change was decided.
        reason: "sample" for a raw sensor report, "stale" for the watchdog.
    """

    occupied: bool
    timestamp: datetime
    reason: str = "sample"


@dataclass(frozen=True)
class LifecycleEvent:
    """A reservation lifecycle event destined for the notification port.

    Attributes:
        kind: What happened.
        timestamp: When it happened.
        notify_target: Subscriber in effect at the time (may be None).
        message: Human-readable notification body.
    """

    kind: LifecycleEventKind
    timestamp: datetime
    notify_target: Optional[str] = None
    message: str = ""


@dataclass(frozen=True)
class EngineResult:
    """Result from engine operations.

    Attributes:
        next_expiration: Next datetime when a timeout check is needed.
        events: Lifecycle events emitted by the operation.
        presence_change: Presence change produced by the operation, if any.
    """

    next_expiration: Optional[datetime]
    events: list[LifecycleEvent] = field(default_factory=list)
    presence_change: Optional[PresenceChanged] = None
