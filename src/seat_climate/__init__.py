"""Seat Climate - Reservation and climate control for a single sensed seat."""

from seat_climate.engine import SeatEngine
from seat_climate.exceptions import (
    ConfigRejected,
    NotificationDeliveryFailure,
    SeatClimateError,
    ValidationError,
)
from seat_climate.model import (
    EngineResult,
    LifecycleEvent,
    LifecycleEventKind,
    PendingExpiry,
    PresenceChanged,
    PresenceState,
    ReservationPhase,
    ReservationState,
    SeatConfig,
    ThermostatState,
)
from seat_climate.runtime import SeatController

__version__ = "0.1.0"

__all__ = [
    "SeatEngine",
    "SeatController",
    "ConfigRejected",
    "NotificationDeliveryFailure",
    "SeatClimateError",
    "ValidationError",
    "EngineResult",
    "LifecycleEvent",
    "LifecycleEventKind",
    "PendingExpiry",
    "PresenceChanged",
    "PresenceState",
    "ReservationPhase",
    "ReservationState",
    "SeatConfig",
    "ThermostatState",
]
