"""The Core Logic Engine for the seat.

This module contains the pure business logic. It accepts inputs and time,
and returns lifecycle events and scheduling instructions. It never reads the
clock or starts timers; the host (see ``runtime``) owns both and must
serialize every call.
"""

import logging
from datetime import datetime
from typing import Any, Mapping, Optional, Union

from .config import ConfigStore, finite_float
from .exceptions import ValidationError
from .lifecycle import ReservationLifecycle
from .model import (
    EngineResult,
    LifecycleEvent,
    PendingExpiry,
    PresenceChanged,
    ReservationPhase,
    SeatConfig,
    ThermostatState,
)
from .notify import LoggingNotifier, NotificationPort
from .presence import PresenceTracker
from .thermostat import apply_hysteresis

_LOGGER = logging.getLogger(__name__)


class SeatEngine:
    """The functional core of the seat reservation and climate system."""

    def __init__(
        self,
        started_at: datetime,
        config: SeatConfig | None = None,
        notifier: NotificationPort | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            started_at: Process start time, used to decide when an absent
                sensor feed may be treated as vacancy.
            config: Initial thresholds (defaults if omitted).
            notifier: Port for lifecycle notifications.
        """
        self.config_store = ConfigStore(config)
        self.presence = PresenceTracker(self.config_store, started_at)
        self.lifecycle = ReservationLifecycle(self.config_store)
        self.thermostat = ThermostatState()
        self.temperature: Optional[float] = None
        self.default_notify_target: Optional[str] = None
        self._notifier: NotificationPort = notifier or LoggingNotifier()

        self.config_store.subscribe(self._on_config_changed)

    @property
    def config(self) -> SeatConfig:
        return self.config_store.current

    @property
    def pending_expiry(self) -> PendingExpiry | None:
        return self.lifecycle.state.pending_expiry

    @property
    def alarm(self) -> bool:
        """True while the seat is reserved but empty and counting down."""
        return self.lifecycle.phase == ReservationPhase.OPEN_VACANT_PENDING_EXPIRY

    def handle_report(self, payload: Any, now: datetime) -> EngineResult:
        """Process a sensor report of the form {temperature?, seatUsed?}.

        Both fields are validated before anything is applied.

        Raises:
            ValidationError: If the payload or a field has the wrong type.
        """
        if not isinstance(payload, Mapping):
            raise ValidationError("body", "request body must be a JSON object")

        has_temperature = "temperature" in payload
        has_seat = "seatUsed" in payload
        seat_used = payload.get("seatUsed")

        temperature = None
        if has_temperature:
            temperature = finite_float("temperature", payload["temperature"])
        if has_seat and not isinstance(seat_used, bool):
            raise ValidationError("seatUsed", "seatUsed must be true or false")

        if has_temperature:
            self._apply_temperature(temperature)

        change = None
        if has_seat:
            change = self._apply_sample(seat_used, now)

        return self._result(now, presence_change=change)

    def report_sample(self, occupied: bool, now: datetime) -> EngineResult:
        """Feed one raw occupancy sample."""
        change = self._apply_sample(occupied, now)
        return self._result(now, presence_change=change)

    def report_temperature(self, temperature: float, now: datetime) -> EngineResult:
        """Feed one temperature reading."""
        self._apply_temperature(temperature)
        return self._result(now)

    def toggle_reservation(
        self, now: datetime, notify_target: Optional[str] = None
    ) -> EngineResult:
        """Open the reservation if closed, close it if open.

        Args:
            now: Current datetime.
            notify_target: Subscriber for this reservation. Falls back to
                the registered default target.
        """
        event = self.lifecycle.toggle(
            now,
            self.presence.occupied,
            notify_target or self.default_notify_target,
        )
        return self._after_lifecycle_change(event, now)

    def open_reservation(
        self, now: datetime, notify_target: Optional[str] = None
    ) -> EngineResult:
        event = self.lifecycle.open(
            now,
            self.presence.occupied,
            notify_target or self.default_notify_target,
        )
        return self._after_lifecycle_change(event, now)

    def close_reservation(self, now: datetime) -> EngineResult:
        event = self.lifecycle.close(now)
        return self._after_lifecycle_change(event, now)

    def register_notify_target(self, target: Any) -> None:
        """Register the default subscriber for lifecycle notifications.

        An open reservation without a subscriber adopts it.

        Raises:
            ValidationError: If the target is missing or not a string.
        """
        if not isinstance(target, str) or not target:
            raise ValidationError("fcmToken", "fcmToken is required")

        self.default_notify_target = target
        self.lifecycle.adopt_notify_target(target)
        _LOGGER.info("Registered notification target")

    def update_config(self, new_config: Union[SeatConfig, Mapping[str, Any]]) -> SeatConfig:
        """Apply a config update (dataclass or JSON payload).

        The thermostat is re-evaluated against the last known temperature
        as soon as the update is accepted.

        Raises:
            ValidationError: If a payload value has the wrong type.
            ConfigRejected: If the thresholds or durations are invalid.
        """
        if isinstance(new_config, SeatConfig):
            return self.config_store.update(new_config)
        return self.config_store.update_from_payload(new_config)

    def check_timeouts(self, now: datetime) -> EngineResult:
        """Periodic watchdog. Applies sensor staleness and due expiries.

        Args:
            now: Current datetime.

        Returns:
            EngineResult with emitted events and next expiration time.
        """
        _LOGGER.debug(f"Checking timeouts at {now}")

        change = self.presence.check_stale(now)
        if change is not None:
            self.lifecycle.on_presence_changed(change.occupied, now)

        events: list[LifecycleEvent] = []
        generation = self.lifecycle.due_generation(now)
        if generation is not None:
            event = self._fire(generation, now)
            if event is not None:
                events.append(event)

        return self._result(now, events=events, presence_change=change)

    def fire_expiry(self, generation: int, now: datetime) -> EngineResult:
        """Entry point for an expiry timer armed for ``generation``.

        A no-op unless that arming is still the live pending expiry.
        """
        event = self._fire(generation, now)
        return self._result(now, events=[event] if event else [])

    def export_state(self) -> dict[str, Any]:
        """Creates a JSON-serializable dump of the current state.

        Timer bookkeeping is reduced to the expiry instant.
        """
        presence = self.presence.state
        reservation = self.lifecycle.state
        pending = reservation.pending_expiry

        return {
            "temperature": self.temperature,
            "acOn": self.thermostat.ac_on,
            "fanOn": self.thermostat.fan_on,
            "seatUsed": presence.occupied,
            "lastSampleAt": (
                presence.last_sample_at.isoformat() if presence.last_sample_at else None
            ),
            "seatReserved": reservation.open,
            "reservationPhase": reservation.phase.value,
            "reservedAt": (
                reservation.opened_at.isoformat() if reservation.opened_at else None
            ),
            "expiresAt": pending.due_at.isoformat() if pending else None,
            "alarm": self.alarm,
        }

    def _apply_sample(self, occupied: bool, now: datetime) -> PresenceChanged | None:
        change = self.presence.report_sample(occupied, now)
        if change is not None:
            self.lifecycle.on_presence_changed(change.occupied, now)
        return change

    def _apply_temperature(self, temperature: float) -> None:
        self.temperature = temperature
        self._reevaluate_thermostat()

    def _fire(self, generation: int, now: datetime) -> LifecycleEvent | None:
        event = self.lifecycle.fire(generation, now)
        if event is not None:
            self._reevaluate_thermostat()
            self._dispatch([event])
        return event

    def _after_lifecycle_change(
        self, event: LifecycleEvent | None, now: datetime
    ) -> EngineResult:
        self._reevaluate_thermostat()
        events = [event] if event else []
        self._dispatch(events)
        return self._result(now, events=events)

    def _reevaluate_thermostat(self) -> None:
        self.thermostat = apply_hysteresis(
            self.temperature,
            self.lifecycle.state.open,
            self.thermostat,
            self.config,
        )

    def _on_config_changed(self, config: SeatConfig) -> None:
        self._reevaluate_thermostat()

    def _dispatch(self, events: list[LifecycleEvent]) -> None:
        """Hand events to the notifier. Never raises."""
        for event in events:
            if event.notify_target is None:
                _LOGGER.debug(f"No notification target for {event.kind.value}")
                continue
            try:
                self._notifier.notify(event.notify_target, event.kind, event.message)
            except Exception as e:
                _LOGGER.error(
                    f"Failed to dispatch {event.kind.value} notification: {e}",
                    exc_info=True,
                )

    def _result(
        self,
        now: datetime,
        events: list[LifecycleEvent] | None = None,
        presence_change: PresenceChanged | None = None,
    ) -> EngineResult:
        return EngineResult(
            next_expiration=self._calculate_next_expiration(now),
            events=events or [],
            presence_change=presence_change,
        )

    def _calculate_next_expiration(self, now: datetime) -> datetime | None:
        """Find the earliest instant the host must call check_timeouts().

        Args:
            now: Current datetime.

        Returns:
            Earliest of the pending expiry and the staleness deadline, or
            None if neither is active.
        """
        candidates = [
            t
            for t in (self.lifecycle.next_expiration, self.presence.stale_deadline())
            if t is not None
        ]
        return min(candidates) if candidates else None
