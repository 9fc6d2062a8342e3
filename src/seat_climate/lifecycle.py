"""The reservation state machine.

Phases: CLOSED, OPEN_OCCUPIED and OPEN_VACANT_PENDING_EXPIRY. The machine
keeps a single pending expiry at most. Every arming or cancellation bumps a
generation counter, and a fire request is only honoured when its generation
matches the expiry stored in the live state. A stale fire (cancelled, or
superseded by a newer arming) is therefore ignored even if the host failed
to cancel its timer.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Optional

from .config import ConfigStore
from .model import (
    LifecycleEvent,
    LifecycleEventKind,
    PendingExpiry,
    ReservationPhase,
    ReservationState,
)

_LOGGER = logging.getLogger(__name__)


class ReservationLifecycle:
    """Owns the reservation state and its expiry timer."""

    def __init__(self, config_store: ConfigStore) -> None:
        self._config_store = config_store
        self._generation = 0
        self.state = ReservationState()

    @property
    def phase(self) -> ReservationPhase:
        return self.state.phase

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def next_expiration(self) -> datetime | None:
        pending = self.state.pending_expiry
        return pending.due_at if pending else None

    def open(
        self,
        now: datetime,
        occupied: Optional[bool],
        notify_target: Optional[str] = None,
    ) -> LifecycleEvent | None:
        """Open the reservation.

        Arms the expiry only if the seat is known to be vacant. Unknown
        presence is not vacancy.

        Returns:
            A RESERVATION event, or None if already open.
        """
        if self.state.open:
            _LOGGER.debug("Open ignored: reservation already open")
            return None

        # Expiry is computed before the state is replaced so a failure
        # leaves the reservation closed
        pending = self._next_expiry(now) if occupied is False else None
        self.state = ReservationState(
            open=True,
            opened_at=now,
            pending_expiry=pending,
            notify_target=notify_target,
        )

        _LOGGER.info(f"Reservation: CLOSED -> {self.phase.name} (toggle)")
        return LifecycleEvent(
            kind=LifecycleEventKind.RESERVATION,
            timestamp=now,
            notify_target=notify_target,
            message="Seat reserved.",
        )

    def close(self, now: datetime) -> LifecycleEvent | None:
        """Close the reservation manually, cancelling any pending expiry.

        Returns:
            A MANUAL_CLOSED event, or None if the reservation was already
            closed.
        """
        was_open = self.state.open
        previous_phase = self.phase
        target = self.state.notify_target

        self._cancel()
        self.state = ReservationState()

        if not was_open:
            _LOGGER.debug("Close ignored: reservation already closed")
            return None

        _LOGGER.info(f"Reservation: {previous_phase.name} -> CLOSED (manual)")
        return LifecycleEvent(
            kind=LifecycleEventKind.MANUAL_CLOSED,
            timestamp=now,
            notify_target=target,
            message="Seat reservation cancelled.",
        )

    def toggle(
        self,
        now: datetime,
        occupied: Optional[bool],
        notify_target: Optional[str] = None,
    ) -> LifecycleEvent | None:
        """Flip the reservation open/closed."""
        if self.state.open:
            return self.close(now)
        return self.open(now, occupied, notify_target)

    def adopt_notify_target(self, target: str) -> None:
        """Attach a subscriber to an open reservation that has none."""
        if self.state.open and self.state.notify_target is None:
            self.state = replace(self.state, notify_target=target)

    def on_presence_changed(self, occupied: bool, now: datetime) -> None:
        """React to a presence flip.

        Vacancy while open arms a fresh expiry. Occupancy cancels it.
        """
        if not self.state.open:
            return

        if occupied:
            if self.state.pending_expiry is not None:
                self._cancel()
                _LOGGER.info("Reservation: OPEN_VACANT_PENDING_EXPIRY -> OPEN_OCCUPIED")
        else:
            self._arm(now)
            _LOGGER.info(
                f"Reservation: OPEN_OCCUPIED -> OPEN_VACANT_PENDING_EXPIRY "
                f"(expires {self.next_expiration})"
            )

    def due_generation(self, now: datetime) -> int | None:
        """Generation of the pending expiry if it is due at ``now``."""
        pending = self.state.pending_expiry
        if pending and pending.due_at <= now:
            return pending.generation
        return None

    def fire(self, generation: int, now: datetime) -> LifecycleEvent | None:
        """Expiry timer callback.

        Re-validates against the live state: the reservation must still be
        open and vacant, and the generation must match the pending expiry.

        Returns:
            An AUTO_EXPIRED event if the reservation was closed, else None.
        """
        pending = self.state.pending_expiry
        if pending is None or pending.generation != generation:
            _LOGGER.debug(
                f"Ignoring stale expiry (generation={generation}, "
                f"current={pending.generation if pending else None})"
            )
            return None

        if self.phase != ReservationPhase.OPEN_VACANT_PENDING_EXPIRY:
            return None

        target = self.state.notify_target
        self._generation += 1
        self.state = ReservationState()

        _LOGGER.info("Reservation: OPEN_VACANT_PENDING_EXPIRY -> CLOSED (expired)")
        return LifecycleEvent(
            kind=LifecycleEventKind.AUTO_EXPIRED,
            timestamp=now,
            notify_target=target,
            message="Seat reservation expired: the seat was left empty.",
        )

    def _next_expiry(self, now: datetime) -> PendingExpiry:
        due_at = now + self._config_store.current.grace_duration
        self._generation += 1
        return PendingExpiry(generation=self._generation, due_at=due_at)

    def _arm(self, now: datetime) -> None:
        # Supersedes any existing expiry
        self.state = replace(self.state, pending_expiry=self._next_expiry(now))

    def _cancel(self) -> None:
        if self.state.pending_expiry is None:
            return
        self._generation += 1
        self.state = replace(self.state, pending_expiry=None)
