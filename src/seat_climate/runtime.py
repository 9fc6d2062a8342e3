"""Host for the seat engine.

SeatController is the single actor around SeatEngine: every entry point
(HTTP handlers, the watchdog tick and expiry timers) takes the same lock,
reads the clock once and calls into the engine. Timer callbacks carry the
generation they were armed for and go through the same lock, so a callback
can never act on state captured when it was scheduled.
"""

import logging
import threading
from datetime import UTC, datetime
from typing import Any, Callable, Optional

from .engine import SeatEngine
from .model import SeatConfig
from .notify import NotificationPort

_LOGGER = logging.getLogger(__name__)

Clock = Callable[[], datetime]
# threading.Timer compatible: factory(interval, function, args=...)
TimerFactory = Callable[..., Any]


def _utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


class SeatController:
    """Serializes access to a SeatEngine and drives its timers."""

    def __init__(
        self,
        engine: Optional[SeatEngine] = None,
        config: Optional[SeatConfig] = None,
        notifier: Optional[NotificationPort] = None,
        clock: Clock = _utc_now,
        timer_factory: TimerFactory = threading.Timer,
        watchdog_interval: float = 1.0,
    ) -> None:
        """Initialize the controller.

        Args:
            engine: Engine to drive. Built from config/notifier if omitted.
            config: Initial thresholds for a new engine.
            notifier: Notification port for a new engine.
            clock: Source of the current time.
            timer_factory: Creates one-shot timers (threading.Timer API).
            watchdog_interval: Seconds between staleness checks.
        """
        self._clock = clock
        self.engine = engine or SeatEngine(clock(), config=config, notifier=notifier)
        self._timer_factory = timer_factory
        self._watchdog_interval = watchdog_interval
        self._lock = threading.RLock()
        self._running = False
        self._watchdog_timer: Any = None
        self._expiry_timer: Any = None
        self._expiry_generation: Optional[int] = None

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start the watchdog and arm any pending expiry."""
        with self._lock:
            if self._running:
                return
            self._running = True
            self._schedule_watchdog()
            self._sync_expiry_timer(self._clock())
        _LOGGER.info(f"Seat controller started (watchdog every {self._watchdog_interval}s)")

    def stop(self) -> None:
        """Cancel all timers. State is kept but no longer advances on its own."""
        with self._lock:
            self._running = False
            if self._watchdog_timer is not None:
                self._watchdog_timer.cancel()
                self._watchdog_timer = None
            self._cancel_expiry_timer()
        _LOGGER.info("Seat controller stopped")

    def handle_report(self, payload: Any) -> dict[str, Any]:
        """Apply a sensor report and return the resulting state."""
        with self._lock:
            now = self._clock()
            self.engine.handle_report(payload, now)
            self._sync_expiry_timer(now)
            return self.engine.export_state()

    def toggle_reservation(self, notify_target: Optional[str] = None) -> dict[str, Any]:
        """Flip the reservation and return the resulting state."""
        with self._lock:
            now = self._clock()
            self.engine.toggle_reservation(now, notify_target)
            self._sync_expiry_timer(now)
            return self.engine.export_state()

    def register_notify_target(self, target: Any) -> None:
        with self._lock:
            self.engine.register_notify_target(target)

    def update_config(self, payload: Any) -> SeatConfig:
        """Apply a config update. Raises ValidationError or ConfigRejected."""
        with self._lock:
            return self.engine.update_config(payload)

    def check_timeouts(self) -> dict[str, Any]:
        """Run the watchdog check immediately."""
        with self._lock:
            now = self._clock()
            self.engine.check_timeouts(now)
            self._sync_expiry_timer(now)
            return self.engine.export_state()

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return self.engine.export_state()

    def status(self) -> dict[str, Any]:
        with self._lock:
            return {
                "config": self.engine.config.to_dict(),
                "state": self.engine.export_state(),
            }

    def _on_watchdog(self) -> None:
        with self._lock:
            if not self._running:
                return
            try:
                now = self._clock()
                self.engine.check_timeouts(now)
                self._sync_expiry_timer(now)
            finally:
                # A failed tick must not stop the watchdog
                self._schedule_watchdog()

    def _on_expiry(self, generation: int) -> None:
        with self._lock:
            if not self._running:
                return
            if self._expiry_generation == generation:
                self._expiry_timer = None
                self._expiry_generation = None
            now = self._clock()
            self.engine.fire_expiry(generation, now)
            self._sync_expiry_timer(now)

    def _schedule_watchdog(self) -> None:
        timer = self._timer_factory(self._watchdog_interval, self._on_watchdog)
        timer.daemon = True
        timer.start()
        self._watchdog_timer = timer

    def _sync_expiry_timer(self, now: datetime) -> None:
        """Make the armed host timer match the engine's pending expiry."""
        if not self._running:
            return

        pending = self.engine.pending_expiry
        if pending is None:
            self._cancel_expiry_timer()
            return
        if pending.generation == self._expiry_generation:
            return

        self._cancel_expiry_timer()
        delay = max(0.0, (pending.due_at - now).total_seconds())
        timer = self._timer_factory(delay, self._on_expiry, args=(pending.generation,))
        timer.daemon = True
        timer.start()
        self._expiry_timer = timer
        self._expiry_generation = pending.generation
        _LOGGER.debug(f"Armed expiry timer (generation={pending.generation}, delay={delay:.1f}s)")

    def _cancel_expiry_timer(self) -> None:
        if self._expiry_timer is not None:
            self._expiry_timer.cancel()
            _LOGGER.debug(f"Cancelled expiry timer (generation={self._expiry_generation})")
        self._expiry_timer = None
        self._expiry_generation = None
