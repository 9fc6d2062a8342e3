"""Presence tracking.

Converts raw occupancy samples plus a staleness watchdog into a single
occupied/vacant signal. A sensor that goes silent is treated as vacant.
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import Optional

from .config import ConfigStore
from .model import PresenceChanged, PresenceState

_LOGGER = logging.getLogger(__name__)


class PresenceTracker:
    """Derives seat presence from samples and sensor silence."""

    def __init__(self, config_store: ConfigStore, started_at: datetime) -> None:
        """Initialize the tracker.

        Args:
            config_store: Source of the staleness window.
            started_at: Process start. If no sample ever arrives, presence
                becomes vacant one staleness window after this instant.
        """
        self._config_store = config_store
        self._started_at = started_at
        self.state = PresenceState()

    @property
    def occupied(self) -> Optional[bool]:
        return self.state.occupied

    def report_sample(self, occupied: bool, now: datetime) -> PresenceChanged | None:
        """Record a raw sample.

        The timestamp is always refreshed. A change event is only returned
        when the value differs from the current presence.
        """
        previous = self.state.occupied
        self.state = PresenceState(occupied=occupied, last_sample_at=now)

        if previous == occupied:
            _LOGGER.debug(f"Presence sample unchanged (occupied={occupied})")
            return None

        _LOGGER.info(f"Presence: {_label(previous)} -> {_label(occupied)} (sample)")
        return PresenceChanged(occupied=occupied, timestamp=now, reason="sample")

    def check_stale(self, now: datetime) -> PresenceChanged | None:
        """Watchdog check. Forces vacancy once the feed has been silent too long.

        Returns:
            A change event if presence was forced to vacant, else None.
        """
        deadline = self.stale_deadline()
        if deadline is None or now < deadline:
            return None

        previous = self.state.occupied
        self.state = replace(self.state, occupied=False)
        _LOGGER.info(
            f"Presence: {_label(previous)} -> VACANT "
            f"(stale, last sample {self.state.last_sample_at})"
        )
        return PresenceChanged(occupied=False, timestamp=now, reason="stale")

    def stale_deadline(self) -> datetime | None:
        """When the watchdog will next force vacancy, or None if it cannot."""
        window = self._config_store.current.stale_window
        state = self.state

        if state.occupied is True and state.last_sample_at is not None:
            return state.last_sample_at + window
        if state.occupied is None and state.last_sample_at is None:
            return self._started_at + window
        return None


def _label(occupied: Optional[bool]) -> str:
    if occupied is None:
        return "UNKNOWN"
    return "OCCUPIED" if occupied else "VACANT"
