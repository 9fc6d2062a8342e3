"""Thermostat hysteresis."""

import logging
from typing import Optional

from .model import SeatConfig, ThermostatState

_LOGGER = logging.getLogger(__name__)


def apply_hysteresis(
    temperature: Optional[float],
    reservation_open: bool,
    previous: ThermostatState,
    config: SeatConfig,
) -> ThermostatState:
    """Compute the actuator command for a temperature reading.

    Without an open reservation everything is forced off. Otherwise the AC
    turns on at or above ac_on_temp, turns off at or below ac_off_temp, and
    holds its previous state in between. The fan mirrors the AC.

    Args:
        temperature: Latest reading, or None if none has been reported.
        reservation_open: Whether the seat is currently reserved.
        previous: The current actuator state.
        config: Thresholds to apply.

    Returns:
        The new actuator state.
    """
    if not reservation_open:
        return ThermostatState()

    ac_on = previous.ac_on
    if temperature is not None:
        if not ac_on and temperature >= config.ac_on_temp:
            ac_on = True
        elif ac_on and temperature <= config.ac_off_temp:
            ac_on = False

    if ac_on != previous.ac_on:
        _LOGGER.info(f"AC {'ON' if ac_on else 'OFF'} at {temperature}")
    return ThermostatState.from_ac(ac_on)
