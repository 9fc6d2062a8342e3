"""Tests for thermostat hysteresis."""

import pytest

from seat_climate.model import SeatConfig, ThermostatState
from seat_climate.thermostat import apply_hysteresis

OFF = ThermostatState()
ON = ThermostatState.from_ac(True)


@pytest.fixture
def config():
    return SeatConfig(ac_on_temp=25, ac_off_temp=23)


def test_sequence_with_dead_band(config):
    """Test [24, 25, 26, 23, 22] -> [off, on, on, off, off]."""
    state = OFF
    seen = []
    for temp in [24, 25, 26, 23, 22]:
        state = apply_hysteresis(temp, True, state, config)
        seen.append(state.ac_on)
        assert state.fan_on == state.ac_on

    assert seen == [False, True, True, False, False]


def test_dead_band_holds_state(config):
    """Test readings between the thresholds keep the previous command."""
    assert apply_hysteresis(24, True, ON, config) == ON
    assert apply_hysteresis(24, True, OFF, config) == OFF


def test_closed_reservation_forces_off(config):
    """Test no actuation without a reservation, whatever the temperature."""
    assert apply_hysteresis(40, False, OFF, config) == OFF
    assert apply_hysteresis(40, False, ON, config) == OFF


def test_missing_temperature_holds(config):
    """Test no reading keeps the previous command while reserved."""
    assert apply_hysteresis(None, True, ON, config) == ON
    assert apply_hysteresis(None, True, OFF, config) == OFF
