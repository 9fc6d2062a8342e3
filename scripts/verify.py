"""Real-world test script for the seat engine."""

from datetime import datetime, timedelta

from seat_climate.engine import SeatEngine
from seat_climate.model import SeatConfig


# 1. Setup Config (5-second grace period instead of the default 3 minutes)
config = SeatConfig(ac_on_temp=25, ac_off_temp=23, grace_duration=timedelta(seconds=5))
now = datetime.now()
engine = SeatEngine(now, config=config)

# 2. Seat is empty, reserve it anyway
engine.report_sample(False, now)
result = engine.toggle_reservation(now, notify_target="demo-token")

# 3. Check Result
print(f"Reserved: {engine.lifecycle.state.open} ({engine.lifecycle.phase.name})")
print(f"Current time: {now}")
print(f"Expires at: {result.next_expiration}")  # Should be Now + 5 seconds

# 4. Hot seat turns the AC on while reserved
engine.report_temperature(26, now)
print(f"AC on: {engine.thermostat.ac_on}, fan on: {engine.thermostat.fan_on}")

# 5. Let the grace period run out
later = now + timedelta(seconds=5)
result = engine.check_timeouts(later)
for event in result.events:
    print(f"Event: {event.kind.value} -> {event.notify_target}: {event.message}")
print(f"Reserved: {engine.lifecycle.state.open}, AC on: {engine.thermostat.ac_on}")
