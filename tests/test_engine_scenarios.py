"""End-to-end scenarios for the seat engine."""

from datetime import datetime, timedelta

import pytest

from seat_climate.engine import SeatEngine
from seat_climate.exceptions import ConfigRejected, ValidationError
from seat_climate.model import LifecycleEventKind, ReservationPhase, SeatConfig

START = datetime(2025, 1, 1, 12, 0, 0)


class RecordingNotifier:
    """Collects notifications instead of sending them."""

    def __init__(self):
        self.sent = []

    def notify(self, target, kind, message):
        self.sent.append((target, kind, message))


class FailingNotifier:
    def notify(self, target, kind, message):
        raise ConnectionError("push service unreachable")


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def engine(notifier):
    """Create an engine with a 25/23 band, 10s grace and 10s staleness."""
    config = SeatConfig(
        ac_on_temp=25,
        ac_off_temp=23,
        grace_duration=timedelta(seconds=10),
        stale_window=timedelta(seconds=10),
    )
    return SeatEngine(START, config=config, notifier=notifier)


def test_temperature_sequence_while_reserved(engine):
    """Case: [24, 25, 26, 23, 22] under a reservation -> [off, on, on, off, off]."""
    engine.report_sample(True, START)
    engine.toggle_reservation(START)

    seen = []
    for i, temp in enumerate([24, 25, 26, 23, 22]):
        engine.report_temperature(temp, START + timedelta(seconds=i))
        seen.append((engine.thermostat.ac_on, engine.thermostat.fan_on))

    assert seen == [
        (False, False),
        (True, True),
        (True, True),
        (False, False),
        (False, False),
    ]


def test_no_actuation_without_reservation(engine):
    """Case: hot seat without a reservation keeps the AC off."""
    engine.report_temperature(30, START)
    assert engine.thermostat.ac_on is False


def test_auto_expiry_when_nobody_arrives(engine, notifier):
    """Case: reserved while vacant, nobody shows up, reservation expires."""
    engine.report_sample(False, START)
    engine.register_notify_target("tok")
    result = engine.toggle_reservation(START)
    assert result.next_expiration == START + timedelta(seconds=10)

    engine.report_temperature(30, START + timedelta(seconds=1))
    assert engine.thermostat.ac_on is True

    result = engine.check_timeouts(START + timedelta(seconds=9))
    assert result.events == []
    assert engine.lifecycle.state.open is True

    result = engine.check_timeouts(START + timedelta(seconds=10))
    assert [e.kind for e in result.events] == [LifecycleEventKind.AUTO_EXPIRED]
    assert engine.lifecycle.phase == ReservationPhase.CLOSED
    assert engine.thermostat.ac_on is False
    assert engine.thermostat.fan_on is False
    assert engine.lifecycle.state.notify_target is None

    kinds = [kind for _, kind, _ in notifier.sent]
    assert kinds == [LifecycleEventKind.RESERVATION, LifecycleEventKind.AUTO_EXPIRED]
    assert all(target == "tok" for target, _, _ in notifier.sent)


def test_race_stale_fire_is_ignored(engine):
    """Case: T1 armed, cancelled by occupancy, T2 armed; only T2 matters."""
    engine.report_sample(False, START)
    engine.toggle_reservation(START)
    t1 = engine.pending_expiry.generation

    engine.report_sample(True, START + timedelta(seconds=4))
    assert engine.pending_expiry is None

    engine.report_sample(False, START + timedelta(seconds=6))
    t2 = engine.pending_expiry.generation
    assert engine.pending_expiry.due_at == START + timedelta(seconds=16)

    # T1's original fire time
    result = engine.fire_expiry(t1, START + timedelta(seconds=10))
    assert result.events == []
    result = engine.check_timeouts(START + timedelta(seconds=10))
    assert result.events == []
    assert engine.lifecycle.state.open is True

    result = engine.fire_expiry(t2, START + timedelta(seconds=16))
    assert [e.kind for e in result.events] == [LifecycleEventKind.AUTO_EXPIRED]
    assert engine.lifecycle.state.open is False


def test_staleness_arms_expiry_at_watchdog_time(engine):
    """Case: occupied at t=0 then silence; expiry is armed at t=11, not t=0."""
    engine.report_sample(True, START)
    engine.toggle_reservation(START)
    assert engine.pending_expiry is None

    result = engine.check_timeouts(START + timedelta(seconds=11))
    assert result.presence_change is not None
    assert result.presence_change.reason == "stale"
    assert engine.presence.occupied is False
    assert engine.pending_expiry.due_at == START + timedelta(seconds=21)
    assert engine.lifecycle.state.open is True


def test_unknown_presence_does_not_expire(engine):
    """Case: reserved before any sample; no expiry until the feed is stale."""
    engine.toggle_reservation(START)
    assert engine.pending_expiry is None

    engine.check_timeouts(START + timedelta(seconds=5))
    assert engine.pending_expiry is None

    # Window from start elapsed without a sample: now vacant
    engine.check_timeouts(START + timedelta(seconds=10))
    assert engine.pending_expiry.due_at == START + timedelta(seconds=20)


def test_duplicate_presence_does_not_rearm(engine):
    """Case: the same vacancy twice keeps the original timer."""
    engine.report_sample(True, START)
    engine.toggle_reservation(START)
    engine.report_sample(False, START + timedelta(seconds=1))
    first = engine.pending_expiry

    engine.report_sample(False, START + timedelta(seconds=3))
    assert engine.pending_expiry == first


def test_manual_close_forces_off_and_notifies(engine, notifier):
    """Case: closing by toggle turns everything off and notifies."""
    engine.report_sample(True, START)
    engine.toggle_reservation(START, notify_target="phone")
    engine.report_temperature(30, START)
    assert engine.thermostat.ac_on is True

    result = engine.toggle_reservation(START + timedelta(seconds=5))
    assert [e.kind for e in result.events] == [LifecycleEventKind.MANUAL_CLOSED]
    assert engine.thermostat.ac_on is False
    assert notifier.sent[-1][:2] == ("phone", LifecycleEventKind.MANUAL_CLOSED)


def test_open_with_hot_seat_starts_ac(engine):
    """Case: opening re-evaluates the last known temperature."""
    engine.report_temperature(26, START)
    engine.report_sample(True, START)
    engine.toggle_reservation(START)
    assert engine.thermostat.ac_on is True


def test_config_update_reevaluates(engine):
    """Case: lowering the on-threshold takes effect without a new sample."""
    engine.report_sample(True, START)
    engine.toggle_reservation(START)
    engine.report_temperature(24, START)
    assert engine.thermostat.ac_on is False

    engine.update_config({"acOnTemp": 24, "acOffTemp": 22, "graceDuration": 10})
    assert engine.thermostat.ac_on is True


def test_rejected_config_keeps_state(engine):
    """Case: an invalid config changes nothing."""
    previous = engine.config
    with pytest.raises(ConfigRejected):
        engine.update_config({"acOnTemp": 20, "acOffTemp": 22, "graceDuration": 10})
    assert engine.config is previous


def test_report_validation_is_all_or_nothing(engine):
    """Case: a bad field rejects the whole report."""
    with pytest.raises(ValidationError):
        engine.handle_report({"temperature": 30, "seatUsed": "yes"}, START)
    assert engine.temperature is None
    assert engine.presence.occupied is None

    with pytest.raises(ValidationError):
        engine.handle_report({"temperature": True}, START)
    with pytest.raises(ValidationError):
        engine.handle_report({"temperature": None}, START)
    with pytest.raises(ValidationError):
        engine.handle_report("seatUsed=true", START)


def test_handle_report_applies_both(engine):
    """Case: a valid report feeds temperature and presence."""
    result = engine.handle_report({"temperature": 22.5, "seatUsed": True}, START)
    assert engine.temperature == 22.5
    assert engine.presence.occupied is True
    assert result.presence_change.occupied is True


def test_register_notify_target_validation(engine):
    """Case: an empty or non-string token is rejected."""
    with pytest.raises(ValidationError):
        engine.register_notify_target(None)
    with pytest.raises(ValidationError):
        engine.register_notify_target(42)


def test_target_registered_after_opening_is_adopted(engine, notifier):
    """Case: saving a token mid-reservation still gets the expiry message."""
    engine.report_sample(False, START)
    engine.toggle_reservation(START)
    engine.register_notify_target("late")

    engine.check_timeouts(START + timedelta(seconds=10))
    assert [(target, kind) for target, kind, _ in notifier.sent] == [
        ("late", LifecycleEventKind.AUTO_EXPIRED)
    ]


def test_notification_failure_does_not_affect_state():
    """Case: a failing notifier is swallowed."""
    engine = SeatEngine(
        START,
        config=SeatConfig(grace_duration=timedelta(seconds=10)),
        notifier=FailingNotifier(),
    )
    engine.report_sample(False, START)
    engine.toggle_reservation(START, notify_target="tok")
    assert engine.lifecycle.state.open is True

    result = engine.check_timeouts(START + timedelta(seconds=10))
    assert len(result.events) == 1
    assert engine.lifecycle.state.open is False


def test_export_state_shape(engine):
    """Case: exported state is JSON-friendly and has no timer handles."""
    engine.report_sample(False, START)
    engine.toggle_reservation(START)
    state = engine.export_state()

    assert state["seatReserved"] is True
    assert state["seatUsed"] is False
    assert state["alarm"] is True
    assert state["reservationPhase"] == "open_vacant_pending_expiry"
    assert state["expiresAt"] == (START + timedelta(seconds=10)).isoformat()
    assert state["lastSampleAt"] == START.isoformat()
    assert "pendingExpiry" not in state


def test_next_expiration_prefers_earliest(engine):
    """Case: next wakeup is the earlier of staleness and expiry."""
    engine.report_sample(True, START)
    result = engine.toggle_reservation(START)
    assert result.next_expiration == START + timedelta(seconds=10)

    result = engine.report_sample(False, START + timedelta(seconds=2))
    assert result.next_expiration == START + timedelta(seconds=12)


def test_oversized_durations_rejected_before_reserving(engine):
    """Case: huge grace/staleness values are refused and reserving still works."""
    previous = engine.config
    with pytest.raises(ConfigRejected):
        engine.update_config({"staleWindow": 1e13, "graceDuration": 1e13})
    assert engine.config is previous

    engine.report_sample(False, START)
    result = engine.toggle_reservation(START)
    assert engine.lifecycle.state.open is True
    assert engine.pending_expiry.due_at == START + timedelta(seconds=10)
    assert result.next_expiration == START + timedelta(seconds=10)


@pytest.mark.parametrize("temperature", [10**400, float("nan"), float("inf")])
def test_unrepresentable_temperature_rejected(engine, temperature):
    """Case: temperatures that are not finite floats are validation errors."""
    with pytest.raises(ValidationError):
        engine.handle_report({"temperature": temperature, "seatUsed": True}, START)
    assert engine.temperature is None
    assert engine.presence.occupied is None
