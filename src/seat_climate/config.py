"""Runtime-mutable configuration for the seat.

The ConfigStore holds the current SeatConfig and notifies listeners after a
successful update so that new thresholds take effect immediately.
"""

import logging
import math
import os
from dataclasses import replace
from datetime import timedelta
from typing import Any, Callable, Mapping, Optional

from .exceptions import ConfigRejected, ValidationError
from .model import SeatConfig

_LOGGER = logging.getLogger(__name__)

ConfigListener = Callable[[SeatConfig], None]

# JSON key -> SeatConfig attribute
_PAYLOAD_FIELDS = {
    "acOnTemp": "ac_on_temp",
    "acOffTemp": "ac_off_temp",
    "graceDuration": "grace_duration",
    "staleWindow": "stale_window",
}
_DURATION_FIELDS = {"grace_duration", "stale_window"}

# Environment variable -> SeatConfig attribute
_ENV_FIELDS = {
    "SEAT_AC_ON_TEMP": "ac_on_temp",
    "SEAT_AC_OFF_TEMP": "ac_off_temp",
    "SEAT_GRACE_SECONDS": "grace_duration",
    "SEAT_STALE_SECONDS": "stale_window",
}


# Upper bound for grace period and staleness window; keeps date arithmetic
# on any reachable timestamp in range
MAX_DURATION = timedelta(days=365)


def is_number(value: Any) -> bool:
    """True for int/float values. Booleans are not numbers here."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def finite_float(field: str, value: Any) -> float:
    """Convert a decoded JSON number to a finite float.

    Raises:
        ValidationError: If the value is not a number, is NaN or infinite,
            or does not fit in a float.
    """
    if not is_number(value):
        raise ValidationError(field, f"{field} must be a number")
    try:
        number = float(value)
    except OverflowError:
        raise ValidationError(field, f"{field} is out of range") from None
    if not math.isfinite(number):
        raise ValidationError(field, f"{field} must be a finite number")
    return number


def duration_from_seconds(field: str, seconds: float) -> timedelta:
    """Build a duration, rejecting values outside [0, MAX_DURATION].

    Raises:
        ConfigRejected: If the duration is negative or too long.
    """
    if seconds < 0:
        raise ConfigRejected(f"{field} must not be negative")
    if seconds > MAX_DURATION.total_seconds():
        raise ConfigRejected(
            f"{field} must not exceed {int(MAX_DURATION.total_seconds())} seconds"
        )
    return timedelta(seconds=seconds)


def validate_config(config: SeatConfig) -> None:
    """Check the config invariants.

    Raises:
        ConfigRejected: If the hysteresis band is empty or inverted, a
            temperature is not finite, or a duration is negative or longer
            than MAX_DURATION.
    """
    for name in ("ac_on_temp", "ac_off_temp"):
        if not math.isfinite(getattr(config, name)):
            raise ConfigRejected(f"{name} must be a finite number")

    if config.ac_on_temp <= config.ac_off_temp:
        raise ConfigRejected(
            f"acOnTemp ({config.ac_on_temp}) must be greater than "
            f"acOffTemp ({config.ac_off_temp})"
        )

    for key, duration in (
        ("graceDuration", config.grace_duration),
        ("staleWindow", config.stale_window),
    ):
        if duration < timedelta(0):
            raise ConfigRejected(f"{key} must not be negative")
        if duration > MAX_DURATION:
            raise ConfigRejected(
                f"{key} must not exceed {int(MAX_DURATION.total_seconds())} seconds"
            )


def config_from_payload(payload: Any, base: SeatConfig) -> SeatConfig:
    """Merge a JSON config payload onto an existing config.

    Keys that are absent keep the value from ``base``. Durations are given
    in seconds.

    Args:
        payload: Decoded JSON body.
        base: The config the payload is applied to.

    Returns:
        The merged (not yet validated) config.

    Raises:
        ValidationError: If the payload is not an object or a value is not
            a finite number.
        ConfigRejected: If a duration is out of range.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("body", "config body must be a JSON object")

    changes: dict[str, Any] = {}
    for key, attr in _PAYLOAD_FIELDS.items():
        if key not in payload:
            continue
        value = finite_float(key, payload[key])
        if attr in _DURATION_FIELDS:
            changes[attr] = duration_from_seconds(key, value)
        else:
            changes[attr] = value

    return replace(base, **changes)


def config_from_env(
    environ: Optional[Mapping[str, str]] = None,
    base: Optional[SeatConfig] = None,
) -> SeatConfig:
    """Build the startup config from SEAT_* environment variables.

    Raises:
        ConfigRejected: If a variable cannot be parsed or the result is
            invalid.
    """
    if environ is None:
        environ = os.environ
    config = base or SeatConfig()

    changes: dict[str, Any] = {}
    for var, attr in _ENV_FIELDS.items():
        raw = environ.get(var)
        if raw is None or raw == "":
            continue
        try:
            value = float(raw)
        except ValueError:
            raise ConfigRejected(f"{var} must be a number, got {raw!r}") from None
        if not math.isfinite(value):
            raise ConfigRejected(f"{var} must be a finite number, got {raw!r}")
        if attr in _DURATION_FIELDS:
            changes[attr] = duration_from_seconds(var, value)
        else:
            changes[attr] = value

    config = replace(config, **changes)
    validate_config(config)
    return config


class ConfigStore:
    """Holds the current SeatConfig.

    Updates are all-or-nothing: an invalid config is rejected and the
    previous one stays in effect.
    """

    def __init__(self, config: Optional[SeatConfig] = None) -> None:
        config = config or SeatConfig()
        validate_config(config)
        self._config = config
        self._listeners: list[ConfigListener] = []

    @property
    def current(self) -> SeatConfig:
        return self._config

    def subscribe(self, listener: ConfigListener) -> None:
        """Register a callable invoked with the new config after each update."""
        self._listeners.append(listener)

    def update(self, new_config: SeatConfig) -> SeatConfig:
        """Replace the current config.

        Args:
            new_config: The candidate config.

        Returns:
            The config now in effect.

        Raises:
            ConfigRejected: If the candidate violates the invariants.
        """
        try:
            validate_config(new_config)
        except ConfigRejected as e:
            _LOGGER.warning(f"Config update rejected: {e.reason}")
            raise

        previous = self._config
        self._config = new_config
        _LOGGER.info(f"Config updated: {previous.to_dict()} -> {new_config.to_dict()}")

        for listener in self._listeners:
            listener(new_config)
        return new_config

    def update_from_payload(self, payload: Any) -> SeatConfig:
        """Validate and apply a JSON config payload.

        Raises:
            ValidationError: If a value has the wrong type.
            ConfigRejected: If the merged config is invalid.
        """
        return self.update(config_from_payload(payload, self._config))
