"""Outbound lifecycle notifications.

Delivery is best-effort: failures are logged and swallowed and never reach
the state machine.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional, Protocol

from .exceptions import NotificationDeliveryFailure
from .model import LifecycleEventKind

_LOGGER = logging.getLogger(__name__)


class NotificationPort(Protocol):
    """Anything that can push a message to a subscriber."""

    def notify(self, target: str, kind: LifecycleEventKind, message: str) -> None:
        ...


class LoggingNotifier:
    """Writes notifications to the log. Used when no push transport is wired."""

    def notify(self, target: str, kind: LifecycleEventKind, message: str) -> None:
        _LOGGER.info(f"Notify {target} [{kind.value}]: {message}")


class BackgroundNotifier:
    """Runs another port's deliveries on a worker thread.

    ``notify`` returns immediately. Exceptions raised by the wrapped port
    are logged as NotificationDeliveryFailure and dropped.
    """

    def __init__(self, port: NotificationPort, max_workers: int = 2) -> None:
        self._port = port
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="seat-notify"
        )

    def notify(self, target: str, kind: LifecycleEventKind, message: str) -> Optional[Future]:
        try:
            return self._executor.submit(self._deliver, target, kind, message)
        except RuntimeError:
            # Executor already shut down
            _LOGGER.warning(f"Dropping {kind.value} notification to {target}: notifier closed")
            return None

    def _deliver(self, target: str, kind: LifecycleEventKind, message: str) -> None:
        try:
            self._port.notify(target, kind, message)
        except Exception as e:
            failure = NotificationDeliveryFailure(target, kind.value, e)
            _LOGGER.error(str(failure), exc_info=True)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
