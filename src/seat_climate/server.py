"""Process entry point: wires config, engine, timers and HTTP together."""

import logging
import os

from .api import create_app
from .config import config_from_env
from .notify import BackgroundNotifier, LoggingNotifier
from .runtime import SeatController

_LOGGER = logging.getLogger(__name__)


def main() -> None:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s [%(levelname)8s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8080"))

    notifier = BackgroundNotifier(LoggingNotifier())
    controller = SeatController(config=config_from_env(), notifier=notifier)
    app = create_app(controller)

    controller.start()
    _LOGGER.info(f"Seat server running on http://{host}:{port}")
    try:
        app.run(host=host, port=port, threaded=True)
    finally:
        controller.stop()
        notifier.shutdown(wait=False)


if __name__ == "__main__":
    main()
