"""Pytest configuration for seat climate tests."""

import logging

# Configure logging for tests
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)8s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

# Set the engine loggers to INFO level
logging.getLogger("seat_climate").setLevel(logging.INFO)
