"""
logger.py — Shared logger factory.
"""

import logging
import os
import sys


def get_logger(name: str) -> logging.Logger:
    """
    Return a logger writing to stdout with the service's standard format.

    The level comes from the LOG_LEVEL environment variable (default INFO).
    """
    logger = logging.getLogger(name)

    # Only configure once per logger name
    if not logger.handlers:
        level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
        logger.setLevel(getattr(logging, level, logging.INFO))

        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)s in %(module)s: %(message)s"
        )
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
