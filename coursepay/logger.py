"""
Application logging.
Usage:
    from coursepay.logger import get_logger
    logger = get_logger(__name__)
    logger.info("Payment verified")
"""

import logging
import sys

ROOT_LOGGER_NAME = "coursepay"

_root = logging.getLogger(ROOT_LOGGER_NAME)

# Prevent duplicate handlers on uvicorn reload
if not _root.handlers:
    _root.setLevel(logging.INFO)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    _root.addHandler(console_handler)
    _root.propagate = False


def get_logger(name: str) -> logging.Logger:
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
