"""Lightweight logging setup for the CLI."""

import logging
import sys

PACKAGE_LOGGER = "envvault"
LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


class StderrHandler(logging.StreamHandler):
    """Writes to whatever ``sys.stderr`` is at emit time."""

    def __init__(self, level=logging.NOTSET):
        logging.Handler.__init__(self, level)

    @property
    def stream(self):
        return sys.stderr


def configure_logging(level: int = logging.WARNING, verbose: bool = False) -> logging.Logger:
    # Only the package logger is touched; stdout stays clean for `open` and `share`.
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(logging.DEBUG if verbose else level)
    if not any(isinstance(h, StderrHandler) for h in logger.handlers):
        handler = StderrHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
        logger.addHandler(handler)
    return logger
