from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO

LOGGER_NAME = "forksmith"
LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def configure_logging(verbose: bool = False, debug: bool = False, stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Attach a single stream handler to the package logger.

    Repeated calls replace the handler so the CLI can be invoked many times in
    one process (tests do this).
    """

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_forksmith", False):
            logger.removeHandler(handler)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._forksmith = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if (verbose or debug) else logging.INFO)
    return logger
