"""Process-wide logging handlers for the ``blebridge`` logger tree."""

from __future__ import annotations

import logging
from pathlib import Path

from blebridge.core.model import LoggingSettings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_HANDLER_MARK = "_blebridge_handler"


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Attach a file handler and, when verbose, a stderr handler.

    Calling this again replaces the handlers installed by a previous call.
    """
    logger = logging.getLogger("blebridge")
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            logger.removeHandler(handler)
            handler.close()

    logger.setLevel(logging.DEBUG if settings.console_verbose else logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    handlers: list[logging.Handler] = []
    if settings.file_path:
        path = Path(settings.file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))
    if settings.console_verbose:
        handlers.append(logging.StreamHandler())

    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, _HANDLER_MARK, True)
        logger.addHandler(handler)
    return logger
