from __future__ import annotations

import logging

LOGGER_NAME = "investor_leasing"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | int = "INFO") -> logging.Logger:
    """
    Attach a single stream handler to the package logger.
    Safe to call more than once; the level is updated in place.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"unknown log level: {level}")
    logger.setLevel(level)
    if not any(getattr(h, "_investor_leasing", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._investor_leasing = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger
