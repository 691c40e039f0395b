"""Logging setup."""
from __future__ import annotations

import logging

from rich.logging import RichHandler

# Third-party loggers that are chatty at INFO
_NOISY_LOGGERS = ("apscheduler", "sqlalchemy.engine", "uvicorn.access")


def setup_logging(level: str = "INFO") -> None:
    """Configure logging with Rich handler.

    Library loggers in ``_NOISY_LOGGERS`` stay at WARNING unless DEBUG is
    requested.
    """
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, markup=False)],
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if numeric <= logging.DEBUG else logging.WARNING)
