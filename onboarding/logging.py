"""JSON-formatted loggers for the onboarding service."""

import logging
import sys
from typing import Optional

from pythonjsonlogger.json import JsonFormatter

from .context import get_application_config

FORMAT = '%(asctime)s %(levelname)s %(name)s %(message)s'


def _formatter() -> logging.Formatter:
    return JsonFormatter(
        FORMAT,
        rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
    )


def getLogger(name: str, stream: Optional[object] = None) -> logging.Logger:
    """
    Get a logger that emits one JSON document per entry.

    The level is read from ``LOGLEVEL`` in the application config (or the
    environment); if ``LOGFILE`` is set, entries are also written there.

    Parameters
    ----------
    name : str
        Usually ``__name__`` of the calling module.
    stream : file-like
        Defaults to ``sys.stderr``.

    Returns
    -------
    :class:`logging.Logger`
    """
    config = get_application_config()
    logger = logging.getLogger(name)
    if not getattr(logger, '_onboarding_configured', False):
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(_formatter())
        logger.addHandler(handler)

        logfile = config.get('LOGFILE')
        if logfile:
            file_handler = logging.FileHandler(logfile)
            file_handler.setFormatter(_formatter())
            logger.addHandler(file_handler)

        logger.propagate = False
        logger._onboarding_configured = True  # type: ignore
    level = config.get('LOGLEVEL', logging.INFO)
    if isinstance(level, str) and not level.isdigit():
        logger.setLevel(level.upper())
    else:
        logger.setLevel(int(level))
    return logger
