"""Helpers for accessing application configuration and globals."""

import os
from typing import Any, Mapping, Optional

from flask import g, current_app, has_app_context


def get_application_config(app: Optional[Any] = None) -> Mapping:
    """
    Get a configuration from the current app, or fall back to env.

    Parameters
    ----------
    app : :class:`flask.Flask`

    Returns
    -------
    dict-like
        This is either the current Flask application configuration, or
        ``os.environ``. Either of these should support the ``get()`` method.
    """
    if app is not None and hasattr(app, 'config'):
        return app.config
    if has_app_context():
        return current_app.config
    return os.environ


def get_application_global() -> Optional[Any]:
    """
    Get the current global state of the app, if there is one.

    Returns
    -------
    proxy or None
        The ``flask.g`` proxy if an application context is active.
    """
    if has_app_context():
        return g
    return None
