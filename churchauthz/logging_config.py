from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Set the level for the ``churchauthz`` logger tree.

    Uvicorn installs the handlers; we only adjust levels for our package.
    ``APP_LOG_LEVEL=DEBUG`` surfaces every permission and scope decision.
    """

    normalized = level.upper()
    logging.getLogger("churchauthz").setLevel(normalized)
    logging.getLogger("churchauthz").propagate = True
