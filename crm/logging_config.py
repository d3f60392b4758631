from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Set the level for the ``crm`` logger tree.

    Notes:
    - stdlib logging only; uvicorn already installs handlers.
    - ``CRM_LOG_LEVEL=DEBUG`` shows every scope decision and injected filter.
    """

    normalized = level.upper()
    logging.getLogger("crm").setLevel(normalized)
    logging.getLogger("crm").propagate = True
