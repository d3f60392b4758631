"""
Serve the API with uvicorn: ``python -m crm``.
"""
from __future__ import annotations

import uvicorn

from crm.settings import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run("crm.main:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
