from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from crm.db import filters as _filters  # noqa: F401  (register SQLAlchemy scope hooks)
from crm.db.init_db import init_db
from crm.errors import CrmError
from crm.logging_config import configure_app_logging
from crm.routers import analytics, deals, departments, health, leads, me, roles, statuses, tasks, users
from crm.security.config import load_security_config
from crm.security.dependencies import enforce_security
from crm.settings import get_settings

logger = logging.getLogger(__name__)


async def crm_error_handler(request: Request, exc: CrmError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed path=%s method=%s: %s", request.url.path, request.method, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"code": exc.status_code, "message": exc.message})


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings = get_settings()
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning")

        app.state.security_config = load_security_config(settings.resolved_security_config_path())
        logger.info("Loaded security config: %s", settings.resolved_security_config_path())
        init_db()
        logger.info("Database initialized (tables ensured + seed if needed)")

        yield

    # Global dependency: every route passes through the security pipeline.
    app = FastAPI(title="CRM", dependencies=[Depends(enforce_security)], lifespan=lifespan)
    app.add_exception_handler(CrmError, crm_error_handler)

    app.include_router(health.router)
    app.include_router(me.router)
    app.include_router(leads.router)
    app.include_router(deals.router)
    app.include_router(tasks.router)
    app.include_router(statuses.router)
    app.include_router(departments.router)
    app.include_router(users.router)
    app.include_router(roles.router)
    app.include_router(analytics.router)

    return app


app = create_app()
