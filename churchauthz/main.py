from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from churchauthz.authz.cache import PermissionCache
from churchauthz.db import filters as _filters  # noqa: F401  (register SQLAlchemy filters)
from churchauthz.db.init_db import init_db
from churchauthz.db.session import SessionLocal, engine
from churchauthz.logging_config import configure_app_logging
from churchauthz.routers import delegations, events, health, me, roles, users
from churchauthz.security.config import load_security_config
from churchauthz.security.dependencies import enforce_security
from churchauthz.security.errors import install_exception_handlers
from churchauthz.settings import get_settings

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        settings = get_settings()
        configure_app_logging(settings.log_level)
        logger.info("App startup beginning")

        app.state.security_config = load_security_config(settings.resolved_security_config_path())
        logger.info("Loaded security config: %s", settings.resolved_security_config_path())

        app.state.permission_cache = PermissionCache(ttl_seconds=settings.permission_cache_ttl_seconds)
        init_db(engine, app.state.permission_cache, SessionLocal)
        logger.info("Database initialized (tables ensured + roles bootstrapped if empty)")

        yield
        # Shutdown: nothing to release; the engine pool closes with the process.

    # Global dependency: every route passes through the security gate.
    app = FastAPI(title="church-authz", dependencies=[Depends(enforce_security)], lifespan=lifespan)
    install_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(me.router)
    app.include_router(roles.router)
    app.include_router(delegations.router)
    app.include_router(users.router)
    app.include_router(events.router)

    return app


app = create_app()
