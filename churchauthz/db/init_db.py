from __future__ import annotations

import logging

from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from churchauthz.authz.cache import PermissionCache
from churchauthz.authz.roles import RoleStore
from churchauthz.db.base import Base

# Registered on Base.metadata by import.
from churchauthz.models import events as _events  # noqa: F401
from churchauthz.models import org as _org  # noqa: F401
from churchauthz.models import security as _security  # noqa: F401

logger = logging.getLogger(__name__)


def init_db(engine: Engine, cache: PermissionCache, session_factory: sessionmaker | None = None) -> int:
    """
    Create tables and seed the baseline roles when the roles table is empty.

    Returns the number of roles created by the bootstrap (0 when roles exist).
    """

    Base.metadata.create_all(bind=engine)

    factory = session_factory or sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)
    with factory() as db:
        created = RoleStore(db, cache).bootstrap_if_empty()

    if created:
        logger.info("Seeded %d baseline roles", created)
    return created
