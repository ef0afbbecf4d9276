"""Database engine builder.

- Default: NullPool (client-side pooling disabled; pgbouncer/pooler friendly)
- ENV: XPT_DB_POOL=nullpool|queuepool (default: nullpool)
- SQLite URLs (tests, local tooling) get a single shared connection
- postgresql:// and postgres:// URLs use the psycopg2 driver
"""

import logging
import os
import re
from typing import Any, Optional

from sqlalchemy import Engine, NullPool, StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from xpt_api.config.env import get_database_url

logger = logging.getLogger(__name__)


def _mask_password(url: str) -> str:
    """Mask password in database URL for safe logging."""
    return re.sub(r"://([^:]+):([^@]+)@", r"://\1:***@", url)


def normalize_driver(url: str) -> str:
    """Pin bare Postgres URLs to the psycopg2 driver this project installs.

    Newer SQLAlchemy releases map a plain postgresql:// URL to psycopg (v3).
    """
    for prefix in ("postgresql://", "postgres://"):
        if url.startswith(prefix):
            return "postgresql+psycopg2://" + url[len(prefix):]
    return url


def build_engine(database_url: Optional[str] = None) -> Engine:
    """Build SQLAlchemy engine.

    Args:
        database_url: Database URL. Defaults to DATABASE_URL resolution.

    Returns:
        Configured Engine

    Raises:
        ValueError: Invalid XPT_DB_POOL value
    """
    url = normalize_driver(database_url or get_database_url())

    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        logger.debug("Database engine created: pool=StaticPool, url=%s", url)
        return engine

    connect_args: dict[str, Any] = {}
    app_name = os.getenv("XPT_DB_APPLICATION_NAME", "xpt-api")
    if app_name:
        connect_args["application_name"] = app_name

    pool_mode = os.getenv("XPT_DB_POOL", "nullpool").lower()

    if pool_mode == "nullpool":
        engine = create_engine(
            url,
            poolclass=NullPool,
            pool_pre_ping=True,
            connect_args=connect_args,
        )
    elif pool_mode == "queuepool":
        pool_size = int(os.getenv("XPT_DB_POOL_SIZE", "5"))
        max_overflow = int(os.getenv("XPT_DB_MAX_OVERFLOW", "10"))
        engine = create_engine(
            url,
            pool_pre_ping=True,
            pool_size=pool_size,
            max_overflow=max_overflow,
            connect_args=connect_args,
        )
    else:
        raise ValueError(
            f"Invalid XPT_DB_POOL value: {pool_mode}. "
            "Must be 'nullpool' or 'queuepool'."
        )

    logger.debug(
        "Database engine created: pool=%s, url=%s",
        engine.pool.__class__.__name__,
        _mask_password(url),
    )
    return engine


def build_sessionmaker(engine: Engine) -> sessionmaker[Session]:
    """Build sessionmaker with autocommit=False, autoflush=False.

    expire_on_commit=False keeps loaded rows readable after the repository
    commits (e.g. returning a freshly created session row to the caller).
    """
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
