"""Database session management.

The engine is built lazily on first use so importing the application
does not require a reachable database (tests override get_db).
"""

from functools import lru_cache
from typing import Generator

from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from xpt_api.db.engine import build_engine, build_sessionmaker


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Process-wide engine (DATABASE_URL)."""
    return build_engine()


@lru_cache(maxsize=1)
def get_sessionmaker() -> sessionmaker[Session]:
    """Process-wide session factory bound to get_engine()."""
    return build_sessionmaker(get_engine())


def get_db() -> Generator[Session, None, None]:
    """
    Get database session.

    Yields:
        Session: SQLAlchemy session
    """
    db = get_sessionmaker()()
    try:
        yield db
    finally:
        db.close()
