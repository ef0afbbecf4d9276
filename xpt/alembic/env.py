"""Alembic migration environment for the gate tables.

URL precedence: DATABASE_URL_MIGRATIONS, then DATABASE_URL, then
sqlalchemy.url from alembic.ini. Online runs reuse build_engine() so the
migration connection gets the same pool policy as the API.
"""

import os
import sys
from logging.config import fileConfig
from pathlib import Path
from typing import Optional

from alembic import context

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "apps" / "api"))

from xpt_api.db.engine import build_engine  # noqa: E402
from xpt_api.db.models import Base  # noqa: E402

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def resolve_migration_url() -> str:
    url: Optional[str] = (
        os.getenv("DATABASE_URL_MIGRATIONS")
        or os.getenv("DATABASE_URL")
        or config.get_main_option("sqlalchemy.url")
    )
    if not url:
        raise RuntimeError(
            "No migration database URL: set DATABASE_URL_MIGRATIONS or DATABASE_URL, "
            "or sqlalchemy.url in alembic.ini"
        )
    return url


def _configure_kwargs(url: str) -> dict:
    # SQLite cannot ALTER most constraints in place
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": url.startswith("sqlite"),
    }


def run_offline(url: str) -> None:
    """Emit SQL to stdout without connecting."""
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_kwargs(url),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online(url: str) -> None:
    engine = build_engine(url)
    try:
        with engine.connect() as connection:
            context.configure(connection=connection, **_configure_kwargs(url))
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


migration_url = resolve_migration_url()
config.set_main_option("sqlalchemy.url", migration_url)

if context.is_offline_mode():
    run_offline(migration_url)
else:
    run_online(migration_url)
