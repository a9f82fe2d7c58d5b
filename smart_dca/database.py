"""SQLModel database engine construction."""

import logging

from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

logger = logging.getLogger(__name__)


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine for the given URL.

    SQLite needs check_same_thread=False; an in-memory SQLite database also
    needs a single shared connection or every session sees an empty schema.
    """
    connect_args = {}
    kwargs = {}
    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool

    return create_engine(database_url, echo=echo, connect_args=connect_args, **kwargs)


def create_db_and_tables(engine: Engine):
    """Create all tables. Called on startup."""
    import smart_dca.models  # noqa: F401  registers table metadata

    SQLModel.metadata.create_all(engine)
    logger.info(f"Database ready ({engine.url.render_as_string(hide_password=True)})")
