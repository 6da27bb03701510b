"""SQLModel database engine and session management."""

import logging

from sqlalchemy import inspect
from sqlmodel import SQLModel, create_engine, Session

from tranche.config import settings

logger = logging.getLogger(__name__)

# SQLite needs check_same_thread=False; PostgreSQL does not
connect_args = {}
if settings.database_url.startswith("sqlite"):
    connect_args["check_same_thread"] = False

engine = create_engine(
    settings.database_url,
    echo=False,
    connect_args=connect_args,
)


def _run_migrations(target=None):
    """Run lightweight schema migrations for databases created by older builds."""
    from sqlalchemy import text

    target = target or engine
    inspector = inspect(target)

    # Ensure one cache row per symbol
    if "price_cache" in inspector.get_table_names():
        existing_indexes = inspector.get_indexes("price_cache")
        has_unique_idx = any(
            idx.get("unique") and idx.get("column_names") == ["symbol"] for idx in existing_indexes
        )
        if not has_unique_idx:
            logger.info("Migrating: adding unique index on price_cache.symbol")
            with target.connect() as conn:
                conn.execute(text(
                    "CREATE UNIQUE INDEX ix_price_cache_symbol_unique "
                    "ON price_cache (symbol)"
                ))
                conn.commit()


def create_db_and_tables(target=None):
    """Create all tables. Called on startup."""
    import tranche.models  # noqa: F401  (populate metadata)

    target = target or engine
    SQLModel.metadata.create_all(target)
    _run_migrations(target)


def get_session() -> Session:
    """Dependency that yields a database session."""
    with Session(engine) as session:
        yield session
