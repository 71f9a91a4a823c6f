"""
Base database model and session management
"""
import os
from typing import List, Optional

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool
from sqlalchemy.orm import declarative_base, sessionmaker
from household_insights.config import get_settings
from household_insights.utils.logger import log

settings = get_settings()

# Resolve relative SQLite paths to absolute so cwd changes can't break it
_db_url = settings.database_url
if _db_url.startswith("sqlite:///") and not _db_url.startswith("sqlite:////"):
    rel_path = _db_url[len("sqlite:///"):]
    _db_url = "sqlite:///" + os.path.abspath(rel_path)

# Create database engine
if _db_url.startswith("sqlite"):
    # Cache writes run on a worker thread, so the connection must not be thread-bound.
    engine = create_engine(
        _db_url,
        connect_args={"check_same_thread": False, "timeout": 60},
        poolclass=NullPool,
        pool_pre_ping=True
    )
else:
    engine = create_engine(
        settings.database_url,
        pool_pre_ping=True,
        pool_size=3,
        max_overflow=5,
        pool_recycle=300,
    )

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for all models
Base = declarative_base()


def get_db():
    """Get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.expire_all()
        db.close()


def _migrate_missing_columns(bind: Engine) -> List[str]:
    """Add model columns missing from tables an older release created.

    Columns declared NOT NULL without a server default cannot be added to a
    populated table; those are logged and left for a manual migration.

    Returns:
        "table.column" names that were added
    """
    inspector = inspect(bind)
    added = []
    with bind.connect() as conn:
        for table_name, table in Base.metadata.tables.items():
            if not inspector.has_table(table_name):
                continue
            existing = {c["name"] for c in inspector.get_columns(table_name)}
            for col in table.columns:
                if col.name in existing:
                    continue
                if not col.nullable and col.server_default is None:
                    log.warning(f"Cannot add NOT NULL column {table_name}.{col.name} without a default, skipping")
                    continue
                col_type = col.type.compile(dialect=bind.dialect)
                conn.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {col.name} {col_type}"))
                log.info(f"Added missing column {table_name}.{col.name} ({col_type})")
                added.append(f"{table_name}.{col.name}")
        conn.commit()
    return added


def init_db(bind: Optional[Engine] = None) -> None:
    """Create the records and analytics_cache tables, then add any missing columns."""
    # Register every model on Base.metadata before create_all
    import household_insights.models  # noqa: F401

    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    _migrate_missing_columns(bind)
