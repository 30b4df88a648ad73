"""
Database engine and table creation.
"""
from pathlib import Path

from sqlmodel import SQLModel, create_engine

from survivor_pool.config import DATABASE_URL

# Use check_same_thread only for SQLite
connect_args = {}
if DATABASE_URL.startswith("sqlite"):
    connect_args["check_same_thread"] = False
    if DATABASE_URL.startswith("sqlite:///./"):
        Path(DATABASE_URL.removeprefix("sqlite:///")).parent.mkdir(parents=True, exist_ok=True)

engine = create_engine(DATABASE_URL, echo=False, connect_args=connect_args)


def create_db_and_tables(bind=None):
    """Create all tables defined in SQLModel metadata."""
    import survivor_pool.models  # noqa: F401  registers the tables

    SQLModel.metadata.create_all(bind or engine)
