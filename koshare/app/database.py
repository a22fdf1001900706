"""Database configuration and session management for the check-in store."""

import collections.abc

import sqlmodel

from . import settings

connect_args = {'check_same_thread': False} if settings.DATABASE_URL.startswith('sqlite') else {}

engine = sqlmodel.create_engine(settings.DATABASE_URL, connect_args=connect_args, echo=False)


def create_db_and_tables() -> None:
    """Create database tables if they don't exist."""
    # Import models to ensure they're registered with SQLModel
    from . import models  # noqa: F401 # pyright: ignore[reportUnusedImport]

    if settings.DATABASE_URL == f'sqlite:///{settings.DATABASE_PATH}':
        settings.DATABASE_PATH.parent.mkdir(parents=True, exist_ok=True)
    sqlmodel.SQLModel.metadata.create_all(engine)


def get_session() -> collections.abc.Generator[sqlmodel.Session, None, None]:
    """Get a database session."""
    with sqlmodel.Session(engine) as session:
        yield session
