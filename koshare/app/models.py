"""Database models for check-ins, thumbnails, sessions and counters."""

import datetime

import sqlmodel


class CheckIn(sqlmodel.SQLModel, table=True):
    """A persisted location check-in.

    ``seq`` is the insertion order and the only ordering used for listings;
    ``id`` is the opaque identifier exposed to clients.
    """

    __tablename__ = 'checkins'  # type: ignore[misc]

    seq: int | None = sqlmodel.Field(default=None, primary_key=True)
    id: str = sqlmodel.Field(index=True, unique=True, max_length=64)
    location_name: str = sqlmodel.Field(max_length=100)
    latitude: float
    longitude: float
    timestamp: str
    description: str = sqlmodel.Field(default='', max_length=300)
    category: str = sqlmodel.Field(default='general', max_length=50)
    # Legacy inline thumbnail, only read as a lookup fallback.
    image: str | None = sqlmodel.Field(default=None)


class Thumbnail(sqlmodel.SQLModel, table=True):
    """Small encoded image stored apart from its check-in row."""

    __tablename__ = 'thumbnails'  # type: ignore[misc]

    id: str = sqlmodel.Field(primary_key=True, max_length=64)
    data: str
    created_at: datetime.datetime = sqlmodel.Field(
        default_factory=lambda: datetime.datetime.now(datetime.UTC)
    )


class AppSetting(sqlmodel.SQLModel, table=True):
    """Process-wide persistent configuration value."""

    __tablename__ = 'settings'  # type: ignore[misc]

    key: str = sqlmodel.Field(primary_key=True, max_length=100)
    value: str


class SessionToken(sqlmodel.SQLModel, table=True):
    """A time-bounded capability issued at login."""

    __tablename__ = 'sessions'  # type: ignore[misc]

    token: str = sqlmodel.Field(primary_key=True, max_length=64)
    issued_at: float
    expires_at: float = sqlmodel.Field(index=True)


class Counter(sqlmodel.SQLModel, table=True):
    """Keyed integer counter with an optional expiry (epoch seconds)."""

    __tablename__ = 'counters'  # type: ignore[misc]

    key: str = sqlmodel.Field(primary_key=True, max_length=100)
    value: int = 0
    expires_at: float | None = None
