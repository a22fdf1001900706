"""Record store adapter over the check-in and thumbnail tables.

Check-ins are append-only rows; thumbnails live in their own table and are
fetched through a separate path so listings never carry image bytes.
"""

import collections.abc
import datetime
import enum
import logging
import uuid
from typing import Any

import sqlalchemy
import sqlmodel
from sqlalchemy import orm

from . import settings
from .errors import SizeLimitError, ValidationError
from .models import CheckIn, Thumbnail
from .sanitize import parse_coordinate, sanitize

logger = logging.getLogger(__name__)


class AttachOutcome(enum.StrEnum):
    """What happened to a thumbnail handed to :func:`attach_thumbnail`."""

    STORED = 'stored'
    DROPPED_OVERSIZE = 'dropped_oversize'
    EMPTY = 'empty'
    RECORD_MISSING = 'record_missing'


class DeleteOutcome(enum.StrEnum):
    """Result of :func:`delete`."""

    DELETED = 'deleted'
    NOT_FOUND = 'not_found'


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def serialize_checkin(row: CheckIn, has_thumbnail: bool = False) -> dict[str, Any]:
    """Return the camelCase wire projection of a check-in (never image data)."""
    return {
        'id': row.id,
        'locationName': row.location_name,
        'latitude': row.latitude,
        'longitude': row.longitude,
        'timestamp': row.timestamp,
        'description': row.description,
        'category': row.category,
        'hasThumbnail': has_thumbnail,
    }


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


def _field(record: collections.abc.Mapping[str, Any], *names: str) -> Any:
    """Return the first present value among camelCase/snake_case spellings."""
    for name in names:
        if record.get(name) is not None:
            return record[name]
    return None


def build_checkin(record: collections.abc.Mapping[str, Any]) -> CheckIn:
    """Validate and sanitize *record* into an unsaved :class:`CheckIn`.

    Raises:
        ValidationError: empty location name or bad coordinates.
    """
    location_name = sanitize(
        _field(record, 'locationName', 'location_name'), settings.LOCATION_NAME_MAX_LENGTH
    )
    if not location_name:
        raise ValidationError('locationName is required')
    latitude = parse_coordinate(record.get('latitude'), 90, 'latitude')
    longitude = parse_coordinate(record.get('longitude'), 180, 'longitude')
    category = sanitize(record.get('category'), settings.CATEGORY_MAX_LENGTH)
    return CheckIn(
        id=str(uuid.uuid4()),
        location_name=location_name,
        latitude=latitude,
        longitude=longitude,
        timestamp=datetime.datetime.now(datetime.UTC).isoformat(timespec='milliseconds'),
        description=sanitize(record.get('description'), settings.DESCRIPTION_MAX_LENGTH),
        category=category or settings.DEFAULT_CATEGORY,
    )


def append(session: sqlmodel.Session, record: collections.abc.Mapping[str, Any]) -> CheckIn:
    """Validate *record* and append it as a new row."""
    row = build_checkin(record)
    session.add(row)
    session.commit()
    session.refresh(row)
    logger.info('Saved check-in %s (%r)', row.id, row.location_name)
    return row


def check_thumbnail_size(thumbnail: str) -> None:
    """Raise :class:`SizeLimitError` if the encoded payload is over the ceiling."""
    size = len(thumbnail.encode('utf-8'))
    if size > settings.THUMBNAIL_MAX_BYTES:
        raise SizeLimitError(
            f'Thumbnail is {size} bytes, limit is {settings.THUMBNAIL_MAX_BYTES}'
        )


def attach_thumbnail(
    session: sqlmodel.Session, checkin_id: str, thumbnail: str | None
) -> AttachOutcome:
    """Store *thumbnail* for an existing check-in, replacing any earlier one.

    Oversized payloads are dropped without failing. If the check-in has been
    deleted in the meantime nothing is written.
    """
    if not thumbnail:
        return AttachOutcome.EMPTY
    try:
        check_thumbnail_size(thumbnail)
    except SizeLimitError as e:
        logger.info('Dropping thumbnail for %s: %s', checkin_id, e.message)
        return AttachOutcome.DROPPED_OVERSIZE
    if get_checkin(session, checkin_id) is None:
        logger.info('Not attaching thumbnail: check-in %s no longer exists', checkin_id)
        return AttachOutcome.RECORD_MISSING

    existing = session.get(Thumbnail, checkin_id)
    if existing is None:
        session.add(Thumbnail(id=checkin_id, data=thumbnail))
    else:
        existing.data = thumbnail
        existing.created_at = datetime.datetime.now(datetime.UTC)
        session.add(existing)
    session.commit()
    return AttachOutcome.STORED


def append_with_thumbnail(
    session: sqlmodel.Session,
    record: collections.abc.Mapping[str, Any],
    thumbnail: str | None,
) -> tuple[CheckIn, bool]:
    """Append *record* then attach *thumbnail*; returns (row, thumbnail_stored)."""
    row = append(session, record)
    outcome = attach_thumbnail(session, row.id, thumbnail)
    return row, outcome is AttachOutcome.STORED


def delete(session: sqlmodel.Session, checkin_id: str) -> DeleteOutcome:
    """Delete a check-in and its thumbnail; unknown ids report NOT_FOUND."""
    row = get_checkin(session, checkin_id)
    if row is None:
        return DeleteOutcome.NOT_FOUND
    thumbnail = session.get(Thumbnail, checkin_id)
    if thumbnail is not None:
        session.delete(thumbnail)
    session.delete(row)
    session.commit()
    logger.info('Deleted check-in %s', checkin_id)
    return DeleteOutcome.DELETED


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


def _listing_select() -> Any:
    """Select check-ins newest first without loading the legacy image column."""
    return (
        sqlmodel.select(CheckIn)
        .options(orm.defer(CheckIn.image))  # type: ignore[arg-type]
        .order_by(CheckIn.seq.desc())  # type: ignore[union-attr]
    )


def get_checkin(session: sqlmodel.Session, checkin_id: str) -> CheckIn | None:
    """Return the check-in with *checkin_id*, or None."""
    return session.exec(sqlmodel.select(CheckIn).where(CheckIn.id == checkin_id)).first()


def query(session: sqlmodel.Session) -> list[CheckIn]:
    """Return every check-in, newest first by insertion order."""
    return list(session.exec(_listing_select()).all())


def query_window(session: sqlmodel.Session, offset: int, limit: int) -> list[CheckIn]:
    """Return one newest-first slice of the check-ins."""
    return list(session.exec(_listing_select().offset(offset).limit(limit)).all())


def count(session: sqlmodel.Session) -> int:
    """Return the number of stored check-ins."""
    return session.exec(sqlmodel.select(sqlalchemy.func.count()).select_from(CheckIn)).one()


def thumbnail_ids(session: sqlmodel.Session, ids: collections.abc.Collection[str]) -> set[str]:
    """Return the subset of *ids* that have a thumbnail, without loading bytes."""
    if not ids:
        return set()
    found = set(
        session.exec(sqlmodel.select(Thumbnail.id).where(Thumbnail.id.in_(ids))).all()  # type: ignore[attr-defined]
    )
    legacy = session.exec(
        sqlmodel.select(CheckIn.id).where(
            CheckIn.id.in_(ids),  # type: ignore[attr-defined]
            CheckIn.image.is_not(None),  # type: ignore[union-attr]
            CheckIn.image != '',
        )
    ).all()
    return found | set(legacy)


# ---------------------------------------------------------------------------
# Thumbnail lookup chain
# ---------------------------------------------------------------------------

ThumbnailLookup = collections.abc.Callable[[sqlmodel.Session, str], str | None]


def _from_thumbnail_table(session: sqlmodel.Session, checkin_id: str) -> str | None:
    thumbnail = session.get(Thumbnail, checkin_id)
    return thumbnail.data if thumbnail else None


def _from_legacy_column(session: sqlmodel.Session, checkin_id: str) -> str | None:
    image = session.exec(sqlmodel.select(CheckIn.image).where(CheckIn.id == checkin_id)).first()
    return image or None


THUMBNAIL_LOOKUPS: list[ThumbnailLookup] = [_from_thumbnail_table, _from_legacy_column]


def get_thumbnail(session: sqlmodel.Session, checkin_id: str) -> str | None:
    """Return the thumbnail for *checkin_id* from the first lookup that has one."""
    for lookup in THUMBNAIL_LOOKUPS:
        data = lookup(session, checkin_id)
        if data:
            return data
    return None
