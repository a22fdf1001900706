"""Newest-first page windows over the full check-in set.

Totals are computed against the live row count on every call. There is no
snapshot between calls, so writes that land between two page fetches can
shift records across page boundaries; clients dedupe when merging pages.
"""

import math
from typing import Any

import pydantic
import sqlmodel

from . import records, settings


class Page(pydantic.BaseModel):
    """One page of check-ins plus pagination metadata."""

    model_config = pydantic.ConfigDict(populate_by_name=True)

    items: list[dict[str, Any]]
    page: int
    limit: int
    total: int
    total_pages: int = pydantic.Field(alias='totalPages')

    def to_wire(self) -> dict[str, Any]:
        """Return the camelCase dict sent to clients."""
        return self.model_dump(by_alias=True)


def clamp_limit(limit: int | None) -> int:
    """Bound a requested page size to ``[1, MAX_PAGE_LIMIT]``."""
    if limit is None:
        return settings.DEFAULT_PAGE_LIMIT
    return max(1, min(limit, settings.MAX_PAGE_LIMIT))


def list_page(session: sqlmodel.Session, page: int = 1, limit: int | None = None) -> Page:
    """Return page *page* (1-based) of check-ins, newest first.

    Pages past the end come back empty with accurate totals.
    """
    limit = clamp_limit(limit)
    page = max(page, 1)
    total = records.count(session)
    total_pages = math.ceil(total / limit)

    rows = []
    if page <= total_pages:
        rows = records.query_window(session, (page - 1) * limit, limit)
    with_thumbnails = records.thumbnail_ids(session, [row.id for row in rows])
    return Page(
        items=[records.serialize_checkin(row, row.id in with_thumbnails) for row in rows],
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
    )
