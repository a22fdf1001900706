"""Lazy, deduplicated thumbnail loading for visible list rows.

Listings arrive without image data. Rows register interest with
:meth:`ThumbnailCache.request`; the viewport observer then reports which ids
are on screen and only those are fetched. The cache only grows during a
session, so a hit never triggers a fetch. A failed fetch is not retried
until :meth:`ThumbnailCache.reload` is called.
"""

import asyncio
import collections
import collections.abc
import logging

from koshare import protocol

from .api import ApiClient

logger = logging.getLogger(__name__)

Fetch = collections.abc.Callable[[str], collections.abc.Awaitable[str | None]]
OnLoaded = collections.abc.Callable[[str, str], None]


def api_fetcher(client: ApiClient) -> Fetch:
    """Adapt :meth:`ApiClient.get_thumbnail` to the cache's fetch signature."""

    async def fetch(checkin_id: str) -> str | None:
        result = await client.get_thumbnail(checkin_id)
        if isinstance(result, protocol.Err):
            return None
        return result.data.get('thumbnail') or None

    return fetch


class ThumbnailCache:
    """Per-session thumbnail cache with at most one fetch in flight per id."""

    def __init__(self, fetch: Fetch, prefetch_margin: int = 2) -> None:
        self._fetch = fetch
        self.prefetch_margin = prefetch_margin
        self._cache: dict[str, str] = {}
        self._failed: set[str] = set()
        self._inflight: dict[str, asyncio.Task[str | None]] = {}
        self._waiting: dict[str, list[OnLoaded]] = collections.defaultdict(list)

    def get(self, checkin_id: str) -> str | None:
        """Return the cached thumbnail without fetching."""
        return self._cache.get(checkin_id)

    def has_failed(self, checkin_id: str) -> bool:
        """True if *checkin_id* failed to load this session."""
        return checkin_id in self._failed

    def request(self, checkin_id: str, on_loaded: OnLoaded) -> None:
        """Register a row that wants *checkin_id*'s thumbnail once visible.

        Cached thumbnails are applied immediately.
        """
        cached = self._cache.get(checkin_id)
        if cached is not None:
            on_loaded(checkin_id, cached)
            return
        self._waiting[checkin_id].append(on_loaded)

    async def notify_visible(self, ids: collections.abc.Iterable[str]) -> None:
        """Load every registered id among *ids*."""
        wanted = [checkin_id for checkin_id in dict.fromkeys(ids) if checkin_id in self._waiting]
        await asyncio.gather(*(self.load(checkin_id) for checkin_id in wanted))

    async def on_viewport(self, ordered_ids: list[str], first: int, last: int) -> None:
        """Report rows ``first..last`` (inclusive) as visible, plus the margin."""
        start = max(0, first - self.prefetch_margin)
        stop = min(len(ordered_ids), last + self.prefetch_margin + 1)
        await self.notify_visible(ordered_ids[start:stop])

    async def load(self, checkin_id: str) -> str | None:
        """Return the thumbnail, fetching it at most once per session."""
        cached = self._cache.get(checkin_id)
        if cached is not None:
            return cached
        if checkin_id in self._failed:
            return None
        task = self._inflight.get(checkin_id)
        if task is None:
            task = asyncio.ensure_future(self._load_once(checkin_id))
            self._inflight[checkin_id] = task
        return await task

    async def _load_once(self, checkin_id: str) -> str | None:
        try:
            try:
                thumbnail = await self._fetch(checkin_id)
            except Exception as e:
                logger.warning('Thumbnail fetch for %s failed: %s', checkin_id, e)
                thumbnail = None
            if not thumbnail:
                self._failed.add(checkin_id)
                return None
            self._cache[checkin_id] = thumbnail
            for on_loaded in self._waiting.pop(checkin_id, []):
                on_loaded(checkin_id, thumbnail)
            return thumbnail
        finally:
            self._inflight.pop(checkin_id, None)

    def reload(self) -> None:
        """Forget failures so the next visibility report retries them."""
        self._failed.clear()
