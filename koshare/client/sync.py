"""Client-side save flow, session handling and map marker loading.

A save is two independent requests: the record first, then its thumbnail.
If the second request fails the record stays saved without an image; nothing
is rolled back. The listing refresh callback runs after every save that
created a record.
"""

import dataclasses
import enum
import inspect
import logging
import math
import time
from collections.abc import Awaitable, Callable
from typing import Any

from koshare import protocol

from .api import ApiClient, TransportError
from .storage import LocalStore

logger = logging.getLogger(__name__)

TOKEN_KEY = 'authToken'
TOKEN_EXPIRY_KEY = 'tokenExpiry'
SHARE_COUNT_KEY = 'shareCount'
AUTH_REQUIRED = 'AUTH_REQUIRED'


class SaveState(enum.StrEnum):
    IDLE = 'idle'
    SAVING_RECORD = 'saving_record'
    SAVED = 'saved'
    UNAUTHENTICATED = 'unauthenticated'


class SaveStatus(enum.StrEnum):
    SAVED = 'saved'
    SAVED_WITHOUT_IMAGE = 'saved_without_image'
    AUTH_REQUIRED = 'auth_required'
    FAILED = 'failed'


@dataclasses.dataclass(frozen=True)
class SaveOutcome:
    """Terminal result of :meth:`SyncOrchestrator.save`."""

    status: SaveStatus
    checkin_id: str | None = None
    code: str | None = None
    error: str | None = None


@dataclasses.dataclass(frozen=True)
class Marker:
    """A check-in placed on the map."""

    id: str | None
    location_name: str
    latitude: float
    longitude: float
    category: str


def _coordinates(item: dict[str, Any]) -> tuple[float, float] | None:
    try:
        latitude = float(item['latitude'])
        longitude = float(item['longitude'])
    except (KeyError, TypeError, ValueError):
        return None
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        return None
    if latitude == 0 and longitude == 0:
        return None
    return latitude, longitude


class SyncOrchestrator:
    """Drives saves, login state and marker loading against the backend."""

    def __init__(
        self,
        client: ApiClient,
        store: LocalStore,
        on_saved: Callable[[], Awaitable[None] | None] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._store = store
        self._on_saved = on_saved
        self._clock = clock
        self.state = SaveState.IDLE if self.is_authenticated else SaveState.UNAUTHENTICATED
        self.busy = False

    # ---------------------------------------------------------------------------
    # Session
    # ---------------------------------------------------------------------------

    @property
    def token(self) -> str | None:
        return self._store.get(TOKEN_KEY)

    @property
    def is_authenticated(self) -> bool:
        """True while a stored token has not reached its expiry."""
        expiry = self._store.get(TOKEN_EXPIRY_KEY)
        return bool(self.token) and expiry is not None and self._clock() < expiry

    async def login(self, pin: str) -> protocol.Result:
        """Log in and keep the token; the result is returned as-is."""
        result = await self._client.login(pin)
        if isinstance(result, protocol.Ok):
            self._store.set(TOKEN_KEY, result.data['token'])
            self._store.set(TOKEN_EXPIRY_KEY, self._clock() + float(result.data['expiresIn']))
            self.state = SaveState.IDLE
        return result

    def logout(self) -> None:
        """Forget the stored token."""
        self._store.remove(TOKEN_KEY)
        self._store.remove(TOKEN_EXPIRY_KEY)
        self.state = SaveState.UNAUTHENTICATED

    # ---------------------------------------------------------------------------
    # Saving
    # ---------------------------------------------------------------------------

    async def save(self, record: dict[str, Any], thumbnail: str | None = None) -> SaveOutcome:
        """Save *record*, then attach *thumbnail* if one is given."""
        self.busy = True
        self.state = SaveState.SAVING_RECORD
        try:
            try:
                result = await self._client.save_checkin(record, self.token)
            except TransportError as e:
                self.state = SaveState.IDLE
                return SaveOutcome(SaveStatus.FAILED, error=str(e))

            if isinstance(result, protocol.Err):
                if result.code == AUTH_REQUIRED:
                    logger.info('Session expired, login required')
                    self.logout()
                    return SaveOutcome(SaveStatus.AUTH_REQUIRED, code=result.code, error=result.error)
                self.state = SaveState.IDLE
                return SaveOutcome(SaveStatus.FAILED, code=result.code, error=result.error)

            checkin_id = result.data['id']
            status = SaveStatus.SAVED
            if thumbnail and not await self._attach(checkin_id, thumbnail):
                status = SaveStatus.SAVED_WITHOUT_IMAGE

            self.state = SaveState.SAVED
            await self._refresh()
            self.state = SaveState.IDLE if self.token else SaveState.UNAUTHENTICATED
            return SaveOutcome(status, checkin_id=checkin_id)
        finally:
            self.busy = False

    async def _attach(self, checkin_id: str, thumbnail: str) -> bool:
        try:
            result = await self._client.save_thumbnail(checkin_id, thumbnail, self.token)
        except TransportError as e:
            logger.warning('Thumbnail upload for %s failed: %s', checkin_id, e)
            return False
        if isinstance(result, protocol.Err):
            logger.warning('Thumbnail upload for %s rejected: %s', checkin_id, result.code)
            if result.code == AUTH_REQUIRED:
                self.logout()
            return False
        return bool(result.data.get('hasThumbnail'))

    async def _refresh(self) -> None:
        if self._on_saved is None:
            return
        pending = self._on_saved()
        if inspect.isawaitable(pending):
            await pending

    # ---------------------------------------------------------------------------
    # Markers and counters
    # ---------------------------------------------------------------------------

    async def load_markers(self, page_size: int = 100) -> list[Marker]:
        """Fetch every page of check-ins and return unique plottable markers.

        Pages are fetched independently, so a write between two fetches can
        repeat a record; duplicates are dropped by id, or by coordinates when
        an item has no id.
        """
        markers: list[Marker] = []
        seen: set[object] = set()
        page = 1
        while True:
            result = await self._client.get_checkins(page=page, limit=page_size)
            if isinstance(result, protocol.Err):
                logger.warning('Loading markers stopped at page %d: %s', page, result.code)
                break
            for item in result.data.get('items', []):
                coordinates = _coordinates(item)
                if coordinates is None:
                    continue
                key = item.get('id') or coordinates
                if key in seen:
                    continue
                seen.add(key)
                markers.append(
                    Marker(
                        id=item.get('id'),
                        location_name=item.get('locationName', ''),
                        latitude=coordinates[0],
                        longitude=coordinates[1],
                        category=item.get('category', ''),
                    )
                )
            if page >= int(result.data.get('totalPages', 0)):
                break
            page += 1
        return markers

    def record_share(self) -> int:
        """Bump the local share counter; it is never sent to the server."""
        count = int(self._store.get(SHARE_COUNT_KEY, 0)) + 1
        self._store.set(SHARE_COUNT_KEY, count)
        return count

    async def visit(self) -> int | None:
        """Count this visit on the server; failures return None."""
        try:
            result = await self._client.increment_visit()
        except TransportError:
            return None
        if isinstance(result, protocol.Err):
            return None
        return result.data.get('visitCount')
