"""Async client for the ``/exec`` action endpoint.

Small calls go out as GET requests with query parameters. Saves and
thumbnail uploads are POSTed as a JSON body with a ``text/plain`` content
type, which keeps browser clients clear of CORS preflights.
"""

import json
import logging
from typing import Any

import httpx
import pydantic

from koshare import protocol

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class TransportError(Exception):
    """The request did not produce a readable result envelope.

    Raised for network failures, timeouts, non-2xx statuses and bodies that
    are not envelopes. A timeout may coincide with a write the server has
    already committed.
    """


class ApiClient:
    """Thin wrapper mapping each backend action to a coroutine."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    async def __aenter__(self) -> 'ApiClient':
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ---------------------------------------------------------------------------
    # Transport
    # ---------------------------------------------------------------------------

    async def call(
        self, action: str, params: dict[str, Any] | None = None, body: dict[str, Any] | None = None
    ) -> protocol.Result:
        """Invoke *action* and return its parsed envelope.

        Raises:
            TransportError: the request failed or the response was unreadable.
        """
        query = {'action': action}
        try:
            if body is None:
                query.update({k: str(v) for k, v in (params or {}).items() if v is not None})
                response = await self._client.get('/exec', params=query)
            else:
                response = await self._client.post(
                    '/exec',
                    params=query,
                    content=json.dumps(body),
                    headers={'Content-Type': 'text/plain;charset=utf-8'},
                )
            response.raise_for_status()
            return protocol.parse_envelope(response.json())
        except httpx.HTTPError as e:
            logger.warning('%s request failed: %s', action, e)
            raise TransportError(f'{action}: {e}') from e
        except (ValueError, pydantic.ValidationError) as e:
            logger.warning('%s returned an unreadable response', action)
            raise TransportError(f'{action}: unreadable response') from e

    # ---------------------------------------------------------------------------
    # Actions
    # ---------------------------------------------------------------------------

    async def login(self, pin: str) -> protocol.Result:
        """Exchange the PIN for a session token."""
        return await self.call('login', {'pin': pin})

    async def verify_token(self, token: str) -> protocol.Result:
        """Ask whether *token* is still valid."""
        return await self.call('verifyToken', {'token': token})

    async def get_checkins(self, page: int = 1, limit: int = 20) -> protocol.Result:
        """Fetch one page of check-ins (never image data)."""
        return await self.call('getCheckIns', {'page': page, 'limit': limit})

    async def get_thumbnail(self, checkin_id: str) -> protocol.Result:
        """Fetch the thumbnail for one check-in."""
        return await self.call('getThumbnail', {'id': checkin_id})

    async def save_checkin(self, record: dict[str, Any], token: str | None) -> protocol.Result:
        """Create a check-in without an image."""
        return await self.call('saveCheckIn', body={**record, 'token': token})

    async def save_with_image(
        self, record: dict[str, Any], thumbnail: str, token: str | None
    ) -> protocol.Result:
        """Create a check-in and its thumbnail in one request."""
        return await self.call('saveWithImage', body={**record, 'thumbnail': thumbnail, 'token': token})

    async def save_thumbnail(
        self, checkin_id: str, thumbnail: str, token: str | None
    ) -> protocol.Result:
        """Attach a thumbnail to an existing check-in."""
        return await self.call(
            'saveThumbnail', body={'id': checkin_id, 'thumbnail': thumbnail, 'token': token}
        )

    async def delete_checkin(self, checkin_id: str, token: str | None) -> protocol.Result:
        """Delete a check-in and its thumbnail."""
        return await self.call('deleteCheckIn', {'id': checkin_id, 'token': token})

    async def change_pin(self, new_pin: str, token: str | None) -> protocol.Result:
        """Replace the shared PIN."""
        return await self.call('changePin', {'newPin': new_pin, 'token': token})

    async def get_stats(self) -> protocol.Result:
        """Fetch the visit count and number of saved locations."""
        return await self.call('getStats')

    async def increment_visit(self) -> protocol.Result:
        """Count one app visit."""
        return await self.call('incrementVisit')
