"""Unit tests for the action API client."""

import asyncio
import json
import unittest
from typing import Any

import httpx

from koshare import protocol
from koshare.client import api


def run_with(handler: Any, coro_factory: Any) -> Any:
    """Run *coro_factory(client)* against a mock transport using *handler*."""

    async def main() -> Any:
        async with api.ApiClient('http://test', transport=httpx.MockTransport(handler)) as client:
            return await coro_factory(client)

    return asyncio.run(main())


class TestCall(unittest.TestCase):
    """Request shaping and envelope parsing."""

    def test_get_with_query_params(self) -> None:
        """Small calls are GETs carrying the action and params in the query."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={'success': True, 'data': {'items': []}})

        result = run_with(handler, lambda c: c.get_checkins(page=2, limit=10))
        self.assertIsInstance(result, protocol.Ok)
        self.assertEqual(seen[0].method, 'GET')
        self.assertEqual(seen[0].url.path, '/exec')
        self.assertEqual(
            dict(seen[0].url.params), {'action': 'getCheckIns', 'page': '2', 'limit': '10'}
        )

    def test_none_params_omitted(self) -> None:
        """A missing token is not sent as the string 'None'."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={'success': False, 'code': 'AUTH_REQUIRED', 'error': ''})

        run_with(handler, lambda c: c.delete_checkin('abc', None))
        self.assertNotIn('token', seen[0].url.params)

    def test_save_posts_plain_text_json(self) -> None:
        """Saves POST a JSON body labelled text/plain."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={'success': True, 'data': {'id': 'x'}})

        record = {'locationName': 'Park', 'latitude': 1.0, 'longitude': 2.0}
        run_with(handler, lambda c: c.save_with_image(record, 'data:x', 'tok'))
        request = seen[0]
        self.assertEqual(request.method, 'POST')
        self.assertEqual(request.url.params['action'], 'saveWithImage')
        self.assertTrue(request.headers['content-type'].startswith('text/plain'))
        self.assertEqual(
            json.loads(request.content), {**record, 'thumbnail': 'data:x', 'token': 'tok'}
        )

    def test_error_envelope(self) -> None:
        """Error envelopes come back as Err, not exceptions."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={'success': False, 'code': 'WRONG_PIN', 'error': 'no'})

        result = run_with(handler, lambda c: c.login('0000'))
        self.assertIsInstance(result, protocol.Err)
        self.assertEqual(result.code, 'WRONG_PIN')

    def test_http_status_is_transport_error(self) -> None:
        """Non-2xx statuses raise TransportError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text='bad gateway')

        with self.assertRaises(api.TransportError):
            run_with(handler, lambda c: c.get_stats())

    def test_network_failure_is_transport_error(self) -> None:
        """Connection errors raise TransportError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError('refused', request=request)

        with self.assertRaises(api.TransportError):
            run_with(handler, lambda c: c.increment_visit())

    def test_public_methods_documented(self) -> None:
        """Every public client method carries a docstring."""
        for name in dir(api.ApiClient):
            if not name.startswith('_'):
                with self.subTest(name=name):
                    self.assertTrue(getattr(api.ApiClient, name).__doc__)

    def test_unreadable_body_is_transport_error(self) -> None:
        """Bodies that are not JSON envelopes raise TransportError."""
        for response in (httpx.Response(200, text='<html>'), httpx.Response(200, json=[1, 2])):

            def handler(request: httpx.Request, response: httpx.Response = response) -> httpx.Response:
                return response

            with self.assertRaises(api.TransportError):
                run_with(handler, lambda c: c.verify_token('t'))


if __name__ == '__main__':
    unittest.main()
