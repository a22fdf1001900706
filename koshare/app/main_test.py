"""Unit tests for the backend application wiring."""

import unittest
import unittest.mock

import fastapi.testclient

from koshare.app import main


class TestApp(unittest.TestCase):
    """Tests for the assembled FastAPI app."""

    def test_title(self) -> None:
        """The app is named after the service."""
        self.assertEqual(main.app.title, 'Ko Share')

    def test_lifespan_creates_tables(self) -> None:
        """Startup creates the database schema."""
        with unittest.mock.patch.object(main.database, 'create_db_and_tables') as create:
            with fastapi.testclient.TestClient(main.app) as client:
                self.assertEqual(client.get('/health').status_code, 200)
        create.assert_called_once_with()

    def test_exec_route_registered(self) -> None:
        """The action endpoint accepts GET and POST."""
        paths = {route.path: route for route in main.app.routes if hasattr(route, 'methods')}
        self.assertIn('/exec', paths)
        self.assertTrue({'GET', 'POST'} <= paths['/exec'].methods)

    def test_cors_preflight(self) -> None:
        """Cross-origin preflight requests are answered."""
        client = fastapi.testclient.TestClient(main.app)
        response = client.options(
            '/exec',
            headers={
                'Origin': 'https://example.org',
                'Access-Control-Request-Method': 'POST',
            },
        )
        self.assertEqual(response.status_code, 200)
        self.assertIn('access-control-allow-origin', response.headers)


if __name__ == '__main__':
    unittest.main()
