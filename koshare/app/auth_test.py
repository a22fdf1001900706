"""Unit tests for the session authority."""

import unittest

import sqlalchemy
import sqlalchemy.pool
import sqlmodel

from koshare.app import auth, counters, errors, models, settings


def make_in_memory_engine() -> sqlalchemy.Engine:
    """Create an in-memory SQLite engine for testing."""
    engine = sqlmodel.create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=sqlalchemy.pool.StaticPool,
    )
    sqlmodel.SQLModel.metadata.create_all(engine)
    return engine


class AuthTestCase(unittest.TestCase):
    """Shared fixture: a database with PIN 1234 configured."""

    def setUp(self) -> None:
        """Open a session and configure the shared PIN."""
        self.session = sqlmodel.Session(make_in_memory_engine())
        auth.set_credential(self.session, '1234')

    def tearDown(self) -> None:
        """Close the session."""
        self.session.close()


class TestSetCredential(unittest.TestCase):
    """Tests for set_credential()."""

    def setUp(self) -> None:
        """Open a session on an empty database."""
        self.session = sqlmodel.Session(make_in_memory_engine())

    def tearDown(self) -> None:
        """Close the session."""
        self.session.close()

    def test_stores_digest_not_pin(self) -> None:
        """Only the salted digest is persisted."""
        auth.set_credential(self.session, '4321')
        stored = self.session.get(models.AppSetting, auth.PIN_HASH_KEY)
        assert stored is not None
        self.assertNotIn('4321', stored.value)
        self.assertEqual(stored.value, auth.hash_pin('4321'))

    def test_length_bounds(self) -> None:
        """PINs shorter than 4 or longer than 6 characters are rejected."""
        for pin in ('123', '1234567', '', None):
            with self.assertRaises(errors.ValidationError):
                auth.set_credential(self.session, pin)
        self.assertIsNone(self.session.get(models.AppSetting, auth.PIN_HASH_KEY))

    def test_accepts_four_and_six(self) -> None:
        """Boundary lengths are accepted."""
        auth.set_credential(self.session, '1234')
        auth.set_credential(self.session, '123456')
        stored = self.session.get(models.AppSetting, auth.PIN_HASH_KEY)
        assert stored is not None
        self.assertEqual(stored.value, auth.hash_pin('123456'))

    def test_login_without_credential(self) -> None:
        """Login before any PIN is set fails with NoCredentialError."""
        with self.assertRaises(errors.NoCredentialError):
            auth.login(self.session, '1234')


class TestLogin(AuthTestCase):
    """Tests for login() and verify()."""

    def test_login_then_verify(self) -> None:
        """A fresh token verifies."""
        grant = auth.login(self.session, '1234')
        self.assertEqual(grant.expires_in, settings.SESSION_TTL_SECONDS)
        self.assertTrue(auth.verify(self.session, grant.token))

    def test_tokens_are_unique(self) -> None:
        """Each login issues a different token."""
        first = auth.login(self.session, '1234')
        second = auth.login(self.session, '1234')
        self.assertNotEqual(first.token, second.token)

    def test_pin_whitespace_ignored(self) -> None:
        """Surrounding whitespace in the PIN is trimmed."""
        grant = auth.login(self.session, ' 1234 ')
        self.assertTrue(auth.verify(self.session, grant.token))

    def test_wrong_pin_counts_attempt(self) -> None:
        """A wrong PIN raises and increments the failed counter."""
        with self.assertRaises(errors.WrongCredentialError):
            auth.login(self.session, '9999')
        self.assertEqual(counters.get_count(self.session, auth.LOGIN_ATTEMPTS_KEY), 1)

    def test_success_resets_counter(self) -> None:
        """A successful login clears earlier failures."""
        for _ in range(3):
            with self.assertRaises(errors.WrongCredentialError):
                auth.login(self.session, '0000')
        auth.login(self.session, '1234')
        self.assertEqual(counters.get_count(self.session, auth.LOGIN_ATTEMPTS_KEY), 0)

    def test_token_expires_after_ttl(self) -> None:
        """A token is invalid once its TTL has elapsed."""
        grant = auth.login(self.session, '1234', now=1000.0)
        ttl = settings.SESSION_TTL_SECONDS
        self.assertTrue(auth.verify(self.session, grant.token, now=1000.0 + ttl - 1))
        self.assertFalse(auth.verify(self.session, grant.token, now=1000.0 + ttl))
        self.assertIsNone(self.session.get(models.SessionToken, grant.token))

    def test_verify_rejects_absent_and_unknown(self) -> None:
        """Empty and unknown tokens are invalid."""
        self.assertFalse(auth.verify(self.session, None))
        self.assertFalse(auth.verify(self.session, ''))
        self.assertFalse(auth.verify(self.session, 'not-a-token'))

    def test_require_token(self) -> None:
        """require_token raises AuthError for invalid tokens only."""
        grant = auth.login(self.session, '1234')
        auth.require_token(self.session, grant.token)
        with self.assertRaises(errors.AuthError):
            auth.require_token(self.session, 'bogus')


class TestRateLimit(AuthTestCase):
    """Tests for the global failed-login throttle."""

    def test_eleventh_attempt_rate_limited_even_with_correct_pin(self) -> None:
        """Ten failures inside the window block the next login."""
        for _ in range(settings.LOGIN_MAX_ATTEMPTS):
            with self.assertRaises(errors.WrongCredentialError):
                auth.login(self.session, '0000', now=5000.0)
        with self.assertRaises(errors.RateLimitError):
            auth.login(self.session, '1234', now=5001.0)

    def test_window_expiry_lifts_limit(self) -> None:
        """Once the window passes, the correct PIN works again."""
        for _ in range(settings.LOGIN_MAX_ATTEMPTS):
            with self.assertRaises(errors.WrongCredentialError):
                auth.login(self.session, '0000', now=5000.0)
        later = 5000.0 + settings.LOGIN_WINDOW_SECONDS
        grant = auth.login(self.session, '1234', now=later)
        self.assertTrue(auth.verify(self.session, grant.token, now=later))


class TestChangeCredential(AuthTestCase):
    """Tests for change_credential()."""

    def test_change_with_valid_token(self) -> None:
        """The new PIN works and the old one no longer does."""
        grant = auth.login(self.session, '1234')
        auth.change_credential(self.session, '567890', grant.token)
        self.assertTrue(auth.verify(self.session, auth.login(self.session, '567890').token))
        with self.assertRaises(errors.WrongCredentialError):
            auth.login(self.session, '1234')

    def test_existing_session_survives_change(self) -> None:
        """Tokens issued before the change stay valid."""
        grant = auth.login(self.session, '1234')
        auth.change_credential(self.session, '5678', grant.token)
        self.assertTrue(auth.verify(self.session, grant.token))

    def test_change_requires_token(self) -> None:
        """Without a valid token the PIN is left unchanged."""
        with self.assertRaises(errors.AuthError):
            auth.change_credential(self.session, '5678', 'bogus')
        auth.login(self.session, '1234')

    def test_change_validates_length(self) -> None:
        """An invalid new PIN raises ValidationError."""
        grant = auth.login(self.session, '1234')
        with self.assertRaises(errors.ValidationError):
            auth.change_credential(self.session, '12', grant.token)


class TestPurgeExpiredSessions(AuthTestCase):
    """Tests for purge_expired_sessions()."""

    def test_removes_only_expired(self) -> None:
        """Live sessions are kept, expired ones removed."""
        old = auth.login(self.session, '1234', now=0.0)
        fresh = auth.login(self.session, '1234', now=settings.SESSION_TTL_SECONDS - 1.0)
        removed = auth.purge_expired_sessions(self.session, now=settings.SESSION_TTL_SECONDS + 1.0)
        self.assertEqual(removed, 1)
        self.assertIsNone(self.session.get(models.SessionToken, old.token))
        self.assertIsNotNone(self.session.get(models.SessionToken, fresh.token))

    def test_login_clears_expired_sessions(self) -> None:
        """Repeated logins spaced past the TTL leave only the live session."""
        ttl = settings.SESSION_TTL_SECONDS
        grants = [auth.login(self.session, '1234', now=i * 2.0 * ttl) for i in range(50)]
        rows = self.session.exec(sqlmodel.select(models.SessionToken)).all()
        self.assertEqual([row.token for row in rows], [grants[-1].token])


if __name__ == '__main__':
    unittest.main()
