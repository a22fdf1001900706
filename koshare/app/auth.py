"""Session authority: shared-PIN login, token verification and throttling.

There are no user accounts. One PIN is shared by the operator group, stored
only as a salted SHA-256 digest. A successful login yields an opaque token
that is a capability, not an identity: any valid token may invoke any
protected action. Failed logins are throttled by a single global counter
because no caller identity exists before authentication.
"""

import dataclasses
import hashlib
import hmac
import logging
import time
import uuid

import sqlmodel

from . import counters, settings
from .errors import (
    AuthError,
    NoCredentialError,
    RateLimitError,
    ValidationError,
    WrongCredentialError,
)
from .models import AppSetting, SessionToken
from .sanitize import sanitize_pin

logger = logging.getLogger(__name__)

PIN_HASH_KEY = 'pinHash'
LOGIN_ATTEMPTS_KEY = 'loginAttempts'


@dataclasses.dataclass(frozen=True)
class LoginGrant:
    """Token returned by a successful login."""

    token: str
    expires_in: int


def hash_pin(pin: str) -> str:
    """Return the salted one-way digest of *pin*."""
    return hashlib.sha256((settings.PIN_SALT + pin).encode('utf-8')).hexdigest()


def _validated_pin(pin: object) -> str:
    value = sanitize_pin(pin)
    if not settings.PIN_MIN_LENGTH <= len(value) <= settings.PIN_MAX_LENGTH:
        raise ValidationError(
            f'PIN must be {settings.PIN_MIN_LENGTH}-{settings.PIN_MAX_LENGTH} characters'
        )
    return value


def set_credential(session: sqlmodel.Session, pin: object) -> None:
    """Store the digest of a new shared PIN, replacing any previous one."""
    value = _validated_pin(pin)
    setting = session.get(AppSetting, PIN_HASH_KEY)
    if setting is None:
        setting = AppSetting(key=PIN_HASH_KEY, value='')
    setting.value = hash_pin(value)
    session.add(setting)
    session.commit()
    logger.info('Shared PIN configured')


def login(session: sqlmodel.Session, pin: object, now: float | None = None) -> LoginGrant:
    """Exchange the shared PIN for a fresh session token.

    Expired session rows are purged before the new one is stored.

    Raises:
        RateLimitError: too many failed attempts inside the current window.
        NoCredentialError: no PIN has ever been configured.
        WrongCredentialError: the PIN does not match.
    """
    now = time.time() if now is None else now
    attempts = counters.get_count(session, LOGIN_ATTEMPTS_KEY, now=now)
    if attempts >= settings.LOGIN_MAX_ATTEMPTS:
        logger.warning('Login rejected: %d failed attempts in window', attempts)
        raise RateLimitError('Too many failed attempts, try again later')

    stored = session.get(AppSetting, PIN_HASH_KEY)
    if stored is None:
        raise NoCredentialError('No PIN has been configured')

    if not hmac.compare_digest(hash_pin(sanitize_pin(pin)), stored.value):
        failed = counters.increment(
            session,
            LOGIN_ATTEMPTS_KEY,
            ttl_seconds=settings.LOGIN_WINDOW_SECONDS,
            now=now,
        )
        logger.info('Login failed (%d/%d)', failed, settings.LOGIN_MAX_ATTEMPTS)
        raise WrongCredentialError('Incorrect PIN')

    counters.reset(session, LOGIN_ATTEMPTS_KEY)
    purge_expired_sessions(session, now=now)
    token = uuid.uuid4().hex
    session.add(
        SessionToken(
            token=token,
            issued_at=now,
            expires_at=now + settings.SESSION_TTL_SECONDS,
        )
    )
    session.commit()
    logger.info('Login succeeded, session issued')
    return LoginGrant(token=token, expires_in=settings.SESSION_TTL_SECONDS)


def verify(session: sqlmodel.Session, token: str | None, now: float | None = None) -> bool:
    """Return whether *token* is a live session; expired rows are purged."""
    if not token:
        return False
    row = session.get(SessionToken, token)
    if row is None:
        return False
    now = time.time() if now is None else now
    if row.expires_at <= now:
        session.delete(row)
        session.commit()
        return False
    return True


def require_token(session: sqlmodel.Session, token: str | None, now: float | None = None) -> None:
    """Raise :class:`AuthError` unless *token* is valid."""
    if not verify(session, token, now=now):
        raise AuthError('Login required')


def change_credential(
    session: sqlmodel.Session,
    new_pin: object,
    token: str | None,
    now: float | None = None,
) -> None:
    """Replace the shared PIN on behalf of an authenticated session.

    Sessions issued under the old PIN remain valid until they expire.
    """
    require_token(session, token, now=now)
    set_credential(session, new_pin)


def purge_expired_sessions(session: sqlmodel.Session, now: float | None = None) -> int:
    """Delete expired session rows and return how many were removed."""
    now = time.time() if now is None else now
    expired = session.exec(
        sqlmodel.select(SessionToken).where(SessionToken.expires_at <= now)
    ).all()
    for row in expired:
        session.delete(row)
    if expired:
        session.commit()
    return len(expired)
