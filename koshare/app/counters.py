"""Process-wide keyed counters with optional expiry.

Backs the login-attempt throttle and the visit counter. A counter whose
window has passed reads as zero and restarts on the next increment; the
window is fixed when a counter starts and later increments do not extend it.
"""

import time

import sqlmodel

from .models import Counter


def _live_counter(session: sqlmodel.Session, key: str, now: float) -> Counter | None:
    counter = session.get(Counter, key)
    if counter is None:
        return None
    if counter.expires_at is not None and counter.expires_at <= now:
        return None
    return counter


def get_count(session: sqlmodel.Session, key: str, now: float | None = None) -> int:
    """Return the current value of *key*, or 0 if unset or expired."""
    counter = _live_counter(session, key, time.time() if now is None else now)
    return counter.value if counter else 0


def increment(
    session: sqlmodel.Session,
    key: str,
    ttl_seconds: float | None = None,
    now: float | None = None,
) -> int:
    """Add one to *key* and return the new value.

    When the counter is absent or expired it restarts at 1, and a fresh
    expiry of ``now + ttl_seconds`` is set if a TTL is given.
    """
    now = time.time() if now is None else now
    counter = session.get(Counter, key)
    if counter is None:
        counter = Counter(key=key)
    if _live_counter(session, key, now) is None:
        counter.value = 0
        counter.expires_at = now + ttl_seconds if ttl_seconds is not None else None
    counter.value += 1
    session.add(counter)
    session.commit()
    session.refresh(counter)
    return counter.value


def reset(session: sqlmodel.Session, key: str) -> None:
    """Remove *key* so it reads as zero."""
    counter = session.get(Counter, key)
    if counter is not None:
        session.delete(counter)
        session.commit()
