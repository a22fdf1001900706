"""Normalization of untrusted text and numbers before they are persisted.

Text that is later rendered into HTML loses all markup here; no tag is
considered safe enough to keep.
"""

import math
import re
from typing import Any

from .errors import ValidationError

DEFAULT_MAX_LENGTH = 200

_SCRIPT_BLOCK_RE = re.compile(r'<(script|style)\b[^>]*>.*?</\1\s*>', re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r'<[^>]*>')
_DENYLIST = str.maketrans('', '', '<>"\'&')


def sanitize(value: Any, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """Strip tags and denylisted characters, trim, and truncate to *max_length*.

    Never raises: ``None`` becomes ``''`` and other non-strings are passed
    through ``str()`` first.
    """
    if value is None:
        return ''
    text = value if isinstance(value, str) else str(value)
    text = _SCRIPT_BLOCK_RE.sub('', text)
    text = _TAG_RE.sub('', text)
    text = text.translate(_DENYLIST).strip()
    return text[: max(max_length, 0)]


def sanitize_pin(value: Any) -> str:
    """Return the PIN with surrounding whitespace removed."""
    if value is None:
        return ''
    return str(value).strip()


def parse_coordinate(value: Any, limit: float, name: str) -> float:
    """Parse a latitude/longitude and check it lies within ``[-limit, limit]``."""
    if isinstance(value, bool):
        raise ValidationError(f'{name} must be a number')
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{name} must be a number') from None
    if not math.isfinite(number):
        raise ValidationError(f'{name} must be finite')
    if not -limit <= number <= limit:
        raise ValidationError(f'{name} must be between {-limit:g} and {limit:g}')
    return number
