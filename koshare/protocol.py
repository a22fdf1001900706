"""Result envelope shared by the backend and the client.

Every action answers with ``{success, data?, error?, code?}``.  The two shapes
are modelled as a tagged union so callers branch on the type instead of
poking at optional keys.
"""

from __future__ import annotations

from typing import Any, Literal

import pydantic


class Ok(pydantic.BaseModel):
    """Successful action result."""

    success: Literal[True] = True
    data: dict[str, Any] = pydantic.Field(default_factory=dict)

    def to_envelope(self) -> dict[str, Any]:
        """Return the JSON-serializable wire form."""
        return self.model_dump(mode='json')


class Err(pydantic.BaseModel):
    """Failed action result carrying a machine-readable code."""

    success: Literal[False] = False
    code: str
    error: str

    def to_envelope(self) -> dict[str, Any]:
        """Return the JSON-serializable wire form."""
        return self.model_dump(mode='json')


Result = Ok | Err

_result_adapter: pydantic.TypeAdapter[Result] = pydantic.TypeAdapter(Result)


def parse_envelope(payload: Any) -> Result:
    """Parse a decoded JSON response body into :class:`Ok` or :class:`Err`.

    Older backends omitted ``code`` on failures; those parse as ``UNKNOWN``.
    """
    if isinstance(payload, dict) and payload.get('success') is False:
        payload = {'code': 'UNKNOWN', 'error': '', **payload}
        if payload['code'] is None:
            payload['code'] = 'UNKNOWN'
        if payload['error'] is None:
            payload['error'] = ''
    if isinstance(payload, dict) and payload.get('success') is True:
        if payload.get('data') is None:
            payload = {**payload, 'data': {}}
    return _result_adapter.validate_python(payload)
