"""Key/value persistence for client state (token, expiry, share count).

Values are JSON-serializable and written through to a single JSON file on
every change. Without a path the store lives only in memory.
"""

import json
import logging
import pathlib
from typing import Any

logger = logging.getLogger(__name__)


class LocalStore:
    """A tiny persistent dict."""

    def __init__(self, path: str | pathlib.Path | None = None) -> None:
        self._path = pathlib.Path(path) if path is not None else None
        self._values: dict[str, Any] = {}
        if self._path is not None and self._path.exists():
            try:
                loaded = json.loads(self._path.read_text(encoding='utf-8'))
            except ValueError:
                logger.warning('Ignoring unreadable store at %s', self._path)
            else:
                if isinstance(loaded, dict):
                    self._values = loaded

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for *key*, or *default*."""
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Store *value* under *key* and write the file."""
        self._values[key] = value
        self._flush()

    def remove(self, key: str) -> None:
        """Delete *key* if present."""
        if key in self._values:
            del self._values[key]
            self._flush()

    def _flush(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(self._values), encoding='utf-8')
