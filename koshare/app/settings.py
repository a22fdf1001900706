"""Service settings read from environment variables."""

import os
import pathlib

DATA_DIR: str = os.environ.get('DATA_DIR', 'data')
DATABASE_PATH: pathlib.Path = pathlib.Path(DATA_DIR) / 'koshare.db'
DATABASE_URL: str = os.environ.get('KOSHARE_DATABASE_URL', f'sqlite:///{DATABASE_PATH}')

# Shared secret for setPin; unset disables the action entirely.
ADMIN_SECRET: str | None = os.environ.get('KOSHARE_ADMIN_SECRET') or None
PIN_SALT: str = os.environ.get('KOSHARE_PIN_SALT', 'koshare-pin-salt-v1')
PIN_MIN_LENGTH = 4
PIN_MAX_LENGTH = 6

SESSION_TTL_SECONDS: int = int(os.environ.get('KOSHARE_SESSION_TTL_SECONDS', '86400'))
LOGIN_MAX_ATTEMPTS: int = int(os.environ.get('KOSHARE_LOGIN_MAX_ATTEMPTS', '10'))
LOGIN_WINDOW_SECONDS: int = int(os.environ.get('KOSHARE_LOGIN_WINDOW_SECONDS', '3600'))

THUMBNAIL_MAX_BYTES: int = int(os.environ.get('KOSHARE_THUMBNAIL_MAX_BYTES', '70000'))

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100

LOCATION_NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 300
CATEGORY_MAX_LENGTH = 50
DEFAULT_CATEGORY = 'general'
