"""
Client-local session persistence.

Backends store string values under string keys, the way browser
localStorage does. SessionStore layers the token/user/email keys on top
and never raises: an unavailable or failing backend degrades to no-op
writes and empty reads, with a logged warning.

Usage:
    from easytable.auth.storage import SessionStore, create_storage

    store = SessionStore(create_storage(settings))
    store.save(token)
    store.load()  # -> token or None
"""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from .types import UserInfo

logger = logging.getLogger(__name__)

TOKEN_KEY = "authToken"
USER_KEY = "userInfo"
EMAIL_KEY = "userEmail"


# =============================================================================
# Backends
# =============================================================================

class MemoryStorage:
    """In-process storage; nothing survives the process."""

    available = True

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class FileStorage:
    """JSON document on disk, rewritten atomically on every change."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._data: Optional[dict[str, str]] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.available = os.access(self.path.parent, os.W_OK)
        except OSError as e:
            logger.warning(f"Storage directory {self.path.parent} unusable: {e}")
            self.available = False

    def _load(self) -> dict[str, str]:
        if self._data is not None:
            return self._data
        self._data = {}
        if self.path.exists():
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    self._data = {k: v for k, v in data.items() if isinstance(v, str)}
                else:
                    logger.warning(f"Ignoring malformed storage file {self.path}")
            except (OSError, ValueError) as e:
                logger.warning(f"Failed to read storage file {self.path}: {e}")
        return self._data

    def _save(self) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".storage-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        self._load()[key] = value
        self._save()

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save()


def create_storage(settings=None):
    """Pick FileStorage when enabled and usable, else MemoryStorage."""
    if settings is None:
        from config.settings import get_settings
        settings = get_settings()

    if settings.storage.enabled:
        backend = FileStorage(settings.storage.resolved_path)
        if backend.available:
            return backend
        logger.warning("File storage unavailable, session will not persist")
    return MemoryStorage()


# =============================================================================
# Session Store
# =============================================================================

class SessionStore:
    """Typed access to the persisted token, user and remembered email."""

    def __init__(self, backend=None):
        self.backend = backend if backend is not None else MemoryStorage()

    # -- raw access ---------------------------------------------------------

    def _get(self, key: str) -> Optional[str]:
        if not getattr(self.backend, "available", False):
            return None
        try:
            return self.backend.get(key)
        except OSError as e:
            logger.warning(f"Storage read of {key} failed: {e}")
            return None

    def _set(self, key: str, value: str) -> None:
        if not getattr(self.backend, "available", False):
            logger.warning(f"Storage unavailable, {key} not saved")
            return
        try:
            self.backend.set(key, value)
        except OSError as e:
            logger.warning(f"Storage write of {key} failed: {e}")

    def _remove(self, key: str) -> None:
        if not getattr(self.backend, "available", False):
            return
        try:
            self.backend.remove(key)
        except OSError as e:
            logger.warning(f"Storage delete of {key} failed: {e}")

    # -- token --------------------------------------------------------------

    def save(self, token: str) -> None:
        self._set(TOKEN_KEY, token)

    def load(self) -> Optional[str]:
        return self._get(TOKEN_KEY) or None

    def clear_token(self) -> None:
        self._remove(TOKEN_KEY)

    # -- user ---------------------------------------------------------------

    def save_user(self, user: UserInfo) -> None:
        self._set(USER_KEY, json.dumps(user.to_dict()))

    def load_user(self) -> Optional[UserInfo]:
        raw = self._get(USER_KEY)
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Stored user info is corrupt: {e}")
            return None
        if not isinstance(data, dict):
            return None
        return UserInfo.from_mapping(data)

    def clear_user(self) -> None:
        self._remove(USER_KEY)

    # -- remembered email -----------------------------------------------------

    def remember_email(self, email: str) -> None:
        self._set(EMAIL_KEY, email)

    def recall_email(self) -> Optional[str]:
        return self._get(EMAIL_KEY) or None

    def forget_email(self) -> None:
        self._remove(EMAIL_KEY)

    # -------------------------------------------------------------------------

    def clear(self) -> None:
        """Drop the token and user. The remembered email stays."""
        self.clear_token()
        self.clear_user()
