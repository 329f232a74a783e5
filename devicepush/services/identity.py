"""Read-only access to the signed-in user's id kept in local device storage."""

import json
import logging
from pathlib import Path
from typing import Mapping, Optional, Protocol

from devicepush.schemas.registration import UserIdentity

logger = logging.getLogger(__name__)

CURRENT_USER_KEY = "current_user_id"


class IdentityError(Exception):
    """Stored identity data exists but cannot be used."""


class LocalIdentityStore(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...


class IdentityResolver(Protocol):
    def resolve(self) -> Optional[UserIdentity]:
        ...


class InMemoryIdentityStore:
    def __init__(self, values: Optional[Mapping[str, str]] = None) -> None:
        self._values: dict[str, str] = dict(values or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class JsonFileIdentityStore:
    """Preferences file holding a flat JSON object of string values.

    A missing file is treated as an empty store (nobody has signed in yet).
    The file is re-read on every lookup since another process owns writes.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def get(self, key: str) -> Optional[str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise IdentityError(f"Cannot read preferences file {self.path}: {exc}") from exc

        try:
            data = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError as exc:
            raise IdentityError(f"Preferences file {self.path} is not valid JSON") from exc

        if not isinstance(data, dict):
            raise IdentityError(f"Preferences file {self.path} must hold a JSON object")

        value = data.get(key)
        if value is not None and not isinstance(value, str):
            raise IdentityError(f"Preference {key!r} is not a string")
        return value


class StoreIdentityResolver:
    def __init__(self, store: LocalIdentityStore, key: str = CURRENT_USER_KEY) -> None:
        self._store = store
        self._key = key

    def resolve(self) -> Optional[UserIdentity]:
        value = self._store.get(self._key)
        if value is None:
            return None
        if not isinstance(value, str):
            raise IdentityError(f"Stored {self._key!r} has unexpected type {type(value).__name__}")
        # Sign-out may leave an empty string behind rather than removing the key
        if not value.strip():
            return None
        return UserIdentity(user_id=value.strip())
