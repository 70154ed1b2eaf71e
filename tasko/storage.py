"""Session storage for authentication.

The storage media mimic the browser's localStorage: a flat map of string keys
to string values. ``SessionStore`` sits on top of one of them and only ever
reads and writes the token and the profile together.
"""

import os
import json
import stat
import asyncio
import logging
import tempfile
from pathlib import Path
from typing import Dict, Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError
from cryptography.fernet import Fernet, InvalidToken

from tasko import config
from tasko.models import Profile, Session

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
USER_KEY = "user"
REFRESH_TOKEN_KEY = "refreshToken"

SESSION_KEYS = (TOKEN_KEY, USER_KEY, REFRESH_TOKEN_KEY)


class StorageError(RuntimeError):
    """Raised when the session cannot be written to the storage medium."""
    pass


class KeyValueStorage:
    """Base class for persisted key-value storage."""

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError

    def update(self, items: Dict[str, Optional[str]]) -> None:
        """
        Write several keys at once. A value of None removes the key.

        Backends that can write all keys in one operation override this.
        """
        for key, value in items.items():
            if value is None:
                self.remove_item(key)
            else:
                self.set_item(key, value)


class MemoryStorage(KeyValueStorage):
    """Storage kept in a dict; nothing survives the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


class NullStorage(KeyValueStorage):
    """Used when no storage medium is available: reads are empty, writes are dropped."""

    def get_item(self, key: str) -> Optional[str]:
        return None

    def set_item(self, key: str, value: str) -> None:
        pass

    def remove_item(self, key: str) -> None:
        pass


class FileStorage(KeyValueStorage):
    """
    Storage backed by a JSON file readable by the owner only.

    When a Fernet instance is given every value is encrypted at rest. Values
    that fail to decrypt (e.g. the master key changed) read as absent.
    """

    def __init__(self, path: Path, fernet: Optional[Fernet] = None):
        self.path = Path(path)
        self.fernet = fernet

    def _read(self) -> Dict[str, str]:
        try:
            content = self.path.read_text()
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.warning("Could not read %s: %s", self.path, e)
            return {}

        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            # Invalid JSON - treat as empty storage
            logger.warning("Ignoring malformed storage file %s", self.path)
            return {}

        if not isinstance(data, dict):
            return {}
        return {k: v for k, v in data.items() if isinstance(k, str) and isinstance(v, str)}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        # Write to a temporary file and swap it in, so readers never see half a file
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".storage-", suffix=".json")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
            os.chmod(tmp_path, stat.S_IRUSR | stat.S_IWUSR)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _encode(self, value: str) -> str:
        if self.fernet is None:
            return value
        return self.fernet.encrypt(value.encode()).decode()

    def _decode(self, value: str) -> Optional[str]:
        if self.fernet is None:
            return value
        try:
            return self.fernet.decrypt(value.encode()).decode()
        except InvalidToken:
            logger.warning("Could not decrypt a stored value; treating it as absent")
            return None

    def get_item(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        if value is None:
            return None
        return self._decode(value)

    def set_item(self, key: str, value: str) -> None:
        self.update({key: value})

    def remove_item(self, key: str) -> None:
        self.update({key: None})

    def update(self, items: Dict[str, Optional[str]]) -> None:
        data = self._read()
        for key, value in items.items():
            if value is None:
                data.pop(key, None)
            else:
                data[key] = self._encode(value)

        if data:
            self._write(data)
        elif self.path.exists():
            self.path.unlink()


class KeyringStorage(KeyValueStorage):
    """Storage backed by the operating system keyring."""

    def __init__(self, service_name: str = config.SERVICE_NAME):
        self.service_name = service_name

    def get_item(self, key: str) -> Optional[str]:
        try:
            return keyring.get_password(self.service_name, key)
        except KeyringError as e:
            logger.warning("Keyring read failed for %r: %s", key, e)
            return None

    def set_item(self, key: str, value: str) -> None:
        keyring.set_password(self.service_name, key, value)

    def remove_item(self, key: str) -> None:
        try:
            keyring.delete_password(self.service_name, key)
        except PasswordDeleteError:
            # Nothing stored under this key
            pass

    def update(self, items: Dict[str, Optional[str]]) -> None:
        """
        Write several keyring entries, putting the old values back if one write fails.

        If even the rollback fails, every key in ``items`` is removed, so a
        reader finds no session rather than a new token next to an old profile.
        """
        previous = {key: self.get_item(key) for key in items}
        try:
            super().update(items)
        except KeyringError:
            try:
                super().update(previous)
            except KeyringError as e:
                logger.warning("Keyring rollback failed, removing the session keys: %s", e)
                for key in items:
                    try:
                        self.remove_item(key)
                    except KeyringError as remove_error:
                        logger.warning("Could not remove %r from the keyring: %s", key, remove_error)
            raise


def default_storage(backend: Optional[str] = None) -> KeyValueStorage:
    """
    Build the storage medium selected by configuration.

    Args:
        backend: One of 'file', 'keyring', 'memory' or 'none'. Defaults to
                 the TASKO_SESSION_BACKEND setting.

    Raises:
        ValueError: If the backend name is unknown
    """
    backend = backend or config.get_session_backend()

    if backend == "file":
        try:
            fernet = config.get_fernet()
        except RuntimeError as e:
            logger.warning("Session will be stored unencrypted: %s", e)
            fernet = None
        return FileStorage(config.STORAGE_PATH, fernet)
    if backend == "keyring":
        return KeyringStorage()
    if backend == "memory":
        return MemoryStorage()
    if backend == "none":
        return NullStorage()
    raise ValueError(f"Unknown session backend: {backend!r}")


class SessionStore:
    """
    Persists the session as the 'token', 'user' and 'refreshToken' keys.

    load(), save() and clear() are serialized with a lock, and each one does
    all of its storage access inside a single worker-thread call. Callers never
    see one key updated while the other is stale.
    """

    def __init__(self, storage: KeyValueStorage):
        self.storage = storage
        self._lock = asyncio.Lock()

    def _load_sync(self) -> Session:
        try:
            token = self.storage.get_item(TOKEN_KEY)
            raw_user = self.storage.get_item(USER_KEY)
            refresh_token = self.storage.get_item(REFRESH_TOKEN_KEY)
        except Exception as e:
            # A broken medium must never take the application down
            logger.warning("Could not read the stored session: %s", e)
            return Session.anonymous()

        if not token or not raw_user:
            return Session.anonymous()

        try:
            profile = Profile.from_dict(json.loads(raw_user))
        except json.JSONDecodeError:
            profile = None
        if profile is None:
            logger.debug("Stored profile is malformed; starting anonymous")
            return Session.anonymous()

        return Session(token=token, profile=profile, refresh_token=refresh_token or None)

    async def load(self) -> Session:
        """
        Read the persisted session.

        Returns:
            The stored session, or an anonymous one if the token or the
            profile is missing or the profile does not parse. Never raises.
        """
        async with self._lock:
            return await asyncio.to_thread(self._load_sync)

    async def save(self, session: Session) -> None:
        """
        Persist token and profile together.

        Raises:
            ValueError: If the session is not authenticated
            StorageError: If the storage medium rejects the write
        """
        if not session.is_authenticated:
            raise ValueError("Only a session with both a token and a profile can be saved")

        items = {
            TOKEN_KEY: session.token,
            USER_KEY: json.dumps(session.profile.to_dict()),
            REFRESH_TOKEN_KEY: session.refresh_token,
        }
        async with self._lock:
            await self._write(items)

    async def clear(self) -> None:
        """
        Remove every session key.

        Raises:
            StorageError: If the storage medium rejects the write
        """
        async with self._lock:
            await self._write({key: None for key in SESSION_KEYS})

    async def _write(self, items: Dict[str, Optional[str]]) -> None:
        try:
            await asyncio.to_thread(self.storage.update, items)
        except (OSError, KeyringError) as e:
            raise StorageError(f"Could not save the session: {e}") from e

    async def get_token(self) -> Optional[str]:
        """Get the token of the persisted session, if it is a complete one."""
        return (await self.load()).token
