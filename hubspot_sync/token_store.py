"""Secret storage and OAuth token persistence."""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path

from .config import TOKEN_NAMESPACE
from .models import OAuthTokenRecord, TokenResponse

logger = logging.getLogger(__name__)


class SecretStore(ABC):
    """Opaque key/value secret storage (keychain, file, memory)."""

    @abstractmethod
    def read(self, key: str) -> str | None:
        pass

    @abstractmethod
    def write(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass


class MemorySecretStore(SecretStore):
    def __init__(self, initial: dict[str, str] | None = None):
        self._values: dict[str, str] = dict(initial or {})

    def read(self, key: str) -> str | None:
        return self._values.get(key)

    def write(self, key: str, value: str) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)


class FileSecretStore(SecretStore):
    """JSON file backed store. The file is replaced atomically with mode 0600."""

    def __init__(self, path: str | Path):
        self._path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> dict[str, str]:
        try:
            with self._path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("Unreadable secret file %s: %s", self._path, e)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _dump(self, values: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=".secrets-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(values, f)
            os.chmod(tmp, 0o600)
            os.replace(tmp, self._path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def read(self, key: str) -> str | None:
        with self._lock:
            return self._load().get(key)

    def write(self, key: str, value: str) -> None:
        with self._lock:
            values = self._load()
            values[key] = value
            self._dump(values)

    def delete(self, key: str) -> None:
        with self._lock:
            values = self._load()
            if key in values:
                del values[key]
                self._dump(values)


class TokenStore:
    """Persists the OAuth token record under namespaced secret keys.

    Sole owner of token persistence: nothing else writes these keys.
    """

    def __init__(self, secrets: SecretStore, namespace: str = TOKEN_NAMESPACE):
        self._secrets = secrets
        self._access_key = f"{namespace}.access_token"
        self._refresh_key = f"{namespace}.refresh_token"
        self._expires_key = f"{namespace}.access_expires_at"

    @property
    def access_token(self) -> str | None:
        return self._secrets.read(self._access_key)

    @property
    def refresh_token(self) -> str | None:
        return self._secrets.read(self._refresh_key)

    @property
    def expires_at(self) -> datetime | None:
        raw = self._secrets.read(self._expires_key)
        if raw is None:
            return None
        try:
            return datetime.fromtimestamp(float(raw), tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            logger.warning("Discarding unparsable token expiry %r", raw)
            return None

    @property
    def has_credentials(self) -> bool:
        return self.access_token is not None or self.refresh_token is not None

    def load(self) -> OAuthTokenRecord | None:
        if not self.has_credentials:
            return None
        return OAuthTokenRecord(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            expires_at=self.expires_at,
        )

    def save(self, token: TokenResponse, now: datetime) -> OAuthTokenRecord:
        """Store a token response.

        A missing refresh token keeps the stored one. A missing access token
        drops the stored access token and its expiry.
        """
        if token.refresh_token:
            self._secrets.write(self._refresh_key, token.refresh_token)

        if not token.access_token:
            self._secrets.delete(self._access_key)
            self._secrets.delete(self._expires_key)
            logger.warning("Token response carried no access token")
            return OAuthTokenRecord(refresh_token=self.refresh_token)

        expires_at = now + timedelta(seconds=token.expires_in)
        self._secrets.write(self._access_key, token.access_token)
        self._secrets.write(self._expires_key, str(expires_at.timestamp()))
        logger.debug("Stored access token expiring at %s", expires_at.isoformat())
        return OAuthTokenRecord(
            access_token=token.access_token,
            refresh_token=self.refresh_token,
            expires_at=expires_at,
        )

    def clear(self) -> None:
        self._secrets.delete(self._access_key)
        self._secrets.delete(self._refresh_key)
        self._secrets.delete(self._expires_key)
