"""Local secret storage for API keys."""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from config.exceptions import SecretStoreError

logger = logging.getLogger(__name__)

OPENAI_API_KEY = "openai_api_key"
GOOGLE_BOOKS_API_KEY = "google_books_api_key"


@runtime_checkable
class SecretStore(Protocol):
    """Key-value secret store used for provider credentials."""

    def get(self, name: str) -> Optional[str]:
        ...

    def save(self, name: str, value: str) -> None:
        ...

    def delete(self, name: str) -> None:
        ...


class FileSecretStore:
    """Secrets kept in a JSON file readable only by the current user."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Secret store %s is unreadable: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        fd = os.open(str(tmp_path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f)
        os.replace(tmp_path, self.path)

    def get(self, name: str) -> Optional[str]:
        value = self._load().get(name)
        return value if isinstance(value, str) else None

    def save(self, name: str, value: str) -> None:
        """Store ``value`` under ``name``, replacing any previous value.

        Raises:
            SecretStoreError: If the file cannot be written.
        """
        data = self._load()
        data[name] = value
        try:
            self._write(data)
        except OSError as e:
            raise SecretStoreError(f"Failed to save secret: {e}", {"name": name}) from e
        logger.info("Secret '%s' saved", name)

    def delete(self, name: str) -> None:
        data = self._load()
        if name not in data:
            return
        del data[name]
        try:
            self._write(data)
        except OSError as e:
            raise SecretStoreError(f"Failed to delete secret: {e}", {"name": name}) from e
        logger.info("Secret '%s' deleted", name)

    def has(self, name: str) -> bool:
        value = self.get(name)
        return bool(value and value.strip())
