"""JSON-file backed store for the persisted token and plugin state."""

import json
import logging
import os
import threading
from pathlib import Path

from gplaybot.domain.exceptions import ConfigurationError
from gplaybot.domain.ports import IStateStore, ITokenStore

logger = logging.getLogger(__name__)


class JsonStateStore(ITokenStore, IStateStore):
    """Small key/value store, one JSON document on disk.

    Hey future me - without a path this is memory-only (handy for tests and one-off runs).
    Writes go to a temp file first and are renamed into place, so a crash never leaves half
    a JSON document behind. The token lives under "secrets", state entries under "state".
    """

    def __init__(self, path: Path | None = None, initial_token: str | None = None) -> None:
        self.path = path
        self._lock = threading.Lock()
        self._data: dict[str, dict[str, str]] = {"secrets": {}, "state": {}}
        if path is not None and path.exists():
            self._data = self._load(path)
        if initial_token and "token" not in self._data["secrets"]:
            self._data["secrets"]["token"] = initial_token

    def get_token(self) -> str | None:
        return self._data["secrets"].get("token")

    def set_token(self, token: str | None) -> None:
        self._set("secrets", "token", token)

    def get_state(self, key: str) -> str | None:
        return self._data["state"].get(key)

    def set_state(self, key: str, value: str | None) -> None:
        self._set("state", key, value)

    def _set(self, section: str, key: str, value: str | None) -> None:
        with self._lock:
            if value is None:
                self._data[section].pop(key, None)
            else:
                self._data[section][key] = value
            if self.path is not None:
                self._save(self.path)

    def _save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_text(json.dumps(self._data, indent=2), encoding="utf-8")
        os.replace(tmp_path, path)

    @staticmethod
    def _load(path: Path) -> dict[str, dict[str, str]]:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Unable to read state file '{path}': {e}") from e
        if not isinstance(raw, dict):
            raise ConfigurationError(f"State file '{path}' is not a JSON object")
        data: dict[str, dict[str, str]] = {"secrets": {}, "state": {}}
        for section in data:
            values = raw.get(section) or {}
            data[section] = {str(k): str(v) for k, v in values.items() if v is not None}
        logger.debug("Loaded state file %s", path)
        return data
