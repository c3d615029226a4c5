"""
Settings Store

Durable key/value preferences consumed by the context store.
Provides an in-memory implementation and a JSON-file implementation.
"""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

import structlog

logger = structlog.get_logger(__name__)


class SettingsStore(Protocol):
    """Typed get/set over a durable, restart-surviving key/value store."""

    def get_bool(self, key: str, default: bool = False) -> bool: ...

    def set_bool(self, key: str, value: bool) -> None: ...

    def get_string(self, key: str, default: str = "") -> str: ...

    def set_string(self, key: str, value: str) -> None: ...

    def get_int(self, key: str, default: int = 0) -> int: ...

    def set_int(self, key: str, value: int) -> None: ...


class MemorySettingsStore:
    """Settings held in a dict. Nothing survives the process."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(initial or {})

    def _get(self, key: str, default: Any, kind: type) -> Any:
        value = self._values.get(key, default)
        return value if isinstance(value, kind) else default

    def get_bool(self, key: str, default: bool = False) -> bool:
        return self._get(key, default, bool)

    def set_bool(self, key: str, value: bool) -> None:
        self._set(key, bool(value))

    def get_string(self, key: str, default: str = "") -> str:
        return self._get(key, default, str)

    def set_string(self, key: str, value: str) -> None:
        self._set(key, str(value))

    def get_int(self, key: str, default: int = 0) -> int:
        value = self._values.get(key, default)
        # bool is an int subclass; a stored flag is not a valid int setting
        if isinstance(value, bool) or not isinstance(value, int):
            return default
        return value

    def set_int(self, key: str, value: int) -> None:
        self._set(key, int(value))

    def _set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)

    def __contains__(self, key: str) -> bool:
        return key in self._values


class JsonSettingsStore(MemorySettingsStore):
    """
    Settings persisted to a JSON file.

    The file is read once on construction and rewritten after every set.
    An unreadable file is logged and treated as empty.
    """

    def __init__(self, path: Path | str) -> None:
        super().__init__()
        self._path = Path(path).expanduser()
        self._lock = threading.Lock()
        if self._path.exists():
            self._load_from_file()

    @property
    def path(self) -> Path:
        return self._path

    def _load_from_file(self) -> None:
        try:
            with open(self._path, "r") as f:
                data = json.load(f)
            values = data.get("values", {}) if isinstance(data, dict) else None
            if not isinstance(values, dict):
                raise ValueError("expected an object with a 'values' object")
            self._values = dict(values)
            logger.debug("Loaded settings from file", path=str(self._path), count=len(self._values))
        except (OSError, ValueError) as e:
            logger.error("Failed to load settings from file", path=str(self._path), error=str(e))
            self._values = {}

    def _save_to_file(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            data = {
                "values": self._values,
                "saved_at": datetime.now(timezone.utc).isoformat(),
            }
            with open(self._path, "w") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.error("Failed to save settings to file", path=str(self._path), error=str(e))

    def _set(self, key: str, value: Any) -> None:
        with self._lock:
            self._values[key] = value
            self._save_to_file()
