"""JSON-backed key/value settings store."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from reclaim.utils import xdg_config_home

log = logging.getLogger(__name__)

_SETTINGS_DIR = "reclaim"
_SETTINGS_FILE = "settings.json"


class Settings:
    """Flat string settings persisted to a JSON object.

    Values are always stored as strings:
        settings.set("show_analysis", "true")
        settings.get("show_analysis")  # "true"
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or (xdg_config_home() / _SETTINGS_DIR / _SETTINGS_FILE)
        self._data: dict[str, str] = {}
        self._load()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._data.get(key, default)

    def set(self, key: str, value: str) -> None:
        """Store *value* under *key* and persist immediately."""
        self._data[key] = str(value)
        self._save()

    def delete(self, key: str) -> bool:
        """Remove *key*; returns False if it was not set."""
        if key not in self._data:
            return False
        del self._data[key]
        self._save()
        return True

    def items(self) -> dict[str, str]:
        return dict(self._data)

    def _load(self) -> None:
        """Load settings from disk, gracefully handling errors."""
        if not self._path.exists():
            return
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Could not load settings from %s: %s", self._path, e)
            return
        if not isinstance(raw, dict):
            log.warning("Ignoring settings file %s: not a JSON object", self._path)
            return
        self._data = {str(k): str(v) for k, v in raw.items()}

    def _save(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(
                json.dumps(self._data, indent=2, ensure_ascii=False, sort_keys=True) + "\n",
                encoding="utf-8",
            )
        except OSError as e:
            log.warning("Could not save settings to %s: %s", self._path, e)
