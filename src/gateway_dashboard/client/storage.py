# src/gateway_dashboard/client/storage.py

import json
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, Optional

log = logging.getLogger(__name__)


class MemoryStore:
    """String key/value store with the same surface as the file-backed one."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        self.update({key: value})

    def remove_item(self, key: str) -> None:
        self.update({}, remove=(key,))

    def update(self, values: Dict[str, str], remove: Iterable[str] = ()) -> None:
        """Sets and removes several keys in one write."""
        data = self._read()
        data.update({k: str(v) for k, v in values.items()})
        for key in remove:
            data.pop(key, None)
        self._write(data)

    def _read(self) -> Dict[str, str]:
        return dict(self._data)

    def _write(self, data: Dict[str, str]) -> None:
        self._data = data


class JsonFileStore(MemoryStore):
    """
    Persists the store as a flat JSON object. Reads go to disk every time so
    a second process (another terminal, the CLI) sees changes immediately.
    """

    def __init__(self, path: Path):
        super().__init__()
        self.path = Path(path)
        self.tmp_path = self.path.with_name(self.path.name + ".tmp")

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            log.warning("Ignoring unreadable client state file %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items() if v is not None}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.tmp_path, "w", encoding="utf-8") as f:
            f.write(json.dumps(data, indent=2, sort_keys=True))
            f.flush()
            os.fsync(f.fileno())
        os.replace(self.tmp_path, self.path)
        # Holds a bearer token.
        self.path.chmod(0o600)
