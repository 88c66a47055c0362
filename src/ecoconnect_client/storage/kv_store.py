import csv
import threading
from pathlib import Path
from typing import Dict, Optional

AUTH_TOKEN_KEY = "authToken"

_FIELDNAMES = ["key", "value"]


def _read_pairs(path: Path) -> Dict[str, str]:
    if not path.exists():
        return {}
    with path.open("r", newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        return {
            row.get("key", ""): row.get("value", "")
            for row in reader
            if row.get("key")
        }


def _write_pairs(path: Path, pairs: Dict[str, str]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.DictWriter(handle, fieldnames=_FIELDNAMES)
        writer.writeheader()
        for key, value in pairs.items():
            writer.writerow({"key": key, "value": value})


class KeyValueStore:
    """Small persistent string store. Every read goes back to disk."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            value = _read_pairs(self.path).get(key)
        return value if value else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            pairs = _read_pairs(self.path)
            pairs[key] = value
            _write_pairs(self.path, pairs)

    def remove(self, key: str) -> None:
        with self._lock:
            pairs = _read_pairs(self.path)
            if key not in pairs:
                return
            del pairs[key]
            _write_pairs(self.path, pairs)
