"""
Backing stores for the consumed-signature set.

Both stores are append-only. There is no remove operation: historical
proof of consumption is permanent.
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Iterator, Set

from vaultrelay.core.exceptions import StoreError

logger = logging.getLogger(__name__)

_KEY_HEX_LENGTH = 64


class ConsumedStore:
    """Set of consumed signature keys. Subclasses implement storage."""

    def contains(self, key: str) -> bool:
        raise NotImplementedError

    def add(self, key: str) -> None:
        raise NotImplementedError

    def __len__(self) -> int:
        raise NotImplementedError

    def __contains__(self, key: str) -> bool:
        return self.contains(key)


class MemoryConsumedStore(ConsumedStore):
    """Process-local store. Lost on restart; use for tests and dry runs."""

    def __init__(self) -> None:
        self._keys: Set[str] = set()

    def contains(self, key: str) -> bool:
        return key in self._keys

    def add(self, key: str) -> None:
        self._keys.add(key)

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._keys))


class JsonlConsumedStore(ConsumedStore):
    """
    Durable store: one JSON object per line, {"key": "<sha256 hex>"}.

    The full file is loaded into memory at construction. add() appends
    and fsyncs before the key becomes visible, so a key reported as
    consumed is always on disk.
    """

    def __init__(self, path: Path) -> None:
        self.path  = Path(path)
        self._keys: Set[str] = set()
        self._lock = threading.Lock()
        self._load()

    def contains(self, key: str) -> bool:
        return key in self._keys

    def add(self, key: str) -> None:
        with self._lock:
            if key in self._keys:
                return
            self.path.parent.mkdir(parents=True, exist_ok=True)
            try:
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(json.dumps({"key": key}) + "\n")
                    f.flush()
                    os.fsync(f.fileno())
            except OSError as exc:
                raise StoreError(
                    f"Failed to persist consumed key: {exc}",
                    {"path": str(self.path)},
                ) from exc
            self._keys.add(key)

    def __len__(self) -> int:
        return len(self._keys)

    def _load(self) -> None:
        if not self.path.exists():
            return
        with open(self.path, "r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    key = json.loads(line)["key"]
                except (json.JSONDecodeError, KeyError, TypeError) as exc:
                    raise StoreError(
                        f"Corrupt consumed-store entry at line {line_num}: {exc}",
                        {"path": str(self.path)},
                    ) from exc
                if not isinstance(key, str) or len(key) != _KEY_HEX_LENGTH:
                    raise StoreError(
                        f"Malformed consumed key at line {line_num}",
                        {"path": str(self.path)},
                    )
                self._keys.add(key)
        logger.info("loaded %d consumed keys from %s", len(self._keys), self.path)
