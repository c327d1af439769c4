"""
Durable client-side storage

Write-through key/value storage backing the cart snapshot and the last
order id. Every ``set`` is persisted before it returns.
"""

import os
import re
import logging
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

CART_KEY = "cart"
LAST_ORDER_KEY = "last_order_id"

_SAFE_NAME = re.compile(r"^[A-Za-z0-9_-]+$")


class DurableStore(ABC):
    """Abstract durable key/value store"""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None when the key is absent."""
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Persist a value. Returns only once the write is durable."""
        ...

    @abstractmethod
    def clear(self, key: str) -> None:
        """Evict a key. Missing keys are ignored."""
        ...


class MemoryStore(DurableStore):
    """In-process store, durable for the lifetime of the process"""

    def __init__(self):
        self.values: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value

    def clear(self, key: str) -> None:
        self.values.pop(key, None)


class FileStore(DurableStore):
    """One file per key under a directory, replaced atomically on write"""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    @classmethod
    def for_session(cls, root: Union[str, Path], session_id: str) -> "FileStore":
        """Namespace a store under ``root`` for one shopper session"""
        if not _SAFE_NAME.match(session_id):
            raise ValueError(f"Invalid session id: {session_id!r}")
        return cls(Path(root) / session_id)

    def _path(self, key: str) -> Path:
        if not _SAFE_NAME.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        logger.debug(f"Persisted {key} to {path}")

    def clear(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()
