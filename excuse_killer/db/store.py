"""Key-value store backends"""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterator, Optional, Protocol, Union

from excuse_killer.exceptions import QuotaExceeded

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """
    Synchronous, string-keyed store of serialized values

    Backends raise ``QuotaExceeded`` when a write would exceed their
    capacity; any other exception from ``set`` is an unknown write failure.
    """

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> Iterator[str]: ...


def _payload_size(data: dict[str, str]) -> int:
    return sum(len(k.encode("utf-8")) + len(v.encode("utf-8")) for k, v in data.items())


class MemoryKeyValueStore:
    """In-process store, used by tests and as a scratch backend"""

    def __init__(self, quota_bytes: int = 0):
        """
        Args:
            quota_bytes: Maximum total size of keys and values (0 = unlimited)
        """
        self.quota_bytes = quota_bytes
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.quota_bytes:
            candidate = {**self._data, key: value}
            if _payload_size(candidate) > self.quota_bytes:
                raise QuotaExceeded(f"Writing {key} exceeds {self.quota_bytes} bytes")
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> Iterator[str]:
        return iter(list(self._data))


class JsonFileKeyValueStore:
    """
    Store backed by a single JSON document on disk

    The whole document is rewritten on every change through a temporary
    file and an atomic rename, so a crash mid-write leaves the previous
    version intact.
    """

    def __init__(self, path: Union[str, Path], quota_bytes: int = 0):
        self.path = Path(path)
        self.quota_bytes = quota_bytes
        self._data: Optional[dict[str, str]] = None

    def _load(self) -> dict[str, str]:
        if self._data is not None:
            return self._data

        if not self.path.exists():
            self._data = {}
            return self._data

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                raise ValueError("store document is not a JSON object")
            self._data = {str(k): str(v) for k, v in raw.items()}
        except ValueError as e:
            # Keep the unreadable file aside instead of overwriting it on the next write
            quarantine = self.path.with_suffix(self.path.suffix + ".corrupt")
            os.replace(self.path, quarantine)
            logger.error(f"Store file {self.path} is unreadable ({e}); moved to {quarantine}")
            self._data = {}

        return self._data

    def _flush(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=self.path.name, dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        candidate = {**self._load(), key: value}
        if self.quota_bytes and _payload_size(candidate) > self.quota_bytes:
            raise QuotaExceeded(f"Writing {key} exceeds {self.quota_bytes} bytes")
        self._flush(candidate)
        self._data = candidate

    def delete(self, key: str) -> None:
        data = self._load()
        if key not in data:
            return
        candidate = {k: v for k, v in data.items() if k != key}
        self._flush(candidate)
        self._data = candidate

    def keys(self) -> Iterator[str]:
        return iter(list(self._load()))
