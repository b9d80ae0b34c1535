"""Typed read/write access to the key-value store"""
import json
import logging
from typing import Any, Iterable, Mapping, Optional, TypeVar

from pydantic import ValidationError as PydanticValidationError

from excuse_killer.db import keys
from excuse_killer.db.store import KeyValueStore
from excuse_killer.exceptions import CorruptionError, StorageError, wrap_storage_exception
from excuse_killer.models.challenge import StoredRecord

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=StoredRecord)


class StoreAdapter:
    """
    JSON-serializing wrapper around a ``KeyValueStore``

    Converts backend failures into the storage error taxonomy:
    - malformed stored JSON -> key cleared, ``CorruptionError``
    - capacity failure -> ``QuotaError``
    - any other write failure -> ``WriteError``

    Writes are applied immediately and in order; a read that follows a
    write always observes it.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    def read(self, key: str, default: Any = None) -> Any:
        """
        Read and decode a value

        Returns:
            The decoded value, or ``default`` if the key is absent

        Raises:
            CorruptionError: Stored data was not valid JSON (the key is removed)
        """
        item = self.store.get(key)
        if item is None:
            return default

        try:
            return json.loads(item)
        except ValueError as e:
            self.store.delete(key)
            raise CorruptionError(key=key, operation="read", cause=e)

    def read_or_default(self, key: str, default: Any = None) -> Any:
        """Read a value, falling back to ``default`` when it was corrupted"""
        try:
            return self.read(key, default)
        except CorruptionError:
            logger.warning(f"Using default value for corrupted key {key}")
            return default

    def read_records(self, key: str, model: type[ModelT]) -> list[ModelT]:
        """
        Read a collection and parse each entry into ``model``

        Entries that fail validation are skipped with a warning; the stored
        collection itself is not modified.
        """
        raw = self.read_or_default(key, [])
        if not isinstance(raw, list):
            logger.warning(f"Expected a list under {key}, got {type(raw).__name__}; ignoring")
            return []

        records = []
        for index, item in enumerate(raw):
            try:
                records.append(model.model_validate(item))
            except PydanticValidationError as e:
                logger.warning(f"Skipping invalid {model.__name__} #{index} in {key}: {e.error_count()} errors")
        return records

    def write_records(self, key: str, records: Iterable[StoredRecord]) -> bool:
        return self.write(key, [record.to_storage() for record in records])

    def write(self, key: str, value: Any) -> bool:
        """
        Encode and store a value

        Raises:
            QuotaError: The store is full
            WriteError: Any other failure; the value was not written
        """
        try:
            serialized = json.dumps(value, ensure_ascii=False)
            self.store.set(key, serialized)
        except Exception as e:
            raise wrap_storage_exception(e, key) from e

        logger.debug(f"Wrote {len(serialized)} bytes to {key}")
        return True

    def write_many(self, values: Mapping[str, Any]) -> bool:
        """
        Write several keys as one operation

        Keys are written in order. If one write fails, the keys already
        written are put back to their previous raw values (or removed if
        they did not exist) before the error is re-raised, so the store is
        left as it was before the call.

        Raises:
            QuotaError: The store is full
            WriteError: Any other failure
        """
        previous = {key: self.store.get(key) for key in values}
        written: list[str] = []

        try:
            for key, value in values.items():
                self.write(key, value)
                written.append(key)
        except StorageError as e:
            logger.warning(f"Write of {e.key} failed; rolling back {len(written)} keys")
            self._restore(previous, written)
            raise

        return True

    def _restore(self, previous: Mapping[str, Optional[str]], written: Iterable[str]) -> None:
        for key in reversed(list(written)):
            try:
                if previous[key] is None:
                    self.store.delete(key)
                else:
                    self.store.set(key, previous[key])
            except Exception as e:
                logger.error(f"Rollback of {key} failed: {e}", exc_info=True)

    def remove(self, key: str) -> bool:
        try:
            self.store.delete(key)
        except OSError as e:
            logger.error(f"Error removing key {key}: {e}")
            return False
        return True

    def exists(self, key: str) -> bool:
        return self.store.get(key) is not None

    def keys(self, prefix: Optional[str] = None) -> list[str]:
        return [k for k in self.store.keys() if prefix is None or k.startswith(prefix)]

    def clear_all(self) -> bool:
        """Remove every logical collection (timer records and backups are kept)"""
        ok = True
        for key in keys.STORAGE_KEYS.values():
            ok = self.remove(key) and ok
        logger.info("Cleared all collections")
        return ok

    def storage_info(self) -> dict[str, Any]:
        """Approximate serialized size of each collection"""
        sizes = {}
        total_size = 0
        for name, key in keys.STORAGE_KEYS.items():
            item = self.store.get(key)
            size = len(item.encode("utf-8")) if item else 0
            sizes[name] = size
            total_size += size

        return {
            "total_size": total_size,
            "sizes": sizes,
            "total_size_kb": f"{total_size / 1024:.2f}",
        }
