"""
Shared record store: whole-collection get/set, nothing more.

Every session (browser tab, device, worker) reads and writes the same
collections with no locking, no transactions and no versioning. The last
writer wins. Callers that need several writes to succeed together must
compensate on failure themselves (see services/order_engine.py).

Values cross the store boundary as JSON, so `get` always returns a fresh
copy and mutating it has no effect until `set` is called.
"""
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from eudora.core.exceptions import StorageWriteFailure
from eudora.models.collection import StoredCollection

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """Contract the engine and the propagator rely on."""

    @abstractmethod
    def get(self, key: str) -> Any:
        """Return the collection stored under key, or None."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Replace the whole collection. Raises StorageWriteFailure."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete the collection. Raises StorageWriteFailure."""


class MemoryRecordStore(RecordStore):
    """Process-local store. Used for scratch data and tests."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str) -> Any:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            raise StorageWriteFailure(f"Could not serialise collection '{key}': {e}")

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class SqlRecordStore(RecordStore):
    """Store backed by the `collections` table (SQLite or Postgres)."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def get(self, key: str) -> Any:
        db = self._session_factory()
        try:
            row = db.query(StoredCollection).filter(StoredCollection.key == key).first()
            return row.payload if row else None
        finally:
            db.close()

    def set(self, key: str, value: Any) -> None:
        # Round-trip through JSON so Decimals/datetimes are stored as strings
        payload = json.loads(json.dumps(value, default=str))
        db = self._session_factory()
        try:
            row = db.query(StoredCollection).filter(StoredCollection.key == key).first()
            if row:
                row.payload = payload
            else:
                db.add(StoredCollection(key=key, payload=payload))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[RecordStore] Write to '{key}' failed: {e}")
            raise StorageWriteFailure(f"Could not save '{key}'")
        finally:
            db.close()

    def remove(self, key: str) -> None:
        db = self._session_factory()
        try:
            db.query(StoredCollection).filter(StoredCollection.key == key).delete()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[RecordStore] Delete of '{key}' failed: {e}")
            raise StorageWriteFailure(f"Could not delete '{key}'")
        finally:
            db.close()
