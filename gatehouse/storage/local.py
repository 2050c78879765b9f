"""
Local storage implementation for development and tests.

Works without any external services.
"""

from __future__ import annotations

import copy
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

from gatehouse.storage.base import MetadataStorage


# =============================================================================
# In-Memory Metadata Storage
# =============================================================================


class InMemoryMetadataStorage(MetadataStorage):
    """
    In-memory record storage.

    Transactions snapshot the whole dataset and restore it on error. A
    reentrant lock serializes transactions and plain calls alike.
    """

    def __init__(self):
        self._data: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = threading.RLock()

    def save(self, collection: str, id: str, data: dict[str, Any]) -> None:
        with self._lock:
            if collection not in self._data:
                self._data[collection] = {}
            self._data[collection][id] = {
                **data,
                "_id": id,
                "_updated_at": datetime.now(timezone.utc).isoformat(),
            }

    def get(self, collection: str, id: str) -> dict[str, Any] | None:
        with self._lock:
            record = self._data.get(collection, {}).get(id)
            return dict(record) if record is not None else None

    def delete(self, collection: str, id: str) -> bool:
        with self._lock:
            if collection in self._data and id in self._data[collection]:
                del self._data[collection][id]
                return True
            return False

    def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        with self._lock:
            if collection not in self._data:
                return []

            results = [
                dict(doc) for doc in self._data[collection].values()
                if self._matches(doc, filters)
            ]

        if limit is None:
            return results[offset:]
        return results[offset:offset + limit]

    def update(self, collection: str, id: str, updates: dict[str, Any]) -> bool:
        with self._lock:
            if collection in self._data and id in self._data[collection]:
                self._data[collection][id].update(updates)
                self._data[collection][id]["_updated_at"] = datetime.now(timezone.utc).isoformat()
                return True
            return False

    def delete_where(self, collection: str, filters: dict[str, Any]) -> int:
        with self._lock:
            if collection not in self._data:
                return 0

            doomed = [
                id for id, doc in self._data[collection].items()
                if self._matches(doc, filters)
            ]
            for id in doomed:
                del self._data[collection][id]
            return len(doomed)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            snapshot = copy.deepcopy(self._data)
            try:
                yield
            except BaseException:
                self._data = snapshot
                raise

    @staticmethod
    def _matches(doc: dict[str, Any], filters: dict[str, Any] | None) -> bool:
        if not filters:
            return True
        for key, value in filters.items():
            if doc.get(key) != value:
                return False
        return True


# =============================================================================
# Factory
# =============================================================================


def create_local_storage() -> InMemoryMetadataStorage:
    """Create the in-memory storage used in development."""
    return InMemoryMetadataStorage()
