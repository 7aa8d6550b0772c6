"""
In-process document store.

Used by the test suite and by single-process deployments
(STORE_BACKEND=memory). All access goes through one lock, so a batch is
applied atomically with respect to every other reader and writer.
"""
import copy
import logging
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

from tripops.core.exceptions import ConcurrentModification, NotFound, StoreFailure
from tripops.store.base import Document, PersistentStore, WriteOp

logger = logging.getLogger(__name__)

_Entry = Tuple[Dict[str, Any], int]


class InMemoryStore(PersistentStore):
    """Dictionary-backed store with versioned documents."""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout
        self._lock = threading.RLock()
        self._docs: Dict[Tuple[str, str], _Entry] = {}

    def _acquire(self) -> None:
        if not self._lock.acquire(timeout=self.timeout):
            raise StoreFailure(f"Timed out after {self.timeout}s waiting for the store lock")

    def _snapshot(self, collection: str, key: str, entry: _Entry) -> Document:
        data, version = entry
        return Document(collection, key, copy.deepcopy(data), version)

    def get_by_key(self, collection: str, key: str) -> Optional[Document]:
        self._acquire()
        try:
            entry = self._docs.get((collection, key))
            return self._snapshot(collection, key, entry) if entry else None
        finally:
            self._lock.release()

    def query_by_field(self, collection: str, field_name: str, value: Any) -> List[Document]:
        self._acquire()
        try:
            return [
                self._snapshot(coll, key, entry)
                for (coll, key), entry in self._docs.items()
                if coll == collection and field_name in entry[0] and entry[0][field_name] == value
            ]
        finally:
            self._lock.release()

    def list_collection(self, collection: str) -> List[Document]:
        self._acquire()
        try:
            return [
                self._snapshot(coll, key, entry)
                for (coll, key), entry in self._docs.items()
                if coll == collection
            ]
        finally:
            self._lock.release()

    def batch_write(self, writes: Sequence[WriteOp]) -> None:
        self._acquire()
        try:
            # Stage every write against a scratch view, then publish at once
            staged: Dict[Tuple[str, str], Optional[_Entry]] = {}
            for op in writes:
                address = (op.collection, op.key)
                current = staged[address] if address in staged else self._docs.get(address)
                staged[address] = self._apply(op, current)

            for address, entry in staged.items():
                if entry is None:
                    self._docs.pop(address, None)
                else:
                    self._docs[address] = entry
            logger.debug(f"Committed batch of {len(writes)} writes")
        finally:
            self._lock.release()

    @staticmethod
    def _apply(op: WriteOp, current: Optional[_Entry]) -> Optional[_Entry]:
        current_version = current[1] if current else 0
        if op.expected_version is not None and op.expected_version != current_version:
            raise ConcurrentModification(op.collection, op.key, op.expected_version, current_version)

        if op.delete:
            return None
        if op.merge:
            if current is None:
                raise NotFound(op.collection, op.key)
            data = {**current[0], **copy.deepcopy(op.data)}
        else:
            data = copy.deepcopy(op.data)
        return data, current_version + 1
