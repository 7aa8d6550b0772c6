"""
Document store contract consumed by the coordinator services.

A store holds JSON documents addressed by ``(collection, key)``. Every
document carries a ``version`` that increases on each write; callers pass the
version they read as ``expected_version`` to make a write conditional.
``batch_write`` is atomic: either every operation in the batch is applied or
none is.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

# Collections used by the coordinator
TRIPS = "trips"
ORDERS = "orders"
TRIP_ORDERS = "trip_orders"
WALLETS = "wallets"
DRIVERS = "drivers"
CASCADE_INTENTS = "cascade_intents"


@dataclass(frozen=True)
class Document:
    """A stored document snapshot."""
    collection: str
    key: str
    data: Dict[str, Any]
    version: int


@dataclass(frozen=True)
class WriteOp:
    """
    One write inside a batch.

    merge=True patches the listed fields of an existing document (missing
    document fails the batch); merge=False replaces or creates it.
    expected_version=0 asserts the document does not exist yet.
    """
    collection: str
    key: str
    data: Dict[str, Any] = field(default_factory=dict)
    merge: bool = True
    expected_version: Optional[int] = None
    delete: bool = False

    @classmethod
    def set(cls, collection: str, key: str, data: Dict[str, Any], expected_version: Optional[int] = None) -> "WriteOp":
        return cls(collection, key, data, merge=False, expected_version=expected_version)

    @classmethod
    def patch(cls, collection: str, key: str, data: Dict[str, Any], expected_version: Optional[int] = None) -> "WriteOp":
        return cls(collection, key, data, merge=True, expected_version=expected_version)

    @classmethod
    def remove(cls, collection: str, key: str, expected_version: Optional[int] = None) -> "WriteOp":
        return cls(collection, key, {}, merge=False, expected_version=expected_version, delete=True)


class PersistentStore(ABC):
    """Key/value document store with field-equality query and atomic batches."""

    @abstractmethod
    def get_by_key(self, collection: str, key: str) -> Optional[Document]:
        """Return the document or None when it does not exist."""

    @abstractmethod
    def query_by_field(self, collection: str, field_name: str, value: Any) -> List[Document]:
        """Return documents whose top-level ``field_name`` equals ``value``."""

    @abstractmethod
    def list_collection(self, collection: str) -> List[Document]:
        """Return every document of a collection."""

    @abstractmethod
    def batch_write(self, writes: Sequence[WriteOp]) -> None:
        """Apply all writes atomically or raise without applying any."""

    def close(self) -> None:
        """Release connections held by the store."""
