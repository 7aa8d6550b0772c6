"""
Loading and dumping entities to and from store documents.
"""
from typing import Any, Dict, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from tripops.core.exceptions import NotFound, StoreFailure
from tripops.store.base import Document, PersistentStore

M = TypeVar("M", bound=BaseModel)


def parse_document(doc: Document, model: Type[M]) -> M:
    """Validate a stored document; the store key is the entity id."""
    try:
        return model.model_validate({**doc.data, "id": doc.key})
    except ValidationError as e:
        raise StoreFailure(f"{doc.collection}/{doc.key} is not a valid {model.__name__}: {e}") from e


def load(store: PersistentStore, collection: str, key: str, model: Type[M]) -> Tuple[M, int]:
    """Return the entity and the version it was read at."""
    doc = store.get_by_key(collection, key)
    if doc is None:
        raise NotFound(collection, key)
    return parse_document(doc, model), doc.version


def dump(entity: BaseModel, **overrides: Any) -> Dict[str, Any]:
    """JSON-safe document body for an entity."""
    data = entity.model_dump(mode="json")
    data.update(overrides)
    return data
