"""
SQLAlchemy-backed document store.

Documents live in the ``documents`` table as JSON. A batch runs inside one
database transaction; versioned writes use a conditional UPDATE so two
writers racing on the same document cannot both succeed.
"""
import logging
from typing import Any, List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tripops.core.exceptions import (
    ConcurrentModification, InvalidArgument, NotFound, StoreFailure, TripOpsError
)
from tripops.db.session import build_sessionmaker, init_db
from tripops.models.document import DocumentRow
from tripops.store.base import Document, PersistentStore, WriteOp

logger = logging.getLogger(__name__)


class SqlDocumentStore(PersistentStore):
    """Document store over any SQLAlchemy engine with JSON support."""

    def __init__(self, engine: Engine, create_tables: bool = True):
        self.engine = engine
        self._session_factory = build_sessionmaker(engine)
        if create_tables:
            init_db(engine)

    @staticmethod
    def _to_document(row: DocumentRow) -> Document:
        return Document(row.collection, row.key, dict(row.data), row.version)

    def _find(self, session: Session, collection: str, key: str) -> Optional[DocumentRow]:
        stmt = (
            select(DocumentRow)
            .where(DocumentRow.collection == collection, DocumentRow.key == key)
            .execution_options(populate_existing=True)
        )
        return session.execute(stmt).scalar_one_or_none()

    def get_by_key(self, collection: str, key: str) -> Optional[Document]:
        try:
            with self._session_factory() as session:
                row = self._find(session, collection, key)
                return self._to_document(row) if row else None
        except SQLAlchemyError as e:
            logger.error(f"Read of {collection}/{key} failed: {e}")
            raise StoreFailure(f"Read of {collection}/{key} failed") from e

    def query_by_field(self, collection: str, field_name: str, value: Any) -> List[Document]:
        column = DocumentRow.data[field_name]
        if isinstance(value, bool):
            clause = column.as_boolean() == value
        elif isinstance(value, int):
            clause = column.as_integer() == value
        elif isinstance(value, float):
            clause = column.as_float() == value
        elif isinstance(value, str):
            clause = column.as_string() == value
        else:
            raise InvalidArgument(f"Unsupported query value type: {type(value).__name__}")

        stmt = (
            select(DocumentRow)
            .where(DocumentRow.collection == collection, clause)
            .order_by(DocumentRow.id)
        )
        return self._select(stmt, f"query {collection}.{field_name}")

    def list_collection(self, collection: str) -> List[Document]:
        stmt = select(DocumentRow).where(DocumentRow.collection == collection).order_by(DocumentRow.id)
        return self._select(stmt, f"list {collection}")

    def _select(self, stmt, description: str) -> List[Document]:
        try:
            with self._session_factory() as session:
                return [self._to_document(row) for row in session.execute(stmt).scalars()]
        except SQLAlchemyError as e:
            logger.error(f"Store {description} failed: {e}")
            raise StoreFailure(f"Store {description} failed") from e

    def batch_write(self, writes: Sequence[WriteOp]) -> None:
        session = self._session_factory()
        try:
            for op in writes:
                self._apply(session, op)
            session.commit()
        except TripOpsError:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Batch of {len(writes)} writes failed: {e}")
            raise StoreFailure(f"Batch write failed: {e.__class__.__name__}") from e
        finally:
            session.close()

    def _apply(self, session: Session, op: WriteOp) -> None:
        row = self._find(session, op.collection, op.key)
        current_version = row.version if row is not None else 0
        if op.expected_version is not None and op.expected_version != current_version:
            raise ConcurrentModification(op.collection, op.key, op.expected_version, current_version)

        if op.delete:
            if row is not None:
                session.delete(row)
                session.flush()
            return

        if row is None:
            if op.merge:
                raise NotFound(op.collection, op.key)
            session.add(DocumentRow(collection=op.collection, key=op.key, data=dict(op.data), version=1))
            session.flush()
            return

        data = {**row.data, **op.data} if op.merge else dict(op.data)
        result = session.execute(
            update(DocumentRow)
            .where(DocumentRow.id == row.id, DocumentRow.version == current_version)
            .values(data=data, version=current_version + 1)
        )
        if result.rowcount != 1:
            raise ConcurrentModification(op.collection, op.key, current_version, None)

    def close(self) -> None:
        self.engine.dispose()
