"""
Generic document table backing the SQL document store.
"""
from sqlalchemy import Column, String, Integer, JSON, UniqueConstraint
from tripops.db.base import BaseModel


class DocumentRow(BaseModel):
    """One JSON document addressed by (collection, key)."""
    __tablename__ = "documents"

    collection = Column(String(64), nullable=False, index=True)
    key = Column(String(128), nullable=False)
    data = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False, default=1)  # Bumped on every write

    __table_args__ = (
        UniqueConstraint("collection", "key", name="uq_collection_key"),
    )
