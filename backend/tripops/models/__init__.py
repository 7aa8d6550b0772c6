"""Models package - Import all models for SQLAlchemy registration."""
from tripops.models.document import DocumentRow

__all__ = [
    "DocumentRow",
]
