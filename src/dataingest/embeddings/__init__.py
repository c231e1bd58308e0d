"""Vector storage."""

from .store import (
    DimensionMismatchError,
    VectorCollection,
    VectorStore,
    VectorStoreWriter,
    delete_database,
)

__all__ = [
    "DimensionMismatchError",
    "VectorCollection",
    "VectorStore",
    "VectorStoreWriter",
    "delete_database",
]
