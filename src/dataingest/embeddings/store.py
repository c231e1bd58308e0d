"""Chroma-backed vector store, collection and chunk writer."""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, MutableMapping, Sequence

import chromadb
from chromadb.api import ClientAPI
from chromadb.api.client import SharedSystemClient
from chromadb.api.models.Collection import Collection
from chromadb.config import Settings as ChromaSettings
from langchain_core.embeddings import Embeddings

from dataingest.metrics.observability import get_logger
from dataingest.models import ChunkRecord, MetadataValue, SearchHit


class DimensionMismatchError(RuntimeError):
    """Raised when an embedding does not have the declared dimensionality."""


def delete_database(path: Path) -> bool:
    """Remove the database at ``path``; return whether anything was deleted."""

    if path.is_dir():
        shutil.rmtree(path)
        return True
    if path.exists():
        path.unlink()
        return True
    return False


class VectorStore:
    """Handle to the local vector database."""

    def __init__(
        self,
        embeddings: Embeddings,
        *,
        client: ClientAPI | None = None,
        persist_directory: str | Path | None = None,
    ) -> None:
        if client is not None:
            self._client = client
        elif persist_directory is not None:
            self._client = chromadb.PersistentClient(
                path=str(persist_directory),
                settings=ChromaSettings(anonymized_telemetry=False),
            )
        else:
            self._client = chromadb.EphemeralClient()
        self.embeddings = embeddings
        self._closed = False

    def get_collection(self, name: str, *, dimension_count: int | None = None) -> "VectorCollection":
        metadata: Dict[str, MetadataValue] = {"hnsw:space": "cosine"}
        if dimension_count is not None:
            metadata["dimension_count"] = dimension_count
        collection = self._client.get_or_create_collection(name=name, metadata=metadata)
        return VectorCollection(collection, self.embeddings)

    def close(self) -> None:
        # chromadb caches one system per path; drop it so a deleted database is reopened fresh
        if self._closed:
            return
        self._closed = True
        SharedSystemClient.clear_system_cache()


class VectorCollection:
    """Named collection supporting writes and similarity search."""

    def __init__(self, collection: Collection, embeddings: Embeddings) -> None:
        self._collection = collection
        self._embeddings = embeddings

    @property
    def name(self) -> str:
        return self._collection.name

    def count(self) -> int:
        return int(self._collection.count())

    async def upsert(self, chunks: Sequence[ChunkRecord], vectors: Sequence[Sequence[float]]) -> List[str]:
        ids = [chunk.chunk_id for chunk in chunks]
        await asyncio.to_thread(
            self._collection.upsert,
            ids=ids,
            documents=[chunk.content for chunk in chunks],
            embeddings=[list(vector) for vector in vectors],
            metadatas=[self._serialize_chunk(chunk) for chunk in chunks],
        )
        return ids

    async def delete_document(self, document_id: str) -> None:
        await asyncio.to_thread(self._collection.delete, where={"document_id": document_id})

    async def search(self, query: str, *, top: int = 5) -> List[SearchHit]:
        if top <= 0:
            return []
        vector = await self._embeddings.aembed_query(query)
        results = await asyncio.to_thread(
            self._collection.query,
            query_embeddings=[list(vector)],
            n_results=top,
            include=["documents", "metadatas", "distances"],
        )
        return self._deserialize_results(results)

    @staticmethod
    def _serialize_chunk(chunk: ChunkRecord) -> MutableMapping[str, MetadataValue]:
        metadata: MutableMapping[str, MetadataValue] = {
            key: value for key, value in chunk.metadata.items() if value is not None
        }
        metadata.update(
            {
                "document_id": chunk.document_id,
                "position": chunk.position,
                "token_count": chunk.token_count,
            }
        )
        return metadata

    def _deserialize_results(self, results: Mapping[str, object]) -> List[SearchHit]:
        ids = self._first(results.get("ids"))
        documents = self._first(results.get("documents"))
        metadatas = self._first(results.get("metadatas"))
        distances = self._first(results.get("distances"))
        hits: List[SearchHit] = []
        for index, chunk_id in enumerate(ids):
            metadata = metadatas[index] if index < len(metadatas) else None
            record: Dict[str, MetadataValue] = dict(metadata or {})
            record["chunk_id"] = chunk_id
            if index < len(documents) and documents[index] is not None:
                record["content"] = documents[index]
            distance = distances[index] if index < len(distances) else None
            score = 1.0 - float(distance) if distance is not None else 0.0
            hits.append(SearchHit(score=score, record=record))
        return hits

    @staticmethod
    def _first(value: object) -> Sequence:
        if isinstance(value, list) and value:
            return value[0] or []
        return []


class VectorStoreWriter:
    """Sink writing chunk records into one collection of the vector store."""

    def __init__(self, store: VectorStore, *, dimension_count: int, collection_name: str = "data") -> None:
        if dimension_count <= 0:
            raise ValueError("dimension_count must be > 0")
        self._store = store
        self._dimension_count = dimension_count
        self._collection_name = collection_name
        self._collection: VectorCollection | None = None
        self._logger = get_logger("store")

    @property
    def collection(self) -> VectorCollection:
        if self._collection is None:
            self._collection = self._store.get_collection(
                self._collection_name,
                dimension_count=self._dimension_count,
            )
        return self._collection

    async def write(self, chunks: Sequence[ChunkRecord]) -> List[str]:
        if not chunks:
            return []
        vectors = await self._store.embeddings.aembed_documents([chunk.content for chunk in chunks])
        self._check_dimensions(vectors)
        collection = self.collection
        for document_id in _unique(chunk.document_id for chunk in chunks):
            await collection.delete_document(document_id)
        ids = await collection.upsert(chunks, vectors)
        self._logger.info("store.write", collection=collection.name, chunk_count=len(ids))
        return ids

    async def aclose(self) -> None:
        self._collection = None

    def _check_dimensions(self, vectors: Sequence[Sequence[float]]) -> None:
        for vector in vectors:
            if len(vector) != self._dimension_count:
                raise DimensionMismatchError(
                    f"Embedding dim mismatch: configured={self._dimension_count}, actual={len(vector)}"
                )


def _unique(values: Iterable[str]) -> List[str]:
    seen: Dict[str, None] = {}
    for value in values:
        seen.setdefault(value, None)
    return list(seen)
