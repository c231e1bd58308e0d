from __future__ import annotations

import hashlib
import math
from pathlib import Path
from uuid import uuid4

import chromadb
import pytest
from langchain_core.embeddings import Embeddings

from dataingest.embeddings import DimensionMismatchError, VectorStore, VectorStoreWriter, delete_database
from dataingest.models import ChunkRecord


class HashEmbeddings(Embeddings):
    """Deterministic embeddings: identical text maps to identical vectors."""

    def __init__(self, dim: int = 16) -> None:
        self.dim = dim

    def _vector(self, text: str) -> list[float]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        raw = (digest * (self.dim // len(digest) + 1))[: self.dim]
        vector = [byte / 255.0 for byte in raw]
        norm = math.sqrt(sum(value * value for value in vector)) or 1.0
        return [value / norm for value in vector]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._vector(text) for text in texts]

    def embed_query(self, text: str) -> list[float]:
        return self._vector(text)


def _chunk(doc_id: str, text: str, position: int, **metadata) -> ChunkRecord:
    return ChunkRecord(
        document_id=doc_id,
        chunk_id=f"{doc_id}-{position}",
        content=text,
        token_count=len(text.split()),
        position=position,
        metadata=metadata,
    )


def _writer(dim: int = 16, declared: int | None = None) -> VectorStoreWriter:
    store = VectorStore(HashEmbeddings(dim), client=chromadb.EphemeralClient())
    return VectorStoreWriter(store, dimension_count=declared or dim, collection_name=f"test-{uuid4().hex[:8]}")


@pytest.mark.asyncio
async def test_write_and_search_returns_content_and_summary():
    writer = _writer()
    ids = await writer.write(
        [
            _chunk("a.md", "alpha beta gamma", 0, summary="Greek letters"),
            _chunk("b.md", "lorem ipsum", 0),
        ]
    )
    assert ids == ["a.md-0", "b.md-0"]

    hits = await writer.collection.search("alpha beta gamma", top=2)
    assert len(hits) == 2
    assert hits[0].content == "alpha beta gamma"
    assert hits[0].summary == "Greek letters"
    assert hits[0].score == pytest.approx(1.0, abs=1e-3)
    assert hits[1].summary == ""
    assert hits[0].score >= hits[1].score


@pytest.mark.asyncio
async def test_rewriting_a_document_replaces_its_chunks():
    writer = _writer()
    await writer.write([_chunk("a.md", "one", 0), _chunk("a.md", "two", 1)])
    await writer.write([_chunk("a.md", "three", 0)])
    assert writer.collection.count() == 1


@pytest.mark.asyncio
async def test_dimension_mismatch_is_rejected():
    writer = _writer(dim=8, declared=384)
    with pytest.raises(DimensionMismatchError) as excinfo:
        await writer.write([_chunk("a.md", "text", 0)])
    assert isinstance(excinfo.value, RuntimeError)


@pytest.mark.asyncio
async def test_search_with_non_positive_top_returns_nothing():
    writer = _writer()
    await writer.write([_chunk("a.md", "text", 0)])
    assert await writer.collection.search("text", top=0) == []


def test_delete_database_handles_files_and_directories(tmp_path: Path):
    file_db = tmp_path / "vectors.db"
    file_db.write_bytes(b"sqlite")
    dir_db = tmp_path / "chroma"
    (dir_db / "nested").mkdir(parents=True)
    (dir_db / "nested" / "data.bin").write_bytes(b"x")

    assert delete_database(file_db) is True
    assert delete_database(dir_db) is True
    assert not file_db.exists() and not dir_db.exists()
    assert delete_database(tmp_path / "missing.db") is False


@pytest.mark.asyncio
async def test_persistent_store_rebuilt_after_delete(tmp_path: Path):
    db_path = tmp_path / "vectors.db"
    for text in ("first run", "second run"):
        delete_database(db_path)
        store = VectorStore(HashEmbeddings(), persist_directory=db_path)
        writer = VectorStoreWriter(store, dimension_count=16, collection_name="data")
        await writer.write([_chunk("doc.md", text, 0), _chunk("other.md", text + "!", 0)])
        count = writer.collection.count()
        store.close()
        assert count == 2
