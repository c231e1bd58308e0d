"""Shared domain models used across the ingestion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Union

MetadataValue = Union[str, int, float, bool, None]


def record_text(record: Mapping[str, MetadataValue], key: str) -> str:
    """Return ``record[key]`` as text, or an empty string when absent."""

    value = record.get(key)
    if value is None:
        return ""
    return str(value)


@dataclass(frozen=True)
class ReadDocument:
    """Markdown produced by a document reader for a single source file."""

    document_id: str
    source_path: Path
    markdown: str


@dataclass(frozen=True)
class ChunkRecord:
    """Token-bounded span of a document ready for embedding."""

    document_id: str
    chunk_id: str
    content: str
    token_count: int
    position: int
    metadata: Mapping[str, MetadataValue] = field(default_factory=dict)


@dataclass(frozen=True)
class IngestionResult:
    """Outcome of processing one input document."""

    document_id: str
    succeeded: bool
    error: BaseException | None = None
    chunk_count: int = 0

    @property
    def error_message(self) -> str | None:
        if self.error is None:
            return None
        return str(self.error) or type(self.error).__name__


@dataclass(frozen=True)
class SearchHit:
    """Scored record returned from a similarity search."""

    score: float
    record: Mapping[str, MetadataValue] = field(default_factory=dict)

    @property
    def content(self) -> str:
        return record_text(self.record, "content")

    @property
    def summary(self) -> str:
        return record_text(self.record, "summary")
