"""Ingestion pipeline: read, enrich, chunk, enrich, write."""

from __future__ import annotations

from pathlib import Path
from typing import AsyncIterator, List, Protocol, Sequence

from dataingest.ingestion.chunker import DocumentChunker
from dataingest.ingestion.enrichers import ChunkProcessor, DocumentProcessor
from dataingest.ingestion.readers import DocumentReader
from dataingest.metrics.observability import PipelineMetrics, TimedSection, get_logger
from dataingest.models import ChunkRecord, IngestionResult


class ChunkWriter(Protocol):
    async def write(self, chunks: Sequence[ChunkRecord]) -> Sequence[str]: ...


class IngestionPipeline:
    """Process every matching file of a directory, one document at a time."""

    def __init__(
        self,
        reader: DocumentReader,
        chunker: DocumentChunker,
        writer: ChunkWriter,
        *,
        document_processors: Sequence[DocumentProcessor] = (),
        chunk_processors: Sequence[ChunkProcessor] = (),
    ) -> None:
        self._reader = reader
        self._chunker = chunker
        self._writer = writer
        self.document_processors: List[DocumentProcessor] = list(document_processors)
        self.chunk_processors: List[ChunkProcessor] = list(chunk_processors)
        self._logger = get_logger("ingestion")

    async def process(self, directory: Path, pattern: str = "*.md") -> AsyncIterator[IngestionResult]:
        """Yield one result per file, in the order the reader lists them.

        A failure in any stage is reported as an unsuccessful result and the
        remaining files are still processed.
        """

        for path in self._reader.list_files(directory, pattern):
            yield await self._process_file(path)

    async def _process_file(self, path: Path) -> IngestionResult:
        document_id = str(path)
        timer = TimedSection()
        try:
            with timer:
                document = await self._reader.read(path)
                document_id = document.document_id
                for document_processor in self.document_processors:
                    document = await document_processor.process(document)
                chunks: Sequence[ChunkRecord] = await self._chunker.chunk(document)
                for chunk_processor in self.chunk_processors:
                    chunks = await chunk_processor.process(chunks)
                await self._writer.write(chunks)
        except Exception as exc:
            self._logger.warning("ingestion.failed", document_id=document_id, error=str(exc))
            return IngestionResult(document_id=document_id, succeeded=False, error=exc)

        PipelineMetrics.observe_document(timer.duration, len(chunks))
        self._logger.info(
            "ingestion.document",
            document_id=document_id,
            chunk_count=len(chunks),
            duration_seconds=timer.duration,
        )
        return IngestionResult(document_id=document_id, succeeded=True, chunk_count=len(chunks))

    async def aclose(self) -> None:
        self.document_processors.clear()
        self.chunk_processors.clear()
