"""Construction and lifetime management of pipeline components."""

from __future__ import annotations

from contextlib import AsyncExitStack
from types import TracebackType

from dataingest.clients import OllamaChatClient, OllamaEmbeddings
from dataingest.config import Settings
from dataingest.embeddings import VectorStore, VectorStoreWriter
from dataingest.ingestion import (
    DocumentReader,
    EnricherOptions,
    ImageAlternativeTextEnricher,
    IngestionPipeline,
    LocalDocumentReader,
    MarkItDownReader,
    SemanticTokenChunker,
    SummaryEnricher,
)
from dataingest.ingestion.chunker import DocumentChunker
from dataingest.metrics.observability import get_logger


class PipelineFactory:
    """Builds pipeline components from settings and owns the ones needing release.

    Every closable component is registered on an exit stack as soon as it is
    created, so :meth:`aclose` releases exactly what was built, in reverse
    order, even when construction stopped part way. Closing twice is a no-op.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._stack = AsyncExitStack()
        self._logger = get_logger("factory")

    async def __aenter__(self) -> "PipelineFactory":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def create_chat_client(self) -> OllamaChatClient:
        client = OllamaChatClient(
            base_url=self._settings.ollama_endpoint,
            model=self._settings.chat_model,
            timeout_seconds=self._settings.http_timeout_seconds,
        )
        self._stack.push_async_callback(client.aclose)
        return client

    def create_embedding_generator(self) -> OllamaEmbeddings:
        embeddings = OllamaEmbeddings(
            base_url=self._settings.ollama_endpoint,
            model=self._settings.embedding_model,
            timeout_seconds=self._settings.http_timeout_seconds,
        )
        self._stack.push_async_callback(embeddings.aclose)
        return embeddings

    def create_document_reader(self) -> DocumentReader:
        if self._settings.document_reader == "local":
            return LocalDocumentReader()
        return MarkItDownReader(
            self._settings.markitdown_endpoint,
            timeout_seconds=self._settings.http_timeout_seconds,
        )

    def create_chunker(self, embeddings: OllamaEmbeddings) -> DocumentChunker:
        return SemanticTokenChunker(
            embeddings,
            max_tokens_per_chunk=self._settings.max_tokens_per_chunk,
            overlap_tokens=self._settings.overlap_tokens,
            tokenizer_model=self._settings.tokenizer_model,
        )

    def create_vector_store(self, embeddings: OllamaEmbeddings) -> VectorStore:
        store = VectorStore(embeddings, persist_directory=self._settings.database_path)
        self._stack.callback(store.close)
        return store

    def create_writer(self, store: VectorStore) -> VectorStoreWriter:
        writer = VectorStoreWriter(
            store,
            dimension_count=self._settings.embedding_dimensions,
            collection_name=self._settings.collection_name,
        )
        self._stack.push_async_callback(writer.aclose)
        return writer

    def create_pipeline(
        self,
        reader: DocumentReader,
        chunker: DocumentChunker,
        writer: VectorStoreWriter,
        chat_client: OllamaChatClient,
    ) -> IngestionPipeline:
        options = EnricherOptions(chat_client, batch_size=self._settings.enricher_batch_size)
        pipeline = IngestionPipeline(
            reader,
            chunker,
            writer,
            document_processors=[ImageAlternativeTextEnricher(options)],
            chunk_processors=[SummaryEnricher(options)],
        )
        self._stack.push_async_callback(pipeline.aclose)
        return pipeline

    async def aclose(self) -> None:
        self._logger.debug("factory.release")
        await self._stack.aclose()
