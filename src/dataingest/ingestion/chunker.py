"""Semantic chunking bounded by a token budget."""

from __future__ import annotations

import asyncio
from typing import List, Protocol, Sequence

import tiktoken
from langchain_core.embeddings import Embeddings
from langchain_experimental.text_splitter import SemanticChunker
from langchain_text_splitters import TokenTextSplitter

from dataingest.ingestion.readers import IngestionError
from dataingest.models import ChunkRecord, ReadDocument


class TokenizerUnavailableError(IngestionError):
    """Raised when the tokenizer encoding can be neither loaded from cache nor downloaded."""


class DocumentChunker(Protocol):
    """Protocol for chunkers."""

    async def chunk(self, document: ReadDocument) -> Sequence[ChunkRecord]:
        """Split a converted document into ordered chunks."""


class SemanticTokenChunker:
    """Split on embedding-similarity boundaries, then cap each section by tokens.

    The tokenizer is resolved on construction so a missing encoding surfaces
    while components are built rather than once per document. Offline hosts
    need the encoding in ``TIKTOKEN_CACHE_DIR``.
    """

    def __init__(
        self,
        embeddings: Embeddings,
        *,
        max_tokens_per_chunk: int = 2000,
        overlap_tokens: int = 0,
        tokenizer_model: str = "gpt-4",
    ) -> None:
        if max_tokens_per_chunk <= 0:
            raise ValueError("max_tokens_per_chunk must be > 0")
        if overlap_tokens < 0:
            raise ValueError("overlap_tokens must be >= 0")
        if overlap_tokens >= max_tokens_per_chunk:
            raise ValueError("overlap_tokens must be smaller than max_tokens_per_chunk")
        self._semantic = SemanticChunker(embeddings)
        self._max_tokens = max_tokens_per_chunk
        self._overlap_tokens = overlap_tokens
        self._tokenizer_model = tokenizer_model
        try:
            self._encoding = tiktoken.encoding_for_model(tokenizer_model)
            self._splitter = TokenTextSplitter(
                model_name=tokenizer_model,
                chunk_size=max_tokens_per_chunk,
                chunk_overlap=overlap_tokens,
                disallowed_special=(),
            )
        except Exception as exc:
            raise TokenizerUnavailableError(
                f"Could not load the '{tokenizer_model}' tokenizer ({exc}). "
                "Without network access, pre-populate TIKTOKEN_CACHE_DIR."
            ) from exc

    async def chunk(self, document: ReadDocument) -> Sequence[ChunkRecord]:
        return await asyncio.to_thread(self._chunk_sync, document)

    def _chunk_sync(self, document: ReadDocument) -> Sequence[ChunkRecord]:
        text = document.markdown.strip()
        if not text:
            return []

        chunks: List[ChunkRecord] = []
        for section in self._semantic.split_text(text):
            for piece in self._bounded(section):
                position = len(chunks)
                chunks.append(
                    ChunkRecord(
                        document_id=document.document_id,
                        chunk_id=f"{document.document_id}-{position}",
                        content=piece,
                        token_count=self.count_tokens(piece),
                        position=position,
                        metadata={"source": str(document.source_path)},
                    )
                )
        return chunks

    def _bounded(self, section: str) -> Sequence[str]:
        section = section.strip()
        if not section:
            return []
        if self.count_tokens(section) <= self._max_tokens:
            return [section]
        return [piece.strip() for piece in self._splitter.split_text(section) if piece.strip()]

    def count_tokens(self, text: str) -> int:
        return len(self._encoding.encode(text, disallowed_special=()))
