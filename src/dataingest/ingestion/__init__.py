"""Document ingestion pipeline."""

from .chunker import DocumentChunker, SemanticTokenChunker, TokenizerUnavailableError
from .enrichers import EnricherOptions, ImageAlternativeTextEnricher, SummaryEnricher
from .pipeline import IngestionPipeline
from .readers import (
    DocumentReader,
    DocumentReadError,
    IngestionError,
    LocalDocumentReader,
    MarkItDownReader,
)

__all__ = [
    "DocumentChunker",
    "DocumentReadError",
    "DocumentReader",
    "EnricherOptions",
    "ImageAlternativeTextEnricher",
    "IngestionError",
    "IngestionPipeline",
    "LocalDocumentReader",
    "MarkItDownReader",
    "SemanticTokenChunker",
    "SummaryEnricher",
    "TokenizerUnavailableError",
]
