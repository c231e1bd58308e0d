"""Document readers that turn source files into Markdown."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Protocol, Sequence

from langchain_community.document_loaders import TextLoader
from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client
from mcp.types import CallToolResult, TextContent

from dataingest.models import ReadDocument


class IngestionError(RuntimeError):
    """Raised when ingestion fails for a particular document."""


class DocumentReadError(IngestionError):
    """Raised when a reader cannot convert a document."""


class DocumentReader(Protocol):
    """Protocol for document readers."""

    def list_files(self, directory: Path, pattern: str) -> Sequence[Path]:
        """Return the files the reader will process, in processing order."""

    async def read(self, path: Path) -> ReadDocument:
        """Convert ``path`` into Markdown."""


class _GlobReader:
    def list_files(self, directory: Path, pattern: str) -> Sequence[Path]:
        return sorted(path for path in directory.glob(pattern) if path.is_file())


class LocalDocumentReader(_GlobReader):
    """Read Markdown and text files straight from disk via LangChain."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self._encoding = encoding

    async def read(self, path: Path) -> ReadDocument:
        loader = TextLoader(str(path), encoding=self._encoding)
        try:
            documents = await loader.aload()
        except Exception as exc:
            raise DocumentReadError(f"Failed to load {path}: {exc}") from exc
        markdown = "\n\n".join(document.page_content for document in documents)
        return ReadDocument(document_id=str(path), source_path=path, markdown=markdown)


class MarkItDownReader(_GlobReader):
    """Convert documents with a MarkItDown MCP server over streamable HTTP."""

    tool_name = "convert_to_markdown"

    def __init__(self, endpoint: str, timeout_seconds: float = 300.0) -> None:
        self._endpoint = endpoint
        self._timeout_seconds = timeout_seconds

    async def read(self, path: Path) -> ReadDocument:
        uri = path.resolve().as_uri()
        try:
            result = await asyncio.wait_for(self._call_tool(uri), timeout=self._timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise DocumentReadError(f"Timed out converting {path}") from exc
        texts = [block.text for block in result.content if isinstance(block, TextContent)]
        if result.isError:
            raise DocumentReadError("; ".join(texts) or f"{self.tool_name} failed for {uri}")
        return ReadDocument(document_id=str(path), source_path=path, markdown="\n".join(texts))

    async def _call_tool(self, uri: str) -> CallToolResult:
        async with streamablehttp_client(self._endpoint) as (read_stream, write_stream, _):
            async with ClientSession(read_stream, write_stream) as session:
                await session.initialize()
                return await session.call_tool(self.tool_name, {"uri": uri})
