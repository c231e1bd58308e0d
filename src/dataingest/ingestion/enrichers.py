"""Chat-model enrichment of documents and chunks."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List, Protocol, Sequence

from dataingest.metrics.observability import get_logger
from dataingest.models import ChunkRecord, ReadDocument


class ChatClient(Protocol):
    async def complete(self, prompt: str, *, system: str | None = None, images: Sequence[bytes] = ()) -> str: ...


@dataclass(frozen=True)
class EnricherOptions:
    """Shared options for chat-backed enrichers."""

    chat_client: ChatClient
    batch_size: int = 1

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")


class DocumentProcessor(Protocol):
    async def process(self, document: ReadDocument) -> ReadDocument: ...


class ChunkProcessor(Protocol):
    async def process(self, chunks: Sequence[ChunkRecord]) -> Sequence[ChunkRecord]: ...


_SUMMARY_SYSTEM = (
    "You write short summaries of document excerpts for a search index. "
    "Reply with the summary only, at most three sentences."
)
_BATCH_SYSTEM = (
    "You write short summaries of document excerpts for a search index. "
    "Reply with a JSON array of strings holding exactly one summary per excerpt, in order."
)


class SummaryEnricher:
    """Attach a generated ``summary`` to every chunk's metadata."""

    metadata_key = "summary"

    def __init__(self, options: EnricherOptions) -> None:
        self._options = options
        self._logger = get_logger("enrichment")

    async def process(self, chunks: Sequence[ChunkRecord]) -> Sequence[ChunkRecord]:
        enriched: List[ChunkRecord] = []
        size = self._options.batch_size
        for start in range(0, len(chunks), size):
            batch = chunks[start : start + size]
            summaries = await self._summarize(batch)
            for chunk, summary in zip(batch, summaries):
                metadata = dict(chunk.metadata)
                metadata[self.metadata_key] = summary
                enriched.append(replace(chunk, metadata=metadata))
        return enriched

    async def _summarize(self, batch: Sequence[ChunkRecord]) -> List[str]:
        if len(batch) == 1:
            return [await self._summarize_one(batch[0])]

        prompt = "\n\n".join(
            f"Excerpt {index}:\n{chunk.content}" for index, chunk in enumerate(batch, start=1)
        )
        reply = await self._options.chat_client.complete(prompt, system=_BATCH_SYSTEM)
        summaries = _parse_summary_list(reply)
        if summaries is not None and len(summaries) == len(batch):
            return summaries

        self._logger.warning(
            "enrichment.batch_mismatch",
            requested=len(batch),
            received=None if summaries is None else len(summaries),
        )
        return [await self._summarize_one(chunk) for chunk in batch]

    async def _summarize_one(self, chunk: ChunkRecord) -> str:
        return await self._options.chat_client.complete(chunk.content, system=_SUMMARY_SYSTEM)


def _parse_summary_list(reply: str) -> List[str] | None:
    start, end = reply.find("["), reply.rfind("]")
    if start == -1 or end <= start:
        return None
    try:
        parsed = json.loads(reply[start : end + 1])
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
        return None
    return [item.strip() for item in parsed]


_IMAGE_PATTERN = re.compile(r"!\[(?P<alt>[^\]]*)\]\((?P<src>[^)\s]+)(?P<title>\s+\"[^\"]*\")?\)")
_ALT_TEXT_PROMPT = "Describe this image in one short sentence suitable as alternative text."


class ImageAlternativeTextEnricher:
    """Fill in missing Markdown image alt text for images stored next to the document."""

    def __init__(self, options: EnricherOptions) -> None:
        self._options = options
        self._logger = get_logger("enrichment")

    async def process(self, document: ReadDocument) -> ReadDocument:
        pieces: List[str] = []
        cursor = 0
        changed = False
        for match in _IMAGE_PATTERN.finditer(document.markdown):
            if match.group("alt").strip():
                continue
            image_path = self._resolve(document.source_path, match.group("src"))
            if image_path is None:
                continue
            alt_text = await self._options.chat_client.complete(
                _ALT_TEXT_PROMPT,
                images=[image_path.read_bytes()],
            )
            alt_text = " ".join(alt_text.replace("[", "(").replace("]", ")").split())
            title = match.group("title") or ""
            pieces.append(document.markdown[cursor : match.start()])
            pieces.append(f"![{alt_text}]({match.group('src')}{title})")
            cursor = match.end()
            changed = True

        if not changed:
            return document
        pieces.append(document.markdown[cursor:])
        self._logger.info("enrichment.alt_text", document_id=document.document_id)
        return replace(document, markdown="".join(pieces))

    @staticmethod
    def _resolve(source_path: Path, src: str) -> Path | None:
        if "://" in src or src.startswith("data:"):
            return None
        candidate = (source_path.parent / src).resolve()
        return candidate if candidate.is_file() else None
