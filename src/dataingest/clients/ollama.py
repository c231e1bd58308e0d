"""Ollama chat and embedding clients built on httpx."""

from __future__ import annotations

import base64
from typing import Any, Sequence

import httpx
from langchain_core.embeddings import Embeddings


class EmbeddingClientError(RuntimeError):
    """Raised when the embedding endpoint fails or returns a bad payload."""


class ChatClientError(RuntimeError):
    """Raised when the chat endpoint fails or returns a bad payload."""


class OllamaEmbeddings(Embeddings):
    """LangChain embeddings backed by Ollama's ``/api/embed`` endpoint.

    The semantic chunker calls the synchronous methods while the writer and the
    search loop use the async ones, so both transports share the same base URL
    and timeout.
    """

    def __init__(
        self,
        *,
        base_url: str,
        model: str,
        timeout_seconds: float = 300.0,
        transport: httpx.BaseTransport | None = None,
        async_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.model = model
        self._client = httpx.Client(base_url=base_url, timeout=timeout_seconds, transport=transport)
        self._async_client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_seconds,
            transport=async_transport,
        )
        self._closed = False

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            response = self._client.post("/api/embed", json=self._payload(texts))
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise EmbeddingClientError(str(exc)) from exc
        return self._parse(response.json(), expected=len(texts))

    def embed_query(self, text: str) -> list[float]:
        return self.embed_documents([text])[0]

    async def aembed_documents(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            response = await self._async_client.post("/api/embed", json=self._payload(texts))
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise EmbeddingClientError(str(exc)) from exc
        return self._parse(response.json(), expected=len(texts))

    async def aembed_query(self, text: str) -> list[float]:
        vectors = await self.aembed_documents([text])
        return vectors[0]

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._client.close()
        await self._async_client.aclose()

    def _payload(self, texts: Sequence[str]) -> dict[str, Any]:
        return {"model": self.model, "input": list(texts)}

    @staticmethod
    def _parse(payload: object, *, expected: int) -> list[list[float]]:
        data = payload.get("embeddings") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            raise EmbeddingClientError("Invalid embeddings payload: missing embeddings")

        vectors: list[list[float]] = []
        for item in data:
            if not isinstance(item, list) or not item:
                raise EmbeddingClientError("Invalid embeddings payload: empty embedding vector")
            vectors.append([float(value) for value in item])

        if len(vectors) != expected:
            raise EmbeddingClientError(
                f"Invalid embeddings payload: expected {expected} vectors, got {len(vectors)}"
            )
        return vectors


class OllamaChatClient:
    """Non-streaming client for Ollama's ``/api/chat`` endpoint."""

    def __init__(
        self,
        *,
        base_url: str,
        model: str,
        timeout_seconds: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.model = model
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout_seconds, transport=transport)

    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        images: Sequence[bytes] = (),
    ) -> str:
        messages: list[dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        user_message: dict[str, Any] = {"role": "user", "content": prompt}
        if images:
            user_message["images"] = [base64.b64encode(image).decode("ascii") for image in images]
        messages.append(user_message)

        try:
            response = await self._client.post(
                "/api/chat",
                json={
                    "model": self.model,
                    "messages": messages,
                    "stream": False,
                    "options": {"temperature": 0},
                },
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ChatClientError(str(exc)) from exc

        payload = response.json()
        message = payload.get("message") if isinstance(payload, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content.strip():
            raise ChatClientError("Invalid chat payload: missing assistant content")
        return content.strip()

    async def aclose(self) -> None:
        await self._client.aclose()
