"""HTTP clients for the model-serving endpoint."""

from .ollama import ChatClientError, EmbeddingClientError, OllamaChatClient, OllamaEmbeddings

__all__ = ["ChatClientError", "EmbeddingClientError", "OllamaChatClient", "OllamaEmbeddings"]
