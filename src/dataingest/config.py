"""Runtime configuration for the ingestion pipeline."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


class Settings(BaseSettings):
    """Fixed defaults; only explicit constructor arguments can change them."""

    model_config = SettingsConfigDict(case_sensitive=False, frozen=True)

    database_path: Path = Path("vectors.db")
    data_path: Path = Path("./data")

    # Model serving
    ollama_endpoint: str = "http://localhost:11434"
    chat_model: str = "llama3.2:latest"
    embedding_model: str = "all-minilm"
    embedding_dimensions: int = 384
    http_timeout_seconds: float = 300.0

    # Document conversion
    markitdown_endpoint: str = "http://localhost:3001/mcp"
    document_reader: Literal["markitdown", "local"] = "markitdown"
    search_pattern: str = "*.md"

    # Chunking
    tokenizer_model: str = "gpt-4"
    max_tokens_per_chunk: int = 2000
    overlap_tokens: int = 0

    # Ollama returns a single summary per request whatever the batch size
    enricher_batch_size: int = 1

    collection_name: str = "data"
    top_results: int = 5

    log_level: str = "WARNING"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # database_path is deleted on every run; never take it from the environment
        return (init_settings,)


@lru_cache(maxsize=1)
def _cached_settings() -> Settings:
    return Settings()


def get_settings(override: Optional[dict[str, object]] = None) -> Settings:
    """Return settings, optionally overriding values without mutating cache."""

    if override:
        return Settings(**override)
    return _cached_settings()
