"""Observability helpers for the ingestion pipeline."""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable

import structlog
from prometheus_client import Histogram

_logger_configured = False


def configure_logging(level: int | str = logging.INFO) -> None:
    global _logger_configured  # noqa: PLW0603 - module-level guard
    if _logger_configured:
        return
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _logger_configured = True


def get_logger(name: str = "dataingest") -> structlog.BoundLogger:
    configure_logging()
    return structlog.get_logger(name)


def _clamp_score(score: float) -> float:
    if score < 0.0:
        return 0.0
    if score > 1.0:
        return 1.0
    return score


class PipelineMetrics:
    """Prometheus metrics for pipeline stages."""

    document_latency = Histogram(
        "dataingest_document_duration_seconds",
        "Time spent reading, chunking, enriching and writing one document.",
        buckets=(0.5, 1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0),
    )
    document_chunks = Histogram(
        "dataingest_document_chunk_count",
        "Chunks written per document.",
        buckets=(0, 1, 5, 10, 20, 40, 80),
    )
    search_latency = Histogram(
        "dataingest_search_duration_seconds",
        "Time spent running a similarity search.",
        buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0),
    )
    search_result_count = Histogram(
        "dataingest_search_result_count",
        "Number of hits returned by a similarity search.",
        buckets=(0, 1, 2, 3, 5, 8, 13),
    )
    search_score = Histogram(
        "dataingest_search_score",
        "Relevance scores of returned hits.",
        buckets=(0.0, 0.25, 0.5, 0.75, 1.0),
    )

    @classmethod
    def observe_document(cls, duration_seconds: float, chunk_count: int) -> None:
        cls.document_latency.observe(duration_seconds)
        cls.document_chunks.observe(chunk_count)

    @classmethod
    def observe_search(
        cls,
        duration_seconds: float,
        hit_count: int,
        scores: Iterable[float],
    ) -> None:
        cls.search_latency.observe(duration_seconds)
        cls.search_result_count.observe(hit_count)
        for score in scores:
            cls.search_score.observe(_clamp_score(score))


class TimedSection:
    """Context manager capturing elapsed time for metrics."""

    def __init__(self, callback: Callable[[float], None] | None = None) -> None:
        self._callback = callback
        self._start = 0.0
        self.duration = 0.0

    def __enter__(self) -> "TimedSection":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        self.duration = time.perf_counter() - self._start
        if self._callback is not None:
            self._callback(self.duration)


__all__ = [
    "PipelineMetrics",
    "TimedSection",
    "configure_logging",
    "get_logger",
]
