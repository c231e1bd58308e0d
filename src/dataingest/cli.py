"""Command-line entry point: rebuild the index, then search it interactively."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Callable, Sequence

from dataingest.config import Settings, get_settings
from dataingest.console import ConsoleUI
from dataingest.embeddings import VectorCollection, delete_database
from dataingest.factory import PipelineFactory
from dataingest.ingestion import TokenizerUnavailableError
from dataingest.metrics.observability import PipelineMetrics, TimedSection, configure_logging, get_logger

QUERY_PROMPT = "🔍 Your query (or 'exit' to quit)"
EXIT_TOKEN = "exit"


def is_exit_command(value: str | None) -> bool:
    return not value or value.lower() == EXIT_TOKEN


async def run(
    settings: Settings,
    ui: ConsoleUI | None = None,
    factory_cls: Callable[[Settings], PipelineFactory] = PipelineFactory,
) -> int:
    """Validate the source directory, rebuild the database, ingest, then search."""

    ui = ui or ConsoleUI()
    logger = get_logger("cli")

    data_dir = Path(settings.data_path)
    if not data_dir.is_dir():
        ui.show_error(f"Directory does not exist '{data_dir.resolve()}'")
        ui.show_info("Create the 'data' folder with .md files or adjust the path.")
        return 0

    ui.show_header()

    if delete_database(Path(settings.database_path)):
        logger.info("database.deleted", path=str(settings.database_path))
        ui.show_info("🗑️  Previous database deleted. Starting fresh ingestion...")

    ui.new_line()

    async with factory_cls(settings) as factory:
        chat_client = factory.create_chat_client()
        embeddings = factory.create_embedding_generator()
        reader = factory.create_document_reader()
        try:
            chunker = factory.create_chunker(embeddings)
        except TokenizerUnavailableError as exc:
            logger.error("setup.failed", error=str(exc))
            ui.show_error(str(exc))
            return 1
        store = factory.create_vector_store(embeddings)
        writer = factory.create_writer(store)
        pipeline = factory.create_pipeline(reader, chunker, writer, chat_client)

        files = reader.list_files(data_dir, settings.search_pattern)
        ui.show_directory_info(data_dir, len(files))
        ui.show_separator()

        any_success = False
        processed = 0
        async for result in pipeline.process(data_dir, settings.search_pattern):
            processed += 1
            ui.show_processing_result(
                processed,
                len(files),
                Path(result.document_id).name,
                result.succeeded,
                result.error_message,
            )
            if result.succeeded:
                any_success = True

        ui.new_line()
        ui.show_separator()

        if not any_success:
            ui.new_line()
            ui.show_warning("No documents were successfully processed.")
            ui.new_line()
            return 0

        ui.new_line()
        ui.show_success("Ingestion completed. Starting interactive search...")
        ui.new_line()

        await search_loop(writer.collection, ui, top=settings.top_results)

    ui.show_finished()
    return 0


async def search_loop(collection: VectorCollection, ui: ConsoleUI, *, top: int) -> None:
    """Prompt for queries until the user enters nothing or ``exit``."""

    logger = get_logger("search")
    ui.show_search_header()

    while True:
        try:
            query = ui.ask_input(QUERY_PROMPT)
        except KeyboardInterrupt:
            query = None

        if is_exit_command(query):
            ui.new_line()
            ui.show_goodbye()
            ui.new_line()
            return

        ui.new_line()
        ui.show_info("Searching...")
        ui.new_line()

        timer = TimedSection()
        try:
            with timer:
                hits = await collection.search(query, top=top)
        except Exception as exc:
            logger.error("search.failed", query=query, error=str(exc))
            ui.show_error(f"Search failed: {exc}")
            ui.new_line()
            continue

        PipelineMetrics.observe_search(timer.duration, len(hits), (hit.score for hit in hits))
        logger.info("search.complete", query=query, hit_count=len(hits), duration_seconds=timer.duration)

        if not hits:
            ui.show_warning("No results found.")
            ui.new_line()
            continue

        ui.show_info(f"Found {len(hits)} result(s):")
        ui.new_line()
        for rank, hit in enumerate(hits, start=1):
            ui.show_search_result(rank, hit.score, hit.summary, hit.content)


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    from dataingest import __version__

    parser = argparse.ArgumentParser(
        prog="dataingest",
        description="Ingest Markdown files into a local vector index and search it interactively.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    parse_args(sys.argv[1:] if argv is None else argv)
    settings = get_settings()
    configure_logging(settings.log_level)
    return asyncio.run(run(settings))


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    sys.exit(main())
