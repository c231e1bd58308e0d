from __future__ import annotations

import io
from pathlib import Path
from typing import Iterable, Sequence

import pytest

from dataingest.cli import is_exit_command, run
from dataingest.config import get_settings
from dataingest.console import ConsoleUI
from dataingest.ingestion import TokenizerUnavailableError
from dataingest.models import IngestionResult, SearchHit


class StubCollection:
    def __init__(self, hits: Sequence[SearchHit] = (), fail_on: str | None = None) -> None:
        self.hits = list(hits)
        self.fail_on = fail_on
        self.queries: list[tuple[str, int]] = []

    async def search(self, query: str, *, top: int = 5) -> list[SearchHit]:
        self.queries.append((query, top))
        if query == self.fail_on:
            raise ConnectionError("store offline")
        return list(self.hits)


class StubReader:
    def list_files(self, directory: Path, pattern: str) -> list[Path]:
        return sorted(directory.glob(pattern))


class StubPipeline:
    def __init__(self, results: Iterable[IngestionResult]) -> None:
        self._results = list(results)

    async def process(self, directory: Path, pattern: str):
        for result in self._results:
            yield result


class StubWriter:
    def __init__(self, collection: StubCollection) -> None:
        self.collection = collection


class StubFactory:
    instances: list["StubFactory"] = []

    def __init__(self, settings, results, collection) -> None:
        self.settings = settings
        self.results = results
        self.collection = collection
        self.released = 0
        self.db_existed_at_build: bool | None = None
        StubFactory.instances.append(self)

    async def __aenter__(self):
        self.db_existed_at_build = Path(self.settings.database_path).exists()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.released += 1

    def create_chat_client(self):
        return object()

    def create_embedding_generator(self):
        return object()

    def create_document_reader(self):
        return StubReader()

    def create_chunker(self, embeddings):
        return object()

    def create_vector_store(self, embeddings):
        return object()

    def create_writer(self, store):
        return StubWriter(self.collection)

    def create_pipeline(self, reader, chunker, writer, chat_client):
        return StubPipeline(self.results)


def _ui(*answers: str) -> tuple[ConsoleUI, io.StringIO]:
    out = io.StringIO()
    replies = iter(answers)

    def read() -> str:
        try:
            return next(replies)
        except StopIteration:
            raise EOFError from None

    return ConsoleUI(stream=out, input_func=read), out


def _factory(results, collection):
    StubFactory.instances.clear()
    return lambda settings: StubFactory(settings, results, collection)


def _data_dir(tmp_path: Path) -> Path:
    data = tmp_path / "data"
    data.mkdir()
    for name in ("one.md", "two.md"):
        (data / name).write_text("# doc", encoding="utf-8")
    return data


def _settings(tmp_path: Path, data: Path):
    return get_settings({"data_path": data, "database_path": tmp_path / "vectors.db", "top_results": 3})


@pytest.mark.parametrize("value", ["", "exit", "Exit", "EXIT", None])
def test_exit_tokens(value):
    assert is_exit_command(value)


@pytest.mark.parametrize("value", ["exit now", "quit", " "])
def test_non_exit_inputs(value):
    assert not is_exit_command(value)


@pytest.mark.asyncio
async def test_missing_directory_stops_before_touching_database(tmp_path: Path):
    db = tmp_path / "vectors.db"
    db.write_bytes(b"old")
    ui, out = _ui()
    settings = get_settings({"data_path": tmp_path / "nope", "database_path": db})

    code = await run(settings, ui, _factory([], StubCollection()))

    assert code == 0
    assert db.exists()
    assert "Directory does not exist" in out.getvalue()
    assert StubFactory.instances == []


@pytest.mark.asyncio
async def test_existing_database_deleted_before_components_are_built(tmp_path: Path):
    data = _data_dir(tmp_path)
    (tmp_path / "vectors.db").write_bytes(b"old")
    ui, out = _ui("exit")
    results = [IngestionResult(document_id=str(data / "one.md"), succeeded=True)]

    await run(_settings(tmp_path, data), ui, _factory(results, StubCollection()))

    assert StubFactory.instances[0].db_existed_at_build is False
    assert "Previous database deleted" in out.getvalue()


@pytest.mark.asyncio
async def test_all_failures_skip_search(tmp_path: Path):
    data = _data_dir(tmp_path)
    collection = StubCollection()
    results = [
        IngestionResult(document_id=str(data / "one.md"), succeeded=False, error=ValueError("bad markdown")),
        IngestionResult(document_id=str(data / "two.md"), succeeded=False, error=ValueError("timeout")),
    ]
    ui, out = _ui("should never be read")

    await run(_settings(tmp_path, data), ui, _factory(results, collection))

    text = out.getvalue()
    assert "[1/2] one.md" in text and "[2/2] two.md" in text
    assert "Error: bad markdown" in text
    assert "No documents were successfully processed." in text
    assert "SEMANTIC SEARCH" not in text
    assert "Your query" not in text
    assert collection.queries == []
    assert StubFactory.instances[0].released == 1


@pytest.mark.asyncio
async def test_search_loop_renders_hits_and_exits(tmp_path: Path):
    data = _data_dir(tmp_path)
    hits = [
        SearchHit(score=0.9, record={"content": "first body", "summary": "first summary"}),
        SearchHit(score=0.4, record={"content": "second body"}),
    ]
    collection = StubCollection(hits)
    results = [
        IngestionResult(document_id=str(data / "one.md"), succeeded=False, error=ValueError("x")),
        IngestionResult(document_id=str(data / "two.md"), succeeded=True),
    ]
    ui, out = _ui("what is alpha", "EXIT")

    code = await run(_settings(tmp_path, data), ui, _factory(results, collection))

    text = out.getvalue()
    assert code == 0
    assert collection.queries == [("what is alpha", 3)]
    assert "Found 2 result(s):" in text
    assert text.index("Result #1") < text.index("first body") < text.index("Result #2")
    assert "first summary" in text
    assert "Goodbye" in text
    assert "Pipeline finished." in text
    assert StubFactory.instances[0].released == 1


@pytest.mark.asyncio
async def test_empty_results_and_search_errors_reprompt(tmp_path: Path):
    data = _data_dir(tmp_path)
    collection = StubCollection(fail_on="broken")
    results = [IngestionResult(document_id=str(data / "one.md"), succeeded=True)]
    ui, out = _ui("nothing here", "broken", "")

    await run(_settings(tmp_path, data), ui, _factory(results, collection))

    text = out.getvalue()
    assert [query for query, _ in collection.queries] == ["nothing here", "broken"]
    assert "No results found." in text
    assert "Search failed: store offline" in text
    assert "Goodbye" in text


@pytest.mark.asyncio
async def test_end_of_input_ends_search(tmp_path: Path):
    data = _data_dir(tmp_path)
    collection = StubCollection()
    results = [IngestionResult(document_id=str(data / "one.md"), succeeded=True)]
    ui, out = _ui()

    await run(_settings(tmp_path, data), ui, _factory(results, collection))

    assert collection.queries == []
    assert "Goodbye" in out.getvalue()


@pytest.mark.asyncio
async def test_unavailable_tokenizer_is_a_setup_error(tmp_path: Path):
    data = _data_dir(tmp_path)
    collection = StubCollection()
    factory_cls = _factory([IngestionResult(document_id=str(data / "one.md"), succeeded=True)], collection)

    def broken_factory(settings):
        factory = factory_cls(settings)

        def create_chunker(embeddings):
            raise TokenizerUnavailableError("Could not load the 'gpt-4' tokenizer")

        factory.create_chunker = create_chunker
        return factory

    ui, out = _ui("never read")

    code = await run(_settings(tmp_path, data), ui, broken_factory)

    text = out.getvalue()
    assert code == 1
    assert "❌ Could not load the 'gpt-4' tokenizer" in text
    assert "Files found" not in text
    assert collection.queries == []
    assert StubFactory.instances[0].released == 1
