"""Console presentation for ingestion progress and search results."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Callable, Sequence, TextIO

BAR_WIDTH = 20
MAX_LINE = 65
SUMMARY_LINES = 3
CONTENT_LINES = 4


def _truncate(line: str) -> str:
    return line[:62] + "..." if len(line) > MAX_LINE else line


def score_bar(score: float) -> str:
    filled = int(min(max(score, 0.0), 1.0) * BAR_WIDTH)
    return "█" * filled + "░" * (BAR_WIDTH - filled)


class ConsoleUI:
    """Plain-text rendering to a stream; reads answers through ``input_func``."""

    def __init__(
        self,
        stream: TextIO | None = None,
        input_func: Callable[[], str] | None = None,
    ) -> None:
        self._stream = stream or sys.stdout
        self._input = input_func or input

    def _write(self, text: str = "") -> None:
        print(text, file=self._stream)

    def show_header(self) -> None:
        self._write()
        self._write("╔══════════════════════════════════════════════════════════════╗")
        self._write("║              DATA INGESTION PIPELINE - OLLAMA                ║")
        self._write("╚══════════════════════════════════════════════════════════════╝")
        self._write()

    def show_search_header(self) -> None:
        self._write("╔══════════════════════════════════════════════════════════════╗")
        self._write("║                     SEMANTIC SEARCH                          ║")
        self._write("╚══════════════════════════════════════════════════════════════╝")
        self._write()

    def show_error(self, message: str) -> None:
        self._write(f"  ❌ {message}")

    def show_success(self, message: str) -> None:
        self._write(f"  ✅ {message}")

    def show_warning(self, message: str) -> None:
        self._write(f"  ⚠️  {message}")

    def show_info(self, message: str) -> None:
        self._write(f"  {message}")

    def show_separator(self) -> None:
        self._write("─" * 66)

    def new_line(self) -> None:
        self._write()

    def ask_input(self, prompt: str) -> str | None:
        self._stream.write(f"  {prompt}: ")
        self._stream.flush()
        try:
            return self._input()
        except EOFError:
            return None

    def show_directory_info(self, directory: Path, file_count: int) -> None:
        try:
            shown = os.path.relpath(directory.resolve(), Path.cwd())
        except ValueError:
            shown = str(directory.resolve())
        self._write(f"  📁 Directory: .{os.sep}{shown}")
        self._write(f"  📄 Files found: {file_count}")
        self._write()

    def show_processing_result(
        self,
        current: int,
        total: int,
        file_name: str,
        success: bool,
        error: str | None = None,
    ) -> None:
        self._write()
        self._write(f"  [{current}/{total}] {file_name}")
        if success:
            self._write("       ✅ Successfully processed")
        else:
            self._write(f"       ❌ Error: {error}")

    def show_search_result(self, rank: int, score: float, summary: str, content: str) -> None:
        self._write(f"  ┌─ Result #{rank}")
        self._write(f"  │ Score: {score:.4f} [{score_bar(score)}]")
        self._write("  │")

        if summary.strip():
            self._write("  │ 📝 Summary:")
            for line in summary.split("\n")[:SUMMARY_LINES]:
                self._write(f"  │    {_truncate(line)}")
            self._write("  │")

        self._write("  │ 📄 Content preview:")
        lines: Sequence[str] = content.split("\n")
        for line in [line for line in lines if line.strip()][:CONTENT_LINES]:
            self._write(f"  │    {_truncate(line)}")
        if len(lines) > CONTENT_LINES:
            self._write("  │    ...")

        self._write("  └" + "─" * 59)
        self._write()

    def show_goodbye(self) -> None:
        self._write("  👋 Goodbye!")

    def show_finished(self) -> None:
        self._write("  ✅ Pipeline finished.")
