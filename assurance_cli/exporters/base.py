from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from assurance_cli.formatters.json_formatter import JsonFormatter
from assurance_cli.formatters.markdown_formatter import MarkdownFormatter


class BaseExporter(ABC):
    def __init__(
        self,
        source: Any,
        output_dir: Path,
        *,
        force: bool = False,
        keep_raw_json: bool = False,
    ) -> None:
        self.source = source
        self.output_dir = output_dir
        self.force = force
        self.keep_raw_json = keep_raw_json
        self._overwrite_all = False
        self._md_formatter = MarkdownFormatter()
        self._json_formatter = JsonFormatter()

    @abstractmethod
    def export(self) -> None:
        """Fetch assessments from the source, score them and write reports."""
        ...

    def _ensure_output_dir(self) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def _log(self, message: str) -> None:
        print(message)

    def _should_write(self, path: Path) -> bool:
        """Check whether *path* should be written, prompting if needed."""
        if not path.exists():
            return True
        if self.force or self._overwrite_all:
            return True
        while True:
            answer = input(
                f"Overwrite existing {path.name}? [Yes/No/All] "
            ).strip().lower()
            if answer in ("y", "yes"):
                return True
            if answer in ("n", "no"):
                return False
            if answer in ("a", "all"):
                self._overwrite_all = True
                return True

    def _write_report(self, stem: str, markdown: str, raw: Any) -> None:
        md_path = self.output_dir / (stem + self._md_formatter.file_extension())
        if self._should_write(md_path):
            self._md_formatter.write(markdown, md_path)

        if self.keep_raw_json:
            json_path = self.output_dir / (stem + self._json_formatter.file_extension())
            if self._should_write(json_path):
                self._json_formatter.write(raw, json_path)

    def _write_index(self, markdown: str) -> None:
        index_path = self.output_dir / ("index" + self._md_formatter.file_extension())
        if self._should_write(index_path):
            self._md_formatter.write(markdown, index_path)
