from __future__ import annotations

import textwrap
from typing import Any, Dict, List, Optional, Sequence

from assurance_cli.formatters.base import BaseFormatter
from assurance_cli.formatters.yaml_formatter import dump_yaml


class MarkdownFormatter(BaseFormatter):
    _MAX_LINE_LENGTH = 120

    def dumps(self, data: Any) -> str:
        return data if isinstance(data, str) else str(data)

    def file_extension(self) -> str:
        return ".md"

    @classmethod
    def render(
        cls,
        title: str,
        body: str,
        frontmatter: Optional[Dict[str, Any]] = None,
    ) -> str:
        parts = []
        if frontmatter:
            fm_text = dump_yaml(frontmatter).rstrip("\n")
            parts.append(f"---\n{fm_text}\n---\n")
        if title:
            parts.append(f"# {title}\n")
        if body:
            wrapped_body = cls._wrap_body(body.rstrip("\n"))
            parts.append(wrapped_body + "\n")
        return "\n".join(parts)

    @staticmethod
    def table(
        headers: Sequence[str],
        rows: Sequence[Sequence[Any]],
        right_align: Sequence[int] = (),
    ) -> str:
        """Render a pipe table, padding every column to its widest cell."""
        cells: List[List[str]] = [[str(h) for h in headers]]
        cells.extend([str(value) for value in row] for row in rows)
        widths = [max(3, *(len(row[i]) for row in cells)) for i in range(len(headers))]

        def _line(row: List[str]) -> str:
            padded = [
                row[i].rjust(widths[i]) if i in right_align else row[i].ljust(widths[i])
                for i in range(len(widths))
            ]
            return "| " + " | ".join(padded) + " |"

        separator = "|" + "|".join(
            "-" * (widths[i] + 1) + ":" if i in right_align else "-" * (widths[i] + 2)
            for i in range(len(widths))
        ) + "|"
        lines = [_line(cells[0]), separator]
        lines.extend(_line(row) for row in cells[1:])
        return "\n".join(lines)

    @classmethod
    def _wrap_body(cls, body: str) -> str:
        wrapped_lines = []
        for line in body.splitlines():
            if cls._should_preserve_line(line):
                wrapped_lines.append(line)
                continue
            wrapped_lines.append(
                textwrap.fill(
                    line,
                    width=cls._MAX_LINE_LENGTH,
                    break_long_words=False,
                    break_on_hyphens=False,
                )
            )
        return "\n".join(wrapped_lines)

    @classmethod
    def _should_preserve_line(cls, line: str) -> bool:
        if not line:
            return True
        if len(line) <= cls._MAX_LINE_LENGTH:
            return True
        if line.startswith(("#", "|", "- ", "* ", "> ", "```", "    ", "\t")):
            return True
        if "`" in line or "](" in line or "**" in line:
            return True
        return False
