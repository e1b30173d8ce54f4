from __future__ import annotations

import re
import textwrap

import markdownify

_MAX_LINE_LENGTH = 120

_TAG_RE = re.compile(r"<\s*/?\s*[a-zA-Z][a-zA-Z0-9]*(\s[^<>]*)?/?\s*>")
# The web editor wraps whitespace in empty bold runs between words.
_BOLD_NBSP_RE = re.compile(r"<(strong|b)>\s*(&nbsp;|\s)\s*</\1>", re.IGNORECASE)


def looks_like_html(text: str) -> bool:
    return bool(_TAG_RE.search(text or ""))


def notes_to_markdown(text: str) -> str:
    """Render assessment notes as Markdown.

    Notes written in the application's rich-text fields arrive as HTML; plain
    notes pass through with only whitespace cleanup.
    """
    if not text or not text.strip():
        return ""
    if looks_like_html(text):
        return html_to_markdown(text)
    return "\n".join(line.rstrip() for line in text.strip().splitlines())


def html_to_markdown(html: str) -> str:
    """Convert HTML to Markdown, cleaning up editor artifacts."""
    if not html:
        return ""
    html = _BOLD_NBSP_RE.sub(" ", html)
    md: str = markdownify.markdownify(html, heading_style="ATX", bullets="-")
    md = md.replace("\u00ad", "")
    md = md.replace("\u00a0", " ")
    md = md.replace("&nbsp;", " ")
    md = _wrap_markdown(md)
    md = "\n".join(line.rstrip() for line in md.splitlines())
    while "\n\n\n" in md:
        md = md.replace("\n\n\n", "\n\n")
    return md.strip()


def _wrap_markdown(md: str) -> str:
    lines = []
    for line in md.splitlines():
        if len(line) <= _MAX_LINE_LENGTH or line.lstrip().startswith(("#", "|", "```")):
            lines.append(line)
            continue
        stripped = line.lstrip()
        indent = line[: len(line) - len(stripped)]
        bullet = re.match(r"^([-*+]|\d+\.)\s+", stripped)
        if bullet:
            marker = bullet.group(0)
            lines.append(textwrap.fill(
                stripped[len(marker):],
                width=_MAX_LINE_LENGTH,
                initial_indent=indent + marker,
                subsequent_indent=indent + " " * len(marker),
                break_long_words=False,
                break_on_hyphens=False,
            ))
        else:
            lines.append(textwrap.fill(
                stripped,
                width=_MAX_LINE_LENGTH,
                initial_indent=indent,
                subsequent_indent=indent,
                break_long_words=False,
                break_on_hyphens=False,
            ))
    return "\n".join(lines)
