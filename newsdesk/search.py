"""
Transcript search and highlighting.

The transcript is split into paragraphs on newlines and every
case-insensitive occurrence of the query is turned into a highlighted
segment carrying a running match index.  :class:`MatchCursor` keeps the
active match and wraps around in both directions so the viewer can step
through results with next/previous buttons.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Tuple

from markupsafe import Markup, escape


@dataclass(frozen=True)
class Segment:
    text: str
    is_match: bool = False
    index: int = -1


@dataclass
class Paragraph:
    text: str
    segments: List[Segment] = field(default_factory=list)


def find_matches(text: str, query: str) -> Tuple[List[Paragraph], int]:
    """Split ``text`` into paragraphs of plain and matched segments.

    Args:
        text: The transcript.
        query: Literal search string.  Regex metacharacters are escaped and
            matching ignores case.

    Returns:
        A tuple ``(paragraphs, total)`` where match indexes run from 0 to
        ``total - 1`` in document order.
    """
    lines = text.split("\n")
    if not query:
        return [Paragraph(line, [Segment(line)]) for line in lines], 0

    pattern = re.compile(re.escape(query), re.IGNORECASE)
    paragraphs: List[Paragraph] = []
    total = 0
    for line in lines:
        if not line.strip():
            paragraphs.append(Paragraph(line, [Segment(line)]))
            continue
        segments: List[Segment] = []
        pos = 0
        for match in pattern.finditer(line):
            if match.start() > pos:
                segments.append(Segment(line[pos:match.start()]))
            segments.append(Segment(match.group(0), True, total))
            total += 1
            pos = match.end()
        if pos < len(line) or not segments:
            segments.append(Segment(line[pos:]))
        paragraphs.append(Paragraph(line, segments))
    return paragraphs, total


class MatchCursor:
    """Navigable pointer into the matches of the current query."""

    def __init__(self) -> None:
        self.query = ""
        self.total = 0
        self.index = 0

    def update(self, query: str, total: int) -> None:
        """Record the match count for ``query``; a changed query restarts at 0."""
        if query != self.query:
            self.query = query
            self.index = 0
        self.total = total
        if self.total == 0 or self.index >= self.total:
            self.index = 0

    def next(self) -> int:
        if self.total:
            self.index = (self.index + 1) % self.total
        return self.index

    def previous(self) -> int:
        if self.total:
            self.index = (self.index - 1 + self.total) % self.total
        return self.index

    def clear(self) -> None:
        self.query = ""
        self.total = 0
        self.index = 0

    @property
    def label(self) -> str:
        if self.total == 0:
            return "0 matches"
        return f"{self.index + 1}/{self.total}"


def render_highlighted(paragraphs: List[Paragraph], active_index: int) -> Markup:
    """Render paragraphs as HTML with ``<mark>`` elements around matches."""
    html = []
    for paragraph in paragraphs:
        parts = []
        for segment in paragraph.segments:
            if segment.is_match:
                css = "match active" if segment.index == active_index else "match"
                parts.append(
                    Markup('<mark id="match-{0}" class="{1}">{2}</mark>').format(
                        segment.index, css, segment.text
                    )
                )
            else:
                parts.append(escape(segment.text))
        html.append(Markup("<p>") + Markup("").join(parts) + Markup("</p>"))
    return Markup("\n").join(html)
