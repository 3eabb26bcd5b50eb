"""
Formatting of assistant replies.

The assistant is told not to use Markdown, but replies still arrive as
unstructured text.  :func:`format_message` strips stray Markdown markers and
classifies each line as a header, bullet, numbered item, paragraph or
spacer so the template can lay it out.
"""

import re
from typing import List, NamedTuple

_HEADER_MARKERS = re.compile(r"^#+\s*", re.MULTILINE)
_NUMBERED = re.compile(r"^\d+\.\s")
_HAS_LETTER = re.compile(r"[A-Z]")

BULLET_PREFIXES = ("- ", "• ")


class Block(NamedTuple):
    kind: str
    text: str = ""
    marker: str = ""


def strip_markdown(text: str) -> str:
    text = text.replace("**", "").replace("__", "")
    return _HEADER_MARKERS.sub("", text)


def _is_header(line: str) -> bool:
    return (
        3 < len(line) < 60
        and line == line.upper()
        and bool(_HAS_LETTER.search(line))
        and not line.startswith("-")
    )


def format_message(text: str) -> List[Block]:
    """Classify each line of an assistant reply.

    Args:
        text: Raw reply text from the model.

    Returns:
        One :class:`Block` per line.  ``kind`` is one of ``spacer``,
        ``header``, ``bullet``, ``numbered`` or ``paragraph``; ``marker``
        holds the number of a numbered item.
    """
    blocks: List[Block] = []
    for line in strip_markdown(text).split("\n"):
        trimmed = line.strip()
        if not trimmed:
            blocks.append(Block("spacer"))
        elif _is_header(trimmed):
            blocks.append(Block("header", trimmed))
        elif trimmed.startswith(BULLET_PREFIXES):
            blocks.append(Block("bullet", trimmed[2:]))
        elif _NUMBERED.match(trimmed):
            number, _, rest = trimmed.partition(" ")
            blocks.append(Block("numbered", rest, number))
        else:
            blocks.append(Block("paragraph", trimmed))
    return blocks
