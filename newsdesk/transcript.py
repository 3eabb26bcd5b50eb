"""
Transcript utilities.

The model is prompted to label speakers at the start of a line, for example
``Speaker 1: ...`` or ``Interviewer: ...``.  The functions in this module
read those labels back out, count words and name the plain-text download.
"""

import datetime
import re
from dataclasses import dataclass, field
from typing import List, Optional

# A label is a short capitalised phrase followed by a colon at line start.
_SPEAKER_LABEL = re.compile(r"^\s*([A-Z][\w .'-]{0,39}?)\s*:(?:\s|$)")
_WORD = re.compile(r"\S+")


@dataclass
class TranscriptStats:
    word_count: int = 0
    speakers: List[str] = field(default_factory=list)

    @property
    def speakers_identified(self) -> bool:
        return bool(self.speakers)


def speaker_labels(text: str) -> List[str]:
    """Return the distinct speaker labels in order of first appearance."""
    speakers: List[str] = []
    for line in text.splitlines():
        match = _SPEAKER_LABEL.match(line)
        if match:
            label = match.group(1).strip()
            if label not in speakers:
                speakers.append(label)
    return speakers


def transcript_stats(text: str) -> TranscriptStats:
    """Count words and collect speaker labels for a transcript.

    Args:
        text: The transcript as returned by the model.

    Returns:
        A :class:`TranscriptStats`.  An empty transcript yields zero words
        and no speakers.
    """
    return TranscriptStats(
        word_count=len(_WORD.findall(text)),
        speakers=speaker_labels(text),
    )


def download_filename(today: Optional[datetime.date] = None) -> str:
    today = today or datetime.date.today()
    return f"transcription-{today.isoformat()}.txt"
