"""
Per-page workspace state.

A :class:`Workspace` holds everything one journalist is working on: the
selected media file, the transcription status, the transcript, the
assistant chat and the transcript search cursor.  The status moves
linearly::

    idle -> processing -> transcribing -> completed
                     \\            \\
                      +-> error     +-> error

and :meth:`Workspace.reset` or :meth:`Workspace.select_media` return it to
``idle`` at any point.  Remote calls run without holding the workspace
lock; a generation counter makes sure the result of a call that was
overtaken by a reset is dropped instead of applied.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
import os
import uuid
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional

from . import gemini_service
from .assistant import AssistantChat
from .media import MediaFile
from .search import MatchCursor
from .transcript import transcript_stats

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred during transcription."

MAX_WORKSPACES = int(os.environ.get("MAX_WORKSPACES", "100"))
WORKSPACE_IDLE_SECONDS = float(os.environ.get("WORKSPACE_IDLE_SECONDS", "3600"))


class TranscriptionStatus(str, enum.Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    TRANSCRIBING = "transcribing"
    COMPLETED = "completed"
    ERROR = "error"


IN_FLIGHT = (TranscriptionStatus.PROCESSING, TranscriptionStatus.TRANSCRIBING)


class WorkspaceStateError(RuntimeError):
    """Raised when an operation is not allowed in the current state."""


class Workspace:
    def __init__(self, workspace_id: str) -> None:
        self.id = workspace_id
        self._lock = threading.RLock()
        self._generation = 0
        self._started_at: Optional[float] = None
        self.media: Optional[MediaFile] = None
        self.status = TranscriptionStatus.IDLE
        self.transcript = ""
        self.error: Optional[str] = None
        self.search = MatchCursor()
        self._chat: Optional[AssistantChat] = None

    @property
    def busy(self) -> bool:
        return self.status in IN_FLIGHT

    @property
    def elapsed_seconds(self) -> int:
        started = self._started_at
        if not self.busy or started is None:
            return 0
        return int(time.monotonic() - started)

    def _clear(self) -> None:
        self._generation += 1
        self._started_at = None
        if self.media is not None:
            self.media.discard()
        self.media = None
        self.status = TranscriptionStatus.IDLE
        self.transcript = ""
        self.error = None
        self.search.clear()
        self._chat = None

    def select_media(self, media: MediaFile) -> None:
        """Load a new media file, dropping the previous one and its results."""
        with self._lock:
            self._clear()
            self.media = media
        logger.info("Workspace %s loaded %s (%s)", self.id, media.filename, media.mime_type)

    def reset(self) -> None:
        with self._lock:
            self._clear()
        logger.info("Workspace %s reset", self.id)

    def _set_status(self, generation: int, status: TranscriptionStatus) -> bool:
        with self._lock:
            if generation != self._generation:
                return False
            self.status = status
            return True

    def transcribe(self) -> TranscriptionStatus:
        """Run the upload and transcription calls for the loaded media.

        Returns:
            The resulting status, ``completed`` or ``error``.  If the
            workspace was reset while the call was in flight, the result is
            discarded and the current status is returned.

        Raises:
            WorkspaceStateError: If no media is loaded, a transcription is
                already running, or a transcript already exists.
        """
        with self._lock:
            if self.media is None:
                raise WorkspaceStateError("No media file selected.")
            if self.status not in (TranscriptionStatus.IDLE, TranscriptionStatus.ERROR):
                raise WorkspaceStateError(
                    f"Transcription is not available while {self.status.value}."
                )
            media = self.media
            generation = self._generation
            self.status = TranscriptionStatus.PROCESSING
            self.error = None
            self._started_at = time.monotonic()

        uploaded = None
        try:
            uploaded = gemini_service.upload_media(
                media.path, media.mime_type, display_name=media.filename
            )
            if not self._set_status(generation, TranscriptionStatus.TRANSCRIBING):
                return self.status
            text = gemini_service.transcribe_media(uploaded)
        except Exception as exc:
            logger.exception("Transcription failed for %s: %s", media.filename, exc)
            with self._lock:
                if generation == self._generation:
                    self.status = TranscriptionStatus.ERROR
                    self.error = str(exc) or UNEXPECTED_ERROR_MESSAGE
                    self._started_at = None
                return self.status
        finally:
            gemini_service.release_media(uploaded)

        with self._lock:
            if generation == self._generation:
                self.transcript = text
                self.status = TranscriptionStatus.COMPLETED
                self._started_at = None
            return self.status

    def chat(self) -> AssistantChat:
        """Return the chat session for the transcript, creating it on first use."""
        with self._lock:
            if not self.transcript:
                raise WorkspaceStateError("The assistant is available once a transcript exists.")
            if self._chat is None:
                self._chat = AssistantChat(self.transcript)
            return self._chat

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            stats = transcript_stats(self.transcript)
            media = None
            if self.media is not None:
                media = {
                    "filename": self.media.filename,
                    "mime_type": self.media.mime_type,
                    "kind": self.media.kind,
                    "size_mb": self.media.size_mb,
                    "preview_url": self.media.preview_url,
                }
            return {
                "id": self.id,
                "status": self.status.value,
                "elapsed_seconds": self.elapsed_seconds,
                "error": self.error,
                "media": media,
                "has_transcript": bool(self.transcript),
                "word_count": stats.word_count,
                "speakers": stats.speakers,
                "speakers_identified": stats.speakers_identified,
            }


class WorkspaceStore:
    """In-memory registry of workspaces keyed by id.

    Workspaces that have not been touched for ``idle_seconds`` are evicted,
    and once more than ``max_workspaces`` are held the least recently used
    ones go first.  A workspace with a transcription in flight is never
    evicted.  Evicted workspaces are reset so their temporary media file is
    removed.
    """

    def __init__(
        self,
        max_workspaces: int = MAX_WORKSPACES,
        idle_seconds: float = WORKSPACE_IDLE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_workspaces = max_workspaces
        self.idle_seconds = idle_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._workspaces: "OrderedDict[str, Workspace]" = OrderedDict()
        self._last_seen: Dict[str, float] = {}

    def _evict(self, now: float, keep: Optional[str] = None) -> List[Workspace]:
        evicted = []
        for workspace_id, workspace in list(self._workspaces.items()):
            if workspace.busy or workspace_id == keep:
                continue
            idle = now - self._last_seen[workspace_id] >= self.idle_seconds
            over = len(self._workspaces) > self.max_workspaces
            if idle or over:
                del self._workspaces[workspace_id]
                del self._last_seen[workspace_id]
                evicted.append(workspace)
        return evicted

    def _release(self, evicted: List[Workspace]) -> None:
        for workspace in evicted:
            logger.info("Evicting workspace %s", workspace.id)
            workspace.reset()

    def create(self) -> Workspace:
        workspace = Workspace(uuid.uuid4().hex)
        now = self._clock()
        with self._lock:
            self._workspaces[workspace.id] = workspace
            self._last_seen[workspace.id] = now
            evicted = self._evict(now, keep=workspace.id)
        self._release(evicted)
        return workspace

    def get(self, workspace_id: Optional[str]) -> Optional[Workspace]:
        if not workspace_id:
            return None
        now = self._clock()
        with self._lock:
            evicted = self._evict(now)
            workspace = self._workspaces.get(workspace_id)
            if workspace is not None:
                self._workspaces.move_to_end(workspace_id)
                self._last_seen[workspace_id] = now
        self._release(evicted)
        return workspace

    def __len__(self) -> int:
        with self._lock:
            return len(self._workspaces)
