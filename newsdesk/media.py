"""
Upload validation and temporary storage for media files.

Uploaded audio and video is checked against an allowed MIME family and an
upper size bound before anything touches the workspace.  Accepted uploads
are written to a temporary file that keeps the original suffix, so the
Gemini File API can infer the container format, and removed again when the
workspace is reset.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from werkzeug.datastructures import FileStorage


MAX_UPLOAD_MB = int(os.environ.get("MAX_UPLOAD_MB", "50"))
MAX_UPLOAD_BYTES = MAX_UPLOAD_MB * 1024 * 1024

INVALID_TYPE_MESSAGE = "Please upload a valid audio or video file."
TOO_LARGE_MESSAGE = (
    f"File is too large for this demo (limit {MAX_UPLOAD_MB}MB). "
    "Please compress or trim the file."
)


class MediaValidationError(ValueError):
    """Raised when an upload is not an acceptable audio or video file."""


@dataclass
class MediaFile:
    path: str
    filename: str
    mime_type: str
    size: int
    kind: str
    preview_url: str = ""

    @property
    def size_mb(self) -> float:
        return round(self.size / (1024 * 1024), 2)

    def discard(self) -> None:
        cleanup_temp_file(self.path)


def media_kind(mime_type: Optional[str]) -> Optional[str]:
    """Return ``"audio"`` or ``"video"`` for a MIME type, ``None`` otherwise."""
    if not mime_type:
        return None
    if mime_type.startswith("audio/"):
        return "audio"
    if mime_type.startswith("video/"):
        return "video"
    return None


def validate_media(filename: str, mime_type: Optional[str], size: int) -> str:
    """Check an upload against the type and size rules.

    Args:
        filename: Original name of the uploaded file.
        mime_type: MIME type reported by the browser.
        size: Size of the upload in bytes.

    Returns:
        The coarse media kind, ``"audio"`` or ``"video"``.

    Raises:
        MediaValidationError: If the type is not audio/video or the file
            exceeds :data:`MAX_UPLOAD_BYTES`.  The type is checked first.
    """
    kind = media_kind(mime_type)
    if kind is None or not filename:
        raise MediaValidationError(INVALID_TYPE_MESSAGE)
    if size > MAX_UPLOAD_BYTES:
        raise MediaValidationError(TOO_LARGE_MESSAGE)
    return kind


def _stream_size(storage: FileStorage) -> int:
    stream = storage.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def save_upload(storage: FileStorage) -> MediaFile:
    """Validate an uploaded file and write it to a temporary location.

    Args:
        storage: The ``file`` part of a multipart request.

    Returns:
        A :class:`MediaFile` describing the stored copy.  The caller owns
        the temporary file and should call :meth:`MediaFile.discard`.

    Raises:
        MediaValidationError: If the upload is rejected.  Nothing is
            written to disk in that case.
    """
    filename = storage.filename or ""
    mime_type = storage.mimetype
    size = _stream_size(storage)
    kind = validate_media(filename, mime_type, size)
    fd, tmp_path = tempfile.mkstemp(suffix=Path(filename).suffix.lower())
    os.close(fd)
    storage.save(tmp_path)
    return MediaFile(
        path=tmp_path,
        filename=os.path.basename(filename),
        mime_type=mime_type,
        size=size,
        kind=kind,
    )


def cleanup_temp_file(path: Optional[str]) -> None:
    """Remove a temporary file if it exists.

    Args:
        path: Path to the temporary file.  Nothing happens if ``path`` is
            ``None`` or the file does not exist.
    """
    if path and os.path.exists(path):
        try:
            os.remove(path)
        except OSError:
            pass
