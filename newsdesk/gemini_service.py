"""
Gemini wrapper for transcription and the transcript assistant.

This module encapsulates every call to the hosted model.  Transcription is a
two step affair: :func:`upload_media` pushes the file through the Gemini
File API and waits for it to become usable, then :func:`transcribe_media`
asks the model for a journalist-grade transcript of it.
:func:`create_chat_session` opens a conversation whose system instruction
embeds the finished transcript.

The API key is read from ``GENAI_API_KEY`` (``GEMINI_API_KEY`` and
``API_KEY`` are accepted too) and the model from ``GENAI_MODEL``.  The
transcription prompt can be overridden through ``TRANSCRIPTION_PROMPT``.

Usage::

    from newsdesk import gemini_service

    uploaded = gemini_service.upload_media("/tmp/interview.mp3", "audio/mpeg")
    try:
        text = gemini_service.transcribe_media(uploaded)
    finally:
        gemini_service.release_media(uploaded)
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

import google.generativeai as genai
from tenacity import RetryError, Retrying, retry_if_result, stop_after_delay, wait_fixed

logger = logging.getLogger(__name__)


DEFAULT_MODEL = "gemini-3-flash-preview"

FILE_POLL_SECONDS = float(os.environ.get("FILE_POLL_SECONDS", "2"))
FILE_READY_TIMEOUT = float(os.environ.get("FILE_READY_TIMEOUT", "300"))

MISSING_KEY_MESSAGE = "API Key is missing. Please check your environment configuration."
EMPTY_TRANSCRIPT_MESSAGE = "No transcription text returned from the model."

DEFAULT_TRANSCRIPTION_PROMPT = (
    "You are a professional transcription assistant for journalists.\n"
    "Please transcribe the following audio/video file with high accuracy.\n\n"
    "Requirements:\n"
    "1. Speaker Identification: Identify speakers (e.g., \"Speaker 1:\", "
    "\"Interviewer:\", \"Subject:\") if possible.\n"
    "2. Formatting: Use clear paragraph breaks.\n"
    "3. Verbatim: Keep the transcription verbatim but remove excessive filler "
    "words (um, ah) unless they add context to the hesitation.\n"
    "4. Structure: If there are distinct sections, separate them clearly.\n\n"
    "Output only the transcription. Do not add introductory or concluding remarks."
)

CHAT_INSTRUCTION = """You are an AI assistant for a journalist. You have been provided with a transcript of an interview or event.

TRANSCRIPT CONTEXT:
{transcript}

YOUR ROLE:
Help the journalist analyze this text. You can summarize, extract quotes, identify key themes, or answer specific questions.

FORMATTING RULES - STRICTLY FOLLOW:
1. Do NOT use Markdown characters like '#', '*', or '_' in your output.
2. For section headers, use UPPERCASE letters on a new line.
3. Use blank lines to separate paragraphs and sections.
4. Use simple hyphens (-) for lists.

CITATION & QUOTING RULES:
1. Always cite specific parts of the text if possible.
2. If you extract quotes, and the original transcript language is different from your response language (e.g. translating a quote), you MUST include the original text in brackets.

Format for translated quotes:
"English Translation of Quote" [Original: "Original text from transcript"]

Keep answers professional, concise, clean, and accurate to the provided text.
"""


class TranscriptionError(RuntimeError):
    """Raised when the model cannot produce a transcript."""


def _api_key() -> Optional[str]:
    for name in ("GENAI_API_KEY", "GEMINI_API_KEY", "API_KEY"):
        value = os.environ.get(name)
        if value:
            return value
    return None


def _configure() -> None:
    api_key = _api_key()
    if not api_key:
        raise TranscriptionError(MISSING_KEY_MESSAGE)
    genai.configure(api_key=api_key)


def model_name() -> str:
    return os.environ.get("GENAI_MODEL", DEFAULT_MODEL)


def _still_processing(uploaded: Any) -> bool:
    return uploaded.state.name == "PROCESSING"


def wait_until_active(uploaded: Any) -> Any:
    """Poll the File API until ``uploaded`` has finished server-side processing.

    Args:
        uploaded: A file handle returned by :func:`genai.upload_file`.

    Returns:
        The refreshed file handle in its final state.

    Raises:
        TranscriptionError: If processing failed or did not finish within
            ``FILE_READY_TIMEOUT`` seconds.
    """
    if not _still_processing(uploaded):
        current = uploaded
    else:
        retryer = Retrying(
            retry=retry_if_result(_still_processing),
            wait=wait_fixed(FILE_POLL_SECONDS),
            stop=stop_after_delay(FILE_READY_TIMEOUT),
        )
        try:
            current = retryer(genai.get_file, uploaded.name)
        except RetryError as exc:
            raise TranscriptionError(
                "Timed out waiting for the media to finish processing."
            ) from exc
    if current.state.name != "ACTIVE":
        raise TranscriptionError(
            f"The media could not be processed (state: {current.state.name})."
        )
    return current


def upload_media(path: str, mime_type: str, *, display_name: Optional[str] = None) -> Any:
    """Upload a local media file to Gemini and wait until it can be used.

    Args:
        path: Local path of the audio or video file.
        mime_type: MIME type reported for the upload.
        display_name: Optional human readable name shown in the File API.

    Returns:
        The active file handle, suitable as a part of a prompt.
    """
    _configure()
    logger.info("Uploading %s (%s) to the Gemini File API", path, mime_type)
    uploaded = genai.upload_file(path, mime_type=mime_type, display_name=display_name)
    return wait_until_active(uploaded)


def transcribe_media(uploaded: Any) -> str:
    """Ask the model for a transcript of an uploaded media file.

    Args:
        uploaded: An active file handle from :func:`upload_media`.

    Returns:
        The transcript text exactly as returned by the model.

    Raises:
        TranscriptionError: If the API key is missing or the model returned
            no text.
    """
    _configure()
    name = model_name()
    prompt = os.environ.get("TRANSCRIPTION_PROMPT", DEFAULT_TRANSCRIPTION_PROMPT)
    logger.info("Calling generative model %s for transcription", name)
    model = genai.GenerativeModel(name)
    response = model.generate_content([uploaded, prompt])
    try:
        text = response.text
    except ValueError:
        # Raised by the client when the candidate carries no text parts.
        text = ""
    if not text or not text.strip():
        raise TranscriptionError(EMPTY_TRANSCRIPT_MESSAGE)
    return text


def release_media(uploaded: Any) -> None:
    """Delete an uploaded file from the File API; failures are only logged."""
    if uploaded is None:
        return
    try:
        genai.delete_file(uploaded.name)
    except Exception as exc:  # pragma: no cover - network errors
        logger.warning("Could not delete uploaded file %s: %s", uploaded.name, exc)


def create_chat_session(transcript: str) -> Any:
    """Open a chat grounded on ``transcript``.

    Returns:
        A ``ChatSession`` whose ``send_message`` keeps the conversation
        history on the client side.
    """
    _configure()
    model = genai.GenerativeModel(
        model_name(),
        system_instruction=CHAT_INSTRUCTION.format(transcript=transcript),
    )
    return model.start_chat(history=[])
