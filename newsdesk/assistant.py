"""
Turn-based assistant chat over a transcript.

:class:`AssistantChat` owns the ordered message list shown in the assistant
tab and forwards each user turn to a Gemini chat session created from the
transcript.  Remote failures never escape: they are appended to the
conversation as an assistant message so the journalist can simply ask
again.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

from . import gemini_service

logger = logging.getLogger(__name__)

USER = "user"
ASSISTANT = "assistant"

GREETING = (
    "I've analyzed the transcript. I can help you summarize the content, "
    "find specific quotes, or answer questions about what was discussed."
)
INIT_ERROR_MESSAGE = "Error initializing AI assistant. Please check your API key."
SEND_ERROR_MESSAGE = "Sorry, I encountered an error. Please try again."
EMPTY_REPLY_MESSAGE = "I couldn't generate a response."

QUICK_ACTIONS: Tuple[Tuple[str, str], ...] = (
    ("Summarize", "Please provide a concise summary of this transcription."),
    ("Key Quotes", "Extract the most significant direct quotes from the speakers."),
    ("Main Topics", "What are the main topics discussed in this recording?"),
)
# Quick actions are offered until the conversation grows past the greeting
# and one exchange.
QUICK_ACTION_LIMIT = 3


class ChatBusyError(RuntimeError):
    """Raised when a message is sent while the previous one is unanswered."""


@dataclass(frozen=True)
class ChatMessage:
    role: str
    text: str


class AssistantChat:
    """Conversation grounded on a single transcript."""

    def __init__(
        self,
        transcript: str,
        session_factory: Optional[Callable[[str], Any]] = None,
    ) -> None:
        factory = session_factory or gemini_service.create_chat_session
        self._lock = threading.Lock()
        self._messages: List[ChatMessage] = []
        self._pending = False
        try:
            self._session = factory(transcript)
        except Exception as exc:
            logger.exception("Failed to initialise chat session: %s", exc)
            self._session = None
            self._messages.append(ChatMessage(ASSISTANT, INIT_ERROR_MESSAGE))
        else:
            self._messages.append(ChatMessage(ASSISTANT, GREETING))

    @property
    def messages(self) -> List[ChatMessage]:
        with self._lock:
            return list(self._messages)

    @property
    def pending(self) -> bool:
        return self._pending

    @property
    def ready(self) -> bool:
        return self._session is not None

    def quick_actions(self) -> Tuple[Tuple[str, str], ...]:
        with self._lock:
            if len(self._messages) < QUICK_ACTION_LIMIT:
                return QUICK_ACTIONS
        return ()

    def send(self, text: str) -> ChatMessage:
        """Send a user turn and append the assistant's answer.

        Args:
            text: The journalist's question.

        Returns:
            The assistant message appended for this turn.  On failure this
            is an inline error message rather than an exception.

        Raises:
            ValueError: If ``text`` is blank.
            ChatBusyError: If a previous message is still awaiting its reply.
        """
        if not text or not text.strip():
            raise ValueError("Message is empty")
        with self._lock:
            if self._pending:
                raise ChatBusyError("The assistant is still answering the previous message.")
            self._pending = True
            self._messages.append(ChatMessage(USER, text))
        reply = ChatMessage(ASSISTANT, SEND_ERROR_MESSAGE)
        try:
            reply = self._ask(text)
        finally:
            with self._lock:
                self._messages.append(reply)
                self._pending = False
        return reply

    def _ask(self, text: str) -> ChatMessage:
        if self._session is None:
            return ChatMessage(ASSISTANT, SEND_ERROR_MESSAGE)
        try:
            response = self._session.send_message(text)
            answer = response.text
        except Exception as exc:
            logger.exception("Chat turn failed: %s", exc)
            return ChatMessage(ASSISTANT, SEND_ERROR_MESSAGE)
        return ChatMessage(ASSISTANT, answer or EMPTY_REPLY_MESSAGE)
