from types import SimpleNamespace

import pytest

from newsdesk import gemini_service
from newsdesk.media import MediaFile


class FakeChatSession:
    def __init__(self, replies=None):
        self.replies = list(replies or ["SUMMARY\n- point one"])
        self.sent = []

    def send_message(self, text):
        self.sent.append(text)
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(text=reply)


@pytest.fixture
def media_file(tmp_path):
    path = tmp_path / "interview.mp3"
    path.write_bytes(b"ID3fake")
    return MediaFile(
        path=str(path),
        filename="interview.mp3",
        mime_type="audio/mpeg",
        size=7,
        kind="audio",
    )


@pytest.fixture
def fake_gemini(monkeypatch):
    """Replace the remote calls with recorders that succeed by default."""
    calls = SimpleNamespace(
        transcript="Speaker 1: Hello there.\nSpeaker 2: Hi.",
        upload_error=None,
        transcribe_error=None,
        uploaded=[],
        released=[],
        chat=FakeChatSession(),
        on_upload=None,
        on_transcribe=None,
    )

    def upload_media(path, mime_type, display_name=None):
        if calls.on_upload:
            calls.on_upload()
        if calls.upload_error:
            raise calls.upload_error
        handle = SimpleNamespace(name=f"files/{len(calls.uploaded)}")
        calls.uploaded.append((path, mime_type, display_name))
        return handle

    def transcribe_media(uploaded):
        if calls.on_transcribe:
            calls.on_transcribe()
        if calls.transcribe_error:
            raise calls.transcribe_error
        return calls.transcript

    monkeypatch.setattr(gemini_service, "upload_media", upload_media)
    monkeypatch.setattr(gemini_service, "transcribe_media", transcribe_media)
    monkeypatch.setattr(gemini_service, "release_media", lambda uploaded: calls.released.append(uploaded))
    monkeypatch.setattr(gemini_service, "create_chat_session", lambda transcript: calls.chat)
    return calls
