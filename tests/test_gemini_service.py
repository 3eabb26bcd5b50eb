from types import SimpleNamespace

import pytest

from newsdesk import gemini_service


def _file(state, name="files/abc"):
    return SimpleNamespace(name=name, state=SimpleNamespace(name=state))


class FakeModel:
    def __init__(self, name, system_instruction=None, reply="Speaker 1: Hello."):
        self.name = name
        self.system_instruction = system_instruction
        self.reply = reply
        self.contents = None

    def generate_content(self, contents):
        self.contents = contents
        return SimpleNamespace(text=self.reply)

    def start_chat(self, history=None):
        return SimpleNamespace(model=self, history=history)


class FakeGenai:
    def __init__(self, states=("ACTIVE",), reply="Speaker 1: Hello."):
        self.states = list(states)
        self.reply = reply
        self.api_key = None
        self.models = []
        self.deleted = []
        self.polls = 0

    def configure(self, api_key=None):
        self.api_key = api_key

    def upload_file(self, path, mime_type=None, display_name=None):
        self.uploaded = (path, mime_type, display_name)
        return _file(self.states.pop(0))

    def get_file(self, name):
        self.polls += 1
        return _file(self.states.pop(0), name)

    def delete_file(self, name):
        self.deleted.append(name)

    def GenerativeModel(self, name, system_instruction=None):
        model = FakeModel(name, system_instruction, self.reply)
        self.models.append(model)
        return model


@pytest.fixture
def genai(monkeypatch):
    fake = FakeGenai()
    monkeypatch.setattr(gemini_service, "genai", fake)
    monkeypatch.setattr(gemini_service, "FILE_POLL_SECONDS", 0)
    monkeypatch.setenv("GENAI_API_KEY", "test-key")
    monkeypatch.delenv("GENAI_MODEL", raising=False)
    monkeypatch.delenv("TRANSCRIPTION_PROMPT", raising=False)
    return fake


def test_missing_api_key(genai, monkeypatch):
    for name in ("GENAI_API_KEY", "GEMINI_API_KEY", "API_KEY"):
        monkeypatch.delenv(name, raising=False)
    with pytest.raises(gemini_service.TranscriptionError) as excinfo:
        gemini_service.upload_media("/tmp/a.mp3", "audio/mpeg")
    assert str(excinfo.value) == gemini_service.MISSING_KEY_MESSAGE


def test_fallback_api_key_names(genai, monkeypatch):
    monkeypatch.delenv("GENAI_API_KEY")
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setenv("API_KEY", "fallback")
    gemini_service.upload_media("/tmp/a.mp3", "audio/mpeg")
    assert genai.api_key == "fallback"


def test_upload_waits_until_active(genai):
    genai.states = ["PROCESSING", "PROCESSING", "ACTIVE"]
    uploaded = gemini_service.upload_media("/tmp/a.mp3", "audio/mpeg", display_name="a.mp3")
    assert uploaded.state.name == "ACTIVE"
    assert genai.polls == 2
    assert genai.uploaded == ("/tmp/a.mp3", "audio/mpeg", "a.mp3")


def test_upload_failed_processing(genai):
    genai.states = ["PROCESSING", "FAILED"]
    with pytest.raises(gemini_service.TranscriptionError) as excinfo:
        gemini_service.upload_media("/tmp/a.mp4", "video/mp4")
    assert "FAILED" in str(excinfo.value)


def test_upload_times_out(genai, monkeypatch):
    monkeypatch.setattr(gemini_service, "FILE_READY_TIMEOUT", 0)
    genai.states = ["PROCESSING"] * 5
    with pytest.raises(gemini_service.TranscriptionError) as excinfo:
        gemini_service.upload_media("/tmp/a.mp4", "video/mp4")
    assert "Timed out" in str(excinfo.value)


def test_transcribe_media_sends_file_and_prompt(genai):
    uploaded = _file("ACTIVE")
    text = gemini_service.transcribe_media(uploaded)
    assert text == "Speaker 1: Hello."
    model = genai.models[-1]
    assert model.name == gemini_service.DEFAULT_MODEL
    assert model.contents[0] is uploaded
    assert "transcription assistant for journalists" in model.contents[1]


def test_transcribe_media_honours_overrides(genai, monkeypatch):
    monkeypatch.setenv("GENAI_MODEL", "models/custom")
    monkeypatch.setenv("TRANSCRIPTION_PROMPT", "Transcribe it.")
    gemini_service.transcribe_media(_file("ACTIVE"))
    model = genai.models[-1]
    assert model.name == "models/custom"
    assert model.contents[1] == "Transcribe it."


def test_transcribe_media_empty_reply(genai):
    genai.reply = "   "
    with pytest.raises(gemini_service.TranscriptionError) as excinfo:
        gemini_service.transcribe_media(_file("ACTIVE"))
    assert str(excinfo.value) == gemini_service.EMPTY_TRANSCRIPT_MESSAGE


def test_release_media_deletes_remote_file(genai):
    gemini_service.release_media(_file("ACTIVE", "files/xyz"))
    gemini_service.release_media(None)
    assert genai.deleted == ["files/xyz"]


def test_chat_session_embeds_transcript(genai):
    chat = gemini_service.create_chat_session("Mayor: no comment.")
    assert chat.history == []
    instruction = chat.model.system_instruction
    assert "Mayor: no comment." in instruction
    assert "UPPERCASE" in instruction
    assert "[Original:" in instruction
