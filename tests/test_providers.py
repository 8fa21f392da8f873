import base64
import io
import wave

import pytest
import requests

from answer_cache.services import llm, tts


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON")
        return self._payload


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setattr(llm, "GOOGLE_AI_API_KEY", "test-key")
    monkeypatch.setattr(tts, "GOOGLE_AI_API_KEY", "test-key")


def test_generate_answer(api_key, monkeypatch):
    calls = []

    def fake_post(url, params=None, json=None, timeout=None):
        calls.append((url, params, json))
        return FakeResponse(payload={"candidates": [{"content": {"parts": [{"text": "Dharma is duty."}]}}]})

    monkeypatch.setattr(requests, "post", fake_post)

    assert llm.generate_answer("What is dharma?") == "Dharma is duty."
    url, params, body = calls[0]
    assert url.endswith(":generateContent")
    assert params == {"key": "test-key"}
    assert body["contents"][0]["parts"][0]["text"].endswith("Question: What is dharma?")


def test_generate_answer_without_key(monkeypatch):
    monkeypatch.setattr(llm, "GOOGLE_AI_API_KEY", "")
    with pytest.raises(RuntimeError, match="GOOGLE_AI_API_KEY"):
        llm.generate_answer("q")


def test_generate_answer_api_error(api_key, monkeypatch):
    monkeypatch.setattr(requests, "post", lambda *a, **kw: FakeResponse(500, text="boom"))
    with pytest.raises(RuntimeError, match="Gemini API error"):
        llm.generate_answer("q")


def test_generate_answer_empty_response(api_key, monkeypatch):
    monkeypatch.setattr(requests, "post", lambda *a, **kw: FakeResponse(payload={"candidates": []}))
    assert llm.generate_answer("q") == "No response generated"


def test_pcm_to_wav_header():
    wav = tts.pcm_to_wav(b"\x00\x00" * 100, sample_rate=16000)
    assert wav[:4] == b"RIFF"
    with wave.open(io.BytesIO(wav)) as w:
        assert w.getframerate() == 16000
        assert w.getnchannels() == 1
        assert w.getsampwidth() == 2
        assert w.getnframes() == 100


def test_sample_rate_of():
    assert tts.sample_rate_of("audio/L16;codec=pcm;rate=16000") == 16000
    assert tts.sample_rate_of("audio/L16") == tts.DEFAULT_SAMPLE_RATE


def test_synthesize_speech_wraps_pcm(api_key, monkeypatch):
    pcm = base64.b64encode(b"\x01\x00" * 10).decode("ascii")
    inline = {"mimeType": "audio/L16;codec=pcm;rate=24000", "data": pcm}
    monkeypatch.setattr(
        requests,
        "post",
        lambda *a, **kw: FakeResponse(payload={"candidates": [{"content": {"parts": [{"inlineData": inline}]}}]}),
    )

    result = tts.synthesize_speech("Hello")
    assert result.mime_type == "audio/wav"
    assert result.original_mime_type == "audio/L16;codec=pcm;rate=24000"
    assert base64.b64decode(result.audio)[:4] == b"RIFF"


def test_synthesize_speech_keeps_playable_audio(api_key, monkeypatch):
    inline = {"mimeType": "audio/mpeg", "data": "QUJD"}
    monkeypatch.setattr(
        requests,
        "post",
        lambda *a, **kw: FakeResponse(payload={"candidates": [{"content": {"parts": [{"inlineData": inline}]}}]}),
    )

    result = tts.synthesize_speech("Hello")
    assert (result.audio, result.mime_type, result.original_mime_type) == ("QUJD", "audio/mpeg", "audio/mpeg")


def test_synthesize_speech_rate_limited(api_key, monkeypatch):
    error = {
        "error": {
            "code": 429,
            "details": [{"@type": "type.googleapis.com/google.rpc.RetryInfo", "retryDelay": "17s"}],
        }
    }
    monkeypatch.setattr(requests, "post", lambda *a, **kw: FakeResponse(429, payload=error))

    with pytest.raises(tts.SpeechError) as exc_info:
        tts.synthesize_speech("Hello")
    assert exc_info.value.status == 429
    assert exc_info.value.retry_after_ms == 17000


def test_synthesize_speech_without_audio(api_key, monkeypatch):
    monkeypatch.setattr(requests, "post", lambda *a, **kw: FakeResponse(payload={"candidates": []}))
    with pytest.raises(tts.SpeechError, match="No audio data"):
        tts.synthesize_speech("Hello")
