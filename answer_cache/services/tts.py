import base64
import io
import logging
import re
import wave
from dataclasses import dataclass

import requests

from ..config import GEMINI_TTS_MODEL, GOOGLE_AI_API_KEY, TTS_VOICE
from .llm import GEMINI_BASE_URL

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = 24000


class SpeechError(RuntimeError):
    """TTS failure. status is the provider HTTP status, when there was one."""

    def __init__(self, message: str, status: int | None = None, retry_after_ms: int | None = None):
        super().__init__(message)
        self.status = status
        self.retry_after_ms = retry_after_ms


@dataclass
class SpeechResult:
    audio: str
    mime_type: str
    original_mime_type: str


def is_raw_pcm(mime_type: str) -> bool:
    return "L16" in mime_type or "pcm" in mime_type


def sample_rate_of(mime_type: str) -> int:
    """audio/L16;codec=pcm;rate=24000 -> 24000"""
    m = re.search(r"rate=(\d+)", mime_type)
    return int(m.group(1)) if m else DEFAULT_SAMPLE_RATE


def pcm_to_wav(pcm: bytes, sample_rate: int = DEFAULT_SAMPLE_RATE) -> bytes:
    """Wraps 16-bit mono PCM in a WAV container so browsers can play it."""
    buf = io.BytesIO()
    with wave.open(buf, "wb") as w:
        w.setnchannels(1)
        w.setsampwidth(2)
        w.setframerate(sample_rate)
        w.writeframes(pcm)
    return buf.getvalue()


def _retry_after_ms(resp: requests.Response) -> int | None:
    """Reads google.rpc.RetryInfo.retryDelay ("17s") from an error body."""
    try:
        body = resp.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None

    for d in (body.get("error") or {}).get("details") or []:
        if not isinstance(d, dict):
            continue
        if "RetryInfo" in str(d.get("@type", "")) and d.get("retryDelay"):
            seconds = re.sub(r"\D", "", str(d["retryDelay"]))
            return int(seconds or 0) * 1000
    return None


def synthesize_speech(text: str) -> SpeechResult:
    """
    Calls the Gemini TTS model and returns base64 audio.
    Raw PCM from the provider is converted to WAV.
    """
    if not GOOGLE_AI_API_KEY:
        raise SpeechError("GOOGLE_AI_API_KEY is missing in .env file")

    payload = {
        "contents": [{"parts": [{"text": text}]}],
        "generationConfig": {
            "responseModalities": ["audio"],
            "speechConfig": {
                "voiceConfig": {"prebuiltVoiceConfig": {"voiceName": TTS_VOICE}}
            },
        },
    }

    url = f"{GEMINI_BASE_URL}/{GEMINI_TTS_MODEL}:generateContent"
    logger.info(f"Calling Gemini TTS ({GEMINI_TTS_MODEL}, voice={TTS_VOICE})...")

    try:
        r = requests.post(url, params={"key": GOOGLE_AI_API_KEY}, json=payload, timeout=120)
    except requests.exceptions.RequestException as e:
        raise SpeechError(f"TTS request failed: {e}") from e

    if not r.ok:
        raise SpeechError(
            "Failed to generate speech",
            status=r.status_code,
            retry_after_ms=_retry_after_ms(r),
        )

    data = r.json()
    try:
        inline = data["candidates"][0]["content"]["parts"][0]["inlineData"]
    except (KeyError, IndexError, TypeError):
        inline = None
    if not inline or not inline.get("data"):
        raise SpeechError("No audio data generated")

    audio = inline["data"]
    original_mime_type = str(inline.get("mimeType") or "")
    mime_type = original_mime_type

    if is_raw_pcm(original_mime_type):
        logger.info(f"Converting PCM ({original_mime_type}) to WAV")
        wav = pcm_to_wav(base64.b64decode(audio), sample_rate_of(original_mime_type))
        audio = base64.b64encode(wav).decode("ascii")
        mime_type = "audio/wav"

    logger.info(f"Audio generated: {mime_type} ({len(audio)} chars base64)")
    return SpeechResult(audio=audio, mime_type=mime_type, original_mime_type=original_mime_type)
