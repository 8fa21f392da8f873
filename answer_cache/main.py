import logging
import time
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from .config import ALLOWED_ORIGINS, HISTORY_DIR, LOG_LEVEL, SIMILARITY_THRESHOLD
from .schemas import AudioRequest, FindRequest, QueryRequest, SaveAudioRequest, TtsRequest
from .services.llm import generate_answer
from .services.matcher import HistoryMatcher
from .services.store import (
    Corrupt,
    InvalidInput,
    NotFound,
    SessionStore,
    new_session_id,
)
from .services.tts import SpeechError, synthesize_speech

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)


def _preview(text: str, limit: int = 100) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


# ============================================================
# FASTAPI APP INITIALIZATION
# ============================================================

app = FastAPI(title="Vachanamrut Answer API")

# History folder is configured once here and handed to the store
_store = SessionStore(HISTORY_DIR)


def get_store() -> SessionStore:
    return _store


def get_matcher(store: SessionStore = Depends(get_store)) -> HistoryMatcher:
    return HistoryMatcher(store)


# CORS: allows browser frontend to call backend APIs
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    t0 = time.time()
    response = await call_next(request)
    elapsed_ms = (time.time() - t0) * 1000
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)")
    return response


# ============================================================
# ENDPOINTS
# ============================================================

@app.get("/")
def root():
    return {"status": "ok", "message": "API is running"}


@app.get("/health")
@app.get("/healthz")
def health():
    """
    Very fast health check.
    """
    return {"status": "ok", "message": "Server is running"}


@app.post("/api/gemini")
def ask(req: QueryRequest, matcher: HistoryMatcher = Depends(get_matcher)):
    """
    Main endpoint:
    1) Validate query
    2) Look for the same or a similar question in history
    3) On a miss, generate an answer (Gemini)
    The new answer is stored later, together with its audio, via save-audio.
    """
    q = (req.query or "").strip()
    if not q:
        raise HTTPException(status_code=400, detail="Query is required")

    logger.info(f"Question received: {_preview(q)!r}")

    # ----------------------------
    # Step 1: History check
    # ----------------------------
    cached = matcher.find(q, threshold=SIMILARITY_THRESHOLD)
    if cached.found:
        match_type = "exact" if cached.exact_match else "similar"
        logger.info(
            f"History HIT ({match_type}, {round(cached.similarity * 100)}%): "
            f"{len(cached.parts)} audio parts, no API call needed"
        )
        return {
            "answer": cached.answer,
            "fromCache": True,
            "ttsParts": [p.to_dict() for p in cached.parts],
            "similarity": cached.similarity,
            "matchType": match_type,
        }

    logger.info("History MISS - calling Gemini")

    # ----------------------------
    # Step 2: LLM Generation
    # ----------------------------
    t0 = time.time()
    try:
        answer = generate_answer(q)
    except RuntimeError as e:
        logger.error(f"Gemini failed: {e}")
        status_code = 502 if "Gemini API" in str(e) else 500
        raise HTTPException(status_code=status_code, detail=f"Internal server error: {e}") from e

    logger.info(f"Answer generated: length={len(answer)} in {time.time() - t0:.2f}s")
    return {"answer": answer, "fromCache": False}


@app.post("/api/tts")
def tts(req: TtsRequest):
    text = req.text or ""
    if not text:
        raise HTTPException(status_code=400, detail="Text is required")

    logger.info(f"TTS for {len(text)} chars: {_preview(text)!r}")
    try:
        speech = synthesize_speech(text)
    except SpeechError as e:
        logger.error(f"TTS failed: {e}")
        if e.status == 429 or str(e) == "Failed to generate speech":
            logger.error(f"Rate limit hit, retry after: {e.retry_after_ms}ms")
            return JSONResponse(
                status_code=429,
                content={
                    "error": "Failed to generate speech",
                    "status": e.status or 429,
                    "retryAfterMs": e.retry_after_ms,
                },
            )
        raise HTTPException(status_code=500, detail=str(e)) from e

    return {
        "audio": speech.audio,
        "mimeType": speech.mime_type,
        "originalMimeType": speech.original_mime_type,
    }


# ============================================================
# HISTORY ENDPOINTS
# ============================================================

@app.get("/api/history/list")
def history_list(store: SessionStore = Depends(get_store)):
    sessions = store.list_sessions()
    logger.info(f"Found {len(sessions)} sessions")
    return {"sessions": [s.to_dict() for s in sessions]}


@app.post("/api/history/find")
def history_find(req: FindRequest, matcher: HistoryMatcher = Depends(get_matcher)):
    question = req.question or ""
    if not question.strip():
        raise HTTPException(status_code=400, detail="question is required")

    threshold = SIMILARITY_THRESHOLD if req.threshold is None else req.threshold
    result = matcher.find(question, threshold=threshold)
    return result.to_dict()


@app.post("/api/history/save-audio")
def history_save_audio(req: SaveAudioRequest, store: SessionStore = Depends(get_store)):
    if not req.audio_base64 or not req.mime_type:
        raise HTTPException(status_code=400, detail="audioBase64 and mimeType are required")

    session_id = req.timestamp if req.timestamp is not None else new_session_id()
    logger.info(f"Saving session={session_id} index={req.index} audioSize={len(req.audio_base64)} chars")

    try:
        if isinstance(req.question, str) and req.question.strip() and isinstance(req.answer, str):
            store.save_session(session_id, req.question, req.answer)

        store.save_part(
            session_id,
            req.index,
            req.audio_base64,
            req.mime_type,
            original_mime_type=req.original_mime_type,
            question=req.question,
            answer_preview=req.answer,
        )
    except InvalidInput as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except OSError as e:
        logger.error(f"Failed to save audio: {e}")
        raise HTTPException(status_code=500, detail="Failed to save audio") from e

    return {"ok": True}


@app.post("/api/history/audio")
def history_audio(req: AudioRequest, store: SessionStore = Depends(get_store)):
    if req.timestamp is None or req.index is None:
        raise HTTPException(status_code=400, detail="timestamp and index are required")

    try:
        part = store.load_part(req.timestamp, req.index)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except Corrupt as e:
        logger.error(f"Failed to load audio: {e}")
        raise HTTPException(status_code=500, detail="Failed to load audio") from e

    logger.info(f"Audio loaded: session={req.timestamp} index={req.index} ({len(part.audio)} chars)")
    return {
        "audioBase64": part.audio,
        "mimeType": part.mime_type,
        "originalMimeType": part.original_mime_type,
    }
