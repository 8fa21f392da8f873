"""
File-backed history of answered questions.

Layout under the base folder, one directory per session:

    <base>/<timestamp>/session.json          question, questionNormalized, answer, createdAt
    <base>/<timestamp>/part-000.b64          base64 audio chunk
    <base>/<timestamp>/part-000.json         mimeType, originalMimeType, index, timestamp, ...

No index and no in-memory cache: every listing walks the folder again.
Bulk reads skip records they cannot read; single-part reads raise.
"""

import dataclasses
import json
import logging
import time
from pathlib import Path

from ..models import AudioPart, Candidate, Session, SessionSummary
from .normalization import normalize_question, sanitize_base64

logger = logging.getLogger(__name__)

SESSION_FILE = "session.json"
DEFAULT_MIME_TYPE = "audio/wav"
ANSWER_PREVIEW_CHARS = 160


class HistoryError(Exception):
    pass


class NotFound(HistoryError):
    pass


class Corrupt(HistoryError):
    pass


class Unavailable(HistoryError):
    pass


class InvalidInput(HistoryError):
    pass


def new_session_id() -> int:
    """Session ids are epoch milliseconds."""
    return int(time.time() * 1000)


def _part_name(index: int) -> str:
    return f"part-{index:03d}"


def _parse_session_id(name: str) -> int | None:
    if name.isascii() and name.isdigit():
        return int(name)
    return None


def _check_session_id(session_id) -> None:
    if isinstance(session_id, bool) or not isinstance(session_id, int) or session_id < 0:
        raise InvalidInput(f"session id must be a non-negative integer, got {session_id!r}")


def _read_json(path: Path) -> dict:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise NotFound(f"{path.name} not found in {path.parent.name}") from None
    except OSError as e:
        raise Corrupt(f"Cannot read {path}: {e}") from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise Corrupt(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise Corrupt(f"Expected an object in {path}")
    return data


def _gather(items, load) -> list:
    """
    Runs load(item) for every item and keeps the successes.
    A failed item is logged and left out; None results are dropped too.
    """
    results = []
    for item in items:
        try:
            value = load(item)
        except HistoryError as e:
            logger.debug(f"Skipping history record {item!r}: {e}")
            continue
        if value is not None:
            results.append(value)
    return results


class SessionStore:
    def __init__(self, base_path: str | Path):
        self.base_path = Path(base_path)

    def _session_dir(self, session_id: int) -> Path:
        canonical = self.base_path / str(session_id)
        if canonical.exists():
            return canonical

        # A folder named with leading zeros ("0012") is still session 12
        try:
            entries = self._session_entries()
        except Unavailable:
            return canonical
        for entry_id, path in entries:
            if entry_id == session_id:
                return path
        return canonical

    def _session_entries(self) -> list[tuple[int, Path]]:
        """(id, dir) pairs, newest first. Raises Unavailable if the base folder can't be read."""
        try:
            entries = list(self.base_path.iterdir())
        except OSError as e:
            raise Unavailable(f"History folder {self.base_path} unavailable: {e}") from e

        sessions = []
        for entry in entries:
            session_id = _parse_session_id(entry.name)
            if session_id is not None:
                sessions.append((session_id, entry))

        sessions.sort(key=lambda s: s[0], reverse=True)
        return sessions

    # ----------------------------
    # Listing
    # ----------------------------

    def list_sessions(self) -> list[SessionSummary]:
        try:
            entries = self._session_entries()
        except Unavailable as e:
            logger.info(f"No history to list: {e}")
            return []
        return _gather(entries, self._summarize)

    def _summarize(self, entry: tuple[int, Path]) -> SessionSummary:
        session_id, session_dir = entry
        try:
            files = sorted(p.name for p in session_dir.iterdir())
        except OSError as e:
            raise Corrupt(f"Cannot read session {session_id}: {e}") from e

        jsons = [f for f in files if f.endswith(".json")]
        part_count = sum(1 for f in files if f.endswith(".b64"))

        question = None
        answer_preview = None
        if jsons:
            try:
                meta = _read_json(session_dir / jsons[0])
                question = meta.get("question")
                answer_preview = meta.get("answerPreview")
            except HistoryError as e:
                # Still listed, just without a title
                logger.debug(f"Session {session_id} has unreadable metadata: {e}")

        return SessionSummary(
            id=session_id,
            question=question,
            answer_preview=answer_preview,
            part_count=part_count,
        )

    def list_candidates(self) -> list[Candidate]:
        """Answered sessions (session.json present), newest first."""
        try:
            entries = self._session_entries()
        except Unavailable as e:
            logger.info(f"No history to search: {e}")
            return []
        return _gather(entries, self._load_candidate)

    def _load_candidate(self, entry: tuple[int, Path]) -> Candidate | None:
        session_id, session_dir = entry
        session = self.load_session(session_id, session_dir)
        if not session.question_normalized:
            return None
        return Candidate(
            id=session.id,
            question=session.question,
            question_normalized=session.question_normalized,
            answer=session.answer,
        )

    # ----------------------------
    # Sessions
    # ----------------------------

    def load_session(self, session_id: int, session_dir: Path | None = None) -> Session:
        session_dir = session_dir or self._session_dir(session_id)
        summary = _read_json(session_dir / SESSION_FILE)
        return Session(
            id=session_id,
            question=str(summary.get("question") or ""),
            question_normalized=str(summary.get("questionNormalized") or ""),
            answer=str(summary.get("answer") or ""),
            created_at=summary.get("createdAt", session_id),
        )

    def save_session(self, session_id: int, question: str, answer: str) -> bool:
        """
        Writes session.json once. Returns False when it already existed:
        the first question/answer stored for a session is kept.
        """
        _check_session_id(session_id)
        if not isinstance(question, str) or not question.strip():
            raise InvalidInput("question is required")
        if not isinstance(answer, str):
            raise InvalidInput("answer is required")

        session_dir = self._session_dir(session_id)
        session_dir.mkdir(parents=True, exist_ok=True)

        summary = {
            "question": question,
            "questionNormalized": normalize_question(question),
            "answer": answer,
            "createdAt": session_id,
        }

        # "x" mode: exclusive create, so only one writer can win
        try:
            with (session_dir / SESSION_FILE).open("x", encoding="utf-8") as f:
                json.dump(summary, f, indent=2, ensure_ascii=False)
        except FileExistsError:
            logger.info(f"session.json already exists for {session_id}, skipping")
            return False

        logger.info(f"Saved session {session_id}: question={question[:80]!r} answer_len={len(answer)}")
        return True

    # ----------------------------
    # Audio parts
    # ----------------------------

    def save_part(
        self,
        session_id: int,
        index: int,
        audio: str,
        mime_type: str,
        original_mime_type: str | None = None,
        question: str | None = None,
        answer_preview: str | None = None,
    ) -> AudioPart:
        """Writes (or overwrites) part-NNN.b64 and its part-NNN.json sidecar."""
        _check_session_id(session_id)
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            raise InvalidInput(f"index must be a non-negative integer, got {index!r}")
        if not isinstance(audio, str) or not audio:
            raise InvalidInput("audio payload is required")
        if not isinstance(mime_type, str) or not mime_type:
            raise InvalidInput("mimeType is required")

        session_dir = self._session_dir(session_id)
        session_dir.mkdir(parents=True, exist_ok=True)

        base_name = _part_name(index)
        (session_dir / f"{base_name}.b64").write_text(audio, encoding="utf-8")

        metadata = {
            "mimeType": mime_type,
            "originalMimeType": original_mime_type,
            "index": index,
            "timestamp": session_id,
        }
        if question is not None:
            metadata["question"] = question
        if answer_preview is not None:
            metadata["answerPreview"] = answer_preview[:ANSWER_PREVIEW_CHARS]

        (session_dir / f"{base_name}.json").write_text(
            json.dumps(metadata, indent=2, ensure_ascii=False), encoding="utf-8"
        )
        logger.info(f"Saved audio part {index} for session {session_id} ({len(audio)} chars base64)")

        return AudioPart(
            session_id=session_id,
            index=index,
            audio=audio,
            mime_type=mime_type,
            original_mime_type=original_mime_type,
        )

    def _read_part(self, session_id: int, index: int, base_name: str) -> AudioPart:
        session_dir = self._session_dir(session_id)
        try:
            raw = (session_dir / f"{base_name}.b64").read_text(encoding="utf-8")
        except FileNotFoundError:
            raise NotFound(f"Audio part {index} of session {session_id} not found") from None
        except OSError as e:
            raise Corrupt(f"Cannot read audio part {index} of session {session_id}: {e}") from e

        try:
            meta = _read_json(session_dir / f"{base_name}.json")
        except NotFound:
            meta = {}

        return AudioPart(
            session_id=session_id,
            index=index,
            audio=raw.strip(),
            mime_type=meta.get("mimeType") or DEFAULT_MIME_TYPE,
            original_mime_type=meta.get("originalMimeType"),
        )

    def load_parts(self, session_id: int) -> list[AudioPart]:
        """All readable parts of a session, ordered by index."""
        try:
            names = [p.name for p in self._session_dir(session_id).iterdir()]
        except OSError as e:
            logger.debug(f"No parts for session {session_id}: {e}")
            return []

        sidecars = []
        for name in names:
            if not (name.startswith("part-") and name.endswith(".json")):
                continue
            idx_str = name[len("part-"):-len(".json")]
            if idx_str.isascii() and idx_str.isdigit():
                sidecars.append((int(idx_str), f"part-{idx_str}"))
        sidecars.sort()

        parts = _gather(sidecars, lambda s: self._read_part(session_id, s[0], s[1]))
        return [dataclasses.replace(p, audio=sanitize_base64(p.audio)) for p in parts]

    def load_part(self, session_id: int, index: int) -> AudioPart:
        """One part. NotFound if the payload is missing, Corrupt if its sidecar can't be parsed."""
        _check_session_id(session_id)
        if isinstance(index, bool) or not isinstance(index, int) or index < 0:
            raise InvalidInput(f"index must be a non-negative integer, got {index!r}")
        return self._read_part(session_id, index, _part_name(index))
