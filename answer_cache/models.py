"""
Value records rebuilt from the history folder on every read.

Nothing here is cached between calls; the files on disk are the only truth.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Session:
    id: int
    question: str
    question_normalized: str
    answer: str
    created_at: int


@dataclass(frozen=True)
class AudioPart:
    session_id: int
    index: int
    audio: str
    mime_type: str = "audio/wav"
    original_mime_type: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "audio": self.audio,
            "mimeType": self.mime_type,
            "originalMimeType": self.original_mime_type,
        }


@dataclass(frozen=True)
class SessionSummary:
    id: int
    question: Optional[str] = None
    answer_preview: Optional[str] = None
    part_count: int = 0

    def to_dict(self) -> dict:
        return {
            "timestamp": self.id,
            "question": self.question,
            "answerPreview": self.answer_preview,
            "parts": self.part_count,
        }


@dataclass(frozen=True)
class Candidate:
    id: int
    question: str
    question_normalized: str
    answer: str


@dataclass
class MatchResult:
    found: bool
    answer: Optional[str] = None
    parts: list[AudioPart] = field(default_factory=list)
    similarity: Optional[float] = None
    exact_match: Optional[bool] = None

    @classmethod
    def not_found(cls) -> "MatchResult":
        return cls(found=False)

    def to_dict(self) -> dict:
        if not self.found:
            return {"found": False}
        return {
            "found": True,
            "answer": self.answer,
            "parts": [p.to_dict() for p in self.parts],
            "similarity": self.similarity,
            "exactMatch": self.exact_match,
        }
