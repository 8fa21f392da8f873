import logging

from ..models import Candidate, MatchResult
from .normalization import normalize_question
from .similarity import calculate_similarity
from .store import InvalidInput, SessionStore

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.8


def _preview(text: str, limit: int = 80) -> str:
    return text if len(text) <= limit else text[:limit] + "..."


class HistoryMatcher:
    """
    Finds a previously answered question in the session store.

    Scans newest first. An exact normalized match stops the scan;
    otherwise the best fuzzy score wins if it reaches the threshold.
    """

    def __init__(self, store: SessionStore):
        self.store = store

    def find(self, question: str, threshold: float = DEFAULT_THRESHOLD) -> MatchResult:
        if not isinstance(question, str) or not question.strip():
            raise InvalidInput("question is required")

        normalized = normalize_question(question)
        candidates = self.store.list_candidates()
        logger.info(f"Searching {len(candidates)} sessions for similar questions...")

        best: Candidate | None = None
        best_similarity = 0.0

        for candidate in candidates:
            if candidate.question_normalized == normalized:
                logger.info(f"Found exact match in session {candidate.id}")
                return MatchResult(
                    found=True,
                    answer=candidate.answer,
                    parts=self.store.load_parts(candidate.id),
                    similarity=1.0,
                    exact_match=True,
                )

            similarity = calculate_similarity(question, candidate.question)
            # Strictly greater: on ties the newer session stays
            if similarity > best_similarity:
                best = candidate
                best_similarity = similarity

        if best is not None and best_similarity >= threshold:
            logger.info(
                f"Found similar question in session {best.id} "
                f"({round(best_similarity * 100)}% match, threshold {round(threshold * 100)}%)"
            )
            logger.info(f"Original: {_preview(best.question)!r}")
            logger.info(f"Current:  {_preview(question)!r}")
            return MatchResult(
                found=True,
                answer=best.answer,
                parts=self.store.load_parts(best.id),
                similarity=best_similarity,
                exact_match=False,
            )

        if best is not None:
            logger.info(
                f"Best match ({round(best_similarity * 100)}%) below threshold ({round(threshold * 100)}%)"
            )
        else:
            logger.info("No similar questions found")
        return MatchResult.not_found()
