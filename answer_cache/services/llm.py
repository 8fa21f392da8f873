import logging

import requests

from ..config import GOOGLE_AI_API_KEY, GEMINI_MODEL

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

SYSTEM_PROMPT = """You are a knowledgeable assistant specializing ONLY in the Vachanamrut, a sacred Hindu scripture containing the teachings of Bhagwan Swaminarayan.

The Vachanamrut is a collection of 273 spiritual discourses given by Bhagwan Swaminarayan between 1819 and 1829. It covers topics like dharma, bhakti, moksha, the nature of God, and spiritual practices.

CRITICAL INSTRUCTIONS:
1. ONLY answer questions that are directly related to the Vachanamrut scripture, its teachings, Bhagwan Swaminarayan, or topics covered in the Vachanamrut.

2. If a question is NOT about the Vachanamrut, politely decline and redirect. Use responses like:
   - In English: "I apologize, but I can only answer questions about the Vachanamrut scripture. Please ask me about the teachings of Bhagwan Swaminarayan or topics from the Vachanamrut."
   - In Gujarati: "માફ કરશો, પરંતુ હું ફક્ત વચનામૃત વિશેના પ્રશ્નોના જવાબ આપી શકું છું. કૃપા કરીને મને ભગવાન સ્વામિનારાયણના ઉપદેશો અથવા વચનામૃતમાંથી પ્રશ્નો પૂછો."

3. Language matching: answer in English for English questions and in Gujarati for Gujarati questions.

4. Be respectful and reverent when discussing the Vachanamrut teachings.

5. Give a complete answer. Default to about 80-180 words; go longer only when the topic needs it. Start with a direct answer, then 2-5 concise bullet points, then a one-line takeaway.

6. Cite a specific Vachanamrut (e.g., Gadhada I-10) only when you are sure of it. Never invent citations. When unsure, say "I'm not completely sure from Vachanamrut alone" and ask for clarification."""


def generate_answer(query: str, max_tokens: int = 1024) -> str:
    """
    Calls the Gemini generateContent API for an answer.
    The question is wrapped in the scripture-assistant instructions.
    """
    if not GOOGLE_AI_API_KEY:
        raise RuntimeError("GOOGLE_AI_API_KEY is missing in .env file")

    payload = {
        "contents": [
            {"parts": [{"text": f"{SYSTEM_PROMPT}\n\nQuestion: {query}"}]}
        ],
        "generationConfig": {
            "temperature": 0.3,
            "maxOutputTokens": max_tokens,
            "candidateCount": 1,
        },
    }

    url = f"{GEMINI_BASE_URL}/{GEMINI_MODEL}:generateContent"
    logger.info(f"Calling Gemini ({GEMINI_MODEL})...")

    try:
        r = requests.post(url, params={"key": GOOGLE_AI_API_KEY}, json=payload, timeout=60)
    except requests.exceptions.Timeout:
        raise RuntimeError("Gemini API request timed out") from None
    except requests.exceptions.RequestException as e:
        raise RuntimeError(f"Gemini API request failed: {e}") from e

    if not r.ok:
        logger.error(f"Gemini API error ({r.status_code}): {r.text}")
        raise RuntimeError(f"Gemini API error: {r.text}")

    data = r.json()
    try:
        answer = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        answer = ""

    if not answer:
        answer = "No response generated"

    logger.info(f"Gemini answered ({len(answer)} characters)")
    return answer
