"""
app.py
Runs the Vachanamrut answer API.

Flow:
User Question -> History lookup (exact / similar) -> Gemini on a miss
-> TTS -> Audio + answer saved to history/<timestamp>/
"""

import uvicorn

from answer_cache.config import PORT

if __name__ == "__main__":
    uvicorn.run("answer_cache.main:app", host="0.0.0.0", port=PORT)
