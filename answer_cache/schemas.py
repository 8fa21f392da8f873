from pydantic import BaseModel, ConfigDict, Field


class QueryRequest(BaseModel):
    """
    Incoming question for the answer endpoint.

    query: user question (English or Gujarati)
    """
    query: str | None = None


class TtsRequest(BaseModel):
    text: str | None = None


class FindRequest(BaseModel):
    """
    question: text to look up in history
    threshold: minimum fuzzy similarity, defaults to the configured one
    """
    question: str | None = None
    threshold: float | None = Field(default=None, ge=0.0, le=1.0)


class SaveAudioRequest(BaseModel):
    """
    One generated audio chunk, plus the question/answer it belongs to.
    The question/answer pair is only stored the first time a session is saved.
    """
    model_config = ConfigDict(populate_by_name=True)

    audio_base64: str | None = Field(default=None, alias="audioBase64")
    mime_type: str | None = Field(default=None, alias="mimeType")
    original_mime_type: str | None = Field(default=None, alias="originalMimeType")
    question: str | None = None
    answer: str | None = None
    index: int = Field(default=0, ge=0)
    timestamp: int | None = Field(default=None, ge=0)


class AudioRequest(BaseModel):
    timestamp: int | None = Field(default=None, ge=0)
    index: int | None = Field(default=None, ge=0)
