import re
import unicodedata
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

ANSWER_MAX_LENGTH = 500

_HTML_TAG = re.compile(r"<[^>]+>")
_WHITESPACE_RUN = re.compile(r"\s+")


def clean_answer(value: Any) -> Any:
    """
    Turn a free-text questionnaire answer into a single prompt-safe line.

    Answers are spliced into prompt sentences, so markup, zero-width
    characters and line breaks are removed. Blank answers become None.
    """
    if not isinstance(value, str):
        return value
    text = _HTML_TAG.sub("", value)
    text = "".join(ch for ch in text if unicodedata.category(ch) != "Cf")
    text = _WHITESPACE_RUN.sub(" ", text).strip()
    if not text:
        return None
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        raise ValueError("Text contains invalid Unicode characters")
    return text


class QuestionnaireResponses(BaseModel):
    """Answers from the thumbnail questionnaire (camelCase accepted from the UI)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    video_type: Optional[str] = Field(None, alias="videoType", max_length=ANSWER_MAX_LENGTH)
    style: Optional[str] = Field(None, max_length=ANSWER_MAX_LENGTH)
    mood: Optional[str] = Field(None, max_length=ANSWER_MAX_LENGTH)
    audience: Optional[str] = Field(None, max_length=ANSWER_MAX_LENGTH)
    context: Optional[str] = Field(None, max_length=ANSWER_MAX_LENGTH)
    placement: Optional[str] = Field(None, max_length=100)

    @field_validator("*", mode="before")
    @classmethod
    def _normalize_answers(cls, value):
        return clean_answer(value)


class ThumbnailRequestPayload(BaseModel):
    """JSON carried in the ``payload`` form field of a thumbnail request."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user_responses: QuestionnaireResponses = Field(
        default_factory=QuestionnaireResponses, alias="userResponses"
    )
    placement: Optional[str] = Field(None, max_length=100)

    @field_validator("placement", mode="before")
    @classmethod
    def _normalize_placement(cls, value):
        return clean_answer(value)

    @property
    def effective_placement(self) -> str:
        return self.placement or self.user_responses.placement or "center"


class SlotStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"


class SlotError(BaseModel):
    code: str
    message: str
    status_code: Optional[int] = None


class ThumbnailSlot(BaseModel):
    """One aspect-ratio rendering; exactly one of ``image``/``error`` is set."""

    status: SlotStatus
    aspect_ratio: str
    size: str
    image: Optional[str] = None
    placeholder_url: str
    error: Optional[SlotError] = None


class ThumbnailVariant(BaseModel):
    id: str
    prompt: str
    horizontal: ThumbnailSlot
    vertical: ThumbnailSlot
    square: ThumbnailSlot


class ThumbnailSetStatus(str, Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


class ThumbnailSetResponse(BaseModel):
    status: ThumbnailSetStatus
    rewritten_prompt: str
    thumbnails: List[ThumbnailVariant]


class RewritePromptRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_responses: QuestionnaireResponses = Field(
        default_factory=QuestionnaireResponses, alias="userResponses"
    )


class RewritePromptResponse(BaseModel):
    system_prompt: str
    rewritten_prompt: str


class GenaiTestRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: Optional[str] = Field(None, max_length=4000)
    base64_image: Optional[str] = Field(None, alias="base64Image")


class GenaiTestResponse(BaseModel):
    type: str
    data: str


def responses_as_prompt_fields(responses: QuestionnaireResponses) -> Dict[str, Optional[str]]:
    return responses.model_dump(by_alias=False)
