"""
Request payload schemas

Field names follow the JSON the frontend sends (camelCase), except the
speech analysis payloads, which keep the audio service's snake_case keys.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, StrictBool, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from models import AssignmentType, EvaluationType, LanguageAssessmentType

Accent = Literal["us", "uk"]
LanguageLevel = Literal["beginner", "intermediate", "advanced"]

_http_url = TypeAdapter(HttpUrl)


def _strip_required(value: str, message: str) -> str:
    if not value or not value.strip():
        raise ValueError(message)
    return value.strip()


# ============================================================================
# SHARED PIECES
# ============================================================================


class QuestionInput(BaseModel):
    """A question on a standard assignment; id is set when updating an existing one"""

    id: Optional[str] = None
    textQuestion: Optional[str] = Field(None, max_length=10000)
    textAnswer: Optional[str] = Field(None, max_length=10000)
    image: Optional[str] = None
    videoUrl: Optional[str] = None


class EvaluationSettingsInput(BaseModel):
    type: EvaluationType
    customPrompt: Optional[str] = None
    rules: Optional[Any] = None
    acceptableResponses: Optional[Any] = None
    feedbackSettings: Optional[Dict[str, Any]] = None


class FeedbackSettingsInput(BaseModel):
    detailedFeedback: bool = True
    encouragementEnabled: bool = True


class ScopedAssignmentInput(BaseModel):
    """Fields shared by every variant-specific creation payload"""

    topic: str = Field(..., min_length=1, max_length=255)
    languageId: Optional[str] = None
    classIds: List[str] = Field(default_factory=list)
    studentIds: List[str] = Field(default_factory=list)
    assignToEntireClass: bool = True
    scheduledPublishAt: Optional[datetime] = None
    dueDate: Optional[datetime] = None
    color: Optional[str] = Field(None, max_length=20)

    @field_validator("topic")
    @classmethod
    def validate_topic(cls, v):
        return _strip_required(v, "Topic is required")

    @field_validator("languageId")
    @classmethod
    def blank_language_is_none(cls, v):
        if v is not None and not v.strip():
            return None
        return v


# ============================================================================
# ASSIGNMENT CREATION
# ============================================================================


class AssignmentCreateRequest(BaseModel):
    """Standard assignment, POST /api/assignments"""

    topic: str = Field(..., min_length=1, max_length=255)
    type: AssignmentType
    languageId: Optional[str] = None
    classIds: List[str] = Field(default_factory=list)
    studentIds: List[str] = Field(default_factory=list)
    color: Optional[str] = Field(None, max_length=20)
    vocabularyItems: Optional[List[Any]] = None
    scheduledPublishAt: Optional[datetime] = None
    dueDate: Optional[datetime] = None
    videoUrl: Optional[str] = None
    videoTranscript: Optional[str] = None
    languageAssessmentType: Optional[LanguageAssessmentType] = None
    isIELTS: bool = False
    context: Optional[str] = None
    evaluationSettings: Optional[EvaluationSettingsInput] = None
    questions: List[QuestionInput] = Field(default_factory=list)

    @field_validator("topic")
    @classmethod
    def validate_topic(cls, v):
        return _strip_required(v, "Topic is required")


class VideoQuestionInput(BaseModel):
    text: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)


class VideoAssignmentCreateRequest(ScopedAssignmentInput):
    videoUrl: str
    questions: List[VideoQuestionInput] = Field(..., min_length=1)
    assignToEntireClass: bool
    rules: Optional[List[str]] = None
    feedbackSettings: Optional[FeedbackSettingsInput] = None
    videoTranscript: Optional[str] = None
    hasTranscript: Optional[bool] = None
    analysisResult: Optional[Any] = None

    @field_validator("videoUrl")
    @classmethod
    def validate_video_url(cls, v):
        try:
            _http_url.validate_python(v)
        except PydanticValidationError:
            raise ValueError("Valid video URL is required")
        return v


class ReadingQuestionInput(BaseModel):
    text: str = Field(..., min_length=1)
    answer: Optional[str] = None


class ReadingAssignmentCreateRequest(ScopedAssignmentInput):
    context: str = Field(..., min_length=1)
    questions: List[ReadingQuestionInput] = Field(default_factory=list)
    vocabularyItems: Optional[List[Any]] = None
    feedbackSettings: Optional[FeedbackSettingsInput] = None

    @field_validator("context")
    @classmethod
    def validate_context(cls, v):
        return _strip_required(v, "Reading passage is required")


class PronunciationQuestionInput(BaseModel):
    text: str = Field(..., min_length=1)
    title: Optional[str] = None


class PronunciationAssignmentCreateRequest(ScopedAssignmentInput):
    questions: List[PronunciationQuestionInput] = Field(..., min_length=1)
    accent: Accent = "us"
    feedbackSettings: Optional[FeedbackSettingsInput] = None


class IeltsPassageInput(BaseModel):
    title: Optional[str] = None
    text: str = Field(..., min_length=1)


class IeltsReadingCreateRequest(ScopedAssignmentInput):
    passages: List[IeltsPassageInput] = Field(..., min_length=1)
    questions: List[ReadingQuestionInput] = Field(default_factory=list)
    accent: Accent = "us"
    context: Optional[str] = None


class IeltsPronunciationCreateRequest(ScopedAssignmentInput):
    passages: List[IeltsPassageInput] = Field(..., min_length=1)
    accent: Accent = "us"
    context: Optional[str] = None


class IeltsQuestionInput(BaseModel):
    text: str = Field(..., min_length=1)
    topic: Optional[str] = None
    expectedLevel: LanguageLevel = "intermediate"


class IeltsQuestionAnswerCreateRequest(ScopedAssignmentInput):
    questions: List[IeltsQuestionInput] = Field(..., min_length=1)
    accent: Accent = "us"
    context: Optional[str] = None


# ============================================================================
# ASSIGNMENT UPDATE
# ============================================================================


class AssignmentUpdateRequest(BaseModel):
    """Partial update; only the fields present in the payload are applied"""

    topic: Optional[str] = Field(None, min_length=1, max_length=255)
    color: Optional[str] = Field(None, max_length=20)
    videoUrl: Optional[str] = None
    context: Optional[str] = None
    videoTranscript: Optional[str] = None
    isActive: Optional[bool] = None
    scheduledPublishAt: Optional[datetime] = None
    dueDate: Optional[datetime] = None
    type: Optional[AssignmentType] = None
    languageId: Optional[str] = None
    classIds: Optional[List[str]] = None
    studentIds: Optional[List[str]] = None
    questions: Optional[List[QuestionInput]] = Field(None, min_length=1)
    evaluationSettings: Optional[EvaluationSettingsInput] = None


# ============================================================================
# PROGRESS
# ============================================================================

SubmissionType = Literal["VIDEO", "READING", "PRONUNCIATION", "Q_AND_A"]


class SubmitProgressRequest(BaseModel):
    questionId: str = Field(..., min_length=1)
    isCorrect: StrictBool
    result: Any
    type: SubmissionType

    @field_validator("result")
    @classmethod
    def validate_result(cls, v):
        if v is None or v == "" or v == {} or v == []:
            raise ValueError("Analysis result is required")
        return v


# ============================================================================
# AUDIO ANALYSIS
# ============================================================================


class PronunciationAnalyzeRequest(BaseModel):
    """Speech analysis clients send snake_case keys; camelCase is accepted too"""

    model_config = ConfigDict(populate_by_name=True)

    audioBase64: str = Field(..., min_length=1, alias="audio_base64")
    audioFormat: str = Field("wav", min_length=1, max_length=10, alias="audio_format")
    expectedText: str = Field(..., min_length=1, alias="expected_text")
    accent: Accent = "us"
    rawTranscription: Optional[str] = Field(None, alias="raw_transcription")


class QuestionAnswerAnalyzeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    audioBase64: str = Field(..., min_length=1, alias="audio_base64")
    audioFormat: str = Field("wav", min_length=1, max_length=10, alias="audio_format")
    question: str = Field(..., min_length=1)
    expectedLanguageLevel: LanguageLevel = Field("intermediate", alias="expected_language_level")
    accent: Accent = "us"
    rawTranscription: Optional[str] = Field(None, alias="raw_transcription")


# ============================================================================
# AUTHENTICATION
# ============================================================================


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1, max_length=200)
