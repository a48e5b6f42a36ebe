"""
Response schemas
ORM rows are validated into these models and dumped as camelCase JSON
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from models import (
    ActivityType,
    Assignment,
    AssignmentType,
    EvaluationType,
    LanguageAssessmentType,
    UserRole,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ============================================================================
# ENVELOPES
# ============================================================================


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


def success_response(
    data: Any = None, message: Optional[str] = None, pagination: Optional[Pagination] = None
) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    if pagination is not None:
        body["pagination"] = pagination.to_json()
    return body


# ============================================================================
# USERS AND CLASSES
# ============================================================================


class UserSummary(CamelModel):
    id: str
    username: str
    email: Optional[str] = None
    role: UserRole


class LanguageResponse(CamelModel):
    id: str
    language: str
    code: str


class ClassSummary(CamelModel):
    id: str
    name: str


# ============================================================================
# ASSIGNMENTS
# ============================================================================


class EvaluationSettingsResponse(CamelModel):
    id: str
    type: EvaluationType
    custom_prompt: Optional[str] = None
    rules: Optional[Any] = None
    acceptable_responses: Optional[Any] = None
    feedback_settings: Dict[str, Any] = {}


class QuestionResponse(CamelModel):
    id: str
    order: int
    text_question: Optional[str] = None
    text_answer: Optional[str] = None
    image: Optional[str] = None
    video_url: Optional[str] = None


class AssignmentResponse(CamelModel):
    id: str
    topic: Optional[str] = None
    color: Optional[str] = None
    type: Optional[AssignmentType] = None
    vocabulary_items: Optional[List[Any]] = None
    video_url: Optional[str] = None
    video_transcript: Optional[str] = None
    language_assessment_type: Optional[LanguageAssessmentType] = None
    is_ielts: bool = False
    context: Optional[str] = None
    scheduled_publish_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    is_active: bool
    is_scheduled: bool = False
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    total_students_in_scope: int = 0
    completed_students_count: int = 0
    completion_rate: float = 0.0
    average_score_of_completed: float = 0.0
    teacher: Optional[UserSummary] = None
    language: Optional[LanguageResponse] = None
    evaluation_settings: Optional[EvaluationSettingsResponse] = None
    questions: List[QuestionResponse] = []
    classes: List[ClassSummary] = []
    students: List[UserSummary] = []

    @classmethod
    def from_assignment(cls, assignment: Assignment) -> "AssignmentResponse":
        return cls(
            id=assignment.id,
            topic=assignment.topic,
            color=assignment.color,
            type=assignment.type,
            vocabulary_items=assignment.vocabulary_items,
            video_url=assignment.video_url,
            video_transcript=assignment.video_transcript,
            language_assessment_type=assignment.language_assessment_type,
            is_ielts=assignment.is_ielts,
            context=assignment.context,
            scheduled_publish_at=assignment.scheduled_publish_at,
            due_date=assignment.due_date,
            is_active=assignment.is_active,
            is_scheduled=assignment.is_scheduled,
            published_at=assignment.published_at,
            created_at=assignment.created_at,
            updated_at=assignment.updated_at,
            total_students_in_scope=assignment.total_students_in_scope,
            completed_students_count=assignment.completed_students_count,
            completion_rate=assignment.completion_rate,
            average_score_of_completed=assignment.average_score_of_completed,
            teacher=UserSummary.model_validate(assignment.teacher) if assignment.teacher else None,
            language=LanguageResponse.model_validate(assignment.language) if assignment.language else None,
            evaluation_settings=(
                EvaluationSettingsResponse.model_validate(assignment.evaluation_settings)
                if assignment.evaluation_settings
                else None
            ),
            questions=[QuestionResponse.model_validate(question) for question in assignment.questions],
            classes=[ClassSummary.model_validate(link.school_class) for link in assignment.classes],
            students=[UserSummary.model_validate(link.user) for link in assignment.students],
        )


def serialize_assignment(assignment: Assignment) -> Dict[str, Any]:
    return AssignmentResponse.from_assignment(assignment).to_json()


# ============================================================================
# PROGRESS
# ============================================================================


class ProgressRecordResponse(CamelModel):
    id: str
    student_id: str
    assignment_id: str
    question_id: Optional[str] = None
    is_complete: bool
    is_correct: bool
    submission_type: Optional[str] = None
    language_confidence_response: Optional[Any] = None
    grammar_corrected: Optional[Any] = None
    created_at: datetime
    updated_at: datetime


# ============================================================================
# STATISTICS
# ============================================================================


class AssignmentStatsResponse(CamelModel):
    assignment_id: str
    total_students: int
    completed_students: int
    in_progress_students: int
    not_started_students: int
    completion_rate: float
    average_score: float
    total_questions: int
    total_answers: int
    total_correct_answers: int
    accuracy_rate: float
    last_updated: datetime


class StudentStatsResponse(CamelModel):
    student_id: str
    total_assignments: int
    completed_assignments: int
    in_progress_assignments: int
    not_started_assignments: int
    average_score: float
    total_questions: int
    total_answers: int
    total_correct_answers: int
    accuracy_rate: float
    completion_rate: float
    last_activity_date: Optional[datetime] = None
    last_updated: datetime


class TeacherStatsResponse(CamelModel):
    teacher_id: str
    total_assignments: int
    total_classes: int
    total_students: int
    average_class_completion: float
    average_class_score: float
    total_questions: int
    active_assignments: int
    scheduled_assignments: int
    last_updated: datetime


class ClassStatsResponse(CamelModel):
    class_id: str
    total_students: int
    total_assignments: int
    active_assignments: int
    average_completion: float
    average_score: float
    total_questions: int
    total_answers: int
    total_correct_answers: int
    accuracy_rate: float
    active_students: int
    students_needing_help: int
    last_activity_date: Optional[datetime] = None
    last_updated: datetime


class SchoolStatsResponse(CamelModel):
    date: date
    total_users: int
    total_teachers: int
    total_students: int
    total_classes: int
    total_assignments: int
    active_assignments: int
    scheduled_assignments: int
    completed_assignments: int
    average_completion_rate: float
    average_score: float
    total_questions: int
    total_answers: int
    total_correct_answers: int
    students_needing_help: int
    completed_students: int
    in_progress_students: int
    not_started_students: int
    last_updated: datetime


# ============================================================================
# ACTIVITY LOG
# ============================================================================


class ActivityLogResponse(CamelModel):
    id: str
    type: ActivityType
    user_id: Optional[str] = None
    user: Optional[UserSummary] = None
    assignment_id: Optional[str] = None
    class_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime
