"""
Assignments Service

Creation of every assignment variant, listing, updates and deletion.
Each write runs in one transaction together with the statistics it affects.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple, Union

from sqlalchemy.orm import Session

from db import transaction
from models import (
    ActivityLog,
    ActivityType,
    Assignment,
    AssignmentType,
    ClassAssignment,
    EvaluationSettings,
    EvaluationType,
    Language,
    LanguageAssessmentType,
    Question,
    SchoolClass,
    StudentAssignmentProgress,
    User,
    UserAssignment,
    UserRole,
)
from schemas.api_models import Pagination, serialize_assignment
from schemas.validation import (
    AssignmentCreateRequest,
    AssignmentUpdateRequest,
    FeedbackSettingsInput,
    IeltsPronunciationCreateRequest,
    IeltsQuestionAnswerCreateRequest,
    IeltsReadingCreateRequest,
    PronunciationAssignmentCreateRequest,
    ReadingAssignmentCreateRequest,
    VideoAssignmentCreateRequest,
)
from utils import statistics
from utils.auth import can_access_assignment, can_manage_assignment
from utils.error_handling import ForbiddenError, ValidationError, validate_resource_exists
from utils.scope import (
    get_assignment_class_ids,
    get_assignment_student_ids,
    get_classes_of_students,
    get_student_assignment_ids,
)
from utils.scoring import (
    IN_PROGRESS,
    load_assignment_summaries,
    mean,
    percentage,
    round_half_up,
    summarize_student_progress,
)
from utils.structured_logging import get_logger

logger = get_logger("services.assignments")

ENGLISH_LANGUAGE_CODES = ("en", "en-US")

IELTS_READING_COLOR = "#10B981"
IELTS_PRONUNCIATION_COLOR = "#8B5CF6"
IELTS_QA_COLOR = "#22C55E"

STATUS_PUBLISHED = "PUBLISHED"
STATUS_DRAFT = "DRAFT"
STATUS_SCHEDULED = "SCHEDULED"


@dataclass
class AssignmentDraft:
    """Normalised creation input every variant builder produces"""

    topic: str
    type: AssignmentType
    language_id: Optional[str] = None
    class_ids: List[str] = field(default_factory=list)
    student_ids: List[str] = field(default_factory=list)
    color: Optional[str] = None
    vocabulary_items: Optional[List[Any]] = None
    scheduled_publish_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    video_url: Optional[str] = None
    video_transcript: Optional[str] = None
    language_assessment_type: Optional[LanguageAssessmentType] = None
    is_ielts: bool = False
    context: Optional[str] = None
    # keys: type, custom_prompt, rules, acceptable_responses, feedback_settings
    evaluation: Optional[Dict[str, Any]] = None
    # keys: text_question, text_answer, image, video_url
    questions: List[Dict[str, Any]] = field(default_factory=list)


# ============================================================================
# HELPERS
# ============================================================================


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive UTC"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def find_english_language(db: Session) -> Optional[Language]:
    return (
        db.query(Language)
        .filter(Language.code.in_(list(ENGLISH_LANGUAGE_CODES)))
        .order_by(Language.code)
        .first()
    )


def _resolve_language_id(db: Session, language_id: Optional[str]) -> Optional[str]:
    if language_id:
        if db.get(Language, language_id) is None:
            raise ValidationError("Language not found", details={"languageId": language_id})
        return language_id
    english = find_english_language(db)
    return english.id if english else None


def _assignment_type(assign_to_entire_class: bool) -> AssignmentType:
    return AssignmentType.CLASS if assign_to_entire_class else AssignmentType.INDIVIDUAL


def _feedback_settings(feedback: Optional[FeedbackSettingsInput], **extra) -> Dict[str, Any]:
    settings = (feedback or FeedbackSettingsInput()).model_dump()
    settings.update(extra)
    return settings


def _is_future(moment: Optional[datetime], now: datetime) -> bool:
    return moment is not None and moment > now


def _check_links(db: Session, class_ids: List[str], student_ids: List[str]) -> None:
    if class_ids:
        found = {row[0] for row in db.query(SchoolClass.id).filter(SchoolClass.id.in_(class_ids)).all()}
        missing = sorted(set(class_ids) - found)
        if missing:
            raise ValidationError("Class not found", details={"classIds": missing})
    if student_ids:
        found = {row[0] for row in db.query(User.id).filter(User.id.in_(student_ids)).all()}
        missing = sorted(set(student_ids) - found)
        if missing:
            raise ValidationError("Student not found", details={"studentIds": missing})


def _log_activity(db: Session, activity: ActivityType, user: User, assignment_id: str, **details) -> None:
    db.add(ActivityLog(type=activity, user_id=user.id, assignment_id=assignment_id, details=details or None))


def _dedupe(ids: List[str]) -> List[str]:
    return list(dict.fromkeys(ids))


# ============================================================================
# VARIANT BUILDERS
# ============================================================================


def draft_from_request(db: Session, payload: AssignmentCreateRequest) -> AssignmentDraft:
    evaluation = None
    if payload.evaluationSettings is not None:
        settings = payload.evaluationSettings
        evaluation = {
            "type": settings.type,
            "custom_prompt": settings.customPrompt,
            "rules": settings.rules,
            "acceptable_responses": settings.acceptableResponses,
            "feedback_settings": settings.feedbackSettings or {},
        }
    return AssignmentDraft(
        topic=payload.topic,
        type=payload.type,
        language_id=_resolve_language_id(db, payload.languageId),
        class_ids=payload.classIds,
        student_ids=payload.studentIds,
        color=payload.color,
        vocabulary_items=payload.vocabularyItems,
        scheduled_publish_at=payload.scheduledPublishAt,
        due_date=payload.dueDate,
        video_url=payload.videoUrl,
        video_transcript=payload.videoTranscript,
        language_assessment_type=payload.languageAssessmentType,
        is_ielts=payload.isIELTS,
        context=payload.context,
        evaluation=evaluation,
        questions=[
            {
                "text_question": question.textQuestion,
                "text_answer": question.textAnswer,
                "image": question.image,
                "video_url": question.videoUrl,
            }
            for question in payload.questions
        ],
    )


def build_video_assignment(db: Session, payload: VideoAssignmentCreateRequest) -> AssignmentDraft:
    return AssignmentDraft(
        topic=payload.topic,
        type=_assignment_type(payload.assignToEntireClass),
        language_id=_resolve_language_id(db, payload.languageId),
        class_ids=payload.classIds,
        student_ids=[] if payload.assignToEntireClass else payload.studentIds,
        color=payload.color,
        scheduled_publish_at=payload.scheduledPublishAt,
        due_date=payload.dueDate,
        video_url=payload.videoUrl,
        video_transcript=payload.videoTranscript if payload.hasTranscript is not False else None,
        evaluation={
            "type": EvaluationType.VIDEO,
            "custom_prompt": "",
            "rules": payload.rules or [],
            "acceptable_responses": [],
            "feedback_settings": _feedback_settings(payload.feedbackSettings),
        },
        questions=[
            {"text_question": question.text, "text_answer": question.answer, "video_url": payload.videoUrl}
            for question in payload.questions
        ],
    )


def build_reading_assignment(db: Session, payload: ReadingAssignmentCreateRequest) -> AssignmentDraft:
    """Reading needs a language; the passage becomes the only question when none are given"""
    language_id = _resolve_language_id(db, payload.languageId)
    if language_id is None:
        raise ValidationError("English language not found. Please create it before adding reading assignments")

    questions = [{"text_question": question.text, "text_answer": question.answer} for question in payload.questions]
    if not questions:
        questions = [{"text_question": payload.context, "text_answer": None}]

    return AssignmentDraft(
        topic=payload.topic,
        type=_assignment_type(payload.assignToEntireClass),
        language_id=language_id,
        class_ids=payload.classIds,
        student_ids=[] if payload.assignToEntireClass else payload.studentIds,
        color=payload.color,
        vocabulary_items=payload.vocabularyItems,
        scheduled_publish_at=payload.scheduledPublishAt,
        due_date=payload.dueDate,
        language_assessment_type=LanguageAssessmentType.SCRIPTED_US,
        context=payload.context,
        evaluation={
            "type": EvaluationType.READING,
            "rules": [],
            "acceptable_responses": [],
            "feedback_settings": _feedback_settings(payload.feedbackSettings),
        },
        questions=questions,
    )


def build_pronunciation_assignment(db: Session, payload: PronunciationAssignmentCreateRequest) -> AssignmentDraft:
    assessment = (
        LanguageAssessmentType.PRONUNCIATION_UK if payload.accent == "uk" else LanguageAssessmentType.PRONUNCIATION_US
    )
    return AssignmentDraft(
        topic=payload.topic,
        type=_assignment_type(payload.assignToEntireClass),
        language_id=_resolve_language_id(db, payload.languageId),
        class_ids=payload.classIds,
        student_ids=[] if payload.assignToEntireClass else payload.studentIds,
        color=payload.color,
        scheduled_publish_at=payload.scheduledPublishAt,
        due_date=payload.dueDate,
        language_assessment_type=assessment,
        evaluation={
            "type": EvaluationType.PRONUNCIATION,
            "rules": [],
            "acceptable_responses": [],
            "feedback_settings": _feedback_settings(payload.feedbackSettings, accent=payload.accent),
        },
        # The title is shown to the student, the text is what gets read aloud
        questions=[
            {"text_question": question.title or "", "text_answer": question.text} for question in payload.questions
        ],
    )


def build_ielts_reading_assignment(db: Session, payload: IeltsReadingCreateRequest) -> AssignmentDraft:
    assessment = LanguageAssessmentType.SCRIPTED_UK if payload.accent == "uk" else LanguageAssessmentType.SCRIPTED_US
    questions = [
        {"text_question": passage.title or f"Passage {index}", "text_answer": passage.text}
        for index, passage in enumerate(payload.passages, start=1)
    ]
    questions.extend({"text_question": question.text, "text_answer": question.answer} for question in payload.questions)
    return AssignmentDraft(
        topic=payload.topic,
        type=_assignment_type(payload.assignToEntireClass),
        language_id=_resolve_language_id(db, payload.languageId),
        class_ids=payload.classIds,
        student_ids=[] if payload.assignToEntireClass else payload.studentIds,
        color=payload.color or IELTS_READING_COLOR,
        scheduled_publish_at=payload.scheduledPublishAt,
        due_date=payload.dueDate,
        language_assessment_type=assessment,
        is_ielts=True,
        context=payload.context or "\n\n".join(passage.text for passage in payload.passages),
        evaluation={
            "type": EvaluationType.READING,
            "rules": [],
            "acceptable_responses": [],
            "feedback_settings": _feedback_settings(None, accent=payload.accent, scoringCriteria="ielts"),
        },
        questions=questions,
    )


def build_ielts_pronunciation_assignment(db: Session, payload: IeltsPronunciationCreateRequest) -> AssignmentDraft:
    assessment = (
        LanguageAssessmentType.PRONUNCIATION_UK if payload.accent == "uk" else LanguageAssessmentType.PRONUNCIATION_US
    )
    return AssignmentDraft(
        topic=payload.topic,
        type=_assignment_type(payload.assignToEntireClass),
        language_id=_resolve_language_id(db, payload.languageId),
        class_ids=payload.classIds,
        student_ids=[] if payload.assignToEntireClass else payload.studentIds,
        color=payload.color or IELTS_PRONUNCIATION_COLOR,
        scheduled_publish_at=payload.scheduledPublishAt,
        due_date=payload.dueDate,
        language_assessment_type=assessment,
        is_ielts=True,
        context=payload.context,
        evaluation={
            "type": EvaluationType.PRONUNCIATION,
            "rules": [],
            "acceptable_responses": [],
            "feedback_settings": _feedback_settings(None, accent=payload.accent, scoringCriteria="ielts"),
        },
        questions=[
            {"text_question": passage.title or f"Passage {index}", "text_answer": passage.text}
            for index, passage in enumerate(payload.passages, start=1)
        ],
    )


def build_ielts_qa_assignment(db: Session, payload: IeltsQuestionAnswerCreateRequest) -> AssignmentDraft:
    assessment = (
        LanguageAssessmentType.UNSCRIPTED_UK if payload.accent == "uk" else LanguageAssessmentType.UNSCRIPTED_US
    )
    return AssignmentDraft(
        topic=payload.topic,
        type=_assignment_type(payload.assignToEntireClass),
        language_id=_resolve_language_id(db, payload.languageId),
        class_ids=payload.classIds,
        student_ids=[] if payload.assignToEntireClass else payload.studentIds,
        color=payload.color or IELTS_QA_COLOR,
        scheduled_publish_at=payload.scheduledPublishAt,
        due_date=payload.dueDate,
        language_assessment_type=assessment,
        is_ielts=True,
        context=payload.context,
        evaluation={
            "type": EvaluationType.Q_AND_A,
            "custom_prompt": payload.context,
            "rules": {
                "questions": [
                    {"index": index, "topic": question.topic, "expectedLevel": question.expectedLevel}
                    for index, question in enumerate(payload.questions)
                ]
            },
            "acceptable_responses": [],
            "feedback_settings": _feedback_settings(None, accent=payload.accent, scoringCriteria="ielts"),
        },
        questions=[{"text_question": question.text, "text_answer": None} for question in payload.questions],
    )


# ============================================================================
# CREATE
# ============================================================================


def create_assignment(
    db: Session, user: User, data: Union[AssignmentDraft, AssignmentCreateRequest]
) -> Assignment:
    """
    Create an assignment with its settings, questions and scope links.

    The assignment starts inactive when it is scheduled for the future.
    Statistics for the assignment, every student now in scope, their
    classes, today's school row and the teacher are initialised in the same
    transaction.
    """
    if user.role not in (UserRole.TEACHER, UserRole.ADMIN):
        raise ForbiddenError("Only teachers and admins can create assignments")
    draft = data if isinstance(data, AssignmentDraft) else draft_from_request(db, data)

    class_ids = _dedupe(draft.class_ids)
    student_ids = _dedupe(draft.student_ids)
    if draft.language_id and db.get(Language, draft.language_id) is None:
        raise ValidationError("Language not found", details={"languageId": draft.language_id})
    _check_links(db, class_ids, student_ids)

    now = datetime.utcnow()
    scheduled_publish_at = to_naive_utc(draft.scheduled_publish_at)

    with transaction(db):
        assignment = Assignment(
            topic=draft.topic,
            type=draft.type,
            color=draft.color,
            vocabulary_items=draft.vocabulary_items,
            video_url=draft.video_url,
            video_transcript=draft.video_transcript,
            language_assessment_type=draft.language_assessment_type,
            is_ielts=draft.is_ielts,
            context=draft.context,
            scheduled_publish_at=scheduled_publish_at,
            due_date=to_naive_utc(draft.due_date),
            is_active=not _is_future(scheduled_publish_at, now),
            published_at=now,
            teacher_id=user.id,
            language_id=draft.language_id,
        )
        db.add(assignment)

        if draft.evaluation is not None:
            evaluation = dict(draft.evaluation)
            evaluation["feedback_settings"] = evaluation.get("feedback_settings") or {}
            assignment.evaluation_settings = EvaluationSettings(**evaluation)
        for order, question in enumerate(draft.questions):
            assignment.questions.append(Question(order=order, **question))
        for class_id in class_ids:
            assignment.classes.append(ClassAssignment(class_id=class_id))
        for student_id in student_ids:
            assignment.students.append(UserAssignment(user_id=student_id))
        db.flush()

        activity = (
            ActivityType.ASSIGNMENT_CREATED
            if draft.type == AssignmentType.CLASS
            else ActivityType.INDIVIDUAL_ASSIGNMENT_CREATED
        )
        _log_activity(db, activity, user, assignment.id, topic=assignment.topic)

        _initialize_statistics(db, assignment, len(draft.questions))

    logger.business(
        "assignment_created",
        f"Assignment created: {assignment.topic}",
        user_id=user.id,
        assignment_id=assignment.id,
        assignment_type=draft.type.value,
        is_active=assignment.is_active,
        classes=len(class_ids),
        students=len(student_ids),
    )
    return assignment


def _initialize_statistics(db: Session, assignment: Assignment, question_count: int) -> None:
    statistics.recalculate_assignment_statistics(db, assignment)
    student_ids = get_assignment_student_ids(db, assignment.id)
    transitions = []
    for student_id in sorted(student_ids):
        before = statistics.student_overall_status(statistics.get_student_statistics(db, student_id))
        after = statistics.student_overall_status(statistics.increment_student_assignment_count(db, student_id))
        transitions.append((before, after))
    for class_id in sorted(get_assignment_class_ids(db, assignment.id) | get_classes_of_students(db, student_ids)):
        statistics.update_class_statistics(db, class_id)
    statistics.increment_school_assignment_count(
        db,
        is_active=assignment.is_active,
        is_scheduled=assignment.is_scheduled,
        question_count=question_count,
        student_transitions=transitions,
    )
    statistics.update_teacher_statistics(db, assignment.teacher_id)


# ============================================================================
# READ
# ============================================================================


def get_assignment(db: Session, user: User, assignment_id: str) -> Assignment:
    assignment = validate_resource_exists(db.get(Assignment, assignment_id), "Assignment", assignment_id)
    if not can_access_assignment(db, user, assignment):
        raise ForbiddenError("Cannot access this assignment")
    if user.role == UserRole.STUDENT and not assignment.is_active:
        raise ForbiddenError("This assignment has not been published yet")
    return assignment


def _role_filtered_query(db: Session, user: User, active_only_for_students: bool = True):
    query = db.query(Assignment)
    if user.role == UserRole.TEACHER:
        return query.filter(Assignment.teacher_id == user.id)
    if user.role == UserRole.STUDENT:
        assignment_ids = get_student_assignment_ids(db, user.id, active_only=active_only_for_students)
        return query.filter(Assignment.id.in_(list(assignment_ids)))
    if user.role == UserRole.ADMIN:
        return query
    raise ForbiddenError("Cannot list assignments")


def _ordered(query):
    return query.order_by(Assignment.scheduled_publish_at.asc().nulls_last(), Assignment.created_at.desc())


def list_assignments(
    db: Session,
    user: User,
    page: int = 1,
    limit: int = 50,
    class_id: Optional[str] = None,
    search: Optional[str] = None,
    status: Optional[str] = None,
    assignment_type: Optional[AssignmentType] = None,
    language_id: Optional[str] = None,
    teacher_id: Optional[str] = None,
    published_from: Optional[datetime] = None,
    published_to: Optional[datetime] = None,
) -> Tuple[List[Assignment], Pagination]:
    """
    Teachers see their own assignments, students the active ones in their
    scope, admins everything. Ordered by scheduled publish time, then newest.
    """
    query = _role_filtered_query(db, user)

    if class_id:
        query = query.filter(Assignment.classes.any(ClassAssignment.class_id == class_id))
    if search:
        query = query.filter(Assignment.topic.ilike(f"%{search.strip()}%"))
    if assignment_type is not None:
        query = query.filter(Assignment.type == assignment_type)
    if language_id:
        query = query.filter(Assignment.language_id == language_id)
    if teacher_id:
        query = query.filter(Assignment.teacher_id == teacher_id)
    if published_from is not None:
        query = query.filter(Assignment.published_at >= to_naive_utc(published_from))
    if published_to is not None:
        query = query.filter(Assignment.published_at <= to_naive_utc(published_to))

    if status == STATUS_PUBLISHED:
        query = query.filter(Assignment.is_active.is_(True))
    elif status == STATUS_DRAFT:
        query = query.filter(Assignment.is_active.is_(False))
    elif status == STATUS_SCHEDULED:
        query = query.filter(
            Assignment.is_active.is_(False),
            Assignment.scheduled_publish_at.isnot(None),
            Assignment.scheduled_publish_at > datetime.utcnow(),
        )
    elif status is not None:
        raise ValidationError(f"Unknown status filter: {status}")

    total = query.count()
    assignments = _ordered(query).offset((page - 1) * limit).limit(limit).all()
    pagination = Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit) if limit else 0)
    return assignments, pagination


def get_my_assignments(db: Session, user: User, status: str = "active") -> List[Assignment]:
    """Dashboard listing: ``active`` or ``scheduled`` assignments for the current user"""
    query = _role_filtered_query(db, user, active_only_for_students=False)
    if status == "active":
        query = query.filter(Assignment.is_active.is_(True))
    elif status == "scheduled":
        if user.role == UserRole.STUDENT:
            raise ForbiddenError("Students cannot see scheduled assignments")
        query = query.filter(Assignment.is_active.is_(False), Assignment.scheduled_publish_at.isnot(None))
    else:
        raise ValidationError(f"Unknown status filter: {status}")
    return _ordered(query).all()


def _calendar_ordered(query):
    return query.order_by(
        Assignment.due_date.asc().nulls_last(),
        Assignment.scheduled_publish_at.asc().nulls_last(),
        Assignment.created_at.desc(),
    )


def get_student_calendar(db: Session, user: User) -> List[Dict[str, Any]]:
    """A student's active assignments by due date, each with the student's own progress"""
    if user.role != UserRole.STUDENT:
        raise ForbiddenError("This endpoint is only for students")

    assignment_ids = get_student_assignment_ids(db, user.id, active_only=True)
    if not assignment_ids:
        return []
    assignments = _calendar_ordered(db.query(Assignment).filter(Assignment.id.in_(list(assignment_ids)))).all()
    records: Dict[str, List[StudentAssignmentProgress]] = {}
    for record in (
        db.query(StudentAssignmentProgress)
        .filter(
            StudentAssignmentProgress.student_id == user.id,
            StudentAssignmentProgress.assignment_id.in_(list(assignment_ids)),
        )
        .all()
    ):
        records.setdefault(record.assignment_id, []).append(record)

    calendar = []
    for assignment in assignments:
        own_records = records.get(assignment.id, [])
        summary = summarize_student_progress([question.id for question in assignment.questions], own_records)
        entry = serialize_assignment(assignment)
        entry["progress"] = {
            "completed": summary.is_complete,
            "completedQuestions": summary.completed_questions,
            "totalQuestions": summary.total_questions,
            "score": summary.accuracy_rate if summary.completed_questions else None,
            "hasStarted": bool(own_records),
        }
        calendar.append(entry)
    return calendar


def get_teacher_calendar(db: Session, user: User) -> List[Dict[str, Any]]:
    """Every assignment the teacher owns by due date, with how far its students have got"""
    if user.role != UserRole.TEACHER:
        raise ForbiddenError("This endpoint is only for teachers")

    calendar = []
    for assignment in _calendar_ordered(db.query(Assignment).filter(Assignment.teacher_id == user.id)).all():
        question_ids = [question.id for question in assignment.questions]
        scope = get_assignment_student_ids(db, assignment.id)
        summaries = {
            student_id: summary
            for student_id, summary in load_assignment_summaries(db, assignment.id, question_ids).items()
            if student_id in scope
        }
        completed = [summary for summary in summaries.values() if summary.is_complete]
        in_progress = [summary for summary in summaries.values() if summary.status == IN_PROGRESS]
        entry = serialize_assignment(assignment)
        entry["stats"] = {
            "totalAssignedStudents": len(scope),
            "completedCount": len(completed),
            "inProgressCount": len(in_progress),
            "notStartedCount": len(scope) - len(completed) - len(in_progress),
            "completionRate": percentage(len(completed), len(scope)),
            "averageScore": round_half_up(mean(summary.accuracy_rate for summary in completed)) if completed else None,
        }
        calendar.append(entry)
    return calendar


# ============================================================================
# UPDATE
# ============================================================================

_UPDATABLE_FIELDS = {
    "topic": "topic",
    "color": "color",
    "videoUrl": "video_url",
    "context": "context",
    "videoTranscript": "video_transcript",
    "type": "type",
}


def _sync_questions(db: Session, assignment: Assignment, payload: AssignmentUpdateRequest) -> None:
    """Update questions by id, create new ones and delete the ones left out"""
    existing = {question.id: question for question in assignment.questions}
    kept: Set[str] = set()
    for order, item in enumerate(payload.questions):
        question = existing.get(item.id) if item.id else None
        if question is None:
            question = Question(assignment_id=assignment.id)
            db.add(question)
        else:
            kept.add(question.id)
        question.order = order
        question.text_question = item.textQuestion
        question.text_answer = item.textAnswer
        question.image = item.image
        question.video_url = item.videoUrl

    for question_id, question in existing.items():
        if question_id not in kept:
            db.delete(question)
    db.flush()
    db.expire(assignment, ["questions"])


def _replace_links(db: Session, assignment: Assignment, payload: AssignmentUpdateRequest, fields: Set[str]) -> None:
    if "classIds" in fields and payload.classIds is not None:
        db.query(ClassAssignment).filter(ClassAssignment.assignment_id == assignment.id).delete(
            synchronize_session=False
        )
        for class_id in _dedupe(payload.classIds):
            db.add(ClassAssignment(assignment_id=assignment.id, class_id=class_id))
        db.flush()
        db.expire(assignment, ["classes"])
    if "studentIds" in fields and payload.studentIds is not None:
        db.query(UserAssignment).filter(UserAssignment.assignment_id == assignment.id).delete(
            synchronize_session=False
        )
        for student_id in _dedupe(payload.studentIds):
            db.add(UserAssignment(assignment_id=assignment.id, user_id=student_id))
        db.flush()
        db.expire(assignment, ["students"])


def update_assignment(db: Session, user: User, assignment_id: str, payload: AssignmentUpdateRequest) -> Assignment:
    """
    Apply a partial update. Only the fields present in the payload change.

    An assignment scheduled in the future is always inactive. Statistics of
    every student in the old or new scope, their classes, today's school row
    and the teacher are recalculated in the same transaction.
    """
    fields = payload.model_fields_set

    with transaction(db):
        assignment = validate_resource_exists(db.get(Assignment, assignment_id), "Assignment", assignment_id)
        if not can_manage_assignment(user, assignment):
            raise ForbiddenError("Cannot modify this assignment")

        if "languageId" in fields:
            assignment.language_id = _resolve_language_id(db, payload.languageId)
        _check_links(
            db,
            payload.classIds if "classIds" in fields and payload.classIds else [],
            payload.studentIds if "studentIds" in fields and payload.studentIds else [],
        )

        students_before = get_assignment_student_ids(db, assignment.id)
        classes_before = get_assignment_class_ids(db, assignment.id)

        for payload_field, column in _UPDATABLE_FIELDS.items():
            if payload_field in fields:
                value = getattr(payload, payload_field)
                if payload_field in ("topic", "type") and value is None:
                    raise ValidationError(f"{payload_field} cannot be null")
                setattr(assignment, column, value)
        if "dueDate" in fields:
            assignment.due_date = to_naive_utc(payload.dueDate)
        if "scheduledPublishAt" in fields:
            assignment.scheduled_publish_at = to_naive_utc(payload.scheduledPublishAt)
        if "isActive" in fields and payload.isActive is not None:
            assignment.is_active = payload.isActive
            if payload.isActive and assignment.published_at is None:
                assignment.published_at = datetime.utcnow()

        now = datetime.utcnow()
        if _is_future(assignment.scheduled_publish_at, now):
            assignment.is_active = False

        if "evaluationSettings" in fields and payload.evaluationSettings is not None:
            settings = payload.evaluationSettings
            evaluation = assignment.evaluation_settings
            if evaluation is None:
                evaluation = EvaluationSettings(assignment_id=assignment.id)
                db.add(evaluation)
            evaluation.type = settings.type
            evaluation.custom_prompt = settings.customPrompt
            evaluation.rules = settings.rules
            evaluation.acceptable_responses = settings.acceptableResponses
            evaluation.feedback_settings = settings.feedbackSettings or {}

        if "questions" in fields and payload.questions is not None:
            _sync_questions(db, assignment, payload)
        _replace_links(db, assignment, payload, fields)

        assignment.updated_at = now
        _log_activity(db, ActivityType.ASSIGNMENT_UPDATED, user, assignment.id, fields=sorted(fields))
        db.flush()

        statistics.recalculate_assignment_statistics(db, assignment)
        affected_students = students_before | get_assignment_student_ids(db, assignment.id)
        for student_id in sorted(affected_students):
            statistics.recalculate_student_statistics(db, student_id)
        affected_classes = (
            classes_before | get_assignment_class_ids(db, assignment.id) | get_classes_of_students(db, affected_students)
        )
        for class_id in sorted(affected_classes):
            statistics.update_class_statistics(db, class_id)
        statistics.update_school_statistics(db)
        statistics.update_teacher_statistics(db, assignment.teacher_id)

    logger.business(
        "assignment_updated",
        f"Assignment updated: {assignment.topic}",
        user_id=user.id,
        assignment_id=assignment.id,
        fields=sorted(fields),
    )
    return assignment


# ============================================================================
# DELETE
# ============================================================================


def delete_assignment(db: Session, user: User, assignment_id: str) -> None:
    """
    Delete an assignment with everything hanging off it.

    Students in scope or with progress are recalculated first, then their
    classes, then today's school row and the teacher.
    """
    with transaction(db):
        assignment = validate_resource_exists(db.get(Assignment, assignment_id), "Assignment", assignment_id)
        if not can_manage_assignment(user, assignment):
            owner = assignment.teacher.username if assignment.teacher else "its teacher"
            raise ForbiddenError(f"Only {owner} or an admin can delete this assignment")

        progress_students = {
            row[0]
            for row in db.query(StudentAssignmentProgress.student_id)
            .filter(StudentAssignmentProgress.assignment_id == assignment.id)
            .distinct()
            .all()
        }
        affected_students = get_assignment_student_ids(db, assignment.id) | progress_students
        affected_classes = get_assignment_class_ids(db, assignment.id) | get_classes_of_students(db, affected_students)
        teacher_id = assignment.teacher_id
        topic = assignment.topic

        _log_activity(db, ActivityType.ASSIGNMENT_DELETED, user, assignment.id, topic=topic)
        db.delete(assignment)
        db.flush()

        for student_id in sorted(affected_students):
            statistics.recalculate_student_statistics(db, student_id)
        for class_id in sorted(affected_classes):
            statistics.update_class_statistics(db, class_id)
        statistics.update_school_statistics(db)
        statistics.update_teacher_statistics(db, teacher_id)

    logger.business(
        "assignment_deleted",
        f"Assignment deleted: {topic}",
        user_id=user.id,
        assignment_id=assignment_id,
        affected_students=len(affected_students),
    )
