"""
Student progress: submissions and progress reports
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from db import transaction
from models import Assignment, StudentAssignmentProgress, User, UserRole
from schemas.api_models import ProgressRecordResponse, UserSummary
from schemas.validation import SubmitProgressRequest
from utils import statistics
from utils.auth import can_access_assignment, can_manage_assignment
from utils.error_handling import ForbiddenError, NotFoundError, validate_resource_exists
from utils.scope import get_assignment_student_ids, get_question_ids, get_student_class_ids, student_in_scope
from utils.scoring import (
    latest_by_question,
    load_student_summary,
    percentage,
    round_half_up,
    summarize_student_progress,
)
from utils.structured_logging import get_logger

logger = get_logger("services.progress")


def _serialize_record(record: StudentAssignmentProgress) -> Dict[str, Any]:
    return ProgressRecordResponse.model_validate(record).to_json()


def _question_progress(question, record: Optional[StudentAssignmentProgress]) -> Dict[str, Any]:
    return {
        "questionId": question.id,
        "questionText": question.text_question,
        "isComplete": bool(record and record.is_complete),
        "isCorrect": bool(record and record.is_correct),
        "submittedAt": record.updated_at.isoformat() if record else None,
    }


def submit_student_progress(
    db: Session, user: User, assignment_id: str, payload: SubmitProgressRequest
) -> Dict[str, Any]:
    """
    Record a student's answer to one question and cascade the statistics.

    The progress upsert and every rollup update share one transaction:
    assignment, then student, then the student's classes, then today's
    school row, then the owning teacher.
    """
    if user.role != UserRole.STUDENT:
        raise ForbiddenError("Only students can submit progress")

    with transaction(db):
        assignment = validate_resource_exists(db.get(Assignment, assignment_id), "Assignment", assignment_id)
        if not student_in_scope(db, user.id, assignment.id):
            raise ForbiddenError("You do not have access to this assignment")
        if not assignment.is_active:
            raise ForbiddenError("This assignment has not been published yet")

        question_ids = get_question_ids(db, assignment.id)
        if payload.questionId not in question_ids:
            raise NotFoundError("Question not found in this assignment")

        # Rollups must exist before the write so the deltas land on them
        assignment_stats = statistics.get_or_create_assignment_statistics(db, assignment)
        student_stats = statistics.get_or_create_student_statistics(db, user.id)
        statistics.get_or_create_school_statistics(db)
        assignment_completed_before = statistics.assignment_fully_completed(assignment_stats)
        student_status_before = statistics.student_overall_status(student_stats)

        before = load_student_summary(db, user.id, assignment.id, question_ids)

        record = (
            db.query(StudentAssignmentProgress)
            .filter(
                StudentAssignmentProgress.student_id == user.id,
                StudentAssignmentProgress.assignment_id == assignment.id,
                StudentAssignmentProgress.question_id == payload.questionId,
            )
            .order_by(StudentAssignmentProgress.updated_at.desc())
            .first()
        )
        is_new_submission = record is None
        if is_new_submission:
            record = StudentAssignmentProgress(
                student_id=user.id,
                assignment_id=assignment.id,
                question_id=payload.questionId,
            )
            db.add(record)

        record.is_complete = True
        record.is_correct = payload.isCorrect
        record.submission_type = payload.type
        record.language_confidence_response = payload.result
        record.updated_at = datetime.utcnow()
        db.flush()

        after = load_student_summary(db, user.id, assignment.id, question_ids)

        assignment_stats = statistics.update_assignment_statistics(db, assignment, before, after)
        student_stats = statistics.update_student_statistics(db, user.id, before, after)
        for class_id in sorted(get_student_class_ids(db, user.id)):
            statistics.update_class_statistics(db, class_id)
        statistics.apply_submission_to_school_statistics(
            db,
            before,
            after,
            student_status_before=student_status_before,
            student_status_after=statistics.student_overall_status(student_stats),
            assignment_completed_before=assignment_completed_before,
            assignment_completed_after=statistics.assignment_fully_completed(assignment_stats),
        )
        statistics.update_teacher_statistics(db, assignment.teacher_id)

    logger.business(
        "progress_submitted",
        f"Progress submitted for assignment {assignment_id}",
        user_id=user.id,
        assignment_id=assignment_id,
        question_id=payload.questionId,
        is_correct=payload.isCorrect,
        is_new_submission=is_new_submission,
    )
    return {
        "progress": _serialize_record(record),
        "assignmentProgress": after.to_dict(),
        "isNewSubmission": is_new_submission,
    }


def get_assignment_progress_report(db: Session, user: User, assignment_id: str) -> Dict[str, Any]:
    """Per-student progress on an assignment, each question counted once"""
    assignment = validate_resource_exists(db.get(Assignment, assignment_id), "Assignment", assignment_id)
    if not can_access_assignment(db, user, assignment):
        raise ForbiddenError("Cannot access this assignment")

    if user.role == UserRole.STUDENT:
        student_ids = {user.id}
    elif can_manage_assignment(user, assignment):
        student_ids = get_assignment_student_ids(db, assignment.id)
    else:
        raise ForbiddenError("Only the assignment's teacher can view class progress")

    question_ids = [question.id for question in assignment.questions]
    students = db.query(User).filter(User.id.in_(list(student_ids))).all() if student_ids else []
    records = (
        db.query(StudentAssignmentProgress)
        .filter(
            StudentAssignmentProgress.assignment_id == assignment.id,
            StudentAssignmentProgress.student_id.in_(list(student_ids)),
        )
        .all()
        if student_ids
        else []
    )
    by_student: Dict[str, List[StudentAssignmentProgress]] = {}
    for record in records:
        by_student.setdefault(record.student_id, []).append(record)

    rows = []
    for student in students:
        student_records = by_student.get(student.id, [])
        latest = latest_by_question(student_records, question_ids)
        summary = summarize_student_progress(question_ids, student_records)
        last_activity = max((record.updated_at for record in latest.values()), default=None)
        rows.append(
            {
                "student": UserSummary.model_validate(student).to_json(),
                "stats": {
                    "totalQuestions": summary.total_questions,
                    "completedQuestions": summary.completed_questions,
                    "correctAnswers": summary.correct_answers,
                    "completionRate": round_half_up(summary.completion_rate),
                    "accuracyRate": round_half_up(summary.accuracy_rate),
                    "isComplete": summary.is_complete,
                    "lastActivity": last_activity.isoformat() if last_activity else None,
                },
                "questionProgress": [
                    _question_progress(question, latest.get(question.id)) for question in assignment.questions
                ],
            }
        )

    rows.sort(
        key=lambda row: (
            not row["stats"]["isComplete"],
            -row["stats"]["completionRate"],
            row["student"]["username"].lower(),
        )
    )

    started = [row for row in rows if row["stats"]["completedQuestions"] > 0]
    completed = [row for row in rows if row["stats"]["isComplete"]]
    accuracies = [row["stats"]["accuracyRate"] for row in started]
    return {
        "assignment": {
            "id": assignment.id,
            "topic": assignment.topic,
            "totalQuestions": len(question_ids),
            "questions": [
                {"id": question.id, "textQuestion": question.text_question} for question in assignment.questions
            ],
        },
        "studentProgress": rows,
        "overallStats": {
            "totalStudents": len(rows),
            "studentsStarted": len(started),
            "studentsCompleted": len(completed),
            "completionRate": round_half_up(percentage(len(completed), len(rows))),
            "averageAccuracy": round_half_up(sum(accuracies) / len(accuracies)) if accuracies else 0,
        },
    }


def get_student_progress(db: Session, user: User, assignment_id: str, student_id: str) -> Dict[str, Any]:
    """One student's latest answer per question; teachers, admins or the student themself"""
    if user.role == UserRole.STUDENT and user.id != student_id:
        raise ForbiddenError("Can only view your own progress")
    if user.role not in (UserRole.STUDENT, UserRole.TEACHER, UserRole.ADMIN):
        raise ForbiddenError("Cannot view student progress")

    assignment = validate_resource_exists(db.get(Assignment, assignment_id), "Assignment", assignment_id)
    if not can_access_assignment(db, user, assignment):
        raise ForbiddenError("Cannot access this assignment")
    student = validate_resource_exists(db.get(User, student_id), "Student", student_id)

    question_ids = [question.id for question in assignment.questions]
    records = (
        db.query(StudentAssignmentProgress)
        .filter(
            StudentAssignmentProgress.assignment_id == assignment.id,
            StudentAssignmentProgress.student_id == student.id,
        )
        .all()
    )
    latest = latest_by_question(records, question_ids)
    summary = summarize_student_progress(question_ids, records)
    return {
        "student": UserSummary.model_validate(student).to_json(),
        "summary": summary.to_dict(),
        "progress": [_serialize_record(latest[question_id]) for question_id in question_ids if question_id in latest],
    }
