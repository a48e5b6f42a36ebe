"""
Statistics Service

Pre-aggregated rollups per assignment, student, class, teacher and school day.

Submissions update the assignment, student and school rollups incrementally:
each caller hands over the student's ProgressSummary on the assignment
before and after the write, and counters move from the old status bucket to
the new one. Class and teacher rollups are always rebuilt from the student
and class rows. Every ``recalculate_*`` function rebuilds a rollup from the
source rows.

None of these functions commit; callers wrap them in ``db.transaction``.
"""

from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from config import settings
from models import (
    Assignment,
    AssignmentStats,
    ClassAssignment,
    ClassStatsDetailed,
    Question,
    SchoolClass,
    SchoolStats,
    StudentAssignmentProgress,
    StudentStats,
    TeacherStats,
    User,
    UserRole,
)
from utils.scope import (
    get_assignment_student_ids,
    get_class_student_ids,
    get_question_ids,
    get_student_assignment_ids,
)
from utils.scoring import (
    COMPLETED,
    IN_PROGRESS,
    NOT_STARTED,
    ProgressSummary,
    load_assignment_summaries,
    load_student_summary,
    mean,
    percentage,
)
from utils.structured_logging import get_logger, LogCategory, log_execution

logger = get_logger("services.statistics")

_ASSIGNMENT_STATUS_FIELDS = {
    NOT_STARTED: "not_started_students",
    IN_PROGRESS: "in_progress_students",
    COMPLETED: "completed_students",
}
_STUDENT_STATUS_FIELDS = {
    NOT_STARTED: "not_started_assignments",
    IN_PROGRESS: "in_progress_assignments",
    COMPLETED: "completed_assignments",
}
_SCHOOL_STATUS_FIELDS = _ASSIGNMENT_STATUS_FIELDS


# ============================================================================
# HELPERS
# ============================================================================


def _move_status(row, fields: Dict[str, str], before: str, after: str) -> None:
    if before == after:
        return
    old_field, new_field = fields[before], fields[after]
    setattr(row, old_field, max((getattr(row, old_field) or 0) - 1, 0))
    setattr(row, new_field, (getattr(row, new_field) or 0) + 1)


def _rolling_average(average: float, count: int, old_value: Optional[float], new_value: Optional[float]) -> float:
    """
    Adjust the mean of ``count`` members when one member leaves and/or joins.

    ``old_value`` is the member's previous value (None if it was not a member),
    ``new_value`` its current one (None if it no longer is).
    """
    total = (average or 0.0) * count
    if old_value is not None:
        total -= old_value
        count -= 1
    if new_value is not None:
        total += new_value
        count += 1
    if count <= 0:
        return 0.0
    return round(total / count, 2)


def _count_questions(db: Session, assignment_ids: Iterable[str]) -> int:
    assignment_ids = list(assignment_ids)
    if not assignment_ids:
        return 0
    return db.query(func.count(Question.id)).filter(Question.assignment_id.in_(assignment_ids)).scalar() or 0


def student_overall_status(stats: Optional[StudentStats]) -> str:
    """Where a student stands across all of their active assignments"""
    if stats is None or not stats.total_assignments:
        return NOT_STARTED
    if stats.completed_assignments >= stats.total_assignments:
        return COMPLETED
    if stats.completed_assignments or stats.in_progress_assignments:
        return IN_PROGRESS
    return NOT_STARTED


def assignment_fully_completed(stats: Optional[AssignmentStats]) -> bool:
    return bool(stats and stats.total_students > 0 and stats.completed_students >= stats.total_students)


def student_needs_help(stats: StudentStats) -> bool:
    if not stats.total_assignments:
        return False
    return (
        stats.completion_rate < settings.HELP_COMPLETION_THRESHOLD
        or stats.accuracy_rate < settings.HELP_ACCURACY_THRESHOLD
    )


def _sync_assignment_counters(assignment: Assignment, stats: AssignmentStats) -> None:
    assignment.total_students_in_scope = stats.total_students
    assignment.completed_students_count = stats.completed_students
    assignment.completion_rate = stats.completion_rate
    assignment.average_score_of_completed = stats.average_score


# ============================================================================
# ASSIGNMENT STATISTICS
# ============================================================================


def get_assignment_statistics(db: Session, assignment_id: str) -> Optional[AssignmentStats]:
    return db.query(AssignmentStats).filter(AssignmentStats.assignment_id == assignment_id).first()


def recalculate_assignment_statistics(db: Session, assignment: Assignment) -> AssignmentStats:
    db.flush()
    question_ids = get_question_ids(db, assignment.id)
    student_ids = get_assignment_student_ids(db, assignment.id)
    summaries = load_assignment_summaries(db, assignment.id, question_ids)

    counts = {NOT_STARTED: 0, IN_PROGRESS: 0, COMPLETED: 0}
    total_answers = total_correct = 0
    scores: List[float] = []
    for student_id in student_ids:
        summary = summaries.get(student_id) or ProgressSummary(total_questions=len(question_ids))
        counts[summary.status] += 1
        total_answers += summary.completed_questions
        total_correct += summary.correct_answers
        if summary.is_complete:
            scores.append(summary.score)

    stats = get_assignment_statistics(db, assignment.id)
    if stats is None:
        stats = AssignmentStats(assignment_id=assignment.id)
        db.add(stats)

    stats.total_students = len(student_ids)
    stats.total_questions = len(question_ids)
    stats.completed_students = counts[COMPLETED]
    stats.in_progress_students = counts[IN_PROGRESS]
    stats.not_started_students = counts[NOT_STARTED]
    stats.total_answers = total_answers
    stats.total_correct_answers = total_correct
    stats.completion_rate = percentage(counts[COMPLETED], len(student_ids))
    stats.accuracy_rate = percentage(total_correct, total_answers)
    stats.average_score = mean(scores)
    stats.last_updated = datetime.utcnow()
    _sync_assignment_counters(assignment, stats)
    db.flush()
    return stats


def get_or_create_assignment_statistics(db: Session, assignment: Assignment) -> AssignmentStats:
    stats = get_assignment_statistics(db, assignment.id)
    if stats is None:
        stats = recalculate_assignment_statistics(db, assignment)
    return stats


def update_assignment_statistics(
    db: Session, assignment: Assignment, before: ProgressSummary, after: ProgressSummary
) -> AssignmentStats:
    """Apply one student's submission to the assignment rollup"""
    stats = get_assignment_statistics(db, assignment.id)
    if stats is None:
        # Nothing to apply deltas to; a rebuild already reflects the submission
        return recalculate_assignment_statistics(db, assignment)

    completed_before = stats.completed_students
    stats.total_answers += after.completed_questions - before.completed_questions
    stats.total_correct_answers += after.correct_answers - before.correct_answers
    _move_status(stats, _ASSIGNMENT_STATUS_FIELDS, before.status, after.status)
    stats.total_questions = after.total_questions
    stats.average_score = _rolling_average(
        stats.average_score,
        completed_before,
        before.score if before.is_complete else None,
        after.score if after.is_complete else None,
    )
    stats.completion_rate = percentage(stats.completed_students, stats.total_students)
    stats.accuracy_rate = percentage(stats.total_correct_answers, stats.total_answers)
    stats.last_updated = datetime.utcnow()
    _sync_assignment_counters(assignment, stats)
    db.flush()
    return stats


# ============================================================================
# STUDENT STATISTICS
# ============================================================================


def get_student_statistics(db: Session, student_id: str) -> Optional[StudentStats]:
    return db.query(StudentStats).filter(StudentStats.student_id == student_id).first()


def recalculate_student_statistics(db: Session, student_id: str) -> StudentStats:
    """Rebuild a student's rollup across every active assignment in their scope"""
    db.flush()
    assignment_ids = get_student_assignment_ids(db, student_id, active_only=True)

    counts = {NOT_STARTED: 0, IN_PROGRESS: 0, COMPLETED: 0}
    total_questions = total_answers = total_correct = 0
    scores: List[float] = []
    for assignment_id in assignment_ids:
        question_ids = get_question_ids(db, assignment_id)
        summary = load_student_summary(db, student_id, assignment_id, question_ids)
        counts[summary.status] += 1
        total_questions += summary.total_questions
        total_answers += summary.completed_questions
        total_correct += summary.correct_answers
        if summary.is_complete:
            scores.append(summary.score)

    last_activity = (
        db.query(func.max(StudentAssignmentProgress.updated_at))
        .filter(StudentAssignmentProgress.student_id == student_id)
        .scalar()
    )

    stats = get_student_statistics(db, student_id)
    if stats is None:
        stats = StudentStats(student_id=student_id)
        db.add(stats)

    stats.total_assignments = len(assignment_ids)
    stats.completed_assignments = counts[COMPLETED]
    stats.in_progress_assignments = counts[IN_PROGRESS]
    stats.not_started_assignments = counts[NOT_STARTED]
    stats.average_score = mean(scores)
    stats.total_questions = total_questions
    stats.total_answers = total_answers
    stats.total_correct_answers = total_correct
    stats.accuracy_rate = percentage(total_correct, total_answers)
    stats.completion_rate = percentage(counts[COMPLETED], len(assignment_ids))
    stats.last_activity_date = last_activity
    stats.last_updated = datetime.utcnow()
    db.flush()
    return stats


def get_or_create_student_statistics(db: Session, student_id: str) -> StudentStats:
    stats = get_student_statistics(db, student_id)
    if stats is None:
        stats = recalculate_student_statistics(db, student_id)
    return stats


def update_student_statistics(
    db: Session, student_id: str, before: ProgressSummary, after: ProgressSummary
) -> StudentStats:
    """Apply one submission on a single assignment to the student's rollup"""
    stats = get_student_statistics(db, student_id)
    if stats is None:
        return recalculate_student_statistics(db, student_id)

    completed_before = stats.completed_assignments
    stats.total_answers += after.completed_questions - before.completed_questions
    stats.total_correct_answers += after.correct_answers - before.correct_answers
    _move_status(stats, _STUDENT_STATUS_FIELDS, before.status, after.status)
    stats.average_score = _rolling_average(
        stats.average_score,
        completed_before,
        before.score if before.is_complete else None,
        after.score if after.is_complete else None,
    )
    stats.accuracy_rate = percentage(stats.total_correct_answers, stats.total_answers)
    stats.completion_rate = percentage(stats.completed_assignments, stats.total_assignments)
    stats.last_activity_date = datetime.utcnow()
    stats.last_updated = stats.last_activity_date
    db.flush()
    return stats


def increment_student_assignment_count(db: Session, student_id: str) -> StudentStats:
    """
    Account for assignments newly reaching the student (created or published).

    The student cannot have progress on them yet, so they land in the
    not-started bucket.
    """
    stats = get_student_statistics(db, student_id)
    if stats is None:
        return recalculate_student_statistics(db, student_id)

    db.flush()
    assignment_ids = get_student_assignment_ids(db, student_id, active_only=True)
    added = len(assignment_ids) - stats.total_assignments
    stats.total_assignments = len(assignment_ids)
    stats.not_started_assignments = max(stats.not_started_assignments + added, 0)
    stats.total_questions = _count_questions(db, assignment_ids)
    stats.completion_rate = percentage(stats.completed_assignments, stats.total_assignments)
    stats.last_updated = datetime.utcnow()
    db.flush()
    return stats


# ============================================================================
# CLASS STATISTICS
# ============================================================================


def get_class_statistics(db: Session, class_id: str) -> Optional[ClassStatsDetailed]:
    return db.query(ClassStatsDetailed).filter(ClassStatsDetailed.class_id == class_id).first()


def update_class_statistics(db: Session, class_id: str) -> ClassStatsDetailed:
    """Rebuild a class rollup from its students' rollups"""
    db.flush()
    student_ids = sorted(get_class_student_ids(db, class_id))
    student_stats = [get_or_create_student_statistics(db, student_id) for student_id in student_ids]
    enrolled = [stats for stats in student_stats if stats.total_assignments > 0]

    assignment_rows = (
        db.query(Assignment.id, Assignment.is_active)
        .join(ClassAssignment, ClassAssignment.assignment_id == Assignment.id)
        .filter(ClassAssignment.class_id == class_id)
        .all()
    )
    window_start = datetime.utcnow() - timedelta(days=settings.ACTIVE_STUDENT_WINDOW_DAYS)
    activity_dates = [stats.last_activity_date for stats in student_stats if stats.last_activity_date]

    row = get_class_statistics(db, class_id)
    if row is None:
        row = ClassStatsDetailed(class_id=class_id)
        db.add(row)

    row.total_students = len(student_ids)
    row.total_assignments = len(assignment_rows)
    row.active_assignments = sum(1 for _, is_active in assignment_rows if is_active)
    row.average_completion = mean(stats.completion_rate for stats in enrolled)
    row.average_score = mean(stats.average_score for stats in enrolled)
    row.total_questions = _count_questions(db, [assignment_id for assignment_id, _ in assignment_rows])
    row.total_answers = sum(stats.total_answers for stats in student_stats)
    row.total_correct_answers = sum(stats.total_correct_answers for stats in student_stats)
    row.accuracy_rate = percentage(row.total_correct_answers, row.total_answers)
    row.active_students = sum(1 for activity in activity_dates if activity >= window_start)
    row.students_needing_help = sum(1 for stats in enrolled if student_needs_help(stats))
    row.last_activity_date = max(activity_dates) if activity_dates else None
    row.last_updated = datetime.utcnow()
    db.flush()
    return row


# ============================================================================
# TEACHER STATISTICS
# ============================================================================


def get_teacher_statistics(db: Session, teacher_id: str) -> Optional[TeacherStats]:
    return db.query(TeacherStats).filter(TeacherStats.teacher_id == teacher_id).first()


def update_teacher_statistics(db: Session, teacher_id: Optional[str]) -> Optional[TeacherStats]:
    if not teacher_id:
        return None
    db.flush()
    assignments = db.query(Assignment).filter(Assignment.teacher_id == teacher_id).all()
    assignment_ids = [assignment.id for assignment in assignments]

    class_ids = set()
    student_ids = set()
    if assignment_ids:
        class_ids = set(
            db.execute(
                select(ClassAssignment.class_id).where(ClassAssignment.assignment_id.in_(assignment_ids))
            ).scalars().all()
        )
        for assignment_id in assignment_ids:
            student_ids |= get_assignment_student_ids(db, assignment_id)

    class_rows = []
    if class_ids:
        class_rows = db.query(ClassStatsDetailed).filter(ClassStatsDetailed.class_id.in_(list(class_ids))).all()

    row = get_teacher_statistics(db, teacher_id)
    if row is None:
        row = TeacherStats(teacher_id=teacher_id)
        db.add(row)

    row.total_assignments = len(assignments)
    row.total_classes = len(class_ids)
    row.total_students = len(student_ids)
    row.average_class_completion = mean(class_row.average_completion for class_row in class_rows)
    row.average_class_score = mean(class_row.average_score for class_row in class_rows)
    row.total_questions = _count_questions(db, assignment_ids)
    row.active_assignments = sum(1 for assignment in assignments if assignment.is_active)
    row.scheduled_assignments = sum(1 for assignment in assignments if assignment.is_scheduled)
    row.last_updated = datetime.utcnow()
    db.flush()
    return row


# ============================================================================
# SCHOOL STATISTICS
# ============================================================================


def _today() -> date:
    return datetime.utcnow().date()


def _school_row(db: Session, day: date) -> Optional[SchoolStats]:
    return db.query(SchoolStats).filter(SchoolStats.date == day).first()


def _student_rollups(db: Session) -> List[StudentStats]:
    return (
        db.query(StudentStats)
        .join(User, User.id == StudentStats.student_id)
        .filter(User.role == UserRole.STUDENT)
        .all()
    )


def _refresh_school_averages(db: Session, row: SchoolStats, student_stats: List[StudentStats]) -> None:
    average_completion = db.query(func.avg(AssignmentStats.completion_rate)).scalar()
    row.average_completion_rate = round(average_completion or 0.0, 2)
    row.average_score = mean(stats.average_score for stats in student_stats if stats.completed_assignments > 0)
    row.students_needing_help = sum(1 for stats in student_stats if student_needs_help(stats))


def update_school_statistics(db: Session, day: Optional[date] = None) -> SchoolStats:
    """Rebuild the school rollup for ``day`` (today by default)"""
    db.flush()
    day = day or _today()
    now = datetime.utcnow()

    def count_users(role=None) -> int:
        query = db.query(func.count(User.id))
        if role is not None:
            query = query.filter(User.role == role)
        return query.scalar() or 0

    assignment_stats = db.query(AssignmentStats).all()
    student_stats = _student_rollups(db)
    statuses = {NOT_STARTED: 0, IN_PROGRESS: 0, COMPLETED: 0}
    for stats in student_stats:
        statuses[student_overall_status(stats)] += 1

    row = _school_row(db, day)
    if row is None:
        row = SchoolStats(date=day)
        db.add(row)

    row.total_users = count_users()
    row.total_teachers = count_users(UserRole.TEACHER)
    row.total_students = count_users(UserRole.STUDENT)
    row.total_classes = db.query(func.count(SchoolClass.id)).scalar() or 0
    row.total_assignments = db.query(func.count(Assignment.id)).scalar() or 0
    row.active_assignments = (
        db.query(func.count(Assignment.id)).filter(Assignment.is_active.is_(True)).scalar() or 0
    )
    row.scheduled_assignments = (
        db.query(func.count(Assignment.id))
        .filter(Assignment.is_active.is_(False), Assignment.scheduled_publish_at > now)
        .scalar()
        or 0
    )
    row.completed_assignments = sum(1 for stats in assignment_stats if assignment_fully_completed(stats))
    row.total_questions = db.query(func.count(Question.id)).scalar() or 0
    row.total_answers = sum(stats.total_answers for stats in assignment_stats)
    row.total_correct_answers = sum(stats.total_correct_answers for stats in assignment_stats)
    row.completed_students = statuses[COMPLETED]
    row.in_progress_students = statuses[IN_PROGRESS]
    # Students without a rollup yet have not started anything
    row.not_started_students = max(row.total_students - statuses[COMPLETED] - statuses[IN_PROGRESS], 0)
    _refresh_school_averages(db, row, student_stats)
    row.last_updated = now
    db.flush()
    return row


def get_or_create_school_statistics(db: Session, day: Optional[date] = None) -> SchoolStats:
    row = _school_row(db, day or _today())
    if row is None:
        row = update_school_statistics(db, day)
    return row


def apply_submission_to_school_statistics(
    db: Session,
    before: ProgressSummary,
    after: ProgressSummary,
    student_status_before: str,
    student_status_after: str,
    assignment_completed_before: bool,
    assignment_completed_after: bool,
) -> SchoolStats:
    """Apply one submission's deltas to today's school rollup"""
    row = _school_row(db, _today())
    if row is None:
        return update_school_statistics(db)

    row.total_answers += after.completed_questions - before.completed_questions
    row.total_correct_answers += after.correct_answers - before.correct_answers
    _move_status(row, _SCHOOL_STATUS_FIELDS, student_status_before, student_status_after)
    if assignment_completed_after and not assignment_completed_before:
        row.completed_assignments += 1
    elif assignment_completed_before and not assignment_completed_after:
        row.completed_assignments = max(row.completed_assignments - 1, 0)
    _refresh_school_averages(db, row, _student_rollups(db))
    row.last_updated = datetime.utcnow()
    db.flush()
    return row


def increment_school_assignment_count(
    db: Session,
    is_active: bool,
    is_scheduled: bool,
    question_count: int = 0,
    student_transitions: Iterable[Tuple[str, str]] = (),
) -> SchoolStats:
    """
    Count a newly created assignment in today's school rollup.

    ``student_transitions`` holds each reached student's overall status
    before and after the assignment was added to their totals.
    """
    row = _school_row(db, _today())
    if row is None:
        return update_school_statistics(db)

    row.total_assignments += 1
    if is_active:
        row.active_assignments += 1
    elif is_scheduled:
        row.scheduled_assignments += 1
    row.total_questions += question_count
    for before, after in student_transitions:
        _move_status(row, _SCHOOL_STATUS_FIELDS, before, after)
    _refresh_school_averages(db, row, _student_rollups(db))
    row.last_updated = datetime.utcnow()
    db.flush()
    return row


def get_school_statistics(db: Session, day: Optional[date] = None) -> Optional[SchoolStats]:
    """The row for ``day``, falling back to the most recent row"""
    row = _school_row(db, day or _today())
    if row is None:
        row = db.query(SchoolStats).order_by(SchoolStats.date.desc()).first()
    return row


def get_school_statistics_trend(db: Session, days: int = 30) -> List[SchoolStats]:
    start = _today() - timedelta(days=days)
    return db.query(SchoolStats).filter(SchoolStats.date >= start).order_by(SchoolStats.date.asc()).all()


# ============================================================================
# FULL RECALCULATION
# ============================================================================


@log_execution(LogCategory.STATISTICS)
def recalculate_all_statistics(db: Session) -> Dict[str, int]:
    """Rebuild every rollup: assignments, students, classes, teachers, then today's school row"""
    assignments = db.query(Assignment).all()
    for assignment in assignments:
        recalculate_assignment_statistics(db, assignment)

    student_ids = [row[0] for row in db.query(User.id).filter(User.role == UserRole.STUDENT).all()]
    for student_id in student_ids:
        recalculate_student_statistics(db, student_id)

    class_ids = [row[0] for row in db.query(SchoolClass.id).all()]
    for class_id in class_ids:
        update_class_statistics(db, class_id)

    teacher_ids = {row[0] for row in db.query(User.id).filter(User.role == UserRole.TEACHER).all()}
    teacher_ids |= {assignment.teacher_id for assignment in assignments if assignment.teacher_id}
    for teacher_id in teacher_ids:
        update_teacher_statistics(db, teacher_id)

    update_school_statistics(db)

    summary = {
        "assignments": len(assignments),
        "students": len(student_ids),
        "classes": len(class_ids),
        "teachers": len(teacher_ids),
    }
    logger.info("Statistics recalculated", category=LogCategory.STATISTICS, extra=summary)
    return summary
