"""
Progress scoring

A student may answer a question several times; only the latest record per
question counts, and only for questions still on the assignment.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from models import StudentAssignmentProgress

NOT_STARTED = "not_started"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"


def percentage(part: float, whole: float) -> float:
    """part / whole as a percentage rounded to two decimals, 0 for an empty whole"""
    if not whole:
        return 0.0
    return round(part / whole * 100, 2)


def round_half_up(value: float) -> int:
    """Nearest whole number, halves rounded up (12.5 -> 13)"""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def mean(values: Iterable[float]) -> float:
    values = list(values)
    if not values:
        return 0.0
    return round(sum(values) / len(values), 2)


def completion_status(completed_questions: int, total_questions: int) -> str:
    if completed_questions <= 0:
        return NOT_STARTED
    if total_questions > 0 and completed_questions >= total_questions:
        return COMPLETED
    return IN_PROGRESS


@dataclass
class ProgressSummary:
    total_questions: int = 0
    completed_questions: int = 0
    correct_answers: int = 0

    @property
    def completion_rate(self) -> float:
        return percentage(self.completed_questions, self.total_questions)

    @property
    def accuracy_rate(self) -> float:
        """Share of answered questions answered correctly"""
        return percentage(self.correct_answers, self.completed_questions)

    @property
    def score(self) -> float:
        """Share of all questions answered correctly"""
        return percentage(self.correct_answers, self.total_questions)

    @property
    def status(self) -> str:
        return completion_status(self.completed_questions, self.total_questions)

    @property
    def is_complete(self) -> bool:
        return self.status == COMPLETED

    def to_dict(self) -> Dict:
        return {
            "totalQuestions": self.total_questions,
            "completedQuestions": self.completed_questions,
            "correctAnswers": self.correct_answers,
            "completionRate": self.completion_rate,
            "accuracyRate": self.accuracy_rate,
            "isComplete": self.is_complete,
        }


def _recency_key(record: StudentAssignmentProgress):
    return (record.updated_at or record.created_at, record.created_at)


def latest_by_question(
    records: Iterable[StudentAssignmentProgress], question_ids: Optional[Iterable[str]] = None
) -> Dict[str, StudentAssignmentProgress]:
    """Keep the most recent record per question id"""
    allowed = set(question_ids) if question_ids is not None else None
    latest: Dict[str, StudentAssignmentProgress] = {}
    for record in records:
        if record.question_id is None:
            continue
        if allowed is not None and record.question_id not in allowed:
            continue
        current = latest.get(record.question_id)
        if current is None or _recency_key(record) >= _recency_key(current):
            latest[record.question_id] = record
    return latest


def summarize_student_progress(
    question_ids: List[str], records: Iterable[StudentAssignmentProgress]
) -> ProgressSummary:
    latest = latest_by_question(records, question_ids)
    completed = [record for record in latest.values() if record.is_complete]
    return ProgressSummary(
        total_questions=len(question_ids),
        completed_questions=len(completed),
        correct_answers=sum(1 for record in completed if record.is_correct),
    )


def load_student_summary(db: Session, student_id: str, assignment_id: str, question_ids: List[str]) -> ProgressSummary:
    records = (
        db.query(StudentAssignmentProgress)
        .filter(
            StudentAssignmentProgress.student_id == student_id,
            StudentAssignmentProgress.assignment_id == assignment_id,
        )
        .all()
    )
    return summarize_student_progress(question_ids, records)


def load_assignment_summaries(
    db: Session, assignment_id: str, question_ids: List[str]
) -> Dict[str, ProgressSummary]:
    """Summaries for every student holding at least one record on the assignment"""
    records = (
        db.query(StudentAssignmentProgress)
        .filter(StudentAssignmentProgress.assignment_id == assignment_id)
        .all()
    )
    by_student: Dict[str, List[StudentAssignmentProgress]] = {}
    for record in records:
        by_student.setdefault(record.student_id, []).append(record)
    return {
        student_id: summarize_student_progress(question_ids, student_records)
        for student_id, student_records in by_student.items()
    }
