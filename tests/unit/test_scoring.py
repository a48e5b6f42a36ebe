from datetime import datetime, timedelta

from models import StudentAssignmentProgress
from utils.scoring import (
    COMPLETED,
    IN_PROGRESS,
    NOT_STARTED,
    ProgressSummary,
    completion_status,
    latest_by_question,
    mean,
    percentage,
    round_half_up,
    summarize_student_progress,
)

BASE_TIME = datetime(2025, 1, 1, 12, 0, 0)


def record(question_id, is_correct=True, is_complete=True, minutes=0):
    moment = BASE_TIME + timedelta(minutes=minutes)
    return StudentAssignmentProgress(
        student_id="student",
        assignment_id="assignment",
        question_id=question_id,
        is_complete=is_complete,
        is_correct=is_correct,
        created_at=moment,
        updated_at=moment,
    )


class TestPercentages:
    """Rates are percentages rounded to two decimals"""

    def test_percentage_rounds_to_two_decimals(self):
        assert percentage(1, 3) == 33.33
        assert percentage(2, 3) == 66.67

    def test_percentage_of_empty_whole_is_zero(self):
        assert percentage(5, 0) == 0.0

    def test_mean_of_nothing_is_zero(self):
        assert mean([]) == 0.0
        assert mean([50.0, 100.0]) == 75.0

    def test_report_rates_round_halves_up(self):
        assert round_half_up(12.5) == 13
        assert round_half_up(62.5) == 63
        assert round_half_up(33.33) == 33
        assert round_half_up(0.0) == 0


class TestCompletionStatus:
    def test_statuses(self):
        assert completion_status(0, 3) == NOT_STARTED
        assert completion_status(1, 3) == IN_PROGRESS
        assert completion_status(3, 3) == COMPLETED

    def test_assignment_without_questions_is_never_completed(self):
        assert completion_status(0, 0) == NOT_STARTED


class TestSummarizeStudentProgress:
    """Each question counts once, using the latest record"""

    def test_empty_progress(self):
        summary = summarize_student_progress(["q1", "q2"], [])

        assert summary.total_questions == 2
        assert summary.completed_questions == 0
        assert summary.status == NOT_STARTED
        assert summary.completion_rate == 0.0
        assert summary.accuracy_rate == 0.0

    def test_duplicate_records_count_once(self):
        records = [
            record("q1", is_correct=False, minutes=0),
            record("q1", is_correct=True, minutes=5),
            record("q2", is_correct=False, minutes=1),
        ]

        summary = summarize_student_progress(["q1", "q2", "q3"], records)

        assert summary.completed_questions == 2
        assert summary.correct_answers == 1
        assert summary.status == IN_PROGRESS
        assert summary.completion_rate == 66.67
        assert summary.accuracy_rate == 50.0

    def test_latest_record_wins_even_if_listed_first(self):
        records = [record("q1", is_correct=True, minutes=10), record("q1", is_correct=False, minutes=0)]

        latest = latest_by_question(records)

        assert latest["q1"].is_correct is True

    def test_records_for_removed_questions_are_ignored(self):
        records = [record("q1"), record("removed"), record(None)]

        summary = summarize_student_progress(["q1"], records)

        assert summary.completed_questions == 1
        assert summary.status == COMPLETED

    def test_incomplete_records_do_not_count_as_answers(self):
        records = [record("q1", is_complete=False), record("q2")]

        summary = summarize_student_progress(["q1", "q2"], records)

        assert summary.completed_questions == 1
        assert summary.correct_answers == 1

    def test_score_is_correct_over_all_questions(self):
        summary = ProgressSummary(total_questions=4, completed_questions=4, correct_answers=3)

        assert summary.is_complete
        assert summary.score == 75.0
        assert summary.to_dict() == {
            "totalQuestions": 4,
            "completedQuestions": 4,
            "correctAnswers": 3,
            "completionRate": 100.0,
            "accuracyRate": 75.0,
            "isComplete": True,
        }
