import pytest
from datetime import datetime, timedelta

from models import StudentStats
from schemas import SubmitProgressRequest
from utils import statistics
from utils.assignments import delete_assignment
from utils.progress import submit_student_progress


def submit(db, student, assignment, question_index, correct=True):
    question = assignment.questions[question_index]
    payload = SubmitProgressRequest(
        questionId=question.id, isCorrect=correct, result={"transcript": "answer"}, type="READING"
    )
    return submit_student_progress(db, student, assignment.id, payload)


def status_counts(stats):
    return stats.not_started_students + stats.in_progress_students + stats.completed_students


class TestCreationStatistics:
    """Creating an assignment initialises every rollup it touches"""

    def test_assignment_stats_cover_scope(self, test_db, seed, make_assignment):
        assignment = make_assignment(questions=2)

        stats = statistics.get_assignment_statistics(test_db, assignment.id)
        # alice and bob through class A, carol individually; the teacher is not a student
        assert stats.total_students == 3
        assert stats.not_started_students == 3
        assert stats.total_questions == 2
        assert assignment.total_students_in_scope == 3

    def test_student_class_school_and_teacher_rollups(self, test_db, seed, make_assignment):
        make_assignment(questions=2)

        alice = statistics.get_student_statistics(test_db, seed.alice.id)
        assert alice.total_assignments == 1
        assert alice.not_started_assignments == 1
        assert alice.total_questions == 2

        class_a = statistics.get_class_statistics(test_db, seed.class_a.id)
        assert class_a.total_students == 2
        assert class_a.total_assignments == 1
        assert class_a.active_assignments == 1
        assert statistics.get_class_statistics(test_db, seed.class_b.id) is None

        school = statistics.get_school_statistics(test_db)
        assert school.total_assignments == 1
        assert school.active_assignments == 1
        assert school.total_questions == 2

        teacher = statistics.get_teacher_statistics(test_db, seed.teacher.id)
        assert teacher.total_assignments == 1
        assert teacher.total_classes == 1
        assert teacher.total_students == 3

    def test_second_assignment_increments_student_totals(self, test_db, seed, make_assignment):
        make_assignment(questions=2)
        make_assignment(questions=3, class_ids=[], student_ids=[seed.alice.id])

        alice = statistics.get_student_statistics(test_db, seed.alice.id)
        assert alice.total_assignments == 2
        assert alice.not_started_assignments == 2
        assert alice.total_questions == 5

        school = statistics.get_school_statistics(test_db)
        assert school.total_assignments == 2
        assert school.total_questions == 5

    def test_future_assignment_is_not_counted_for_students(self, test_db, seed, make_assignment):
        make_assignment(scheduledPublishAt=(datetime.utcnow() + timedelta(days=2)).isoformat())

        alice = statistics.get_student_statistics(test_db, seed.alice.id)
        assert alice.total_assignments == 0

        school = statistics.get_school_statistics(test_db)
        assert school.active_assignments == 0
        assert school.scheduled_assignments == 1


class TestSubmissionStatistics:
    """Counters follow status transitions"""

    def test_first_answer_moves_student_to_in_progress(self, test_db, seed, make_assignment):
        assignment = make_assignment(questions=2)

        submit(test_db, seed.alice, assignment, 0, correct=True)

        stats = statistics.get_assignment_statistics(test_db, assignment.id)
        assert stats.in_progress_students == 1
        assert stats.not_started_students == 2
        assert stats.total_answers == 1
        assert stats.total_correct_answers == 1
        assert stats.accuracy_rate == 100.0

        alice = statistics.get_student_statistics(test_db, seed.alice.id)
        assert alice.in_progress_assignments == 1
        assert alice.not_started_assignments == 0
        assert alice.last_activity_date is not None

    def test_completing_every_question_completes_the_student(self, test_db, seed, make_assignment):
        assignment = make_assignment(questions=2)

        submit(test_db, seed.alice, assignment, 0, correct=True)
        submit(test_db, seed.alice, assignment, 1, correct=False)

        stats = statistics.get_assignment_statistics(test_db, assignment.id)
        assert stats.completed_students == 1
        assert stats.in_progress_students == 0
        assert stats.completion_rate == 33.33
        assert stats.average_score == 50.0
        assert assignment.completed_students_count == 1
        assert assignment.average_score_of_completed == 50.0

        alice = statistics.get_student_statistics(test_db, seed.alice.id)
        assert alice.completed_assignments == 1
        assert alice.completion_rate == 100.0
        assert alice.average_score == 50.0

    def test_resubmission_never_double_counts(self, test_db, seed, make_assignment):
        assignment = make_assignment(questions=2)
        submit(test_db, seed.alice, assignment, 0, correct=False)
        submit(test_db, seed.alice, assignment, 1, correct=False)

        result = submit(test_db, seed.alice, assignment, 1, correct=True)

        assert result["isNewSubmission"] is False
        stats = statistics.get_assignment_statistics(test_db, assignment.id)
        assert stats.total_answers == 2
        assert stats.total_correct_answers == 1
        assert stats.completed_students == 1
        assert stats.average_score == 50.0

        alice = statistics.get_student_statistics(test_db, seed.alice.id)
        assert alice.total_answers == 2
        assert alice.total_correct_answers == 1

    def test_status_counters_always_sum_to_scope(self, test_db, seed, make_assignment):
        assignment = make_assignment(questions=2)

        for student, index, correct in [
            (seed.alice, 0, True),
            (seed.bob, 0, False),
            (seed.alice, 1, True),
            (seed.bob, 0, True),
            (seed.carol, 1, True),
        ]:
            submit(test_db, student, assignment, index, correct=correct)
            stats = statistics.get_assignment_statistics(test_db, assignment.id)
            assert status_counts(stats) == stats.total_students == 3

    def test_incremental_counters_match_full_recompute(self, test_db, seed, make_assignment):
        assignment = make_assignment(questions=2)
        submit(test_db, seed.alice, assignment, 0, correct=True)
        submit(test_db, seed.alice, assignment, 1, correct=True)
        submit(test_db, seed.bob, assignment, 0, correct=False)
        submit(test_db, seed.bob, assignment, 1, correct=True)
        submit(test_db, seed.bob, assignment, 1, correct=False)

        incremental = statistics.get_assignment_statistics(test_db, assignment.id)
        snapshot = (
            incremental.completed_students,
            incremental.in_progress_students,
            incremental.not_started_students,
            incremental.total_answers,
            incremental.total_correct_answers,
            incremental.average_score,
        )
        student_snapshot = {
            student.id: (stats.completed_assignments, stats.total_answers, stats.total_correct_answers)
            for student in (seed.alice, seed.bob)
            for stats in [statistics.get_student_statistics(test_db, student.id)]
        }

        rebuilt = statistics.recalculate_assignment_statistics(test_db, assignment)
        assert snapshot == (
            rebuilt.completed_students,
            rebuilt.in_progress_students,
            rebuilt.not_started_students,
            rebuilt.total_answers,
            rebuilt.total_correct_answers,
            rebuilt.average_score,
        )
        for student in (seed.alice, seed.bob):
            stats = statistics.recalculate_student_statistics(test_db, student.id)
            assert student_snapshot[student.id] == (
                stats.completed_assignments,
                stats.total_answers,
                stats.total_correct_answers,
            )
        test_db.rollback()

    def test_school_row_tracks_answers(self, test_db, seed, make_assignment):
        assignment = make_assignment(questions=1)

        submit(test_db, seed.alice, assignment, 0, correct=True)

        school = statistics.get_school_statistics(test_db)
        assert school.total_answers == 1
        assert school.total_correct_answers == 1
        assert school.completed_students == 1

    def test_school_buckets_follow_new_assignment_for_finished_student(self, test_db, seed, make_assignment):
        first = make_assignment(questions=1, class_ids=[], student_ids=[seed.alice.id], type="INDIVIDUAL")
        submit(test_db, seed.alice, first, 0)
        assert statistics.get_school_statistics(test_db).completed_students == 1

        # alice is back in progress overall until she finishes the new one
        second = make_assignment(questions=1, class_ids=[], student_ids=[seed.alice.id], type="INDIVIDUAL")
        school = statistics.get_school_statistics(test_db)
        assert school.completed_students == 0
        assert school.in_progress_students == 1

        submit(test_db, seed.alice, second, 0)
        school = statistics.get_school_statistics(test_db)
        incremental = (
            school.not_started_students,
            school.in_progress_students,
            school.completed_students,
            school.total_students,
        )

        rebuilt = statistics.update_school_statistics(test_db)
        assert incremental == (
            rebuilt.not_started_students,
            rebuilt.in_progress_students,
            rebuilt.completed_students,
            rebuilt.total_students,
        )
        assert status_counts(rebuilt) == rebuilt.total_students
        test_db.rollback()


class TestClassStatistics:
    def test_students_needing_help(self, test_db, seed, make_assignment):
        assignment = make_assignment(questions=2)
        # alice finishes with half the answers right, bob never starts
        submit(test_db, seed.alice, assignment, 0, correct=True)
        submit(test_db, seed.alice, assignment, 1, correct=False)

        class_a = statistics.get_class_statistics(test_db, seed.class_a.id)
        assert class_a.students_needing_help == 2
        assert class_a.active_students == 1
        assert class_a.total_answers == 2
        assert class_a.accuracy_rate == 50.0

    def test_student_without_assignments_never_needs_help(self):
        assert statistics.student_needs_help(StudentStats(total_assignments=0)) is False

    def test_help_thresholds(self):
        doing_well = StudentStats(total_assignments=2, completion_rate=50.0, accuracy_rate=60.0)
        behind = StudentStats(total_assignments=2, completion_rate=49.99, accuracy_rate=90.0)
        inaccurate = StudentStats(total_assignments=2, completion_rate=100.0, accuracy_rate=59.0)

        assert statistics.student_needs_help(doing_well) is False
        assert statistics.student_needs_help(behind) is True
        assert statistics.student_needs_help(inaccurate) is True


class TestDeletionStatistics:
    """Deleting an assignment leaves the rollups equal to a full recompute"""

    def test_delete_rebuilds_dependent_rollups(self, test_db, seed, make_assignment):
        keep = make_assignment(questions=1, class_ids=[seed.class_a.id], student_ids=[])
        doomed = make_assignment(questions=2)
        submit(test_db, seed.alice, doomed, 0, correct=True)
        submit(test_db, seed.carol, doomed, 1, correct=False)
        doomed_id = doomed.id

        delete_assignment(test_db, seed.teacher, doomed_id)

        assert statistics.get_assignment_statistics(test_db, doomed_id) is None
        alice = statistics.get_student_statistics(test_db, seed.alice.id)
        assert alice.total_assignments == 1
        assert alice.total_answers == 0
        carol = statistics.get_student_statistics(test_db, seed.carol.id)
        assert carol.total_assignments == 0
        assert carol.total_answers == 0

        class_a = statistics.get_class_statistics(test_db, seed.class_a.id)
        assert class_a.total_assignments == 1
        school = statistics.get_school_statistics(test_db)
        assert school.total_assignments == 1
        assert school.total_answers == 0
        teacher = statistics.get_teacher_statistics(test_db, seed.teacher.id)
        assert teacher.total_assignments == 1
        assert statistics.get_assignment_statistics(test_db, keep.id) is not None


class TestRecalculateAll:
    def test_recalculate_all_returns_counts(self, test_db, seed, make_assignment):
        make_assignment(questions=2)

        summary = statistics.recalculate_all_statistics(test_db)
        test_db.commit()

        assert summary == {"assignments": 1, "students": 4, "classes": 2, "teachers": 2}
        assert statistics.get_class_statistics(test_db, seed.class_b.id).total_students == 1
        assert statistics.get_teacher_statistics(test_db, seed.other_teacher.id).total_assignments == 0

    def test_trend_is_ordered_by_day(self, test_db, seed, make_assignment):
        make_assignment(questions=1)
        statistics.update_school_statistics(test_db, day=datetime.utcnow().date() - timedelta(days=3))
        test_db.commit()

        rows = statistics.get_school_statistics_trend(test_db, days=7)

        assert len(rows) == 2
        assert rows[0].date < rows[1].date

    @pytest.mark.parametrize("days", [1, 30])
    def test_trend_without_rows_is_empty(self, test_db, days):
        assert statistics.get_school_statistics_trend(test_db, days=days) == []
