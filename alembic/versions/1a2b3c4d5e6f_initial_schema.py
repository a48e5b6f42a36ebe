"""Initial schema: users, classes, assignments, progress and statistics

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2025-06-07 15:56:32.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "1a2b3c4d5e6f"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = sa.Enum("ADMIN", "TEACHER", "STUDENT", "PARENT", name="userrole")
assignment_type = sa.Enum("CLASS", "INDIVIDUAL", name="assignmenttype")
evaluation_type = sa.Enum("CUSTOM", "IMAGE", "VIDEO", "Q_AND_A", "READING", "PRONUNCIATION", name="evaluationtype")
language_assessment_type = sa.Enum(
    "SCRIPTED_US",
    "SCRIPTED_UK",
    "UNSCRIPTED_US",
    "UNSCRIPTED_UK",
    "PRONUNCIATION_US",
    "PRONUNCIATION_UK",
    name="languageassessmenttype",
)
activity_type = sa.Enum(
    "ASSIGNMENT_CREATED",
    "INDIVIDUAL_ASSIGNMENT_CREATED",
    "ASSIGNMENT_UPDATED",
    "ASSIGNMENT_DELETED",
    "ASSIGNMENT_PUBLISHED",
    name="activitytype",
)


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("username", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("password", sa.String(), nullable=True),
        sa.Column("role", user_role, nullable=False),
        sa.Column("confirmed", sa.Boolean(), nullable=False),
        sa.Column("blocked", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "languages",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("language", sa.String(), nullable=False),
        sa.Column("code", sa.String(), nullable=False, unique=True),
    )

    op.create_table(
        "classes",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "user_classes",
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("class_id", sa.String(36), sa.ForeignKey("classes.id", ondelete="CASCADE"), primary_key=True),
    )

    op.create_table(
        "assignments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("topic", sa.String(), nullable=True),
        sa.Column("color", sa.String(), nullable=True),
        sa.Column("vocabulary_items", sa.JSON(), nullable=True),
        sa.Column("type", assignment_type, nullable=True),
        sa.Column("video_url", sa.String(), nullable=True),
        sa.Column("video_transcript", sa.Text(), nullable=True),
        sa.Column("language_assessment_type", language_assessment_type, nullable=True),
        sa.Column("is_ielts", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("context", sa.Text(), nullable=True),
        sa.Column("scheduled_publish_at", sa.DateTime(), nullable=True),
        sa.Column("due_date", sa.DateTime(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("published_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.Column("total_students_in_scope", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_students_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completion_rate", sa.Float(), nullable=False, server_default="0"),
        sa.Column("average_score_of_completed", sa.Float(), nullable=False, server_default="0"),
        sa.Column("teacher_id", sa.String(36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("language_id", sa.String(36), sa.ForeignKey("languages.id"), nullable=True),
    )
    op.create_index("ix_assignments_scheduled_publish_at", "assignments", ["scheduled_publish_at"])
    op.create_index("ix_assignments_is_active", "assignments", ["is_active"])
    op.create_index("ix_assignments_teacher_id", "assignments", ["teacher_id"])

    op.create_table(
        "evaluation_settings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "assignment_id",
            sa.String(36),
            sa.ForeignKey("assignments.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("type", evaluation_type, nullable=False),
        sa.Column("custom_prompt", sa.Text(), nullable=True),
        sa.Column("rules", sa.JSON(), nullable=True),
        sa.Column("acceptable_responses", sa.JSON(), nullable=True),
        sa.Column("feedback_settings", sa.JSON(), nullable=False),
    )

    op.create_table(
        "questions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("assignment_id", sa.String(36), sa.ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("image", sa.String(), nullable=True),
        sa.Column("text_question", sa.Text(), nullable=True),
        sa.Column("video_url", sa.String(), nullable=True),
        sa.Column("text_answer", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_questions_assignment_id", "questions", ["assignment_id"])

    op.create_table(
        "student_assignment_progress",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("student_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("assignment_id", sa.String(36), sa.ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False),
        sa.Column("question_id", sa.String(36), sa.ForeignKey("questions.id", ondelete="CASCADE"), nullable=True),
        sa.Column("is_complete", sa.Boolean(), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=False),
        sa.Column("submission_type", sa.String(20), nullable=True),
        sa.Column("language_confidence_response", sa.JSON(), nullable=True),
        sa.Column("grammar_corrected", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("student_id", "assignment_id", "question_id", name="uq_student_assignment_question"),
    )
    op.create_index("idx_sap_assignment_student", "student_assignment_progress", ["assignment_id", "student_id"])

    op.create_table(
        "class_assignments",
        sa.Column("class_id", sa.String(36), sa.ForeignKey("classes.id", ondelete="CASCADE"), primary_key=True),
        sa.Column(
            "assignment_id", sa.String(36), sa.ForeignKey("assignments.id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "user_assignments",
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column(
            "assignment_id", sa.String(36), sa.ForeignKey("assignments.id", ondelete="CASCADE"), primary_key=True
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("type", activity_type, nullable=False),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("assignment_id", sa.String(36), nullable=True),
        sa.Column("class_id", sa.String(36), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_activity_logs_type", "activity_logs", ["type"])
    op.create_index("ix_activity_logs_assignment_id", "activity_logs", ["assignment_id"])

    op.create_table(
        "assignment_stats",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "assignment_id",
            sa.String(36),
            sa.ForeignKey("assignments.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("total_students", sa.Integer(), nullable=False),
        sa.Column("completed_students", sa.Integer(), nullable=False),
        sa.Column("in_progress_students", sa.Integer(), nullable=False),
        sa.Column("not_started_students", sa.Integer(), nullable=False),
        sa.Column("completion_rate", sa.Float(), nullable=False),
        sa.Column("average_score", sa.Float(), nullable=False),
        sa.Column("total_questions", sa.Integer(), nullable=False),
        sa.Column("total_answers", sa.Integer(), nullable=False),
        sa.Column("total_correct_answers", sa.Integer(), nullable=False),
        sa.Column("accuracy_rate", sa.Float(), nullable=False),
        sa.Column("last_updated", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "student_stats",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "student_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
        ),
        sa.Column("total_assignments", sa.Integer(), nullable=False),
        sa.Column("completed_assignments", sa.Integer(), nullable=False),
        sa.Column("in_progress_assignments", sa.Integer(), nullable=False),
        sa.Column("not_started_assignments", sa.Integer(), nullable=False),
        sa.Column("average_score", sa.Float(), nullable=False),
        sa.Column("total_questions", sa.Integer(), nullable=False),
        sa.Column("total_answers", sa.Integer(), nullable=False),
        sa.Column("total_correct_answers", sa.Integer(), nullable=False),
        sa.Column("accuracy_rate", sa.Float(), nullable=False),
        sa.Column("completion_rate", sa.Float(), nullable=False),
        sa.Column("last_activity_date", sa.DateTime(), nullable=True),
        sa.Column("last_updated", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "teacher_stats",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "teacher_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True
        ),
        sa.Column("total_assignments", sa.Integer(), nullable=False),
        sa.Column("total_classes", sa.Integer(), nullable=False),
        sa.Column("total_students", sa.Integer(), nullable=False),
        sa.Column("average_class_completion", sa.Float(), nullable=False),
        sa.Column("average_class_score", sa.Float(), nullable=False),
        sa.Column("total_questions", sa.Integer(), nullable=False),
        sa.Column("active_assignments", sa.Integer(), nullable=False),
        sa.Column("scheduled_assignments", sa.Integer(), nullable=False),
        sa.Column("last_updated", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "class_stats_detailed",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "class_id", sa.String(36), sa.ForeignKey("classes.id", ondelete="CASCADE"), nullable=False, unique=True
        ),
        sa.Column("total_students", sa.Integer(), nullable=False),
        sa.Column("total_assignments", sa.Integer(), nullable=False),
        sa.Column("active_assignments", sa.Integer(), nullable=False),
        sa.Column("average_completion", sa.Float(), nullable=False),
        sa.Column("average_score", sa.Float(), nullable=False),
        sa.Column("total_questions", sa.Integer(), nullable=False),
        sa.Column("total_answers", sa.Integer(), nullable=False),
        sa.Column("total_correct_answers", sa.Integer(), nullable=False),
        sa.Column("accuracy_rate", sa.Float(), nullable=False),
        sa.Column("active_students", sa.Integer(), nullable=False),
        sa.Column("students_needing_help", sa.Integer(), nullable=False),
        sa.Column("last_activity_date", sa.DateTime(), nullable=True),
        sa.Column("last_updated", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "school_stats",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("total_users", sa.Integer(), nullable=False),
        sa.Column("total_teachers", sa.Integer(), nullable=False),
        sa.Column("total_students", sa.Integer(), nullable=False),
        sa.Column("total_classes", sa.Integer(), nullable=False),
        sa.Column("total_assignments", sa.Integer(), nullable=False),
        sa.Column("active_assignments", sa.Integer(), nullable=False),
        sa.Column("scheduled_assignments", sa.Integer(), nullable=False),
        sa.Column("completed_assignments", sa.Integer(), nullable=False),
        sa.Column("average_completion_rate", sa.Float(), nullable=False),
        sa.Column("average_score", sa.Float(), nullable=False),
        sa.Column("total_questions", sa.Integer(), nullable=False),
        sa.Column("total_answers", sa.Integer(), nullable=False),
        sa.Column("total_correct_answers", sa.Integer(), nullable=False),
        sa.Column("students_needing_help", sa.Integer(), nullable=False),
        sa.Column("completed_students", sa.Integer(), nullable=False),
        sa.Column("in_progress_students", sa.Integer(), nullable=False),
        sa.Column("not_started_students", sa.Integer(), nullable=False),
        sa.Column("last_updated", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_school_stats_date", "school_stats", ["date"], unique=True)


def downgrade() -> None:
    for table in (
        "school_stats",
        "class_stats_detailed",
        "teacher_stats",
        "student_stats",
        "assignment_stats",
        "activity_logs",
        "user_assignments",
        "class_assignments",
        "student_assignment_progress",
        "questions",
        "evaluation_settings",
        "assignments",
        "user_classes",
        "classes",
        "languages",
        "users",
    ):
        op.drop_table(table)
    for enum_type in (activity_type, language_assessment_type, evaluation_type, assignment_type, user_role):
        enum_type.drop(op.get_bind(), checkfirst=True)
