from sqlalchemy import Column, Integer, String, DateTime, Date, ForeignKey, Enum, Boolean, JSON, Text, Float
from sqlalchemy import UniqueConstraint, Index
from sqlalchemy.orm import declarative_base, relationship
import enum
from datetime import datetime
import uuid

Base = declarative_base()


def generate_uuid() -> str:
    return str(uuid.uuid4())


# Enums


class UserRole(enum.Enum):
    ADMIN = "ADMIN"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"
    PARENT = "PARENT"


class AssignmentType(enum.Enum):
    CLASS = "CLASS"
    INDIVIDUAL = "INDIVIDUAL"


class EvaluationType(enum.Enum):
    CUSTOM = "CUSTOM"
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    Q_AND_A = "Q_AND_A"
    READING = "READING"
    PRONUNCIATION = "PRONUNCIATION"


class LanguageAssessmentType(enum.Enum):
    SCRIPTED_US = "SCRIPTED_US"
    SCRIPTED_UK = "SCRIPTED_UK"
    UNSCRIPTED_US = "UNSCRIPTED_US"
    UNSCRIPTED_UK = "UNSCRIPTED_UK"
    PRONUNCIATION_US = "PRONUNCIATION_US"
    PRONUNCIATION_UK = "PRONUNCIATION_UK"


class ActivityType(enum.Enum):
    ASSIGNMENT_CREATED = "ASSIGNMENT_CREATED"
    INDIVIDUAL_ASSIGNMENT_CREATED = "INDIVIDUAL_ASSIGNMENT_CREATED"
    ASSIGNMENT_UPDATED = "ASSIGNMENT_UPDATED"
    ASSIGNMENT_DELETED = "ASSIGNMENT_DELETED"
    ASSIGNMENT_PUBLISHED = "ASSIGNMENT_PUBLISHED"


# Users, languages and classes


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=True)
    password = Column(String, nullable=True)  # bcrypt hash
    role = Column(Enum(UserRole), index=True, nullable=False, default=UserRole.STUDENT)
    confirmed = Column(Boolean, default=False, nullable=False)
    blocked = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    classes = relationship("UserClass", back_populates="user", cascade="all, delete")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_teacher(self) -> bool:
        return self.role == UserRole.TEACHER

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT


class Language(Base):
    __tablename__ = "languages"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    language = Column(String, nullable=False)  # e.g. "ENGLISH"
    code = Column(String, unique=True, nullable=False)  # e.g. "en-US"


class SchoolClass(Base):
    __tablename__ = "classes"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    users = relationship("UserClass", back_populates="school_class", cascade="all, delete")
    assignments = relationship("ClassAssignment", back_populates="school_class", cascade="all, delete")


class UserClass(Base):
    __tablename__ = "user_classes"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    class_id = Column(String(36), ForeignKey("classes.id", ondelete="CASCADE"), primary_key=True)

    user = relationship("User", back_populates="classes")
    school_class = relationship("SchoolClass", back_populates="users")


# Assignments


class Assignment(Base):
    __tablename__ = "assignments"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    topic = Column(String, nullable=True)
    color = Column(String, nullable=True)
    vocabulary_items = Column(JSON, nullable=True)
    type = Column(Enum(AssignmentType), nullable=True)
    video_url = Column(String, nullable=True)
    video_transcript = Column(Text, nullable=True)
    language_assessment_type = Column(Enum(LanguageAssessmentType), nullable=True)
    is_ielts = Column(Boolean, default=False, nullable=False)
    context = Column(Text, nullable=True)

    # Scheduling
    scheduled_publish_at = Column(DateTime, nullable=True, index=True)
    due_date = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    published_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Aggregate counters mirrored from AssignmentStats
    total_students_in_scope = Column(Integer, default=0, nullable=False)
    completed_students_count = Column(Integer, default=0, nullable=False)
    completion_rate = Column(Float, default=0.0, nullable=False)
    average_score_of_completed = Column(Float, default=0.0, nullable=False)

    teacher_id = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    language_id = Column(String(36), ForeignKey("languages.id"), nullable=True)

    teacher = relationship("User")
    language = relationship("Language")
    evaluation_settings = relationship(
        "EvaluationSettings", back_populates="assignment", uselist=False, cascade="all, delete"
    )
    questions = relationship(
        "Question",
        back_populates="assignment",
        cascade="all, delete",
        order_by="Question.order",
    )
    classes = relationship("ClassAssignment", back_populates="assignment", cascade="all, delete")
    students = relationship("UserAssignment", back_populates="assignment", cascade="all, delete")
    progress = relationship("StudentAssignmentProgress", back_populates="assignment", cascade="all, delete")
    stats = relationship("AssignmentStats", back_populates="assignment", uselist=False, cascade="all, delete")

    @property
    def is_scheduled(self) -> bool:
        """Inactive and waiting for its publish time"""
        return (
            not self.is_active
            and self.scheduled_publish_at is not None
            and self.scheduled_publish_at > datetime.utcnow()
        )


class EvaluationSettings(Base):
    __tablename__ = "evaluation_settings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    assignment_id = Column(String(36), ForeignKey("assignments.id", ondelete="CASCADE"), unique=True, nullable=False)
    type = Column(Enum(EvaluationType), nullable=False)
    custom_prompt = Column(Text, nullable=True)
    rules = Column(JSON, nullable=True)
    acceptable_responses = Column(JSON, nullable=True)
    feedback_settings = Column(JSON, default=dict, nullable=False)

    assignment = relationship("Assignment", back_populates="evaluation_settings")


class Question(Base):
    __tablename__ = "questions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    assignment_id = Column(String(36), ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    order = Column(Integer, default=0, nullable=False)
    image = Column(String, nullable=True)
    text_question = Column(Text, nullable=True)
    video_url = Column(String, nullable=True)
    text_answer = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    assignment = relationship("Assignment", back_populates="questions")
    progress = relationship("StudentAssignmentProgress", back_populates="question", cascade="all, delete")


class StudentAssignmentProgress(Base):
    __tablename__ = "student_assignment_progress"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    student_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    assignment_id = Column(String(36), ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(String(36), ForeignKey("questions.id", ondelete="CASCADE"), nullable=True)
    is_complete = Column(Boolean, default=False, nullable=False)
    is_correct = Column(Boolean, default=False, nullable=False)
    submission_type = Column(String(20), nullable=True)  # VIDEO, READING
    language_confidence_response = Column(JSON, nullable=True)  # raw analysis payload
    grammar_corrected = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("User")
    assignment = relationship("Assignment", back_populates="progress")
    question = relationship("Question", back_populates="progress")

    __table_args__ = (
        UniqueConstraint("student_id", "assignment_id", "question_id", name="uq_student_assignment_question"),
        Index("idx_sap_assignment_student", "assignment_id", "student_id"),
    )


class ClassAssignment(Base):
    __tablename__ = "class_assignments"

    class_id = Column(String(36), ForeignKey("classes.id", ondelete="CASCADE"), primary_key=True)
    assignment_id = Column(String(36), ForeignKey("assignments.id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    school_class = relationship("SchoolClass", back_populates="assignments")
    assignment = relationship("Assignment", back_populates="classes")


class UserAssignment(Base):
    __tablename__ = "user_assignments"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    assignment_id = Column(String(36), ForeignKey("assignments.id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User")
    assignment = relationship("Assignment", back_populates="students")


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    type = Column(Enum(ActivityType), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    # No foreign key: deletion entries outlive the assignment they describe
    assignment_id = Column(String(36), nullable=True, index=True)
    class_id = Column(String(36), nullable=True)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User")


# Pre-aggregated statistics


class AssignmentStats(Base):
    __tablename__ = "assignment_stats"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    assignment_id = Column(String(36), ForeignKey("assignments.id", ondelete="CASCADE"), unique=True, nullable=False)

    total_students = Column(Integer, default=0, nullable=False)
    completed_students = Column(Integer, default=0, nullable=False)
    in_progress_students = Column(Integer, default=0, nullable=False)
    not_started_students = Column(Integer, default=0, nullable=False)
    completion_rate = Column(Float, default=0.0, nullable=False)
    average_score = Column(Float, default=0.0, nullable=False)
    total_questions = Column(Integer, default=0, nullable=False)
    total_answers = Column(Integer, default=0, nullable=False)
    total_correct_answers = Column(Integer, default=0, nullable=False)
    accuracy_rate = Column(Float, default=0.0, nullable=False)
    last_updated = Column(DateTime, default=datetime.utcnow, nullable=False)

    assignment = relationship("Assignment", back_populates="stats")


class StudentStats(Base):
    __tablename__ = "student_stats"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    student_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)

    total_assignments = Column(Integer, default=0, nullable=False)
    completed_assignments = Column(Integer, default=0, nullable=False)
    in_progress_assignments = Column(Integer, default=0, nullable=False)
    not_started_assignments = Column(Integer, default=0, nullable=False)
    average_score = Column(Float, default=0.0, nullable=False)
    total_questions = Column(Integer, default=0, nullable=False)
    total_answers = Column(Integer, default=0, nullable=False)
    total_correct_answers = Column(Integer, default=0, nullable=False)
    accuracy_rate = Column(Float, default=0.0, nullable=False)
    completion_rate = Column(Float, default=0.0, nullable=False)
    last_activity_date = Column(DateTime, nullable=True)
    last_updated = Column(DateTime, default=datetime.utcnow, nullable=False)

    student = relationship("User")


class TeacherStats(Base):
    __tablename__ = "teacher_stats"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    teacher_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)

    total_assignments = Column(Integer, default=0, nullable=False)
    total_classes = Column(Integer, default=0, nullable=False)
    total_students = Column(Integer, default=0, nullable=False)
    average_class_completion = Column(Float, default=0.0, nullable=False)
    average_class_score = Column(Float, default=0.0, nullable=False)
    total_questions = Column(Integer, default=0, nullable=False)
    active_assignments = Column(Integer, default=0, nullable=False)
    scheduled_assignments = Column(Integer, default=0, nullable=False)
    last_updated = Column(DateTime, default=datetime.utcnow, nullable=False)


class ClassStatsDetailed(Base):
    __tablename__ = "class_stats_detailed"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    class_id = Column(String(36), ForeignKey("classes.id", ondelete="CASCADE"), unique=True, nullable=False)

    total_students = Column(Integer, default=0, nullable=False)
    total_assignments = Column(Integer, default=0, nullable=False)
    active_assignments = Column(Integer, default=0, nullable=False)
    average_completion = Column(Float, default=0.0, nullable=False)
    average_score = Column(Float, default=0.0, nullable=False)
    total_questions = Column(Integer, default=0, nullable=False)
    total_answers = Column(Integer, default=0, nullable=False)
    total_correct_answers = Column(Integer, default=0, nullable=False)
    accuracy_rate = Column(Float, default=0.0, nullable=False)
    active_students = Column(Integer, default=0, nullable=False)
    students_needing_help = Column(Integer, default=0, nullable=False)
    last_activity_date = Column(DateTime, nullable=True)
    last_updated = Column(DateTime, default=datetime.utcnow, nullable=False)


class SchoolStats(Base):
    __tablename__ = "school_stats"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    date = Column(Date, unique=True, nullable=False, index=True)

    total_users = Column(Integer, default=0, nullable=False)
    total_teachers = Column(Integer, default=0, nullable=False)
    total_students = Column(Integer, default=0, nullable=False)
    total_classes = Column(Integer, default=0, nullable=False)
    total_assignments = Column(Integer, default=0, nullable=False)
    active_assignments = Column(Integer, default=0, nullable=False)
    scheduled_assignments = Column(Integer, default=0, nullable=False)
    completed_assignments = Column(Integer, default=0, nullable=False)
    average_completion_rate = Column(Float, default=0.0, nullable=False)
    average_score = Column(Float, default=0.0, nullable=False)
    total_questions = Column(Integer, default=0, nullable=False)
    total_answers = Column(Integer, default=0, nullable=False)
    total_correct_answers = Column(Integer, default=0, nullable=False)
    students_needing_help = Column(Integer, default=0, nullable=False)
    completed_students = Column(Integer, default=0, nullable=False)
    in_progress_students = Column(Integer, default=0, nullable=False)
    not_started_students = Column(Integer, default=0, nullable=False)
    last_updated = Column(DateTime, default=datetime.utcnow, nullable=False)
