"""
Assignment scope queries

An assignment's scope is every STUDENT in a linked class plus every
individually linked STUDENT.
"""

from typing import Iterable, List, Set

from sqlalchemy import select, union
from sqlalchemy.orm import Session

from models import (
    Assignment,
    ClassAssignment,
    Question,
    User,
    UserAssignment,
    UserClass,
    UserRole,
)


def get_assignment_student_ids(db: Session, assignment_id: str) -> Set[str]:
    class_students = (
        select(UserClass.user_id)
        .join(ClassAssignment, ClassAssignment.class_id == UserClass.class_id)
        .join(User, User.id == UserClass.user_id)
        .where(ClassAssignment.assignment_id == assignment_id, User.role == UserRole.STUDENT)
    )
    individual_students = (
        select(UserAssignment.user_id)
        .join(User, User.id == UserAssignment.user_id)
        .where(UserAssignment.assignment_id == assignment_id, User.role == UserRole.STUDENT)
    )
    return set(db.execute(union(class_students, individual_students)).scalars().all())


def get_assignment_class_ids(db: Session, assignment_id: str) -> Set[str]:
    rows = db.execute(select(ClassAssignment.class_id).where(ClassAssignment.assignment_id == assignment_id))
    return set(rows.scalars().all())


def get_student_assignment_ids(db: Session, student_id: str, active_only: bool = True) -> Set[str]:
    """Assignments reaching the student through a class or an individual link"""
    via_class = (
        select(ClassAssignment.assignment_id)
        .join(UserClass, UserClass.class_id == ClassAssignment.class_id)
        .where(UserClass.user_id == student_id)
    )
    individual = select(UserAssignment.assignment_id).where(UserAssignment.user_id == student_id)
    assignment_ids = set(db.execute(union(via_class, individual)).scalars().all())
    if not active_only or not assignment_ids:
        return assignment_ids

    active = db.execute(
        select(Assignment.id).where(Assignment.id.in_(list(assignment_ids)), Assignment.is_active.is_(True))
    )
    return set(active.scalars().all())


def get_student_class_ids(db: Session, student_id: str) -> Set[str]:
    rows = db.execute(select(UserClass.class_id).where(UserClass.user_id == student_id))
    return set(rows.scalars().all())


def get_class_student_ids(db: Session, class_id: str) -> Set[str]:
    rows = db.execute(
        select(UserClass.user_id)
        .join(User, User.id == UserClass.user_id)
        .where(UserClass.class_id == class_id, User.role == UserRole.STUDENT)
    )
    return set(rows.scalars().all())


def get_classes_of_students(db: Session, student_ids: Iterable[str]) -> Set[str]:
    student_ids = list(student_ids)
    if not student_ids:
        return set()
    rows = db.execute(select(UserClass.class_id).where(UserClass.user_id.in_(student_ids)))
    return set(rows.scalars().all())


def student_in_scope(db: Session, student_id: str, assignment_id: str) -> bool:
    return student_id in get_assignment_student_ids(db, assignment_id)


def get_question_ids(db: Session, assignment_id: str) -> List[str]:
    rows = db.execute(
        select(Question.id).where(Question.assignment_id == assignment_id).order_by(Question.order)
    )
    return list(rows.scalars().all())
