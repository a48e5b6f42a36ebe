"""
Scheduled publishing

Assignments created with a future ``scheduled_publish_at`` stay inactive
until a publish run activates them.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from db import transaction
from models import ActivityLog, ActivityType, Assignment
from utils import statistics
from utils.scope import get_assignment_class_ids, get_assignment_student_ids, get_classes_of_students
from utils.structured_logging import LogCategory, get_logger

logger = get_logger("services.scheduler")


def get_due_assignments(db: Session, now: Optional[datetime] = None) -> List[Assignment]:
    now = now or datetime.utcnow()
    return (
        db.query(Assignment)
        .filter(
            Assignment.published_at.isnot(None),
            Assignment.is_active.is_(False),
            Assignment.scheduled_publish_at.isnot(None),
            Assignment.scheduled_publish_at <= now,
        )
        .order_by(Assignment.scheduled_publish_at.asc())
        .all()
    )


def get_scheduled_assignments(db: Session, now: Optional[datetime] = None) -> List[Assignment]:
    """Inactive assignments still waiting for their publish time"""
    now = now or datetime.utcnow()
    return (
        db.query(Assignment)
        .filter(Assignment.is_active.is_(False), Assignment.scheduled_publish_at > now)
        .order_by(Assignment.scheduled_publish_at.asc())
        .all()
    )


def publish_due_assignments(db: Session, now: Optional[datetime] = None) -> List[str]:
    """
    Activate every assignment whose publish time has passed.

    Students newly reached by an activated assignment get it counted in
    their totals; the class, school and teacher rollups follow. Returns the
    ids of the activated assignments.
    """
    now = now or datetime.utcnow()
    published: List[str] = []

    with transaction(db):
        due = get_due_assignments(db, now)
        affected_students = set()
        affected_classes = set()
        teacher_ids = set()

        for assignment in due:
            assignment.is_active = True
            assignment.updated_at = now
            db.add(
                ActivityLog(
                    type=ActivityType.ASSIGNMENT_PUBLISHED,
                    user_id=assignment.teacher_id,
                    assignment_id=assignment.id,
                    details={"scheduledPublishAt": assignment.scheduled_publish_at.isoformat()},
                )
            )
            published.append(assignment.id)
            student_ids = get_assignment_student_ids(db, assignment.id)
            affected_students |= student_ids
            affected_classes |= get_assignment_class_ids(db, assignment.id) | get_classes_of_students(db, student_ids)
            if assignment.teacher_id:
                teacher_ids.add(assignment.teacher_id)
        db.flush()

        if published:
            for assignment in due:
                statistics.recalculate_assignment_statistics(db, assignment)
            for student_id in sorted(affected_students):
                statistics.increment_student_assignment_count(db, student_id)
            for class_id in sorted(affected_classes):
                statistics.update_class_statistics(db, class_id)
            statistics.update_school_statistics(db)
            for teacher_id in sorted(teacher_ids):
                statistics.update_teacher_statistics(db, teacher_id)

    if published:
        logger.info(
            f"Published {len(published)} scheduled assignment(s)",
            category=LogCategory.SCHEDULER,
            extra={"assignment_ids": published},
        )
    else:
        logger.debug("No scheduled assignments due", category=LogCategory.SCHEDULER)
    return published
