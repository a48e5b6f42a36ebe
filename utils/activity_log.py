"""
Activity Log Service

Reads the audit trail that assignment writes and scheduled publishing
leave behind: the filtered, paginated listing behind /api/activity-logs.
"""

import math
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session, joinedload

from models import ActivityLog, ActivityType, User, UserRole
from schemas.api_models import Pagination
from utils.assignments import to_naive_utc
from utils.error_handling import ForbiddenError, ValidationError


def list_activity_logs(
    db: Session,
    user: User,
    page: int = 1,
    limit: int = 50,
    user_id: Optional[str] = None,
    activity_type: Optional[ActivityType] = None,
    class_id: Optional[str] = None,
    assignment_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> Tuple[List[ActivityLog], Pagination]:
    """
    Newest entries first. Admins see every entry; teachers only their own,
    whatever ``user_id`` they ask for.
    """
    if user.role == UserRole.TEACHER:
        user_id = user.id
    elif user.role != UserRole.ADMIN:
        raise ForbiddenError("Only admins and teachers can view activity logs")

    start_date = to_naive_utc(start_date)
    end_date = to_naive_utc(end_date)
    if start_date and end_date and start_date > end_date:
        raise ValidationError("startDate must be before endDate")

    query = db.query(ActivityLog)
    if user_id:
        query = query.filter(ActivityLog.user_id == user_id)
    if activity_type is not None:
        query = query.filter(ActivityLog.type == activity_type)
    if class_id:
        query = query.filter(ActivityLog.class_id == class_id)
    if assignment_id:
        query = query.filter(ActivityLog.assignment_id == assignment_id)
    if start_date is not None:
        query = query.filter(ActivityLog.created_at >= start_date)
    if end_date is not None:
        query = query.filter(ActivityLog.created_at <= end_date)

    total = query.count()
    entries = (
        query.options(joinedload(ActivityLog.user))
        .order_by(ActivityLog.created_at.desc(), ActivityLog.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    pagination = Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit) if limit else 0)
    return entries, pagination
