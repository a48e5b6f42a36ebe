"""
Activity Logs Router
Audit trail listing for admins, and for teachers over their own actions
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from db import get_db
from models import ActivityType, User
from schemas import ActivityLogResponse, success_response
from utils import activity_log
from utils.auth import require_teacher_or_admin

router = APIRouter()


@router.get("", summary="List activity log entries, newest first")
def list_activity_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_id: Optional[str] = Query(None, alias="userId"),
    activity_type: Optional[ActivityType] = Query(None, alias="type"),
    class_id: Optional[str] = Query(None, alias="classId"),
    assignment_id: Optional[str] = Query(None, alias="assignmentId"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    current_user: User = Depends(require_teacher_or_admin),
    db: Session = Depends(get_db),
):
    entries, pagination = activity_log.list_activity_logs(
        db,
        current_user,
        page=page,
        limit=limit,
        user_id=user_id,
        activity_type=activity_type,
        class_id=class_id,
        assignment_id=assignment_id,
        start_date=start_date,
        end_date=end_date,
    )
    return success_response(
        [ActivityLogResponse.model_validate(entry).to_json() for entry in entries], pagination=pagination
    )
