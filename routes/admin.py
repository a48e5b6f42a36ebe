"""
Admin Router
Scheduled publishing: inspect the queue and trigger a publish run
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from db import get_db
from models import User
from schemas import serialize_assignment, success_response
from utils import scheduler
from utils.auth import require_admin
from utils.structured_logging import get_logger

router = APIRouter()
logger = get_logger("routes.admin")


@router.get("/scheduled-tasks", summary="Assignments waiting to be published")
def list_scheduled_tasks(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    pending = scheduler.get_scheduled_assignments(db)
    due = scheduler.get_due_assignments(db)
    return success_response(
        {
            "scheduled": [serialize_assignment(assignment) for assignment in pending],
            "due": [serialize_assignment(assignment) for assignment in due],
        }
    )


@router.post("/scheduled-tasks/publish", summary="Publish every assignment whose time has come")
def publish_scheduled_tasks(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    published = scheduler.publish_due_assignments(db)
    logger.business(
        "scheduled_assignments_published",
        f"Published {len(published)} scheduled assignment(s)",
        user_id=current_user.id,
        assignment_ids=published,
    )
    return success_response(
        {"publishedCount": len(published), "assignmentIds": published},
        message=f"Published {len(published)} assignment(s)",
    )
