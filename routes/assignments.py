"""
Assignments Router
CRUD for assignments, the variant creation endpoints and student progress
"""

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from db import get_db
from models import AssignmentType, User
from schemas import (
    AssignmentCreateRequest,
    AssignmentUpdateRequest,
    PronunciationAssignmentCreateRequest,
    ReadingAssignmentCreateRequest,
    SubmitProgressRequest,
    VideoAssignmentCreateRequest,
    serialize_assignment,
    success_response,
)
from utils import assignments as assignments_service
from utils import progress as progress_service
from utils.auth import get_current_user, require_student, require_teacher_or_admin
from utils.structured_logging import get_logger

router = APIRouter()
logger = get_logger("routes.assignments")


def _validate_body(model, payload: Dict[str, Any]):
    """Validate a raw JSON body against the model picked at runtime"""
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        raise RequestValidationError(e.errors())


# =============================================================================
# LISTING
# =============================================================================


@router.get("", summary="List assignments visible to the current user")
def list_assignments(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    class_id: Optional[str] = Query(None, alias="classId"),
    search: Optional[str] = Query(None, max_length=255),
    status: Optional[str] = Query(None, pattern="^(PUBLISHED|DRAFT|SCHEDULED)$"),
    assignment_type: Optional[AssignmentType] = Query(None, alias="type"),
    language_id: Optional[str] = Query(None, alias="languageId"),
    teacher_id: Optional[str] = Query(None, alias="teacherId"),
    published_from: Optional[datetime] = Query(None, alias="publishedFrom"),
    published_to: Optional[datetime] = Query(None, alias="publishedTo"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    assignments, pagination = assignments_service.list_assignments(
        db,
        current_user,
        page=page,
        limit=limit,
        class_id=class_id,
        search=search,
        status=status,
        assignment_type=assignment_type,
        language_id=language_id,
        teacher_id=teacher_id,
        published_from=published_from,
        published_to=published_to,
    )
    return success_response([serialize_assignment(assignment) for assignment in assignments], pagination=pagination)


@router.get("/my", summary="Dashboard assignments of the current user")
def get_my_assignments(
    status: str = Query("active", pattern="^(active|scheduled)$"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    assignments = assignments_service.get_my_assignments(db, current_user, status=status)
    return success_response([serialize_assignment(assignment) for assignment in assignments])


@router.get("/calendar", summary="Student calendar with own progress")
def get_student_calendar(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return success_response(assignments_service.get_student_calendar(db, current_user))


@router.get("/teacher/calendar", summary="Teacher calendar with completion counts")
def get_teacher_calendar(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return success_response(assignments_service.get_teacher_calendar(db, current_user))


# =============================================================================
# CREATION
# =============================================================================


@router.post("", status_code=201, summary="Create a standard or video assignment")
def create_assignment(
    payload: Dict[str, Any] = Body(...),
    current_user: User = Depends(require_teacher_or_admin),
    db: Session = Depends(get_db),
):
    """``creationType: "video"`` selects the video payload, anything else the standard one"""
    if payload.get("creationType") == "video":
        request = _validate_body(VideoAssignmentCreateRequest, payload)
        draft = assignments_service.build_video_assignment(db, request)
    else:
        request = _validate_body(AssignmentCreateRequest, payload)
        draft = assignments_service.draft_from_request(db, request)

    assignment = assignments_service.create_assignment(db, current_user, draft)
    return success_response(serialize_assignment(assignment), message="Assignment created successfully")


@router.post("/video", status_code=201, summary="Create a video assignment")
def create_video_assignment(
    request: VideoAssignmentCreateRequest,
    current_user: User = Depends(require_teacher_or_admin),
    db: Session = Depends(get_db),
):
    draft = assignments_service.build_video_assignment(db, request)
    assignment = assignments_service.create_assignment(db, current_user, draft)
    return success_response(serialize_assignment(assignment), message="Video assignment created successfully")


@router.post("/reading", status_code=201, summary="Create a reading assignment")
def create_reading_assignment(
    request: ReadingAssignmentCreateRequest,
    current_user: User = Depends(require_teacher_or_admin),
    db: Session = Depends(get_db),
):
    draft = assignments_service.build_reading_assignment(db, request)
    assignment = assignments_service.create_assignment(db, current_user, draft)
    return success_response(serialize_assignment(assignment), message="Reading assignment created successfully")


@router.post("/pronunciation", status_code=201, summary="Create a pronunciation assignment")
def create_pronunciation_assignment(
    request: PronunciationAssignmentCreateRequest,
    current_user: User = Depends(require_teacher_or_admin),
    db: Session = Depends(get_db),
):
    draft = assignments_service.build_pronunciation_assignment(db, request)
    assignment = assignments_service.create_assignment(db, current_user, draft)
    return success_response(
        serialize_assignment(assignment), message="Pronunciation assignment created successfully"
    )


# =============================================================================
# SINGLE ASSIGNMENT
# =============================================================================


@router.get("/{assignment_id}", summary="Get one assignment")
def get_assignment(
    assignment_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    assignment = assignments_service.get_assignment(db, current_user, assignment_id)
    return success_response(serialize_assignment(assignment))


@router.put("/{assignment_id}", summary="Update an assignment")
def update_assignment(
    assignment_id: str,
    request: AssignmentUpdateRequest,
    current_user: User = Depends(require_teacher_or_admin),
    db: Session = Depends(get_db),
):
    assignment = assignments_service.update_assignment(db, current_user, assignment_id, request)
    return success_response(serialize_assignment(assignment), message="Assignment updated successfully")


@router.delete("/{assignment_id}", summary="Delete an assignment")
def delete_assignment(
    assignment_id: str,
    current_user: User = Depends(require_teacher_or_admin),
    db: Session = Depends(get_db),
):
    assignments_service.delete_assignment(db, current_user, assignment_id)
    return success_response(None, message="Assignment deleted successfully")


# =============================================================================
# PROGRESS
# =============================================================================


@router.get("/{assignment_id}/progress", summary="Progress of every student in scope")
def get_assignment_progress(
    assignment_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    report = progress_service.get_assignment_progress_report(db, current_user, assignment_id)
    return success_response(report)


@router.get("/{assignment_id}/student/{student_id}/progress", summary="One student's progress")
def get_student_progress(
    assignment_id: str,
    student_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = progress_service.get_student_progress(db, current_user, assignment_id, student_id)
    return success_response(result)


@router.post("/{assignment_id}/submit-progress", summary="Submit a student's answer to one question")
def submit_progress(
    assignment_id: str,
    request: SubmitProgressRequest,
    current_user: User = Depends(require_student),
    db: Session = Depends(get_db),
):
    result = progress_service.submit_student_progress(db, current_user, assignment_id, request)
    return success_response(result, message="Progress submitted successfully")
