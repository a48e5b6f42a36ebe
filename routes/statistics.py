"""
Statistics Router
Read access to the pre-aggregated rollups plus an admin full recalculation
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from db import get_db, transaction
from models import Assignment, SchoolClass, User, UserRole
from schemas import success_response
from schemas.api_models import (
    AssignmentStatsResponse,
    ClassStatsResponse,
    SchoolStatsResponse,
    StudentStatsResponse,
    TeacherStatsResponse,
)
from utils import statistics
from utils.auth import can_manage_assignment, get_current_user, require_admin, require_teacher_or_admin
from utils.error_handling import ForbiddenError, validate_resource_exists
from utils.structured_logging import get_logger

router = APIRouter()
logger = get_logger("routes.statistics")


@router.get("/assignments/{assignment_id}", summary="Assignment statistics")
def get_assignment_statistics(
    assignment_id: str,
    current_user: User = Depends(require_teacher_or_admin),
    db: Session = Depends(get_db),
):
    assignment = validate_resource_exists(db.get(Assignment, assignment_id), "Assignment", assignment_id)
    if not can_manage_assignment(current_user, assignment):
        raise ForbiddenError("Cannot view statistics of this assignment")
    with transaction(db):
        stats = statistics.get_or_create_assignment_statistics(db, assignment)
    return success_response(AssignmentStatsResponse.model_validate(stats).to_json())


@router.get("/students/{student_id}", summary="Student statistics")
def get_student_statistics(
    student_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Teachers and admins see any student, students only themselves"""
    if current_user.role == UserRole.STUDENT and current_user.id != student_id:
        raise ForbiddenError("Can only view your own statistics")
    if current_user.role not in (UserRole.STUDENT, UserRole.TEACHER, UserRole.ADMIN):
        raise ForbiddenError("Cannot view student statistics")

    student = validate_resource_exists(db.get(User, student_id), "Student", student_id)
    with transaction(db):
        stats = statistics.get_or_create_student_statistics(db, student.id)
    return success_response(StudentStatsResponse.model_validate(stats).to_json())


@router.get("/classes/{class_id}", summary="Class statistics")
def get_class_statistics(
    class_id: str,
    current_user: User = Depends(require_teacher_or_admin),
    db: Session = Depends(get_db),
):
    school_class = validate_resource_exists(db.get(SchoolClass, class_id), "Class", class_id)
    stats = statistics.get_class_statistics(db, school_class.id)
    if stats is None:
        with transaction(db):
            stats = statistics.update_class_statistics(db, school_class.id)
    return success_response(ClassStatsResponse.model_validate(stats).to_json())


@router.get("/teachers/{teacher_id}", summary="Teacher statistics")
def get_teacher_statistics(
    teacher_id: str,
    current_user: User = Depends(require_teacher_or_admin),
    db: Session = Depends(get_db),
):
    if current_user.role == UserRole.TEACHER and current_user.id != teacher_id:
        raise ForbiddenError("Can only view your own statistics")
    teacher = validate_resource_exists(db.get(User, teacher_id), "Teacher", teacher_id)
    stats = statistics.get_teacher_statistics(db, teacher.id)
    if stats is None:
        with transaction(db):
            stats = statistics.update_teacher_statistics(db, teacher.id)
    return success_response(TeacherStatsResponse.model_validate(stats).to_json())


@router.get("/school", summary="Today's school statistics")
def get_school_statistics(
    current_user: User = Depends(require_teacher_or_admin),
    db: Session = Depends(get_db),
):
    stats = statistics.get_school_statistics(db)
    if stats is None:
        with transaction(db):
            stats = statistics.update_school_statistics(db)
    return success_response(SchoolStatsResponse.model_validate(stats).to_json())


@router.get("/school/trend", summary="Daily school statistics over a period")
def get_school_statistics_trend(
    days: int = Query(30, ge=1, le=365),
    current_user: User = Depends(require_teacher_or_admin),
    db: Session = Depends(get_db),
):
    rows = statistics.get_school_statistics_trend(db, days=days)
    return success_response([SchoolStatsResponse.model_validate(row).to_json() for row in rows])


@router.post("/recalculate", summary="Rebuild every statistics rollup")
def recalculate_statistics(
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    with transaction(db):
        summary = statistics.recalculate_all_statistics(db)
    logger.business("statistics_recalculated", "All statistics recalculated", user_id=current_user.id, **summary)
    return success_response(summary, message="Statistics recalculated successfully")
