"""
IELTS Router
IELTS assignment creation and the speech analysis proxy endpoints
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from db import get_db
from models import User
from schemas import (
    IeltsPronunciationCreateRequest,
    IeltsQuestionAnswerCreateRequest,
    IeltsReadingCreateRequest,
    PronunciationAnalyzeRequest,
    QuestionAnswerAnalyzeRequest,
    serialize_assignment,
    success_response,
)
from utils import assignments as assignments_service
from utils import audio_analysis
from utils.auth import require_teacher_or_admin
from utils.structured_logging import get_logger

router = APIRouter()
logger = get_logger("routes.ielts")


@router.post("/reading", status_code=201, summary="Create an IELTS reading assignment")
def create_ielts_reading(
    request: IeltsReadingCreateRequest,
    current_user: User = Depends(require_teacher_or_admin),
    db: Session = Depends(get_db),
):
    draft = assignments_service.build_ielts_reading_assignment(db, request)
    assignment = assignments_service.create_assignment(db, current_user, draft)
    return success_response(serialize_assignment(assignment), message="IELTS reading assignment created successfully")


@router.post("/pronunciation", status_code=201, summary="Create an IELTS pronunciation assignment")
def create_ielts_pronunciation(
    request: IeltsPronunciationCreateRequest,
    current_user: User = Depends(require_teacher_or_admin),
    db: Session = Depends(get_db),
):
    draft = assignments_service.build_ielts_pronunciation_assignment(db, request)
    assignment = assignments_service.create_assignment(db, current_user, draft)
    return success_response(
        serialize_assignment(assignment), message="IELTS pronunciation assignment created successfully"
    )


@router.post("/question-and-answer", status_code=201, summary="Create an IELTS question-and-answer assignment")
def create_ielts_question_and_answer(
    request: IeltsQuestionAnswerCreateRequest,
    current_user: User = Depends(require_teacher_or_admin),
    db: Session = Depends(get_db),
):
    draft = assignments_service.build_ielts_qa_assignment(db, request)
    assignment = assignments_service.create_assignment(db, current_user, draft)
    return success_response(
        serialize_assignment(assignment), message="IELTS question-and-answer assignment created successfully"
    )


@router.post("/pronunciation/analyze", summary="Analyze a pronunciation recording")
def analyze_pronunciation(request: PronunciationAnalyzeRequest):
    result = audio_analysis.analyze_pronunciation(request)
    return success_response(result)


@router.post("/question-and-answer/analyze", summary="Analyze a spoken answer")
def analyze_question_and_answer(request: QuestionAnswerAnalyzeRequest):
    result = audio_analysis.analyze_freestyle_speech(request)
    return success_response(result)
