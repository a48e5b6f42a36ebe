"""
Authentication Router
Username/password login issuing a signed session cookie
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from config import settings
from db import get_db
from models import User
from schemas import LoginRequest, success_response
from schemas.api_models import UserSummary
from utils.auth import authenticate_user, get_current_user, get_current_user_optional, session_manager
from utils.error_handling import ServiceError
from utils.structured_logging import log_authentication_event

router = APIRouter()


@router.post("/login", summary="Log in with username and password")
def login(request: LoginRequest, response: Response, db: Session = Depends(get_db)):
    try:
        user = authenticate_user(db, request.username, request.password)
    except ServiceError:
        log_authentication_event("login", success=False, details={"username": request.username})
        raise

    token = session_manager.create_session_token(user)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_EXPIRE_HOURS * 3600,
        httponly=True,
        samesite="lax",
        secure=settings.NODE_ENV == "production",
    )
    log_authentication_event("login", user_id=user.id, success=True)
    return success_response(
        {"user": UserSummary.model_validate(user).to_json(), "token": token}, message="Logged in successfully"
    )


@router.post("/logout", summary="Log out and clear the session cookie")
def logout(response: Response, user=Depends(get_current_user_optional)):
    response.delete_cookie(key=settings.SESSION_COOKIE_NAME)
    log_authentication_event("logout", user_id=user.id if user else None, success=True)
    return success_response(None, message="Logged out successfully")


@router.get("/me", summary="The currently logged in user")
def me(current_user: User = Depends(get_current_user)):
    return success_response(UserSummary.model_validate(current_user).to_json())
