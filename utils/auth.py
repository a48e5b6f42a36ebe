"""
Session authentication and assignment permissions
Signed session cookies, password hashing and role-based FastAPI dependencies
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import jwt
from fastapi import Depends, Request
from passlib.hash import bcrypt
from sqlalchemy.orm import Session

from config import settings
from db import get_db
from models import Assignment, User
from utils.error_handling import ForbiddenError, UnauthorizedError
from utils.scope import student_in_scope
from utils.structured_logging import get_logger

logger = get_logger("auth")


# =============================================================================
# SESSION TOKENS
# =============================================================================


class SessionManager:
    """Creates and verifies the JWT carried in the session cookie"""

    def __init__(self):
        self.algorithm = "HS256"
        self.audience = "session"
        self.issuer = "school-assignments-api"

    def create_session_token(self, user: User, expires_hours: Optional[int] = None) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user.id,
            "role": user.role.value,
            "iat": now,
            "exp": now + timedelta(hours=expires_hours or settings.SESSION_EXPIRE_HOURS),
            "aud": self.audience,
            "iss": self.issuer,
        }
        return jwt.encode(payload, settings.SESSION_SECRET, algorithm=self.algorithm)

    def verify_session_token(self, token: str) -> Optional[Dict]:
        """Decoded payload if valid, None if expired or tampered with"""
        try:
            return jwt.decode(
                token,
                settings.SESSION_SECRET,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
            )
        except jwt.InvalidTokenError:
            return None


session_manager = SessionManager()


def hash_password(password: str) -> str:
    return bcrypt.hash(password)


def verify_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    return bcrypt.verify(password, hashed)


def authenticate_user(db: Session, username: str, password: str) -> User:
    user = db.query(User).filter(User.username == username).first()
    if not user or not verify_password(password, user.password):
        raise UnauthorizedError("Invalid username or password")
    if user.blocked:
        raise ForbiddenError("Account is blocked")
    return user


def _extract_token(request: Request) -> Optional[str]:
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        return token
    authorization = request.headers.get("Authorization", "")
    if authorization.startswith("Bearer "):
        return authorization[len("Bearer "):].strip() or None
    return None


# =============================================================================
# FASTAPI DEPENDENCIES
# =============================================================================


def get_current_user_optional(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    token = _extract_token(request)
    if not token:
        return None

    payload = session_manager.verify_session_token(token)
    if not payload:
        return None

    user = db.get(User, payload.get("sub"))
    if user is None or user.blocked:
        return None

    request.state.user_id = user.id
    return user


def get_current_user(user: Optional[User] = Depends(get_current_user_optional)) -> User:
    if user is None:
        raise UnauthorizedError()
    return user


def require_teacher_or_admin(current_user: User = Depends(get_current_user)) -> User:
    if not (current_user.is_teacher or current_user.is_admin):
        raise ForbiddenError("Only teachers and admins can perform this action")
    return current_user


def require_student(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_student:
        raise ForbiddenError("Only students can submit progress")
    return current_user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise ForbiddenError("Admin access required")
    return current_user


# =============================================================================
# ASSIGNMENT PERMISSIONS
# =============================================================================


def can_manage_assignment(user: User, assignment: Assignment) -> bool:
    """Admins manage everything, teachers only their own assignments"""
    if user.is_admin:
        return True
    return user.is_teacher and assignment.teacher_id == user.id


def can_access_assignment(db: Session, user: User, assignment: Assignment) -> bool:
    if user.is_admin or user.is_teacher:
        return True
    if user.is_student:
        return student_in_scope(db, user.id, assignment.id)
    return False
