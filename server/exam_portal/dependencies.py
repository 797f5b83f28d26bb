"""
Request dependencies: store access and session-token role checks.
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from exam_portal.models import Student, Teacher, AnyUser
from exam_portal.services.exam_timer import AttemptManager
from exam_portal.storage import ExamStore, get_store


def get_attempt_manager(request: Request) -> AttemptManager:
    return request.app.state.attempts


def get_token(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
    """Token from an `Authorization: Bearer <token>` header"""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def get_current_user(
    token: Optional[str] = Depends(get_token),
    store: ExamStore = Depends(get_store),
) -> AnyUser:
    user = store.current_user(token)
    if user is None:
        raise HTTPException(status_code=401, detail="Please log in first")
    return user


def require_teacher(user: AnyUser = Depends(get_current_user)) -> Teacher:
    if not isinstance(user, Teacher):
        raise HTTPException(status_code=403, detail="Teacher access only")
    return user


def require_student(user: AnyUser = Depends(get_current_user)) -> Student:
    if not isinstance(user, Student):
        raise HTTPException(status_code=403, detail="Student access only")
    return user
