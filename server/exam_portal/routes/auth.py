from fastapi import APIRouter, Depends, HTTPException
from typing import Optional

from exam_portal.dependencies import get_current_user, get_token
from exam_portal.models import AnyUser, UserRole
from exam_portal.schemas import (
    ApiResponse,
    LoginResponse,
    RegisterResponse,
    RegisterStudentRequest,
    RegisterTeacherRequest,
    StudentLoginRequest,
    TeacherLoginRequest,
    UserResponse,
)
from exam_portal.storage import ExamStore, get_store

router = APIRouter(tags=["Auth"])

INVALID_CREDENTIALS = "Invalid credentials. Please try again."


@router.post("/register_student", response_model=RegisterResponse)
async def register_student(request: RegisterStudentRequest, store: ExamStore = Depends(get_store)):
    """Create a student account; roll numbers are unique."""
    if store.find_student(request.roll_no):
        raise HTTPException(status_code=400, detail="Roll number already registered")

    user = store.register({
        **request.model_dump(exclude={"confirm_password"}),
        "role": UserRole.STUDENT,
    })
    print(f"✅ Registered student {user.name} ({request.roll_no})")
    return {"success": True, "message": "Registration successful", "id": user.id, "name": user.name}


@router.post("/register_teacher", response_model=RegisterResponse)
async def register_teacher(request: RegisterTeacherRequest, store: ExamStore = Depends(get_store)):
    """Create a teacher account; login names are unique."""
    login_name = request.username or request.name
    if store.find_teacher(login_name):
        raise HTTPException(status_code=400, detail="Username already registered")

    user = store.register({
        **request.model_dump(exclude={"confirm_password"}),
        "role": UserRole.TEACHER,
    })
    print(f"✅ Registered teacher {user.name}")
    return {"success": True, "message": "Registration successful", "id": user.id, "name": user.name}


def _login(store: ExamStore, username: str, password: str, role: UserRole) -> dict:
    result = store.login(username, password, role=role)
    if result is None:
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)
    user, token = result
    return {
        "success": True,
        "message": "Login successful",
        "id": user.id,
        "name": user.name,
        "role": user.role,
        "token": token,
    }


@router.post("/login_student", response_model=LoginResponse)
async def login_student(request: StudentLoginRequest, store: ExamStore = Depends(get_store)):
    return _login(store, request.roll_no, request.password, UserRole.STUDENT)


@router.post("/login_teacher", response_model=LoginResponse)
async def login_teacher(request: TeacherLoginRequest, store: ExamStore = Depends(get_store)):
    return _login(store, request.username, request.password, UserRole.TEACHER)


@router.post("/logout", response_model=ApiResponse)
async def logout(token: Optional[str] = Depends(get_token), store: ExamStore = Depends(get_store)):
    if token:
        store.logout(token)
    return {"success": True, "message": "Logged out"}


@router.get("/me", response_model=UserResponse)
async def me(user: AnyUser = Depends(get_current_user)):
    return user.model_dump()

