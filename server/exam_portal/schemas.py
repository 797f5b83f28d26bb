from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List, Dict
from datetime import datetime
from exam_portal.models.user import UserRole
from exam_portal.models.content import Difficulty


# =============================================================================
# Auth Schemas
# =============================================================================

class ApiResponse(BaseModel):
    success: bool
    message: Optional[str] = None


class RegisterStudentRequest(BaseModel):
    """Student sign-up form."""
    name: str
    roll_no: str
    password: str
    department: Optional[str] = None
    semester: Optional[str] = None
    confirm_password: Optional[str] = None

    @field_validator("name", "roll_no", "password")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    @model_validator(mode="after")
    def passwords_match(self):
        if self.confirm_password is not None and self.confirm_password != self.password:
            raise ValueError("Passwords do not match.")
        return self


class RegisterTeacherRequest(BaseModel):
    """Teacher sign-up form."""
    name: str
    username: Optional[str] = None
    password: str
    department: Optional[str] = None
    confirm_password: Optional[str] = None

    @field_validator("name", "password")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    @model_validator(mode="after")
    def passwords_match(self):
        if self.confirm_password is not None and self.confirm_password != self.password:
            raise ValueError("Passwords do not match.")
        return self


class RegisterResponse(ApiResponse):
    id: str
    name: str


class StudentLoginRequest(BaseModel):
    roll_no: str
    password: str


class TeacherLoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(ApiResponse):
    id: str
    name: str
    role: UserRole
    token: Optional[str] = None


class UserResponse(BaseModel):
    """Account view without the password digest."""
    id: str
    name: str
    role: UserRole
    roll_no: Optional[str] = None
    username: Optional[str] = None
    department: Optional[str] = None
    semester: Optional[str] = None


# =============================================================================
# Exam Schemas
# =============================================================================

class QuestionInput(BaseModel):
    """Question as authored by a teacher; id is assigned when missing."""
    id: Optional[str] = None
    text: str
    difficulty: Difficulty = Difficulty.MEDIUM
    points: Optional[int] = Field(default=None, ge=0)
    options: Optional[List[str]] = None
    explanation: Optional[str] = None

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Question text cannot be empty")
        return v.strip()


class CreateExamRequest(BaseModel):
    """Request to create a new exam."""
    title: str
    subject: Optional[str] = None
    duration_minutes: int = Field(default=60, ge=5, le=180)
    is_active: bool = False
    questions: List[QuestionInput]

    @field_validator("title")
    @classmethod
    def title_required(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Title is required")
        return v.strip()

    @field_validator("questions")
    @classmethod
    def at_least_one_question(cls, v: List[QuestionInput]) -> List[QuestionInput]:
        if not v:
            raise ValueError("At least one question is required")
        return v


class UpdateExamRequest(BaseModel):
    """Partial exam update; omitted fields are kept."""
    title: Optional[str] = None
    subject: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=None, ge=5, le=180)
    is_active: Optional[bool] = None
    questions: Optional[List[QuestionInput]] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Title is required")
        return v.strip() if v is not None else v

    @field_validator("questions")
    @classmethod
    def questions_not_empty(cls, v: Optional[List[QuestionInput]]) -> Optional[List[QuestionInput]]:
        if v is not None and not v:
            raise ValueError("At least one question is required")
        return v


class SetActiveRequest(BaseModel):
    is_active: bool


class ExamPreview(BaseModel):
    """Summary shown before publishing."""
    title: str
    subject: Optional[str] = None
    duration_minutes: int
    question_count: int
    difficulty_counts: Dict[str, int]
    status: str


class TeacherExamSummary(BaseModel):
    id: str
    title: str
    subject: Optional[str] = None
    is_active: bool
    question_count: int
    duration_minutes: int
    submission_count: int
    pending_count: int


class StudentExamSummary(BaseModel):
    id: str
    title: str
    subject: Optional[str] = None
    question_count: int
    duration_minutes: int


class StudentSubmissionSummary(BaseModel):
    id: str
    exam_id: str
    exam_title: str
    submitted_at: datetime
    evaluated: bool
    marks: Optional[float] = None
    total_marks: Optional[int] = None
    percentage: Optional[float] = None
    feedback: Optional[str] = None


class StudentDashboard(BaseModel):
    available_exams: List[StudentExamSummary]
    submissions: List[StudentSubmissionSummary]


# =============================================================================
# Attempt / Submission Schemas
# =============================================================================

class AnswerInput(BaseModel):
    """Typed text and/or a base64 data URL of the canvas."""
    question_id: str
    text: str = ""
    image_data: str = ""


class DraftAnswerRequest(BaseModel):
    text: str = ""
    image_data: str = ""


class SubmitExamRequest(BaseModel):
    """Submit all exam answers at once."""
    answers: List[AnswerInput] = []


class AttemptResponse(BaseModel):
    attempt_id: str
    exam_id: str
    time_left: int
    time_left_display: str
    submitted: bool
    submission_id: Optional[str] = None
    answers: List[AnswerInput] = []


class EvaluateRequest(BaseModel):
    marks: float = Field(ge=0)
    feedback: str = ""


class ResultStatistics(BaseModel):
    evaluated_count: int
    pending_count: int
    average_percentage: float
    highest_percentage: float
    lowest_percentage: float
    pass_count: int
    fail_count: int


class PdfSubmissionResponse(BaseModel):
    id: str
    exam_id: str
    student_id: str
    file_name: str
    submitted_at: datetime
    has_payload: bool
