"""
Models package initialization
Domain records are pydantic models; StorageEntry is the SQLAlchemy table
backing the persisted state blob.
"""

from exam_portal.models.user import User, UserRole, Student, Teacher, AnyUser, user_from_dict
from exam_portal.models.content import Difficulty, Question, Exam
from exam_portal.models.submission import Answer, ExamSubmission, PdfSubmission
from exam_portal.models.storage_entry import StorageEntry

__all__ = [
    "User",
    "UserRole",
    "Student",
    "Teacher",
    "AnyUser",
    "user_from_dict",
    "Difficulty",
    "Question",
    "Exam",
    "Answer",
    "ExamSubmission",
    "PdfSubmission",
    "StorageEntry",
]
