from pydantic import BaseModel
from typing import Optional, Union
import enum


class UserRole(str, enum.Enum):
    TEACHER = "teacher"
    STUDENT = "student"


class User(BaseModel):
    """Base account record. `password` holds a salted digest, never plaintext."""
    id: str
    name: str
    role: UserRole
    password: str


class Student(User):
    role: UserRole = UserRole.STUDENT
    roll_no: str
    department: Optional[str] = None
    semester: Optional[str] = None


class Teacher(User):
    role: UserRole = UserRole.TEACHER
    username: Optional[str] = None
    department: Optional[str] = None

    @property
    def login_name(self) -> str:
        return self.username or self.name


AnyUser = Union[Student, Teacher]


def user_from_dict(data: dict) -> AnyUser:
    """Rebuild the right user subclass from a persisted record."""
    if data.get("role") == UserRole.STUDENT.value:
        return Student.model_validate(data)
    return Teacher.model_validate(data)
