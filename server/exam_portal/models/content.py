from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
import enum


class Difficulty(str, enum.Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class Question(BaseModel):
    """A single exam question"""
    id: str
    text: str
    difficulty: Difficulty = Difficulty.MEDIUM
    points: Optional[int] = None
    options: Optional[List[str]] = None
    explanation: Optional[str] = None


class Exam(BaseModel):
    """Exam authored by a teacher; `duration` is in seconds"""
    id: str
    title: str
    created_by: str
    questions: List[Question] = []
    duration: int
    is_active: bool = False
    subject: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def question_ids(self) -> List[str]:
        return [q.id for q in self.questions]
