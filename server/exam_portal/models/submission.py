from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class Answer(BaseModel):
    """Answer to one question: typed text and/or a base64 canvas raster"""
    question_id: str
    text: str = ""
    image_data: str = ""
    is_correct: Optional[bool] = None
    feedback: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.text.strip() and not self.image_data


class ExamSubmission(BaseModel):
    """A student's recorded answers to an exam, with optional grading"""
    id: str
    exam_id: str
    student_id: str
    student_name: str = ""
    roll_no: str = ""
    answers: List[Answer] = []
    submitted_at: datetime = Field(default_factory=datetime.now)
    evaluated: bool = False
    marks: Optional[float] = None
    feedback: Optional[str] = None
    percentage: Optional[float] = None
    auto_submitted: bool = False


class PdfSubmission(BaseModel):
    """Generated answer sheet. `pdf_blob` is None once reloaded from storage."""
    id: str
    exam_id: str
    student_id: str
    file_name: str
    pdf_blob: Optional[bytes] = None
    submitted_at: datetime = Field(default_factory=datetime.now)

    @property
    def has_payload(self) -> bool:
        return self.pdf_blob is not None
