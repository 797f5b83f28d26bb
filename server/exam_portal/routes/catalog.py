"""
Question bank and subject listing used by the exam builder.
"""
from fastapi import APIRouter, Depends
from typing import Optional

from exam_portal.models import Difficulty
from exam_portal.storage import ExamStore, get_store

router = APIRouter(tags=["Catalog"])


@router.get("/questions")
async def list_questions(
    difficulty: Optional[Difficulty] = None,
    subject: Optional[str] = None,
    store: ExamStore = Depends(get_store),
):
    """Questions from all published exams"""
    questions = store.get_questions(difficulty=difficulty, subject=subject)
    return {
        "questions": [q.model_dump(mode="json") for q in questions],
        "total": len(questions),
    }


@router.get("/subjects")
async def list_subjects(store: ExamStore = Depends(get_store)):
    return {"subjects": store.get_subjects()}
