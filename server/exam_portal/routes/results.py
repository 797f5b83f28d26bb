from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response, StreamingResponse
from typing import List, Optional
import asyncio

from exam_portal.config import settings
from exam_portal.dependencies import get_current_user, require_teacher
from exam_portal.models import AnyUser, Exam, ExamSubmission, Student, Teacher
from exam_portal.schemas import EvaluateRequest, PdfSubmissionResponse, ResultStatistics
from exam_portal.services.pdf_export import (
    build_file_name,
    generate_result_report,
    generate_results_sheet,
    generate_submission_pdf,
    merge_pdfs,
)
from exam_portal.services.sse_manager import event_manager, format_sse
from exam_portal.storage import ExamStore, get_store
from exam_portal.routes.exam import get_owned_exam

router = APIRouter(tags=["Results"])

SUBMISSION_NOT_FOUND = "Submission not found"


def _pdf_response(content: bytes, file_name: str) -> Response:
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


def compute_statistics(submissions: List[ExamSubmission]) -> dict:
    """Percentage statistics over evaluated submissions"""
    scores = [s.percentage or 0.0 for s in submissions if s.evaluated]
    passed = sum(1 for p in scores if p >= settings.pass_percentage)
    return {
        "evaluated_count": len(scores),
        "pending_count": len(submissions) - len(scores),
        "average_percentage": round(sum(scores) / len(scores), 1) if scores else 0.0,
        "highest_percentage": max(scores) if scores else 0.0,
        "lowest_percentage": min(scores) if scores else 0.0,
        "pass_count": passed,
        "fail_count": len(scores) - passed,
    }


def get_readable_submission(store: ExamStore, submission_id: str, user: AnyUser) -> ExamSubmission:
    """Teachers read submissions to their exams; students read their own."""
    submission = store.get_submission(submission_id)
    if submission is None:
        raise HTTPException(status_code=404, detail=SUBMISSION_NOT_FOUND)
    if isinstance(user, Student) and submission.student_id != user.id:
        raise HTTPException(status_code=404, detail=SUBMISSION_NOT_FOUND)
    if isinstance(user, Teacher):
        exam = store.get_exam(submission.exam_id)
        # Ownership is only known through the exam
        if exam is None:
            raise HTTPException(status_code=404, detail=SUBMISSION_NOT_FOUND)
        if exam.created_by != user.id:
            raise HTTPException(status_code=403, detail="You can only view results of your own exams")
    return submission


def resolve_answer_sheet(store: ExamStore, exam: Exam, submission: ExamSubmission) -> bytes:
    """Stored answer-sheet bytes for a submission, rebuilt when the payload is gone."""
    for pdf in store.get_pdf_submissions(exam_id=exam.id, student_id=submission.student_id):
        if pdf.pdf_blob is not None:
            return pdf.pdf_blob
    print(f"🔁 Rebuilding answer sheet for submission {submission.id}")
    return generate_submission_pdf(exam, submission)


@router.get("/exams/{exam_id}/submissions")
async def get_exam_submissions(
    exam_id: str,
    teacher: Teacher = Depends(require_teacher),
    store: ExamStore = Depends(get_store),
):
    """Teacher gets every submission for an exam with statistics"""
    exam = get_owned_exam(store, exam_id, teacher)
    submissions = store.get_submissions(exam_id=exam.id)
    return {
        "exam_id": exam.id,
        "title": exam.title,
        "question_count": len(exam.questions),
        "duration_minutes": exam.duration // 60,
        "statistics": ResultStatistics(**compute_statistics(submissions)),
        "submissions": [s.model_dump(mode="json") for s in submissions],
    }


@router.get("/submissions/{submission_id}", response_model=ExamSubmission)
async def get_submission(
    submission_id: str,
    user: AnyUser = Depends(get_current_user),
    store: ExamStore = Depends(get_store),
):
    return get_readable_submission(store, submission_id, user)


@router.post("/submissions/{submission_id}/evaluate", response_model=ExamSubmission)
async def evaluate_submission(
    submission_id: str,
    request: EvaluateRequest,
    teacher: Teacher = Depends(require_teacher),
    store: ExamStore = Depends(get_store),
):
    """Assign marks and feedback; percentage is recomputed from the marks."""
    submission = get_readable_submission(store, submission_id, teacher)
    exam = store.get_exam(submission.exam_id)
    max_marks = len(exam.questions)
    if request.marks > max_marks:
        raise HTTPException(status_code=400, detail=f"Marks must be between 0 and {max_marks}")

    updated = store.evaluate_submission(submission_id, request.marks, request.feedback)
    print(f"✅ Evaluated submission {submission_id}: {updated.marks}/{max_marks}")
    await event_manager.publish(updated.exam_id, "evaluated", updated.model_dump(mode="json"))
    return updated


@router.get("/submissions/{submission_id}/report")
async def download_result_report(
    submission_id: str,
    user: AnyUser = Depends(get_current_user),
    store: ExamStore = Depends(get_store),
):
    submission = get_readable_submission(store, submission_id, user)
    exam = store.get_exam(submission.exam_id)
    if exam is None:
        raise HTTPException(status_code=404, detail="Exam not found")
    file_name = build_file_name(submission.student_name, submission.roll_no, exam.id).replace(".pdf", "_result.pdf")
    return _pdf_response(generate_result_report(exam, submission), file_name)


@router.get("/exams/{exam_id}/results.pdf")
async def download_results_sheet(
    exam_id: str,
    teacher: Teacher = Depends(require_teacher),
    store: ExamStore = Depends(get_store),
):
    exam = get_owned_exam(store, exam_id, teacher)
    submissions = store.get_submissions(exam_id=exam.id)
    if not submissions:
        raise HTTPException(status_code=404, detail="No submissions yet")
    return _pdf_response(generate_results_sheet(exam, submissions), f"{exam.id}_results.pdf")


@router.get("/exams/{exam_id}/answer-sheets.pdf")
async def download_answer_sheets(
    exam_id: str,
    teacher: Teacher = Depends(require_teacher),
    store: ExamStore = Depends(get_store),
):
    """Every student's answer sheet for one exam as a single PDF"""
    exam = get_owned_exam(store, exam_id, teacher)
    submissions = store.get_submissions(exam_id=exam.id)
    if not submissions:
        raise HTTPException(status_code=404, detail="No submissions yet")
    sheets = [resolve_answer_sheet(store, exam, sub) for sub in submissions]
    return _pdf_response(merge_pdfs(sheets), f"{exam.id}_answer_sheets.pdf")


@router.get("/pdf-submissions", response_model=List[PdfSubmissionResponse])
async def list_pdf_submissions(
    exam_id: Optional[str] = None,
    student_id: Optional[str] = None,
    teacher: Teacher = Depends(require_teacher),
    store: ExamStore = Depends(get_store),
):
    own_exams = {e.id for e in store.get_exams(teacher_id=teacher.id)}
    return [
        {**p.model_dump(exclude={"pdf_blob"}), "has_payload": p.has_payload}
        for p in store.get_pdf_submissions(exam_id=exam_id, student_id=student_id)
        if p.exam_id in own_exams
    ]


@router.get("/pdf-submissions/{pdf_id}/download")
async def download_pdf_submission(
    pdf_id: str,
    user: AnyUser = Depends(get_current_user),
    store: ExamStore = Depends(get_store),
):
    """
    Serve a stored answer sheet. Payloads do not survive a reload, so a
    missing payload is rebuilt from the matching submission.
    """
    pdf = store.get_pdf_submission(pdf_id)
    if pdf is None or (isinstance(user, Student) and pdf.student_id != user.id):
        raise HTTPException(status_code=404, detail="PDF not found")

    exam = store.get_exam(pdf.exam_id)
    if isinstance(user, Teacher) and exam is None:
        raise HTTPException(status_code=404, detail="PDF not found")
    if isinstance(user, Teacher) and exam.created_by != user.id:
        raise HTTPException(status_code=403, detail="You can only view results of your own exams")

    content = pdf.pdf_blob
    if content is None:
        submission = next(iter(store.get_submissions(exam_id=pdf.exam_id, student_id=pdf.student_id)), None)
        if exam is None or submission is None:
            raise HTTPException(status_code=404, detail="PDF data is no longer available")
        print(f"🔁 Rebuilding PDF {pdf.file_name} from submission {submission.id}")
        content = generate_submission_pdf(exam, submission)
    return _pdf_response(content, pdf.file_name)


@router.get("/events/{exam_id}")
async def exam_events(
    exam_id: str,
    request: Request,
    teacher: Teacher = Depends(require_teacher),
    store: ExamStore = Depends(get_store),
):
    """
    SSE Endpoint for live submission and evaluation updates.
    """
    get_owned_exam(store, exam_id, teacher)

    async def event_generator():
        queue = await event_manager.connect(exam_id)
        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    message = await asyncio.wait_for(queue.get(), timeout=30.0)
                    yield format_sse(message)
                except asyncio.TimeoutError:
                    # Keep-alive
                    yield ": ping\n\n"
        except asyncio.CancelledError:
            pass
        finally:
            event_manager.disconnect(exam_id, queue)

    return StreamingResponse(event_generator(), media_type="text/event-stream")
