from fastapi import APIRouter, Depends, HTTPException
from collections import Counter
from typing import List

from exam_portal.dependencies import (
    get_attempt_manager,
    get_current_user,
    require_student,
    require_teacher,
)
from exam_portal.models import AnyUser, Answer, Difficulty, Exam, Student, Teacher
from exam_portal.schemas import (
    AttemptResponse,
    CreateExamRequest,
    DraftAnswerRequest,
    ExamPreview,
    SetActiveRequest,
    StudentDashboard,
    SubmitExamRequest,
    TeacherExamSummary,
    UpdateExamRequest,
)
from exam_portal.services.exam_timer import AttemptManager, ExamAttempt, format_time
from exam_portal.services.submission_service import finalize_submission, has_submitted
from exam_portal.storage import ExamStore, get_store

router = APIRouter(tags=["Exam"])

EXAM_NOT_FOUND = "Exam not found"


def get_owned_exam(store: ExamStore, exam_id: str, teacher: Teacher) -> Exam:
    exam = store.get_exam(exam_id)
    if exam is None:
        raise HTTPException(status_code=404, detail=EXAM_NOT_FOUND)
    if exam.created_by != teacher.id:
        raise HTTPException(status_code=403, detail="You can only manage your own exams")
    return exam


def get_visible_exam(store: ExamStore, exam_id: str) -> Exam:
    """Students only see published exams"""
    exam = store.get_exam(exam_id)
    if exam is None or not exam.is_active:
        raise HTTPException(status_code=404, detail=EXAM_NOT_FOUND)
    return exam


# =============================================================================
# Teacher
# =============================================================================

@router.post("/exams", response_model=Exam)
async def create_exam(
    request: CreateExamRequest,
    teacher: Teacher = Depends(require_teacher),
    store: ExamStore = Depends(get_store),
):
    """Teacher creates an exam, either published or as a draft."""
    exam = store.create_exam({
        "title": request.title,
        "subject": request.subject,
        "created_by": teacher.id,
        "questions": [q.model_dump() for q in request.questions],
        "duration": request.duration_minutes * 60,
        "is_active": request.is_active,
    })
    print(f"🚀 Exam {exam.id} {'published' if exam.is_active else 'saved as draft'} by {teacher.name}")
    return exam


@router.put("/exams/{exam_id}", response_model=Exam)
async def update_exam(
    exam_id: str,
    request: UpdateExamRequest,
    teacher: Teacher = Depends(require_teacher),
    store: ExamStore = Depends(get_store),
):
    get_owned_exam(store, exam_id, teacher)

    changes = request.model_dump(exclude_none=True, exclude={"duration_minutes", "questions"})
    if request.duration_minutes is not None:
        changes["duration"] = request.duration_minutes * 60
    if request.questions is not None:
        changes["questions"] = [q.model_dump() for q in request.questions]

    return store.update_exam(exam_id, changes)


@router.patch("/exams/{exam_id}/active", response_model=Exam)
async def set_exam_active(
    exam_id: str,
    request: SetActiveRequest,
    teacher: Teacher = Depends(require_teacher),
    store: ExamStore = Depends(get_store),
):
    """Publish or unpublish an exam"""
    get_owned_exam(store, exam_id, teacher)
    return store.set_exam_active(exam_id, request.is_active)


@router.delete("/exams/{exam_id}")
async def delete_exam(
    exam_id: str,
    teacher: Teacher = Depends(require_teacher),
    store: ExamStore = Depends(get_store),
):
    get_owned_exam(store, exam_id, teacher)
    store.delete_exam(exam_id)
    return {"success": True}


@router.get("/exams/{exam_id}/preview", response_model=ExamPreview)
async def preview_exam(
    exam_id: str,
    teacher: Teacher = Depends(require_teacher),
    store: ExamStore = Depends(get_store),
):
    exam = get_owned_exam(store, exam_id, teacher)
    counts = Counter(q.difficulty for q in exam.questions)
    return {
        "title": exam.title,
        "subject": exam.subject,
        "duration_minutes": exam.duration // 60,
        "question_count": len(exam.questions),
        "difficulty_counts": {d.value: counts.get(d, 0) for d in Difficulty},
        "status": "Published" if exam.is_active else "Draft",
    }


@router.get("/teacher/dashboard", response_model=List[TeacherExamSummary])
async def teacher_dashboard(
    teacher: Teacher = Depends(require_teacher),
    store: ExamStore = Depends(get_store),
):
    """Teacher's exams with submission and pending-evaluation counts"""
    summaries = []
    for exam in store.get_exams(teacher_id=teacher.id):
        submissions = store.get_submissions(exam_id=exam.id)
        summaries.append({
            "id": exam.id,
            "title": exam.title,
            "subject": exam.subject,
            "is_active": exam.is_active,
            "question_count": len(exam.questions),
            "duration_minutes": exam.duration // 60,
            "submission_count": len(submissions),
            "pending_count": sum(1 for s in submissions if not s.evaluated),
        })
    return summaries


# =============================================================================
# Student
# =============================================================================

@router.get("/student/dashboard", response_model=StudentDashboard)
async def student_dashboard(
    student: Student = Depends(require_student),
    store: ExamStore = Depends(get_store),
):
    """Published exams not yet taken, plus the student's submissions"""
    submissions = store.get_submissions(student_id=student.id)
    taken = {s.exam_id for s in submissions}

    available = [
        {
            "id": exam.id,
            "title": exam.title,
            "subject": exam.subject,
            "question_count": len(exam.questions),
            "duration_minutes": exam.duration // 60,
        }
        for exam in store.get_exams(active_only=True)
        if exam.id not in taken
    ]

    history = []
    for sub in submissions:
        exam = store.get_exam(sub.exam_id)
        history.append({
            "id": sub.id,
            "exam_id": sub.exam_id,
            "exam_title": exam.title if exam else "Unknown Exam",
            "submitted_at": sub.submitted_at,
            "evaluated": sub.evaluated,
            "marks": sub.marks,
            "total_marks": len(exam.questions) if exam else None,
            "percentage": sub.percentage,
            "feedback": sub.feedback,
        })

    return {"available_exams": available, "submissions": history}


@router.get("/exams/{exam_id}", response_model=Exam)
async def get_exam(
    exam_id: str,
    user: AnyUser = Depends(get_current_user),
    store: ExamStore = Depends(get_store),
):
    """Teachers see their own exams; students see published ones."""
    if isinstance(user, Teacher):
        return get_owned_exam(store, exam_id, user)
    return get_visible_exam(store, exam_id)


def _attempt_response(attempt: ExamAttempt) -> dict:
    return {
        "attempt_id": attempt.id,
        "exam_id": attempt.exam_id,
        "time_left": attempt.time_left,
        "time_left_display": format_time(attempt.time_left),
        "submitted": attempt.submitted,
        "submission_id": attempt.submission_id,
        "answers": [a.model_dump(include={"question_id", "text", "image_data"}) for a in attempt.answers.values()],
    }


def _draft_answers(attempt: ExamAttempt, exam: Exam) -> List[Answer]:
    # Drafts for questions removed since they were saved are dropped
    known = set(exam.question_ids)
    return [a for a in attempt.answers.values() if a.question_id in known]


def _get_own_attempt(attempts: AttemptManager, attempt_id: str, student: Student) -> ExamAttempt:
    attempt = attempts.get(attempt_id)
    if attempt is None or attempt.student_id != student.id:
        raise HTTPException(status_code=404, detail="Attempt not found")
    return attempt


@router.post("/exams/{exam_id}/start", response_model=AttemptResponse)
async def start_exam(
    exam_id: str,
    student: Student = Depends(require_student),
    store: ExamStore = Depends(get_store),
    attempts: AttemptManager = Depends(get_attempt_manager),
):
    """Open a timed attempt; the countdown auto-submits at zero."""
    exam = get_visible_exam(store, exam_id)
    if has_submitted(store, exam.id, student.id):
        raise HTTPException(status_code=409, detail="You have already submitted this exam")

    async def on_expire(attempt: ExamAttempt) -> None:
        current = store.get_exam(attempt.exam_id)
        if current is None or not current.is_active:
            print(f"⚠️ Exam {attempt.exam_id} is no longer available, skipping auto-submit")
            return
        submission, _ = await finalize_submission(
            store, current, student, _draft_answers(attempt, current), auto_submitted=True
        )
        attempt.submission_id = submission.id

    attempt = attempts.start(exam.id, student.id, exam.duration, on_expire=on_expire)
    return _attempt_response(attempt)


@router.get("/attempts/{attempt_id}", response_model=AttemptResponse)
async def get_attempt(
    attempt_id: str,
    student: Student = Depends(require_student),
    attempts: AttemptManager = Depends(get_attempt_manager),
):
    return _attempt_response(_get_own_attempt(attempts, attempt_id, student))


@router.put("/attempts/{attempt_id}/answers/{question_id}", response_model=AttemptResponse)
async def save_answer(
    attempt_id: str,
    question_id: str,
    request: DraftAnswerRequest,
    student: Student = Depends(require_student),
    store: ExamStore = Depends(get_store),
    attempts: AttemptManager = Depends(get_attempt_manager),
):
    """Save (or overwrite) the draft answer for one question"""
    attempt = _get_own_attempt(attempts, attempt_id, student)
    if attempt.submitted:
        raise HTTPException(status_code=409, detail="Attempt already submitted")

    exam = store.get_exam(attempt.exam_id)
    if exam is None or question_id not in exam.question_ids:
        raise HTTPException(status_code=404, detail="Question not found")

    attempt.save_answer(Answer(question_id=question_id, text=request.text, image_data=request.image_data))
    return _attempt_response(attempt)


@router.post("/attempts/{attempt_id}/submit")
async def submit_attempt(
    attempt_id: str,
    student: Student = Depends(require_student),
    store: ExamStore = Depends(get_store),
    attempts: AttemptManager = Depends(get_attempt_manager),
):
    attempt = _get_own_attempt(attempts, attempt_id, student)
    exam = get_visible_exam(store, attempt.exam_id)
    if not attempts.claim(attempt):
        raise HTTPException(status_code=409, detail="Attempt already submitted")

    submission, pdf = await finalize_submission(store, exam, student, _draft_answers(attempt, exam))
    attempt.submission_id = submission.id
    return {
        "submission": submission.model_dump(mode="json"),
        "pdf_submission_id": pdf.id if pdf else None,
    }


@router.post("/exams/{exam_id}/submit")
async def submit_exam(
    exam_id: str,
    request: SubmitExamRequest,
    student: Student = Depends(require_student),
    store: ExamStore = Depends(get_store),
    attempts: AttemptManager = Depends(get_attempt_manager),
):
    """Student submits all answers in one call"""
    exam = get_visible_exam(store, exam_id)
    if has_submitted(store, exam.id, student.id):
        raise HTTPException(status_code=409, detail="You have already submitted this exam")

    answers = [Answer(**a.model_dump()) for a in request.answers]
    try:
        submission, pdf = await finalize_submission(store, exam, student, answers)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    open_attempt = attempts.find_open(exam.id, student.id)
    if open_attempt and attempts.claim(open_attempt):
        open_attempt.submission_id = submission.id

    return {
        "submission": submission.model_dump(mode="json"),
        "pdf_submission_id": pdf.id if pdf else None,
    }
