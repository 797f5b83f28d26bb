"""
Submission Service.

Shared path for manual submits, one-shot submits and timer auto-submits.
"""
from typing import List, Optional, Tuple

from exam_portal.models import Answer, Exam, ExamSubmission, PdfSubmission, Student
from exam_portal.services.pdf_export import build_file_name, generate_submission_pdf
from exam_portal.services.sse_manager import event_manager
from exam_portal.storage import ExamStore, ordered_answers


def has_submitted(store: ExamStore, exam_id: str, student_id: str) -> bool:
    return bool(store.get_submissions(exam_id=exam_id, student_id=student_id))


def save_submission_pdf(store: ExamStore, exam: Exam, submission: ExamSubmission) -> Optional[PdfSubmission]:
    """Render the answer sheet and file it for the teacher."""
    try:
        pdf_bytes = generate_submission_pdf(exam, submission)
    except Exception as e:
        print(f"❌ PDF generation failed for submission {submission.id}: {e}")
        return None

    return store.save_pdf_for_teacher({
        "exam_id": exam.id,
        "student_id": submission.student_id,
        "file_name": build_file_name(submission.student_name, submission.roll_no, exam.id),
        "pdf_blob": pdf_bytes,
        "submitted_at": submission.submitted_at,
    })


async def finalize_submission(
    store: ExamStore,
    exam: Exam,
    student: Student,
    answers: List[Answer],
    auto_submitted: bool = False,
) -> Tuple[ExamSubmission, Optional[PdfSubmission]]:
    """
    Record the submission with answers in question order, save its PDF and
    notify the exam channel. Raises ValueError for unknown question ids.
    """
    submission = store.submit_exam({
        "exam_id": exam.id,
        "student_id": student.id,
        "student_name": student.name,
        "roll_no": student.roll_no,
        "answers": ordered_answers(exam, answers),
        "auto_submitted": auto_submitted,
    })
    pdf = save_submission_pdf(store, exam, submission)

    print(f"✅ {student.name} submitted exam {exam.id}" + (" (auto)" if auto_submitted else ""))
    await event_manager.publish(
        exam.id,
        "auto_submitted" if auto_submitted else "new_submission",
        submission.model_dump(mode="json"),
    )
    return submission, pdf
