from datetime import datetime
from io import BytesIO

from pypdf import PdfReader

from exam_portal.models import Answer, Exam, ExamSubmission, Question
from exam_portal.services.pdf_export import (
    build_file_name,
    generate_result_report,
    generate_results_sheet,
    generate_submission_pdf,
    merge_pdfs,
    pass_status,
)
from tests.conftest import png_data_url


def _exam(question_count=3):
    return Exam(
        id="e1",
        title="Chemistry",
        created_by="1",
        duration=1800,
        is_active=True,
        questions=[Question(id=f"q{i}", text=f"Question text {i}") for i in range(question_count)],
    )


def _submission(answers, **overrides):
    data = {
        "id": "s1",
        "exam_id": "e1",
        "student_id": "2",
        "student_name": "John Student",
        "roll_no": "211550001",
        "answers": answers,
    }
    data.update(overrides)
    return ExamSubmission(**data)


def _pages(content: bytes):
    return PdfReader(BytesIO(content)).pages


class TestFileName:
    def test_whitespace_removed_from_name(self):
        assert build_file_name("John  A Student", "211550001", "e1") == "JohnAStudent_211550001_e1.pdf"


class TestSubmissionPdf:
    def test_header_page_plus_one_page_per_question(self):
        exam = _exam(3)
        content = generate_submission_pdf(exam, _submission([Answer(question_id="q0", text="an answer")]))
        assert content.startswith(b"%PDF")
        assert len(_pages(content)) == 4

    def test_header_lists_student_and_exam(self):
        content = generate_submission_pdf(_exam(1), _submission([]), date=datetime(2024, 5, 1))
        header = _pages(content)[0].extract_text()
        assert "Exam Submission" in header
        assert "John Student" in header
        assert "211550001" in header
        assert "Chemistry" in header
        assert "2024-05-01" in header

    def test_answer_variants(self):
        exam = _exam(3)
        answers = [
            Answer(question_id="q0", text="Typed answer"),
            Answer(question_id="q1", image_data=png_data_url()),
        ]
        pages = _pages(generate_submission_pdf(exam, _submission(answers)))
        assert "Question 1:" in pages[1].extract_text()
        assert "Typed answer" in pages[1].extract_text()
        assert "No answer provided" not in pages[2].extract_text()
        assert "Error rendering canvas image" not in pages[2].extract_text()
        assert "No answer provided" in pages[3].extract_text()

    def test_bad_image_still_renders_page(self):
        exam = _exam(1)
        answers = [Answer(question_id="q0", image_data="data:image/png;base64,bm90LWFuLWltYWdl")]
        pages = _pages(generate_submission_pdf(exam, _submission(answers)))
        assert len(pages) == 2
        assert "Error rendering canvas image" in pages[1].extract_text()

    def test_long_answer_continues_on_next_page(self):
        long_answer = "\n".join(f"Answer line {i}" for i in range(100))
        pages = _pages(generate_submission_pdf(_exam(1), _submission([Answer(question_id="q0", text=long_answer)])))
        assert len(pages) > 2
        assert "Question 1 (continued)" in pages[2].extract_text()
        assert "Answer line 99" in pages[-1].extract_text()

    def test_image_after_long_question_stays_on_page(self):
        exam = Exam(
            id="e1", title="Chemistry", created_by="1", duration=1800,
            questions=[Question(id="q0", text="\n".join(f"Part {i}" for i in range(30)))],
        )
        answers = [Answer(question_id="q0", image_data=png_data_url())]
        pages = _pages(generate_submission_pdf(exam, _submission(answers)))
        assert "Part 29" in pages[1].extract_text()
        assert "Error rendering canvas image" not in "".join(p.extract_text() for p in pages)


class TestReports:
    def test_pass_status_threshold(self):
        assert pass_status(60.0) == "Pass"
        assert pass_status(59.9) == "Fail"
        assert pass_status(None) == "Fail"

    def test_result_report(self):
        submission = _submission([], evaluated=True, marks=2, percentage=66.7, feedback="Good <work>")
        text = _pages(generate_result_report(_exam(3), submission))[0].extract_text()
        assert "Marks: 2" in text
        assert "Pass" in text
        assert "Good <work>" in text

    def test_results_sheet_marks_pending(self):
        graded = _submission([], evaluated=True, marks=1, percentage=33.3)
        pending = _submission([], id="s2", student_name="Asha", roll_no="42")
        text = _pages(generate_results_sheet(_exam(3), [graded, pending]))[0].extract_text()
        assert "Fail" in text
        assert "Pending" in text
        assert "Asha" in text

    def test_merge_keeps_every_page_in_order(self):
        first = generate_submission_pdf(_exam(1), _submission([]))
        second = generate_submission_pdf(_exam(2), _submission([], student_name="Asha"))
        pages = _pages(merge_pdfs([first, second]))
        assert len(pages) == 5
        assert "John Student" in pages[0].extract_text()
        assert "Asha" in pages[2].extract_text()
