"""
PDF Export Service.

Builds the answer-sheet PDF saved for teachers on every submission, plus the
result reports teachers download from the results view.
"""
import base64
import re
from datetime import datetime
from io import BytesIO
from typing import List, Optional
from xml.sax.saxutils import escape

from pypdf import PdfReader, PdfWriter
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfgen import canvas
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from exam_portal.config import settings
from exam_portal.models import Exam, ExamSubmission

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 20 * mm
TEXT_WIDTH = 170 * mm
IMAGE_WIDTH = 160 * mm
IMAGE_HEIGHT = 120 * mm
MIN_IMAGE_HEIGHT = 40 * mm
LINE_HEIGHT = 14.4

_DATA_URL_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,")


def build_file_name(student_name: str, roll_no: str, exam_id: str) -> str:
    """studentName_rollNo_examId.pdf with whitespace removed from the name"""
    compact_name = re.sub(r"\s+", "", student_name)
    return f"{compact_name}_{roll_no}_{exam_id}.pdf"


def decode_image_data(image_data: str) -> Optional[ImageReader]:
    """Decode a base64 (optionally data-URL prefixed) raster into an ImageReader."""
    if not image_data:
        return None
    raw = base64.b64decode(_DATA_URL_PREFIX.sub("", image_data), validate=True)
    return ImageReader(BytesIO(raw))


def _y(top_offset_mm: float) -> float:
    # Page coordinates measured from the top edge
    return PAGE_HEIGHT - top_offset_mm * mm


def _start_question_page(pdf: canvas.Canvas, title: str) -> float:
    """Draw the question heading and return the y of the first body line."""
    pdf.setFont("Helvetica-Bold", 14)
    pdf.drawString(MARGIN, _y(20), title)
    pdf.setFont("Helvetica", 12)
    return _y(30)


def _draw_wrapped(pdf: canvas.Canvas, text: str, y: float, continued_title: str) -> float:
    """Draw wrapped text from `y`, moving to a continuation page at the bottom margin."""
    for line in simpleSplit(text, "Helvetica", 12, TEXT_WIDTH):
        if y < MARGIN:
            pdf.showPage()
            y = _start_question_page(pdf, continued_title)
        pdf.drawString(MARGIN, y, line)
        y -= LINE_HEIGHT
    return y


def generate_submission_pdf(exam: Exam, submission: ExamSubmission, date: Optional[datetime] = None) -> bytes:
    """
    Render a submission as PDF bytes: a header page with the student's
    details, then one page per question with its answer. Text that does not
    fit continues on extra pages headed "Question N (continued)".
    """
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    pdf.setTitle(f"{exam.title} - {submission.student_name}")
    date = date or datetime.now()

    # Header page
    pdf.setFont("Helvetica-Bold", 18)
    pdf.drawCentredString(PAGE_WIDTH / 2, _y(20), "Exam Submission")
    pdf.setFont("Helvetica", 12)
    pdf.drawString(MARGIN, _y(40), f"Name: {submission.student_name}")
    pdf.drawString(MARGIN, _y(50), f"Roll Number: {submission.roll_no}")
    pdf.drawString(MARGIN, _y(60), f"Exam: {exam.title}")
    pdf.drawString(MARGIN, _y(70), f"Date: {date.strftime('%Y-%m-%d')}")
    pdf.showPage()

    answers = {a.question_id: a for a in submission.answers}
    for index, question in enumerate(exam.questions):
        continued = f"Question {index + 1} (continued)"
        y = _start_question_page(pdf, f"Question {index + 1}:")
        y = _draw_wrapped(pdf, question.text, y, continued)

        answer_y = min(_y(50), y - 4 * mm)
        if answer_y < MARGIN:
            pdf.showPage()
            answer_y = _start_question_page(pdf, continued)

        answer = answers.get(question.id)
        if answer is None or answer.is_empty:
            pdf.drawString(MARGIN, answer_y, "No answer provided")
        elif answer.image_data:
            try:
                image = decode_image_data(answer.image_data)
                if answer_y - MARGIN < MIN_IMAGE_HEIGHT:
                    pdf.showPage()
                    answer_y = _start_question_page(pdf, continued)
                height = min(IMAGE_HEIGHT, answer_y - MARGIN)
                pdf.drawImage(
                    image, MARGIN, answer_y - height,
                    width=IMAGE_WIDTH, height=height, preserveAspectRatio=True, anchor="nw",
                )
            except Exception as e:
                print(f"⚠️ Error adding canvas image for question {question.id}: {e}")
                pdf.drawString(MARGIN, answer_y, "Error rendering canvas image")
        else:
            _draw_wrapped(pdf, answer.text, answer_y, continued)
        pdf.showPage()

    pdf.save()
    return buffer.getvalue()


def pass_status(percentage: Optional[float]) -> str:
    return "Pass" if (percentage or 0) >= settings.pass_percentage else "Fail"


def _report_table(rows: List[list]) -> Table:
    table = Table(rows, hAlign="LEFT")
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#e5e7eb")),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]))
    return table


def generate_result_report(exam: Exam, submission: ExamSubmission) -> bytes:
    """Single student's graded result"""
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, leftMargin=MARGIN, rightMargin=MARGIN)
    styles = getSampleStyleSheet()
    total = len(exam.questions)

    story = [
        Paragraph(escape(f"{exam.title} - Result"), styles["Title"]),
        Paragraph(escape(f"Student: {submission.student_name} ({submission.roll_no})"), styles["Normal"]),
        Paragraph(f"Date: {datetime.now().strftime('%Y-%m-%d')}", styles["Normal"]),
        Spacer(1, 12),
        Paragraph(f"Marks: {submission.marks or 0} / {total}", styles["Normal"]),
        Paragraph(f"Percentage: {submission.percentage or 0:.1f}%", styles["Normal"]),
        Paragraph(f"Status: {pass_status(submission.percentage)}", styles["Normal"]),
    ]
    if submission.feedback:
        story.append(Paragraph(escape(f"Feedback: {submission.feedback}"), styles["Normal"]))
    story.append(Spacer(1, 12))

    answers = {a.question_id: a for a in submission.answers}
    rows = [["#", "Question", "Answer provided"]]
    for index, question in enumerate(exam.questions):
        answer = answers.get(question.id)
        if answer and answer.image_data:
            provided = "Yes (Image)"
        elif answer and answer.text.strip():
            provided = "Yes (Text)"
        else:
            provided = "No"
        rows.append([str(index + 1), Paragraph(escape(question.text), styles["BodyText"]), provided])
    story.append(_report_table(rows))

    doc.build(story)
    return buffer.getvalue()


def generate_results_sheet(exam: Exam, submissions: List[ExamSubmission]) -> bytes:
    """All students' results for one exam"""
    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4, leftMargin=MARGIN, rightMargin=MARGIN)
    styles = getSampleStyleSheet()
    total = len(exam.questions)

    rows = [["Name", "Roll No", "Marks", "Percentage", "Status"]]
    for sub in submissions:
        rows.append([
            sub.student_name,
            sub.roll_no,
            f"{sub.marks or 0} / {total}",
            f"{sub.percentage or 0:.1f}%",
            pass_status(sub.percentage) if sub.evaluated else "Pending",
        ])

    story = [
        Paragraph(escape(f"{exam.title} - Results"), styles["Title"]),
        Paragraph(f"Date: {datetime.now().strftime('%Y-%m-%d')}", styles["Normal"]),
        Spacer(1, 12),
        _report_table(rows),
    ]
    doc.build(story)
    return buffer.getvalue()


def merge_pdfs(documents: List[bytes]) -> bytes:
    """Concatenate PDFs page by page, in the given order."""
    writer = PdfWriter()
    for content in documents:
        for page in PdfReader(BytesIO(content)).pages:
            writer.add_page(page)
    buffer = BytesIO()
    writer.write(buffer)
    return buffer.getvalue()
