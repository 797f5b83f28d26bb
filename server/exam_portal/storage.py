"""
Application state container for users, exams, submissions and PDF submissions.

All collections live in memory. Every mutation writes the whole state back to
one namespaced key in the persisted key/value table as a JSON blob. Binary
PDF payloads cannot go into JSON, so they are written as null and are gone
after a reload.
"""
import json
import threading
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from exam_portal.config import settings
from exam_portal.models import (
    AnyUser,
    Answer,
    Difficulty,
    Exam,
    ExamSubmission,
    PdfSubmission,
    Question,
    StorageEntry,
    Student,
    Teacher,
    UserRole,
    user_from_dict,
)
from exam_portal.security import hash_password, new_token, verify_password

STORAGE_VERSION = 0


def generate_id(taken=()) -> str:
    """Short random identifier, unique against `taken`."""
    while True:
        new_id = uuid.uuid4().hex[:8]
        if new_id not in taken:
            return new_id


class BlobStorage:
    """Key/value access to persisted strings."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def get_item(self, name: str) -> Optional[str]:
        """Stored value, or None when the key is absent. Read errors propagate."""
        try:
            with self.session_factory() as db:
                entry = db.get(StorageEntry, name)
                return entry.value if entry else None
        except SQLAlchemyError as e:
            print(f"❌ Failed to read storage key {name}: {e}")
            raise

    def set_item(self, name: str, value: str) -> None:
        with self.session_factory() as db:
            entry = db.get(StorageEntry, name)
            if entry:
                entry.value = value
            else:
                db.add(StorageEntry(key=name, value=value))
            db.commit()


class ExamStore:
    """Accessors and mutators over the four entity collections."""

    def __init__(
        self,
        storage: Optional[BlobStorage] = None,
        storage_key: str = settings.storage_key,
        seed: bool = settings.seed_demo_data,
    ):
        self.storage = storage
        self.storage_key = storage_key
        self.seed = seed

        self.users: List[AnyUser] = []
        self.exams: List[Exam] = []
        self.submissions: List[ExamSubmission] = []
        self.pdf_submissions: List[PdfSubmission] = []
        # token -> user id
        self.sessions: Dict[str, str] = {}

        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_state(self) -> dict:
        return {
            "state": {
                "users": [u.model_dump(mode="json") for u in self.users],
                "exams": [e.model_dump(mode="json") for e in self.exams],
                "submissions": [s.model_dump(mode="json") for s in self.submissions],
                "pdf_submissions": [
                    {**p.model_dump(mode="json", exclude={"pdf_blob"}), "pdf_blob": None}
                    for p in self.pdf_submissions
                ],
                "sessions": dict(self.sessions),
            },
            "version": STORAGE_VERSION,
        }

    def load_state(self, value: dict) -> None:
        state = value.get("state", {})
        self.users = [user_from_dict(u) for u in state.get("users", [])]
        self.exams = [Exam.model_validate(e) for e in state.get("exams", [])]
        self.submissions = [ExamSubmission.model_validate(s) for s in state.get("submissions", [])]
        self.pdf_submissions = [PdfSubmission.model_validate(p) for p in state.get("pdf_submissions", [])]
        self.sessions = dict(state.get("sessions", {}))

    def persist(self) -> None:
        if self.storage is None:
            return
        with self._lock:
            self.storage.set_item(self.storage_key, json.dumps(self.to_state()))

    def hydrate(self) -> None:
        """
        Load persisted state, or seed the demo data when nothing is stored yet.

        Storage read errors propagate so an unreachable database never gets
        overwritten. An unparseable blob is copied to `<key>.corrupt` before
        the store starts fresh.
        """
        with self._lock:
            raw = self.storage.get_item(self.storage_key) if self.storage else None
            if raw is not None:
                try:
                    self.load_state(json.loads(raw))
                    print(f"✅ Loaded {len(self.exams)} exams, {len(self.submissions)} submissions from storage")
                    return
                except ValueError as e:
                    backup_key = f"{self.storage_key}.corrupt"
                    self.storage.set_item(backup_key, raw)
                    print(f"❌ Persisted state is unreadable, kept a copy under {backup_key}: {e}")

            if self.seed:
                from exam_portal.services.seed_loader import load_seed_data

                self.users, self.exams = load_seed_data()
                print(f"🌱 Seeded {len(self.users)} users and {len(self.exams)} exams")
            self.persist()

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def login(self, username: str, password: str, role: Optional[UserRole] = None) -> Optional[Tuple[AnyUser, str]]:
        """
        Students log in with their roll number, teachers with username or name.
        Returns the user and a new session token, or None.
        """
        for user in self.users:
            if role and user.role != role:
                continue
            if isinstance(user, Student):
                matches = user.roll_no == username
            else:
                matches = username in (user.login_name, user.name)
            if matches and verify_password(password, user.password):
                with self._lock:
                    token = new_token()
                    self.sessions[token] = user.id
                    self.persist()
                return user, token
        return None

    def logout(self, token: str) -> None:
        with self._lock:
            if self.sessions.pop(token, None) is not None:
                self.persist()

    def current_user(self, token: Optional[str]) -> Optional[AnyUser]:
        if not token:
            return None
        user_id = self.sessions.get(token)
        return self.get_user(user_id) if user_id else None

    def register(self, user_data: dict) -> AnyUser:
        """Add a user; `user_data["password"]` is plaintext and gets hashed."""
        with self._lock:
            record = dict(user_data)
            record["id"] = generate_id({u.id for u in self.users})
            record["password"] = hash_password(record["password"])
            user = user_from_dict(record)
            self.users.append(user)
            self.persist()
        return user

    def get_user(self, user_id: str) -> Optional[AnyUser]:
        return next((u for u in self.users if u.id == user_id), None)

    def find_student(self, roll_no: str) -> Optional[Student]:
        return next((u for u in self.users if isinstance(u, Student) and u.roll_no == roll_no), None)

    def find_teacher(self, username: str) -> Optional[Teacher]:
        return next((u for u in self.users if isinstance(u, Teacher) and username in (u.login_name, u.name)), None)

    # ------------------------------------------------------------------
    # Exams
    # ------------------------------------------------------------------

    def _build_questions(self, questions: list) -> List[Question]:
        built = []
        taken = set()
        for q in questions:
            data = q.model_dump() if isinstance(q, Question) else dict(q)
            if not data.get("id") or data["id"] in taken:
                data["id"] = generate_id(taken)
            taken.add(data["id"])
            built.append(Question.model_validate(data))
        return built

    def create_exam(self, exam_data: dict) -> Exam:
        with self._lock:
            data = dict(exam_data)
            data["id"] = generate_id({e.id for e in self.exams})
            data["questions"] = self._build_questions(data.get("questions", []))
            exam = Exam.model_validate(data)
            self.exams.append(exam)
            self.persist()
        return exam

    def update_exam(self, exam_id: str, changes: dict) -> Optional[Exam]:
        with self._lock:
            for i, exam in enumerate(self.exams):
                if exam.id != exam_id:
                    continue
                data = exam.model_dump()
                data.update({k: v for k, v in changes.items() if v is not None})
                data["id"] = exam_id
                data["questions"] = self._build_questions(data["questions"])
                updated = Exam.model_validate(data)
                self.exams[i] = updated
                self.persist()
                return updated
        return None

    def set_exam_active(self, exam_id: str, is_active: bool) -> Optional[Exam]:
        return self.update_exam(exam_id, {"is_active": is_active})

    def delete_exam(self, exam_id: str) -> bool:
        with self._lock:
            remaining = [e for e in self.exams if e.id != exam_id]
            if len(remaining) == len(self.exams):
                return False
            self.exams = remaining
            self.persist()
        return True

    def get_exams(self, teacher_id: Optional[str] = None, active_only: bool = False) -> List[Exam]:
        return [
            exam for exam in self.exams
            if (not teacher_id or exam.created_by == teacher_id)
            and (not active_only or exam.is_active)
        ]

    def get_exam(self, exam_id: str) -> Optional[Exam]:
        return next((exam for exam in self.exams if exam.id == exam_id), None)

    def get_questions(self, difficulty: Optional[Difficulty] = None, subject: Optional[str] = None) -> List[Question]:
        """Question bank across active exams"""
        questions = []
        for exam in self.get_exams(active_only=True):
            if subject and (exam.subject or "").lower() != subject.lower():
                continue
            questions.extend(q for q in exam.questions if not difficulty or q.difficulty == difficulty)
        return questions

    def get_subjects(self) -> List[str]:
        return sorted({exam.subject for exam in self.get_exams(active_only=True) if exam.subject})

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    def submit_exam(self, submission_data: dict) -> ExamSubmission:
        with self._lock:
            data = dict(submission_data)
            data["id"] = generate_id({s.id for s in self.submissions})
            data["submitted_at"] = datetime.now()
            submission = ExamSubmission.model_validate(data)
            self.submissions.append(submission)
            self.persist()
        return submission

    def evaluate_submission(self, submission_id: str, marks: float, feedback: str) -> Optional[ExamSubmission]:
        """Record marks and feedback; percentage is marks over question count."""
        with self._lock:
            for i, sub in enumerate(self.submissions):
                if sub.id != submission_id:
                    continue
                exam = self.get_exam(sub.exam_id)
                question_count = len(exam.questions) if exam else len(sub.answers)
                percentage = marks / question_count * 100 if question_count else 0.0
                updated = sub.model_copy(update={
                    "evaluated": True,
                    "marks": marks,
                    "feedback": feedback,
                    "percentage": percentage,
                })
                self.submissions[i] = updated
                self.persist()
                return updated
        return None

    def get_submissions(self, exam_id: Optional[str] = None, student_id: Optional[str] = None) -> List[ExamSubmission]:
        return [
            sub for sub in self.submissions
            if (not exam_id or sub.exam_id == exam_id)
            and (not student_id or sub.student_id == student_id)
        ]

    def get_submission(self, submission_id: str) -> Optional[ExamSubmission]:
        return next((sub for sub in self.submissions if sub.id == submission_id), None)

    # ------------------------------------------------------------------
    # PDF submissions
    # ------------------------------------------------------------------

    def save_pdf_for_teacher(self, pdf_data: dict) -> PdfSubmission:
        with self._lock:
            data = dict(pdf_data)
            data["id"] = generate_id({p.id for p in self.pdf_submissions})
            pdf = PdfSubmission.model_validate(data)
            self.pdf_submissions.append(pdf)
            self.persist()
        return pdf

    def get_pdf_submissions(self, exam_id: Optional[str] = None, student_id: Optional[str] = None) -> List[PdfSubmission]:
        return [
            sub for sub in self.pdf_submissions
            if (not exam_id or sub.exam_id == exam_id)
            and (not student_id or sub.student_id == student_id)
        ]

    def get_pdf_submission(self, pdf_id: str) -> Optional[PdfSubmission]:
        return next((sub for sub in self.pdf_submissions if sub.id == pdf_id), None)

    def get_student_pdf_submissions_by_exam(self, exam_id: str) -> List[PdfSubmission]:
        return [sub for sub in self.pdf_submissions if sub.exam_id == exam_id]


def ordered_answers(exam: Exam, answers: List[Answer]) -> List[Answer]:
    """
    One answer per exam question, in question order. Missing answers become
    empty; answers for unknown questions raise ValueError.
    """
    by_question = {}
    known = set(exam.question_ids)
    for answer in answers:
        if answer.question_id not in known:
            raise ValueError(f"Unknown question id: {answer.question_id}")
        by_question[answer.question_id] = answer
    return [by_question.get(qid, Answer(question_id=qid)) for qid in exam.question_ids]


def _default_store() -> ExamStore:
    from exam_portal.database import SessionLocal

    return ExamStore(BlobStorage(SessionLocal))


# Global store instance
store = _default_store()


def get_store() -> ExamStore:
    """Dependency returning the global store"""
    return store
