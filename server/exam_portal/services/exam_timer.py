"""
Exam countdown timer.

Each started exam gets an attempt whose countdown drops by one every tick
(one second by default). When it reaches zero the attempt is submitted
automatically with whatever answers were saved so far.
"""
import asyncio
import uuid
from datetime import datetime
from typing import Awaitable, Callable, Dict, Optional

from exam_portal.config import settings
from exam_portal.models import Answer

ExpireHandler = Callable[["ExamAttempt"], Awaitable[None]]


def format_time(seconds: int) -> str:
    """H:MM:SS when at least an hour is left, otherwise M:SS"""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


class ExamAttempt:
    """A student's in-progress sitting of one exam."""

    def __init__(self, exam_id: str, student_id: str, duration: int):
        self.id = uuid.uuid4().hex[:8]
        self.exam_id = exam_id
        self.student_id = student_id
        self.time_left = duration
        self.started_at = datetime.now()
        self.answers: Dict[str, Answer] = {}
        self.submitted = False
        self.submission_id: Optional[str] = None
        self.task: Optional[asyncio.Task] = None

    @property
    def is_expired(self) -> bool:
        return self.time_left <= 0

    def tick(self) -> bool:
        """Advance the countdown by one second; True once time is up."""
        if self.time_left > 0:
            self.time_left -= 1
        return self.is_expired

    def save_answer(self, answer: Answer) -> None:
        self.answers[answer.question_id] = answer


class AttemptManager:
    """Owns attempts and their countdown tasks."""

    def __init__(self, tick_seconds: float = settings.timer_tick_seconds):
        self.tick_seconds = tick_seconds
        self.attempts: Dict[str, ExamAttempt] = {}

    def get(self, attempt_id: str) -> Optional[ExamAttempt]:
        return self.attempts.get(attempt_id)

    def find_open(self, exam_id: str, student_id: str) -> Optional[ExamAttempt]:
        return next(
            (a for a in self.attempts.values()
             if a.exam_id == exam_id and a.student_id == student_id and not a.submitted),
            None,
        )

    def start(self, exam_id: str, student_id: str, duration: int, on_expire: Optional[ExpireHandler] = None) -> ExamAttempt:
        """
        Open an attempt and, when called inside a running event loop, start
        its countdown. Reopening an unsubmitted attempt resumes it.
        """
        self.prune()
        existing = self.find_open(exam_id, student_id)
        if existing:
            return existing

        attempt = ExamAttempt(exam_id, student_id, duration)
        self.attempts[attempt.id] = attempt

        if on_expire is not None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
            if loop is not None:
                attempt.task = loop.create_task(self._countdown(attempt, on_expire))
        return attempt

    def prune(self) -> int:
        """Forget submitted attempts whose countdown has finished. Returns how many were dropped."""
        finished = [
            attempt_id for attempt_id, attempt in self.attempts.items()
            if attempt.submitted and (attempt.task is None or attempt.task.done())
        ]
        for attempt_id in finished:
            del self.attempts[attempt_id]
        return len(finished)

    async def _countdown(self, attempt: ExamAttempt, on_expire: ExpireHandler) -> None:
        while not attempt.submitted:
            await asyncio.sleep(self.tick_seconds)
            if attempt.tick():
                await self.expire(attempt, on_expire)
                return

    async def expire(self, attempt: ExamAttempt, on_expire: ExpireHandler) -> None:
        """Auto-submit once; later calls are no-ops."""
        if not self.claim(attempt, cancel=False):
            return
        print(f"⏰ Time is up for attempt {attempt.id}, auto-submitting")
        try:
            await on_expire(attempt)
        except Exception as e:
            print(f"❌ Auto-submit failed for attempt {attempt.id}: {e}")

    def claim(self, attempt: ExamAttempt, cancel: bool = True) -> bool:
        """Mark the attempt submitted. False if it already was."""
        if attempt.submitted:
            return False
        attempt.submitted = True
        if cancel and attempt.task and not attempt.task.done():
            attempt.task.cancel()
        return True

    def shutdown(self) -> None:
        for attempt in self.attempts.values():
            if attempt.task and not attempt.task.done():
                attempt.task.cancel()


# Global manager instance
attempt_manager = AttemptManager()
