import asyncio

import pytest

from exam_portal.models import Answer
from exam_portal.services.exam_timer import AttemptManager, ExamAttempt, format_time


class TestFormatTime:
    @pytest.mark.parametrize("seconds, expected", [
        (3600, "1:00:00"),
        (3725, "1:02:05"),
        (65, "1:05"),
        (59, "0:59"),
        (0, "0:00"),
        (-5, "0:00"),
    ])
    def test_format(self, seconds, expected):
        assert format_time(seconds) == expected


class TestExamAttempt:
    def test_tick_counts_down_to_zero(self):
        attempt = ExamAttempt("e1", "s1", 2)
        assert attempt.tick() is False
        assert attempt.tick() is True
        assert attempt.tick() is True
        assert attempt.time_left == 0

    def test_save_answer_overwrites(self):
        attempt = ExamAttempt("e1", "s1", 60)
        attempt.save_answer(Answer(question_id="q1", text="first"))
        attempt.save_answer(Answer(question_id="q1", text="second"))
        assert attempt.answers["q1"].text == "second"


class TestAttemptManager:
    def test_start_outside_loop_has_no_countdown(self):
        manager = AttemptManager()
        attempt = manager.start("e1", "s1", 60, on_expire=None)
        assert attempt.task is None
        assert manager.get(attempt.id) is attempt

    def test_start_resumes_open_attempt(self):
        manager = AttemptManager()
        first = manager.start("e1", "s1", 60)
        assert manager.start("e1", "s1", 60) is first
        manager.claim(first)
        assert manager.start("e1", "s1", 60) is not first

    def test_submitted_attempts_are_dropped_on_next_start(self):
        manager = AttemptManager()
        done = manager.start("e1", "s1", 60)
        manager.claim(done)
        still_open = manager.start("e1", "s2", 60)

        manager.start("e2", "s3", 60)
        assert manager.get(done.id) is None
        assert manager.get(still_open.id) is still_open
        assert len(manager.attempts) == 2

    def test_prune_keeps_running_countdown(self):
        manager = AttemptManager(tick_seconds=0.01)

        async def on_expire(attempt):
            pass

        async def scenario():
            attempt = manager.start("e1", "s1", 1000, on_expire=on_expire)
            attempt.submitted = True
            assert manager.prune() == 0
            await attempt.task
            assert manager.prune() == 1

        asyncio.run(scenario())
        assert manager.attempts == {}

    def test_countdown_auto_submits_once(self):
        manager = AttemptManager(tick_seconds=0.001)
        calls = []

        async def on_expire(attempt):
            calls.append(attempt.id)

        async def scenario():
            attempt = manager.start("e1", "s1", 3, on_expire=on_expire)
            await attempt.task
            await manager.expire(attempt, on_expire)
            return attempt

        attempt = asyncio.run(scenario())
        assert calls == [attempt.id]
        assert attempt.submitted
        assert attempt.time_left == 0

    def test_manual_claim_stops_countdown(self):
        manager = AttemptManager(tick_seconds=0.01)
        calls = []

        async def on_expire(attempt):
            calls.append(attempt.id)

        async def scenario():
            attempt = manager.start("e1", "s1", 1000, on_expire=on_expire)
            await asyncio.sleep(0.05)
            assert manager.claim(attempt) is True
            assert manager.claim(attempt) is False
            with pytest.raises(asyncio.CancelledError):
                await attempt.task
            return attempt

        attempt = asyncio.run(scenario())
        assert calls == []
        assert attempt.time_left < 1000

    def test_failing_handler_is_logged_not_raised(self):
        manager = AttemptManager(tick_seconds=0.001)

        async def on_expire(attempt):
            raise RuntimeError("storage down")

        async def scenario():
            attempt = manager.start("e1", "s1", 1, on_expire=on_expire)
            await attempt.task
            return attempt

        assert asyncio.run(scenario()).submitted
