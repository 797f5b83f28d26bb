"""
SSE (Server-Sent Events) channels so teachers see submissions and grading live.
"""
import asyncio
import json
from typing import Any, Dict, List


class ExamEventManager:
    """One fan-out channel per exam; each subscriber owns a queue."""

    def __init__(self):
        # exam_id -> subscriber queues
        self.channels: Dict[str, List[asyncio.Queue]] = {}

    async def connect(self, exam_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self.channels.setdefault(exam_id, []).append(queue)
        return queue

    def disconnect(self, exam_id: str, queue: asyncio.Queue) -> None:
        queues = self.channels.get(exam_id)
        if not queues:
            return
        if queue in queues:
            queues.remove(queue)
        if not queues:
            del self.channels[exam_id]

    def subscriber_count(self, exam_id: str) -> int:
        return len(self.channels.get(exam_id, []))

    async def publish(self, exam_id: str, event_type: str, data: Any) -> None:
        """Send `{"type": ..., "data": ...}` to every subscriber of the exam."""
        message = {"type": event_type, "data": data}
        for queue in self.channels.get(exam_id, []):
            await queue.put(message)


def format_sse(message: dict) -> str:
    return f"data: {json.dumps(message, default=str)}\n\n"


# Global manager instance
event_manager = ExamEventManager()
