"""Vesting notifications and their delivery to observers."""
import asyncio
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

logger = structlog.get_logger()


class EventType(str, Enum):
    """Notifications emitted by the vesting engine."""
    SCHEDULE_CREATED = "schedule_created"
    UPKEEP_PERFORMED = "upkeep_performed"
    WITHDRAWAL_COMPLETED = "withdrawal_completed"


@dataclass
class VestingEvent:
    """A committed state change."""
    event_type: EventType
    timestamp: int
    beneficiary: Optional[str] = None
    index: Optional[int] = None
    amount: Optional[int] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["event_type"] = self.event_type.value
        return result


Observer = Callable[[VestingEvent], Awaitable[None]]


class NotificationHub:
    """
    Fans events out to observers from a background worker.

    ``publish`` only enqueues, so the engine never waits on an observer and a
    failing observer cannot undo a committed operation.
    """

    def __init__(self):
        self._observers: List[Observer] = []
        self._queue: asyncio.Queue = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None

    def subscribe(self, observer: Observer) -> None:
        self._observers.append(observer)

    def publish(self, event: VestingEvent) -> None:
        self._queue.put_nowait(event)

    async def start(self):
        """Start the dispatch worker"""
        if self._task is None:
            self._task = asyncio.create_task(self._worker())
            logger.info("Notification worker started", observers=len(self._observers))

    async def stop(self):
        """Deliver anything pending, then stop the dispatch worker"""
        await self.drain()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Notification worker stopped")

    async def drain(self):
        """Wait until every published event has been delivered."""
        if self._task is not None:
            await self._queue.join()
            return
        while not self._queue.empty():
            event = self._queue.get_nowait()
            try:
                await self._dispatch(event)
            finally:
                self._queue.task_done()

    async def _worker(self):
        while True:
            event = await self._queue.get()
            try:
                await self._dispatch(event)
            finally:
                self._queue.task_done()

    async def _dispatch(self, event: VestingEvent):
        for observer in self._observers:
            try:
                await observer(event)
            except Exception as e:
                logger.error(
                    "Notification observer failed",
                    event_type=event.event_type.value,
                    error=str(e),
                )

    def get_stats(self) -> dict:
        return {
            "observers": len(self._observers),
            "queue_size": self._queue.qsize(),
        }
