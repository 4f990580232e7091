"""
Daily quiz attempt cap per (user, topic).

Attempts live in the ``quiz_attempts`` table and are counted over the current
server-local calendar day. ``record_attempt`` checks and then inserts without a
lock, so two simultaneous submissions for the same user and topic can both get
through; the cap is a fairness measure, not a security boundary.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from learnpath.core.config import settings
from learnpath.core.errors import QuotaExceeded
from learnpath.models.orm import QuizAttempt

logger = logging.getLogger(__name__)


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """Half-open [midnight, next midnight) window for ``day``."""
    return datetime.combine(day, time.min), datetime.combine(day + timedelta(days=1), time.min)


@dataclass(frozen=True)
class AttemptStatus:
    can_attempt: bool
    attempts_today: int
    message: str


class QuizAttemptStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def count_between(self, user_id: str, topic: str, start: datetime, end: datetime) -> int:
        stmt = select(func.count(QuizAttempt.id)).where(
            QuizAttempt.user_id == user_id,
            QuizAttempt.topic == topic,
            QuizAttempt.timestamp >= start,
            QuizAttempt.timestamp < end,
        )
        return (await self.db.scalar(stmt)) or 0

    async def add(self, attempt: QuizAttempt) -> None:
        self.db.add(attempt)
        await self.db.flush()


class AttemptQuotaTracker:
    def __init__(
        self,
        store: QuizAttemptStore,
        max_per_day: Optional[int] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.max_per_day = max_per_day if max_per_day is not None else settings.MAX_ATTEMPTS_PER_DAY
        self.clock = clock

    async def count_today(self, user_id: str, topic: str) -> int:
        start, end = day_bounds(self.clock().date())
        return await self.store.count_between(user_id, topic, start, end)

    async def can_attempt(self, user_id: str, topic: str) -> bool:
        return await self.count_today(user_id, topic) < self.max_per_day

    async def status(self, user_id: str, topic: str) -> AttemptStatus:
        count = await self.count_today(user_id, topic)
        if count >= self.max_per_day:
            message = f"Max attempts reached for {topic} today. Please try again tomorrow."
        else:
            message = f"{self.max_per_day - count} attempt(s) remaining today for {topic}."
        return AttemptStatus(can_attempt=count < self.max_per_day, attempts_today=count, message=message)

    async def record_attempt(
        self,
        user_id: str,
        topic: str,
        quiz_id: Optional[str] = None,
        score: Optional[float] = None,
        passed: bool = False,
    ) -> int:
        """Store one attempt and return today's updated count; raises QuotaExceeded at the cap."""
        count = await self.count_today(user_id, topic)
        if count >= self.max_per_day:
            logger.info(f"Quota reached for user={user_id} topic={topic} ({count}/{self.max_per_day})")
            raise QuotaExceeded(user_id, topic, count)

        await self.store.add(QuizAttempt(
            user_id=user_id,
            topic=topic,
            quiz_id=quiz_id,
            score=score,
            passed=passed,
            timestamp=self.clock(),
        ))
        return count + 1
