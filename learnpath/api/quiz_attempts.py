from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field, constr

from learnpath.api.deps import get_quota_tracker
from learnpath.core.auth import get_user_id
from learnpath.models.schemas import CamelModel
from learnpath.services.quota import AttemptQuotaTracker

router = APIRouter()


class AttemptSubmit(CamelModel):
    quiz_id: Optional[str] = None
    score: Optional[float] = Field(default=None, ge=0, le=100)
    passed: bool = False
    topic: constr(strip_whitespace=True, min_length=1)


class AttemptStatusOut(CamelModel):
    can_attempt: bool
    attempts_today: int
    message: str


@router.get("/quiz-attempts", response_model=AttemptStatusOut)
async def check_attempts(
    topic: constr(strip_whitespace=True, min_length=1) = Query(...),
    user_id: str = Depends(get_user_id),
    tracker: AttemptQuotaTracker = Depends(get_quota_tracker),
):
    status = await tracker.status(user_id, topic)
    return AttemptStatusOut(can_attempt=status.can_attempt, attempts_today=status.attempts_today, message=status.message)


@router.post("/quiz-attempts", response_model=AttemptStatusOut)
async def record_attempt(
    payload: AttemptSubmit,
    user_id: str = Depends(get_user_id),
    tracker: AttemptQuotaTracker = Depends(get_quota_tracker),
):
    # QuotaExceeded is turned into a 403 by the application's exception handler
    attempts = await tracker.record_attempt(
        user_id, payload.topic, quiz_id=payload.quiz_id, score=payload.score, passed=payload.passed
    )
    return AttemptStatusOut(can_attempt=True, attempts_today=attempts, message="Attempt recorded.")
