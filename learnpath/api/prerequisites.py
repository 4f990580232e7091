import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import Field, constr, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from learnpath.api.deps import get_mcq_engine, get_question_history, get_resolver
from learnpath.core.config import settings
from learnpath.core.database import get_db
from learnpath.models.orm import PrerequisiteSet
from learnpath.models.schemas import CamelModel
from learnpath.services.history import QuestionHistory
from learnpath.services.mcq import MCQ, MCQEngine
from learnpath.services.prerequisites import PrerequisiteResolver

logger = logging.getLogger(__name__)

router = APIRouter()


class PrerequisiteRequest(CamelModel):
    topic: constr(strip_whitespace=True, min_length=1)


class PrerequisiteResponse(CamelModel):
    topic: str
    prerequisites: List[str]


class MCQRequest(CamelModel):
    prerequisites: List[str] = Field(min_length=1)
    restart: Optional[bool] = False

    @field_validator("prerequisites")
    @classmethod
    def drop_blank_topics(cls, v: List[str]) -> List[str]:
        topics = [t.strip() for t in v if t.strip()]
        if not topics:
            raise ValueError("At least one non-blank prerequisite is required")
        return topics


@router.post("", response_model=PrerequisiteResponse)
async def create_prerequisites(
    payload: PrerequisiteRequest,
    resolver: PrerequisiteResolver = Depends(get_resolver),
    db: AsyncSession = Depends(get_db),
):
    prerequisites = await resolver.resolve(payload.topic)
    db.add(PrerequisiteSet(topic=payload.topic, prerequisites=prerequisites))
    await db.flush()
    return PrerequisiteResponse(topic=payload.topic, prerequisites=prerequisites)


@router.post("/mcq", response_model=List[MCQ])
async def generate_mcqs(payload: MCQRequest, engine: MCQEngine = Depends(get_mcq_engine)):
    target = settings.MCQ_QUESTION_COUNT
    mcqs = await engine.generate(payload.prerequisites, target, reset_topics=bool(payload.restart))
    logger.info(f"Generated {sum(not q.is_placeholder for q in mcqs)}/{target} MCQs")
    return mcqs


@router.post("/reset-mcq-cache")
async def reset_mcq_cache(history: QuestionHistory = Depends(get_question_history)):
    await history.reset()
    return {"message": "MCQ cache reset successfully."}
