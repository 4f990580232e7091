import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import Field, constr

from learnpath.api.deps import get_composer, get_summarizer
from learnpath.core.errors import MalformedResponse, UpstreamUnavailable
from learnpath.models.schemas import CamelModel
from learnpath.services.learning_path import MAX_WEEKS, MIN_WEEKS, LearningPathComposer, LearningPathWeek
from learnpath.services.summary import TopicSummarizer

logger = logging.getLogger(__name__)

router = APIRouter()


class LearningPathRequest(CamelModel):
    topic: constr(strip_whitespace=True, min_length=1)
    score_percentage: float = Field(ge=0, le=100)
    weeks: int = Field(ge=MIN_WEEKS, le=MAX_WEEKS)


class LearningPathResponse(CamelModel):
    learning_path: List[LearningPathWeek]


class SummaryRequest(CamelModel):
    topic: constr(strip_whitespace=True, min_length=1)
    main_topic: constr(strip_whitespace=True, min_length=1)


class SummaryResponse(CamelModel):
    summary: str


@router.post("/learning-path", response_model=LearningPathResponse)
async def create_learning_path(payload: LearningPathRequest, composer: LearningPathComposer = Depends(get_composer)):
    try:
        plan = await composer.compose(payload.topic, payload.score_percentage, payload.weeks)
    except UpstreamUnavailable as e:
        logger.error(f"Error generating learning path: {e}")
        raise HTTPException(500, "Failed to generate learning path.")
    except MalformedResponse:
        raise HTTPException(500, "Failed to parse learning path from model response.")
    return LearningPathResponse(learning_path=plan)


@router.post("/topic-summary", response_model=SummaryResponse)
async def topic_summary(payload: SummaryRequest, summarizer: TopicSummarizer = Depends(get_summarizer)):
    return SummaryResponse(summary=await summarizer.summarize(payload.topic, payload.main_topic))
