"""
Process-wide service instances and their FastAPI dependencies.

Tests swap any of these through ``app.dependency_overrides``.
"""
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from learnpath.core.config import settings
from learnpath.core.database import get_db
from learnpath.services.gateway import GenerationGateway, OpenRouterGateway
from learnpath.services.history import InMemoryHistoryStore, QuestionHistory, RedisHistoryStore
from learnpath.services.learning_path import LearningPathComposer
from learnpath.services.mcq import MCQEngine
from learnpath.services.prerequisites import PrerequisiteResolver
from learnpath.services.quota import AttemptQuotaTracker, QuizAttemptStore
from learnpath.services.summary import TopicSummarizer


@lru_cache()
def get_gateway() -> GenerationGateway:
    return OpenRouterGateway(settings)


@lru_cache()
def get_question_history() -> QuestionHistory:
    if settings.HISTORY_BACKEND == "redis":
        return QuestionHistory(RedisHistoryStore(settings.REDIS_URL, prefix=settings.HISTORY_KEY_PREFIX))
    return QuestionHistory(InMemoryHistoryStore())


def get_resolver(gateway: GenerationGateway = Depends(get_gateway)) -> PrerequisiteResolver:
    return PrerequisiteResolver(gateway)


def get_mcq_engine(
    gateway: GenerationGateway = Depends(get_gateway),
    history: QuestionHistory = Depends(get_question_history),
) -> MCQEngine:
    return MCQEngine(gateway, history)


def get_composer(gateway: GenerationGateway = Depends(get_gateway)) -> LearningPathComposer:
    return LearningPathComposer(gateway)


def get_summarizer(gateway: GenerationGateway = Depends(get_gateway)) -> TopicSummarizer:
    return TopicSummarizer(gateway)


def get_quota_tracker(db: AsyncSession = Depends(get_db)) -> AttemptQuotaTracker:
    return AttemptQuotaTracker(QuizAttemptStore(db))
