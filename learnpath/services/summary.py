import logging

from learnpath.core.config import settings
from learnpath.core.errors import GenerationError
from learnpath.services.gateway import GenerationGateway

logger = logging.getLogger(__name__)

EMPTY_SUMMARY = "⚠️ No response from model."
SUMMARY_UNAVAILABLE = "⚠️ Failed to fetch summary."


def build_summary_prompt(topic: str, main_topic: str) -> str:
    return f"""
You are an educational assistant.

Explain the main concepts of "{topic}" and describe clearly how it helps a student understand "{main_topic}".

Be concise, beginner-friendly, and avoid advanced jargon.
Output in 1-3 short paragraphs.
"""


class TopicSummarizer:
    def __init__(self, gateway: GenerationGateway):
        self.gateway = gateway

    async def summarize(self, topic: str, main_topic: str) -> str:
        """Explain a prerequisite in context; falls back to a message instead of raising."""
        try:
            content = await self.gateway.complete(
                build_summary_prompt(topic, main_topic),
                model=settings.SUMMARY_MODEL,
                max_tokens=settings.SUMMARY_MAX_TOKENS,
            )
        except GenerationError as e:
            logger.warning(f"Summary generation failed for {topic!r}: {e}")
            return SUMMARY_UNAVAILABLE
        return content.strip() or EMPTY_SUMMARY
