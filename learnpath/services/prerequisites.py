import logging
import re
from typing import List

from learnpath.core.config import settings
from learnpath.core.errors import GenerationError
from learnpath.services.gateway import GenerationGateway

logger = logging.getLogger(__name__)

NO_PREREQUISITES = "⚠️ Could not generate prerequisites. Try another topic."
PREREQUISITES_UNAVAILABLE = "⚠️ Unable to generate prerequisites. Try another topic."

_ENUMERATION_RE = re.compile(r"^\d+\.?\s*")


def build_prerequisite_prompt(topic: str) -> str:
    return f"""
You are an expert computer science curriculum designer.

A student wants to learn the topic: "{topic}".
Your task is to return **only the essential prerequisite concepts** the student must clearly understand *before* learning it.

STRICT RULES:
- DO NOT include the topic "{topic}" or any of its subtopics (e.g., SQL for DBMS, CNN for Deep Learning).
- DO NOT include advanced or future concepts.
- DO NOT repeat vague/general concepts (like both "Math" and "Set Theory").
- DO NOT include explanations or descriptions, just topic names.
- DO NOT return fewer than 4 or more than 7 items.

Focus only on foundational, truly required concepts that directly prepare a student to understand "{topic}".

Output format:
1. Topic A
2. Topic B
3. Topic C
...
(Maximum 7 topics, Minimum 4)
"""


def parse_prerequisite_list(content: str) -> List[str]:
    """Turn a numbered list into clean concept names, dropping blank lines."""
    items = (_ENUMERATION_RE.sub("", line.strip()).strip() for line in content.splitlines())
    return [item for item in items if item]


class PrerequisiteResolver:
    def __init__(self, gateway: GenerationGateway):
        self.gateway = gateway

    async def resolve(self, topic: str) -> List[str]:
        """Return the prerequisite concepts for ``topic``; never empty, never raises."""
        logger.info(f"Resolving prerequisites for topic: {topic}")
        try:
            content = await self.gateway.complete(
                build_prerequisite_prompt(topic),
                model=settings.PREREQ_MODEL,
                max_tokens=settings.PREREQ_MAX_TOKENS,
            )
        except GenerationError as e:
            logger.warning(f"Prerequisite generation failed for {topic!r}: {e}")
            return [PREREQUISITES_UNAVAILABLE]

        prerequisites = parse_prerequisite_list(content)
        if not prerequisites:
            logger.warning(f"No usable prerequisites in model response for {topic!r}")
            return [NO_PREREQUISITES]
        return prerequisites
