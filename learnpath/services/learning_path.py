import json
import logging
from typing import List

from pydantic import BaseModel, Field, PositiveInt, StrictStr, TypeAdapter, ValidationError

from learnpath.core.config import settings
from learnpath.core.errors import MalformedResponse
from learnpath.services.gateway import GenerationGateway, strip_code_fences

logger = logging.getLogger(__name__)

MIN_WEEKS = 1
MAX_WEEKS = 52


class LearningPathWeek(BaseModel):
    week: PositiveInt
    tasks: List[StrictStr] = Field(min_length=1)


_weeks_adapter = TypeAdapter(List[LearningPathWeek])


def difficulty_tier(score_percentage: float) -> str:
    if score_percentage <= 50:
        return "basics"
    if score_percentage <= 75:
        return "mixed"
    return "advanced"


_TIER_GUIDANCE = {
    "basics": "The student scored low (0-50%): emphasize the basics and foundational practice.",
    "mixed": "The student scored in the middle (51-75%): balance basics with intermediate material.",
    "advanced": "The student scored high (76-100%): include advanced topics alongside reinforcement.",
}


def build_learning_path_prompt(topic: str, score_percentage: float, weeks: int) -> str:
    return f"""
You are an expert curriculum designer. A student wants to learn "{topic}" over {weeks} weeks and scored {score_percentage}% on a prerequisite quiz. Generate a detailed week-by-week learning path to master "{topic}". Rules:
- Provide exactly {weeks} weeks of content.
- {_TIER_GUIDANCE[difficulty_tier(score_percentage)]}
- Each week should have 2-3 clear, actionable tasks (e.g., study concepts, practice problems, watch tutorials).
- Format output as a JSON array where each element is an object with "week" (number) and "tasks" (array of strings).
- Output only the JSON array, without any Markdown code blocks, backticks, or additional text.
Example output:
[
  {{"week": 1, "tasks": ["Study concept A", "Solve 5 problems on A", "Watch tutorial on A"]}},
  {{"week": 2, "tasks": ["Study concept B", "Practice B with examples"]}}
]
"""


def parse_learning_path(content: str, weeks: int) -> List[LearningPathWeek]:
    """Validate a model answer as a plan of exactly ``weeks`` entries."""
    cleaned = strip_code_fences(content)
    if not cleaned:
        raise MalformedResponse("No content received from the model.")
    try:
        plan = _weeks_adapter.validate_python(json.loads(cleaned))
    except json.JSONDecodeError as e:
        raise MalformedResponse(f"Learning path is not valid JSON: {e}") from e
    except ValidationError as e:
        raise MalformedResponse(f"Invalid week structure in learning path: {e.error_count()} error(s)") from e
    if len(plan) != weeks:
        raise MalformedResponse(f"Expected {weeks} weeks, got {len(plan)}.")
    return plan


class LearningPathComposer:
    def __init__(self, gateway: GenerationGateway):
        self.gateway = gateway

    async def compose(self, topic: str, score_percentage: float, weeks: int) -> List[LearningPathWeek]:
        """
        Build a week-by-week plan for ``topic``.

        Raises:
            ValueError: weeks outside [1, 52]; checked before any model call
            UpstreamUnavailable: the model could not be reached
            MalformedResponse: the answer was not a plan of exactly ``weeks`` weeks
        """
        if not MIN_WEEKS <= weeks <= MAX_WEEKS:
            raise ValueError(f"weeks must be between {MIN_WEEKS} and {MAX_WEEKS}")

        content = await self.gateway.complete(
            build_learning_path_prompt(topic, score_percentage, weeks),
            model=settings.LEARNING_PATH_MODEL,
            max_tokens=settings.LEARNING_PATH_MAX_TOKENS,
        )
        try:
            return parse_learning_path(content, weeks)
        except MalformedResponse as e:
            logger.error(f"Error parsing learning path for {topic!r}: {e}. Content: {content!r}")
            raise
