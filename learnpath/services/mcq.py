"""
Round-robin MCQ generation across prerequisite topics.

Questions are requested one at a time, cycling through the topics so that the
quiz covers every prerequisite evenly. A topic that keeps failing is dropped
after ``max_attempts_per_topic`` consecutive misses. If a full round over the
topics ends before any question has been accepted, generation gives up early.
The result is always padded with placeholders up to the requested size.
"""
import enum
import json
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple
from uuid import uuid4

from pydantic import BaseModel, Field, StrictStr, ValidationError, model_validator

from learnpath.core.config import settings
from learnpath.core.errors import GenerationError, MalformedResponse
from learnpath.services.gateway import GenerationGateway, strip_code_fences
from learnpath.services.history import QuestionHistory, normalize

logger = logging.getLogger(__name__)

PLACEHOLDER_TOPIC = "N/A"


class MCQ(BaseModel):
    id: str
    topic: str
    question: str
    options: List[str]
    answer: str

    @property
    def is_placeholder(self) -> bool:
        return self.topic == PLACEHOLDER_TOPIC


class GeneratedQuestion(BaseModel):
    """Shape a single model answer must have before it becomes an MCQ."""

    question: StrictStr
    options: List[StrictStr] = Field(min_length=4, max_length=4)
    answer: StrictStr

    @model_validator(mode="after")
    def check_options(self):
        if len(set(self.options)) != len(self.options):
            raise ValueError("options must be distinct")
        if self.answer not in self.options:
            raise ValueError("answer must match one of the options exactly")
        return self


class OutcomeStatus(str, enum.Enum):
    ACCEPTED = "accepted"
    UPSTREAM_ERROR = "upstream_error"
    MALFORMED = "malformed"
    INVALID = "invalid"
    DUPLICATE = "duplicate"
    EVICTED = "evicted"


@dataclass(frozen=True)
class GenerationOutcome:
    topic: str
    status: OutcomeStatus
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.ACCEPTED


OutcomeSink = Callable[[GenerationOutcome], None]


def log_outcome(outcome: GenerationOutcome) -> None:
    if outcome.ok:
        logger.debug(f'Accepted question for topic "{outcome.topic}"')
    elif outcome.status is OutcomeStatus.EVICTED:
        logger.warning(f'Skipping topic "{outcome.topic}" due to too many failed attempts to generate unique questions.')
    else:
        logger.warning(f'MCQ generation {outcome.status.value} for topic "{outcome.topic}": {outcome.detail}')


@dataclass
class TopicRotation:
    """Cursor over the topics still worth asking about.

    ``advance`` and ``evict`` report whether the cursor wrapped, i.e. whether a
    full round over the remaining candidates has just ended.
    """

    candidates: List[str]
    max_attempts: int = 5
    cursor: int = 0
    attempts: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def over(cls, topics: Sequence[str], max_attempts: int = 5) -> "TopicRotation":
        return cls(candidates=list(dict.fromkeys(topics)), max_attempts=max_attempts)

    @property
    def exhausted(self) -> bool:
        return not self.candidates

    def current(self) -> str:
        return self.candidates[self.cursor % len(self.candidates)]

    def begin_attempt(self, topic: str) -> bool:
        """Count an attempt; False once the topic has used up its consecutive attempts."""
        self.attempts[topic] = self.attempts.get(topic, 0) + 1
        return self.attempts[topic] <= self.max_attempts

    def record_success(self, topic: str) -> None:
        self.attempts[topic] = 0

    def evict(self, topic: str) -> bool:
        # the next topic slides into the evicted slot, so the cursor stays put
        self.candidates = [t for t in self.candidates if t != topic]
        if self.cursor >= len(self.candidates):
            self.cursor = 0
            return True
        return False

    def advance(self) -> bool:
        if not self.candidates:
            return True
        self.cursor = (self.cursor + 1) % len(self.candidates)
        return self.cursor == 0


def build_mcq_prompt(topic: str, recent: Sequence[str]) -> str:
    prompt = f"""Generate one unique beginner-level multiple-choice question (MCQ) on the topic "{topic}" that has not been generated before based on its content.
If any programs or code snippets are included, format them using HTML so they are displayed properly and not as raw text.
Return the response in the following JSON format:
{{
  "question": "...",
  "options": ["...", "...", "...", "..."],
  "answer": "..."
}}
- The "options" array must contain exactly 4 options.
- The "answer" must be the exact text of the correct option (e.g., "1/6", not "a. 1/6").
- Do not include any prefixes (like "a.", "b.", etc.) in the options or answer.
- Ensure the question is distinct from any previously generated questions for this topic.
"""
    if recent:
        quoted = ", ".join(json.dumps(q) for q in recent)
        prompt += f"Do not repeat any of the following questions (based on their content): {quoted}\n"
    return prompt


def parse_mcq_payload(content: str) -> GeneratedQuestion:
    """Parse and validate one model answer; raises MalformedResponse when unusable."""
    try:
        data = json.loads(strip_code_fences(content))
    except json.JSONDecodeError as e:
        raise MalformedResponse(f"response is not JSON: {e}") from e
    try:
        return GeneratedQuestion.model_validate(data)
    except ValidationError as e:
        raise MalformedResponse(f"invalid question format: {e.error_count()} error(s)") from e


def placeholder(position: int) -> MCQ:
    return MCQ(
        id=str(uuid4()),
        topic=PLACEHOLDER_TOPIC,
        question=f"⚠️ Could not generate enough unique questions. Question {position}.",
        options=[],
        answer="",
    )


class MCQEngine:
    def __init__(
        self,
        gateway: GenerationGateway,
        history: QuestionHistory,
        max_attempts_per_topic: Optional[int] = None,
        recent_window: Optional[int] = None,
        on_outcome: OutcomeSink = log_outcome,
    ):
        self.gateway = gateway
        self.history = history
        self.max_attempts_per_topic = max_attempts_per_topic or settings.MCQ_MAX_ATTEMPTS_PER_TOPIC
        self.recent_window = recent_window if recent_window is not None else settings.MCQ_RECENT_HISTORY_WINDOW
        self.on_outcome = on_outcome

    async def generate(self, topics: Sequence[str], target_count: int, reset_topics: bool = False) -> List[MCQ]:
        """
        Generate exactly ``target_count`` MCQs spread over ``topics``.

        Args:
            topics: Prerequisite topics to ask about
            target_count: Number of questions to return
            reset_topics: Forget previously served questions for these topics first

        Returns:
            List of MCQs; shortfalls are filled with ``N/A`` placeholders
        """
        logger.info(f"Generating {target_count} MCQs for topics={list(topics)} reset={reset_topics}")
        if reset_topics and topics:
            await self.history.reset(topics)

        results: List[MCQ] = []
        # within-call guard that holds even when the history store is unreachable
        served: Set[Tuple[str, str]] = set()
        rotation = TopicRotation.over(topics, self.max_attempts_per_topic)

        while len(results) < target_count and not rotation.exhausted:
            topic = rotation.current()

            if not rotation.begin_attempt(topic):
                self.on_outcome(GenerationOutcome(topic, OutcomeStatus.EVICTED))
                round_over = rotation.evict(topic)
            else:
                mcq = await self._attempt(topic, served)
                if mcq is not None:
                    results.append(mcq)
                    rotation.record_success(topic)
                round_over = rotation.advance()

            # once anything has been accepted the per-topic cap bounds the loop
            if round_over and not results:
                logger.warning("Could not generate any unique questions after trying all topics. Stopping early.")
                break

        while len(results) < target_count:
            results.append(placeholder(len(results) + 1))
        return results

    async def _attempt(self, topic: str, served: Set[Tuple[str, str]]) -> Optional[MCQ]:
        recent = await self.history.recent(topic, self.recent_window)
        try:
            content = await self.gateway.complete(
                build_mcq_prompt(topic, recent),
                model=settings.MCQ_MODEL,
                max_tokens=settings.MCQ_MAX_TOKENS,
            )
        except GenerationError as e:
            self.on_outcome(GenerationOutcome(topic, OutcomeStatus.UPSTREAM_ERROR, str(e)))
            return None

        try:
            generated = parse_mcq_payload(content)
        except MalformedResponse as e:
            status = OutcomeStatus.MALFORMED if isinstance(e.__cause__, json.JSONDecodeError) else OutcomeStatus.INVALID
            self.on_outcome(GenerationOutcome(topic, status, str(e)))
            return None

        key = (topic, normalize(generated.question))
        if key in served or await self.history.contains(topic, generated.question):
            self.on_outcome(GenerationOutcome(topic, OutcomeStatus.DUPLICATE, generated.question))
            return None

        served.add(key)
        await self.history.add(topic, generated.question)
        self.on_outcome(GenerationOutcome(topic, OutcomeStatus.ACCEPTED))
        return MCQ(
            id=str(uuid4()),
            topic=topic,
            question=generated.question,
            options=generated.options,
            answer=generated.answer,
        )
