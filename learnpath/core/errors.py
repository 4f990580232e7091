"""
Exception hierarchy shared by services and the HTTP layer.
"""


class LearnPathError(Exception):
    """Base class for application errors."""


class GenerationError(LearnPathError):
    """The generation gateway did not produce usable content."""


class UpstreamUnavailable(GenerationError):
    """Transport failure, timeout or non-2xx answer from the generation API."""


class MalformedResponse(GenerationError):
    """The generation API answered, but the payload has the wrong shape."""


class QuotaExceeded(LearnPathError):
    """The daily quiz attempt cap for a user and topic has been reached."""

    def __init__(self, user_id: str, topic: str, attempts_today: int):
        self.user_id = user_id
        self.topic = topic
        self.attempts_today = attempts_today
        super().__init__(self.message)

    @property
    def message(self) -> str:
        return f"Max attempts reached for {self.topic} today. Please try again tomorrow."
