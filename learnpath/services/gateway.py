"""
Generation gateway: submit a text prompt, receive a text completion.

Every consumer in the service talks to the model through ``GenerationGateway``
so the transport (OpenRouter by default) can be swapped or faked in tests.
"""
import logging
import re
from typing import Optional, Protocol

import openai
from openai import AsyncOpenAI

from learnpath.core.config import Settings, settings as default_settings
from learnpath.core.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*|\s*```")


class GenerationGateway(Protocol):
    async def complete(self, prompt: str, *, model: str, max_tokens: int) -> str:
        ...


class OpenRouterGateway:
    """Chat-completions gateway for any OpenAI-compatible endpoint."""

    def __init__(self, config: Optional[Settings] = None, client: Optional[AsyncOpenAI] = None):
        self.config = config or default_settings
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            api_key = self.config.OPENROUTER_API_KEY
            if api_key is None:
                raise UpstreamUnavailable("OPENROUTER_API_KEY is not set")
            self._client = AsyncOpenAI(
                api_key=api_key.get_secret_value(),
                base_url=self.config.OPENROUTER_BASE_URL,
                timeout=self.config.GENERATION_TIMEOUT_SECONDS,
                max_retries=0,
            )
        return self._client

    async def complete(self, prompt: str, *, model: str, max_tokens: int) -> str:
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=model,
                max_tokens=max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except openai.APIError as e:
            # APITimeoutError and APIConnectionError are APIError subclasses
            raise UpstreamUnavailable(f"{model}: {e}") from e
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()


def strip_code_fences(content: str) -> str:
    """Remove markdown code fences a model may wrap around structured output."""
    return _FENCE_RE.sub("", content).strip()
