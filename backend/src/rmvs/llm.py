"""LLM provider clients.

Checks that need an LLM (content verification, URL auto-fix) receive an
`LLMClient` instance from their caller. Supports Anthropic (with the
server-side web search tool) and OpenAI.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Protocol

import anthropic
import openai

from .config import Settings, get_settings
from .errors import LLMError

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Text reply plus the token usage needed for cost tracking."""

    text: str
    input_tokens: int
    output_tokens: int
    model: str
    provider: str
    duration_ms: int = 0


class LLMClient(Protocol):
    """Minimal completion interface used by the verification checks."""

    provider: str
    model: str
    fast_model: str
    supports_web_search: bool

    async def complete(
        self,
        prompt: str,
        *,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.1,
        web_search: bool = False,
    ) -> LLMResponse: ...


class AnthropicLLMClient:
    """Anthropic Messages API client."""

    provider = "anthropic"
    supports_web_search = True

    WEB_SEARCH_TOOL = {"type": "web_search_20250305", "name": "web_search"}

    def __init__(
        self,
        api_key: str,
        model: str,
        fast_model: str,
        timeout: float = 15.0,
        client: Any = None,
    ):
        """Initialize the client.

        Args:
            api_key: Anthropic API key
            model: Model used for web-search tasks
            fast_model: Cheaper model used for content matching
            timeout: Request timeout in seconds
            client: Pre-built AsyncAnthropic (for tests)
        """
        self.model = model
        self.fast_model = fast_model
        self._client = client or anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout)

    async def complete(
        self,
        prompt: str,
        *,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.1,
        web_search: bool = False,
    ) -> LLMResponse:
        model = model or self.model
        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if web_search:
            kwargs["tools"] = [self.WEB_SEARCH_TOOL]

        start = time.monotonic()
        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIError as e:
            raise LLMError(self.provider, str(e)) from e

        # Web search replies interleave tool blocks; the answer is the last text block
        text_blocks = [
            block.text for block in response.content if getattr(block, "type", None) == "text"
        ]

        return LLMResponse(
            text=text_blocks[-1] if text_blocks else "",
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=model,
            provider=self.provider,
            duration_ms=int((time.monotonic() - start) * 1000),
        )


class OpenAILLMClient:
    """OpenAI Chat Completions client (no web search)."""

    provider = "openai"
    supports_web_search = False

    def __init__(self, api_key: str, model: str, timeout: float = 15.0, client: Any = None):
        self.model = model
        self.fast_model = model
        self._client = client or openai.AsyncOpenAI(api_key=api_key, timeout=timeout)

    async def complete(
        self,
        prompt: str,
        *,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.1,
        web_search: bool = False,
    ) -> LLMResponse:
        if web_search:
            raise LLMError(self.provider, "web search is not supported")

        model = model or self.model
        start = time.monotonic()
        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.OpenAIError as e:
            raise LLMError(self.provider, str(e)) from e

        usage = response.usage
        return LLMResponse(
            text=response.choices[0].message.content or "",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=model,
            provider=self.provider,
            duration_ms=int((time.monotonic() - start) * 1000),
        )


def get_llm_client(settings: Settings | None = None) -> LLMClient | None:
    """Build the configured LLM client.

    Returns None when the selected provider has no API key; AI-backed
    checks are then reported as unavailable.
    """
    settings = settings or get_settings()

    if settings.llm_provider == "anthropic":
        if not settings.anthropic_api_key:
            logger.warning("ANTHROPIC_API_KEY not set, AI checks disabled")
            return None
        return AnthropicLLMClient(
            api_key=settings.anthropic_api_key,
            model=settings.anthropic_verification_model,
            fast_model=settings.anthropic_enrichment_model,
            timeout=settings.llm_timeout_seconds,
        )

    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY not set, AI checks disabled")
        return None
    return OpenAILLMClient(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        timeout=settings.llm_timeout_seconds,
    )
