"""Website content extraction and AI content matching."""

import json
import logging
import re
from typing import TYPE_CHECKING

import httpx

from ..config import get_settings
from ..errors import LLMError
from ..llm import LLMClient
from ..models import ContentMatchCheck, OperationType, Suggestion

if TYPE_CHECKING:
    from ..verification.costs import CostTracker

logger = logging.getLogger(__name__)

USER_AGENT = "RMVS-Verification/1.0"

_SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style\b[^<]*(?:(?!</style>)<[^<]*)*</style>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")
_FENCE_RE = re.compile(r"```(?:json)?\s*\n(.*?)\n\s*```", re.DOTALL)


def strip_html(html: str, max_chars: int) -> str:
    """Drop scripts, styles and tags, collapse whitespace and truncate."""
    text = _SCRIPT_RE.sub("", html)
    text = _STYLE_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    text = _WHITESPACE_RE.sub(" ", text).strip()
    return text[:max_chars]


class ContentExtractor:
    """Fetches a website and reduces it to plain text for LLM context."""

    def __init__(
        self,
        timeout: float | None = None,
        max_chars: int | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        settings = get_settings()
        self.timeout = timeout or settings.content_fetch_timeout_seconds
        self.max_chars = max_chars or settings.content_max_chars
        self._client = client

    async def extract(self, url: str) -> str | None:
        """Fetch a page and return its text, or None on any failure."""
        try:
            if self._client is not None:
                response = await self._client.get(url, headers={"User-Agent": USER_AGENT})
            else:
                async with httpx.AsyncClient(
                    timeout=self.timeout,
                    follow_redirects=True,
                    headers={"User-Agent": USER_AGENT},
                ) as client:
                    response = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning(f"Content fetch failed for {url}: {e}")
            return None

        if not response.is_success:
            logger.debug(f"Content fetch for {url} returned {response.status_code}")
            return None

        return strip_html(response.text, self.max_chars)


class ContentVerifier:
    """Asks an LLM whether website text matches the submitted record."""

    PROMPT = """You are verifying a resource submission against its website content.

**Submitted Resource Data:**
- Name: {name}
- Category: {category}
- Description: {description}

**Website Content (first {max_chars} chars):**
{content}

**Task:**
Verify if the website content matches the submitted resource data. Check:
1. Does the organization name match or is very similar?
2. Do the services mentioned align with the submitted category and services?
3. Is the description consistent with what's on the website?

Respond in JSON format:
{{
  "pass": true/false,
  "confidence": 0.0-1.0,
  "evidence": "Brief explanation of why it matches or doesn't match"
}}

Be lenient but accurate. Minor differences in wording are okay. Focus on substantial mismatches."""

    def __init__(self, llm: LLMClient, max_chars: int | None = None):
        self.llm = llm
        self.max_chars = max_chars or get_settings().content_max_chars

    async def verify(
        self,
        suggestion: Suggestion,
        content: str,
        cost_tracker: "CostTracker | None" = None,
        url: str | None = None,
    ) -> ContentMatchCheck | None:
        """Compare website text with the suggestion.

        Args:
            suggestion: The submitted record
            content: Text from ContentExtractor
            cost_tracker: Records token usage of the call
            url: Page the content was fetched from, if not the submitted website

        Returns:
            ContentMatchCheck, or None if the LLM failed or replied unusably
        """
        prompt = self.PROMPT.format(
            name=suggestion.name,
            category=suggestion.category or "Not specified",
            description=suggestion.description or "Not specified",
            max_chars=self.max_chars,
            content=content[: self.max_chars],
        )

        try:
            response = await self.llm.complete(
                prompt, model=self.llm.fast_model, max_tokens=1024, temperature=0.1
            )
        except LLMError as e:
            logger.warning(f"Content verification unavailable: {e}")
            return None

        if cost_tracker is not None:
            await cost_tracker.record(
                OperationType.CONTENT_VERIFICATION,
                response,
                context={
                    "organization_name": suggestion.name,
                    "website": url or suggestion.website,
                },
            )

        return self._parse_response(response.text)

    def _parse_response(self, text: str) -> ContentMatchCheck | None:
        """Parse the JSON verdict, tolerating markdown code fences."""
        text = text.strip()
        match = _FENCE_RE.search(text)
        if match:
            text = match.group(1)

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse content verification reply: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning("Content verification reply is not an object")
            return None

        try:
            confidence = float(data.get("confidence") or 0.0)
        except (TypeError, ValueError):
            confidence = 0.0

        return ContentMatchCheck(
            passed=data.get("pass") is True,
            confidence=min(max(confidence, 0.0), 1.0),
            evidence=str(data.get("evidence") or "No evidence provided"),
        )
