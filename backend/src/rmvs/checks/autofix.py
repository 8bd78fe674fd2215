"""AI-assisted repair of unreachable website URLs."""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING
from urllib.parse import urlparse

from ..errors import LLMError
from ..llm import LLMClient
from ..models import OperationType, UrlCheck
from .reachability import ReachabilityChecker

if TYPE_CHECKING:
    from ..verification.costs import CostTracker

logger = logging.getLogger(__name__)

NOT_FOUND = "NOT_FOUND"
FIX_CONFIDENCE = 0.95
METHOD = "ai_web_search"

# Directory and aggregator domains never accepted as an official site
AGGREGATOR_DOMAINS = (
    "findhelp.org",
    "auntbertha.com",
    "linkedin.com",
    "indeed.com",
    "yelp.com",
    "facebook.com",
    "guidestar.org",
    "211.org",
)


@dataclass
class AutoFixResult:
    """Outcome of one auto-fix attempt."""

    fixed: bool
    new_url: str | None = None
    confidence: float | None = None
    method: str = METHOD
    candidate_url: str | None = None
    cost_usd: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0
    check: UrlCheck | None = None


def is_aggregator(url: str) -> bool:
    host = (urlparse(url).hostname or "").lower()
    return any(host == d or host.endswith("." + d) for d in AGGREGATOR_DOMAINS)


def parse_candidate_url(text: str) -> str | None:
    """Extract the URL from a reply, or None for the sentinel or any prose."""
    candidate = text.strip()
    if not candidate or candidate.upper() == NOT_FOUND:
        return None
    if not candidate.startswith(("http://", "https://")):
        return None
    if len(candidate.split()) != 1:
        return None
    if is_aggregator(candidate):
        return None
    return candidate


class UrlAutoFixer:
    """Finds an organization's working official website with an LLM web search.

    A candidate is only trusted after it passes the reachability check.
    """

    PROMPT = """Find the CORRECT, WORKING website URL for "{name}"{location}.

Current broken URL: {current_url} (unreachable)

IMPORTANT INSTRUCTIONS:
1. Search for the organization's OFFICIAL website, not directory listings like findhelp.org, LinkedIn, Indeed or Yelp
2. For multi-location organizations, check location pages such as /locations/{city_slug} or /{city_slug}
3. The URL you return MUST be the organization's official website and MUST load successfully

CRITICAL: Your response must be EXACTLY ONE LINE containing ONLY the URL.
- Start with http:// or https://
- No explanations, no markdown, no additional text

If you cannot find a verified working URL, return exactly: {not_found}"""

    def __init__(self, llm: LLMClient, checker: ReachabilityChecker):
        self.llm = llm
        self.checker = checker

    def build_prompt(
        self, name: str, current_url: str, city: str | None, state: str | None
    ) -> str:
        location = f" in {city}, {state}" if city and state else ""
        city_slug = "-".join((city or "city").lower().split())
        return self.PROMPT.format(
            name=name,
            location=location,
            current_url=current_url,
            city_slug=city_slug,
            not_found=NOT_FOUND,
        )

    async def fix(
        self,
        name: str,
        current_url: str,
        city: str | None = None,
        state: str | None = None,
        cost_tracker: "CostTracker | None" = None,
    ) -> AutoFixResult:
        """Attempt to find a replacement for an unreachable URL.

        Args:
            name: Organization name
            current_url: The URL that failed reachability
            city: Optional city, used to find location pages
            state: Optional state
            cost_tracker: Records token usage of the LLM call

        Returns:
            AutoFixResult with fixed=True only for a reachable candidate
        """
        if not self.llm.supports_web_search:
            logger.info(f"{self.llm.provider} has no web search, skipping URL auto-fix")
            return AutoFixResult(fixed=False)

        try:
            response = await self.llm.complete(
                self.build_prompt(name, current_url, city, state),
                model=self.llm.model,
                max_tokens=1024,
                temperature=0.1,
                web_search=True,
            )
        except LLMError as e:
            logger.warning(f"URL auto-fix failed for '{name}': {e}")
            return AutoFixResult(fixed=False)

        cost_usd = 0.0
        if cost_tracker is not None:
            record = await cost_tracker.record(
                OperationType.URL_AUTOFIX,
                response,
                context={
                    "organization_name": name,
                    "current_url": current_url,
                    "city": city,
                    "state": state,
                },
            )
            cost_usd = record.total_cost_usd

        result = AutoFixResult(
            fixed=False,
            cost_usd=cost_usd,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
        )

        candidate = parse_candidate_url(response.text)
        if candidate is None:
            logger.info(f"No replacement URL found for '{name}'")
            return result

        result.candidate_url = candidate
        check = await self.checker.check(candidate)
        result.check = check
        if not check.passed:
            logger.info(f"Candidate URL {candidate} is not reachable ({check.status_code})")
            return result

        logger.info(f"Auto-fixed URL for '{name}': {current_url} -> {candidate}")
        result.fixed = True
        result.new_url = candidate
        result.confidence = FIX_CONFIDENCE
        return result
