"""Website reachability check using a headless browser.

Navigates with a Chromium session fingerprinted as a desktop browser.

Requires: pip install playwright && playwright install chromium
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import datetime, timezone
from urllib.parse import urlparse

from playwright.async_api import Page, async_playwright

from ..config import get_settings
from ..models import UrlCheck

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1920, "height": 1080}

# Added to the navigation timeout to bound browser startup as well
LAUNCH_GRACE_SECONDS = 10.0

LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
]

STEALTH_SCRIPT = """
    Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
    if (!window.chrome) { window.chrome = { runtime: {} }; }
"""

PageFactory = Callable[[], AbstractAsyncContextManager[Page]]


@asynccontextmanager
async def browser_page(headless: bool = True) -> AsyncIterator[Page]:
    """Open an isolated browser page, closing the browser on every exit path."""
    playwright = await async_playwright().start()
    browser = None
    try:
        browser = await playwright.chromium.launch(headless=headless, args=LAUNCH_ARGS)
        context = await browser.new_context(
            user_agent=USER_AGENT,
            viewport=VIEWPORT,
            locale="en-US",
            timezone_id="America/Los_Angeles",
            extra_http_headers={
                "Accept-Language": "en-US,en;q=0.9",
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            },
        )
        await context.add_init_script(STEALTH_SCRIPT)
        yield await context.new_page()
    finally:
        try:
            if browser is not None:
                await browser.close()
        except Exception as e:
            # Keep the navigation error as the reported one
            logger.warning(f"Failed to close browser: {e!r}")
        finally:
            await playwright.stop()


def is_valid_url(url: str | None) -> bool:
    """Check that a URL has an http(s) scheme and a host."""
    if not url:
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class ReachabilityChecker:
    """Checks that a website answers with a 2xx or 3xx status."""

    def __init__(
        self,
        timeout_ms: int | None = None,
        page_factory: PageFactory | None = None,
    ):
        """Initialize the checker.

        Args:
            timeout_ms: Navigation timeout; defaults to settings
            page_factory: Async context manager factory yielding a Page
        """
        self.timeout_ms = timeout_ms or get_settings().reachability_timeout_ms
        self._page_factory = page_factory or browser_page

    async def _navigate(self, url: str) -> int | None:
        async with self._page_factory() as page:
            response = await page.goto(url, wait_until="domcontentloaded", timeout=self.timeout_ms)
            return response.status if response is not None else None

    async def check(self, url: str) -> UrlCheck:
        """Navigate to a URL and record status and latency.

        Malformed URLs fail without launching a browser.
        """
        checked_at = datetime.now(timezone.utc)

        if not is_valid_url(url):
            return UrlCheck(
                passed=False,
                checked_at=checked_at,
                latency_ms=0,
                error="Invalid URL format",
            )

        start = time.monotonic()
        try:
            status = await asyncio.wait_for(
                self._navigate(url.strip()),
                timeout=self.timeout_ms / 1000 + LAUNCH_GRACE_SECONDS,
            )
        except Exception as e:
            latency_ms = int((time.monotonic() - start) * 1000)
            logger.warning(f"Navigation to {url} failed: {e!r}")
            return UrlCheck(
                passed=False,
                checked_at=checked_at,
                latency_ms=latency_ms,
                error=str(e) or type(e).__name__,
            )

        latency_ms = int((time.monotonic() - start) * 1000)
        passed = status is not None and 200 <= status < 400

        return UrlCheck(
            passed=passed,
            checked_at=checked_at,
            latency_ms=latency_ms,
            status_code=status,
            error=None if passed else f"HTTP {status}" if status else "No response",
        )
