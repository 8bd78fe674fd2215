"""Unit tests for the Playwright reachability checker.

Navigation tests use a page factory fixture and browser lifetime tests
use a fake Playwright driver, so no Chromium is launched.
"""

import asyncio
from types import SimpleNamespace

import pytest

from rmvs.checks import ReachabilityChecker
from rmvs.checks import reachability
from rmvs.checks.reachability import is_valid_url


class TestIsValidUrl:
    @pytest.mark.parametrize("url", ["https://oakpic.org", "http://example.org/path?q=1"])
    def test_valid(self, url):
        assert is_valid_url(url) is True

    @pytest.mark.parametrize("url", ["not-a-url", "ftp://example.org", "https://", "", None])
    def test_invalid(self, url):
        assert is_valid_url(url) is False


class TestReachabilityChecker:
    @pytest.mark.asyncio
    async def test_malformed_url_fails_without_browser(self, page_factory):
        """Test that an invalid URL is rejected before any navigation."""
        factory = page_factory()
        checker = ReachabilityChecker(timeout_ms=1000, page_factory=factory)

        result = await checker.check("not-a-url")

        assert result.passed is False
        assert result.error == "Invalid URL format"
        assert result.latency_ms == 0
        assert factory.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [200, 204, 301, 399])
    async def test_success_statuses_pass(self, page_factory, status):
        factory = page_factory({"https://oakpic.org": status})
        checker = ReachabilityChecker(timeout_ms=1000, page_factory=factory)

        result = await checker.check("https://oakpic.org")

        assert result.passed is True
        assert result.status_code == status
        assert result.error is None
        assert factory.calls == ["https://oakpic.org"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 404, 500, 503])
    async def test_error_statuses_fail(self, page_factory, status):
        factory = page_factory({"https://oakpic.org": status})
        checker = ReachabilityChecker(timeout_ms=1000, page_factory=factory)

        result = await checker.check("https://oakpic.org")

        assert result.passed is False
        assert result.status_code == status
        assert result.error == f"HTTP {status}"

    @pytest.mark.asyncio
    async def test_missing_response_fails(self, page_factory):
        factory = page_factory({"https://oakpic.org": None})
        checker = ReachabilityChecker(timeout_ms=1000, page_factory=factory)

        result = await checker.check("https://oakpic.org")

        assert result.passed is False
        assert result.error == "No response"

    @pytest.mark.asyncio
    async def test_navigation_error_becomes_failed_check(self, page_factory):
        """Test that a browser exception is reported, not raised."""
        factory = page_factory(
            {"https://gone.example.org": RuntimeError("net::ERR_NAME_NOT_RESOLVED")}
        )
        checker = ReachabilityChecker(timeout_ms=1000, page_factory=factory)

        result = await checker.check("https://gone.example.org")

        assert result.passed is False
        assert "ERR_NAME_NOT_RESOLVED" in result.error
        assert result.status_code is None

    @pytest.mark.asyncio
    async def test_timeout_uses_exception_type_name(self, page_factory):
        factory = page_factory({"https://slow.example.org": asyncio.TimeoutError()})
        checker = ReachabilityChecker(timeout_ms=1000, page_factory=factory)

        result = await checker.check("https://slow.example.org")

        assert result.passed is False
        assert result.error == "TimeoutError"


# =========================
# Browser session lifetime
# =========================


class FakePlaywright:
    """Stands in for the Playwright driver, browser, context and page.

    Every call is appended to `log` so tests can assert teardown order.
    """

    def __init__(self, goto=200, launch_error=None, context_error=None, close_error=None):
        self.goto_outcome = goto
        self.launch_error = launch_error
        self.context_error = context_error
        self.close_error = close_error
        self.log: list[str] = []
        self.chromium = self

    async def start(self):
        self.log.append("playwright.start")
        return self

    async def stop(self):
        self.log.append("playwright.stop")

    async def launch(self, **kwargs):
        self.log.append("chromium.launch")
        if self.launch_error is not None:
            raise self.launch_error
        return self

    async def new_context(self, **kwargs):
        self.log.append("browser.new_context")
        if self.context_error is not None:
            raise self.context_error
        return self

    async def add_init_script(self, script):
        pass

    async def new_page(self):
        return self

    async def goto(self, url, wait_until=None, timeout=None):
        self.log.append("page.goto")
        if self.goto_outcome == "hang":
            await asyncio.sleep(5)
        if isinstance(self.goto_outcome, Exception):
            raise self.goto_outcome
        return SimpleNamespace(status=self.goto_outcome)

    async def close(self):
        self.log.append("browser.close")
        if self.close_error is not None:
            raise self.close_error


@pytest.fixture
def fake_playwright(monkeypatch):
    def install(**kwargs) -> FakePlaywright:
        fake = FakePlaywright(**kwargs)
        monkeypatch.setattr(reachability, "async_playwright", lambda: fake)
        return fake

    return install


class TestBrowserPage:
    @pytest.mark.asyncio
    async def test_normal_exit_closes_browser_and_stops_driver(self, fake_playwright):
        fake = fake_playwright()

        result = await ReachabilityChecker(timeout_ms=1000).check("https://oakpic.org")

        assert result.passed is True
        assert fake.log == [
            "playwright.start",
            "chromium.launch",
            "browser.new_context",
            "page.goto",
            "browser.close",
            "playwright.stop",
        ]

    @pytest.mark.asyncio
    async def test_navigation_error_still_tears_down(self, fake_playwright):
        fake = fake_playwright(goto=RuntimeError("net::ERR_CONNECTION_RESET"))

        result = await ReachabilityChecker(timeout_ms=1000).check("https://oakpic.org")

        assert result.passed is False
        assert "ERR_CONNECTION_RESET" in result.error
        assert fake.log[-2:] == ["browser.close", "playwright.stop"]

    @pytest.mark.asyncio
    async def test_close_failure_still_stops_driver_and_keeps_original_error(
        self, fake_playwright
    ):
        fake = fake_playwright(
            context_error=RuntimeError("context refused"),
            close_error=RuntimeError("close failed"),
        )

        result = await ReachabilityChecker(timeout_ms=1000).check("https://oakpic.org")

        assert result.passed is False
        assert result.error == "context refused"
        assert fake.log[-2:] == ["browser.close", "playwright.stop"]

    @pytest.mark.asyncio
    async def test_launch_failure_stops_driver(self, fake_playwright):
        fake = fake_playwright(launch_error=RuntimeError("chromium missing"))

        result = await ReachabilityChecker(timeout_ms=1000).check("https://oakpic.org")

        assert result.error == "chromium missing"
        assert "browser.close" not in fake.log
        assert fake.log[-1] == "playwright.stop"

    @pytest.mark.asyncio
    async def test_timeout_tears_down(self, fake_playwright, monkeypatch):
        monkeypatch.setattr(reachability, "LAUNCH_GRACE_SECONDS", 0)
        fake = fake_playwright(goto="hang")

        result = await ReachabilityChecker(timeout_ms=50).check("https://slow.example.org")

        assert result.passed is False
        assert result.error == "TimeoutError"
        assert fake.log[-2:] == ["browser.close", "playwright.stop"]
