"""Tests for the single-page scrape orchestrator."""
import re
from unittest.mock import patch

import pytest

from pagescope.core.exceptions import BrowserLaunchError, NavigationError, ScrapeTimeoutError
from pagescope.schemas.scrape import ScrapeRequest
from pagescope.services.outcome import Outcome
from pagescope.services.scraper import scrape

from tests.conftest import CHALLENGE_PAGE, FakeDriver

URL = "https://example.com/products/blue-widget"


def _request(**kwargs) -> ScrapeRequest:
    kwargs.setdefault("wait_for", 0)
    return ScrapeRequest(url=URL, **kwargs)


class TestScrape:
    @pytest.mark.asyncio
    async def test_default_result_shape(self):
        driver = FakeDriver()
        result = await scrape(_request(), driver)
        payload = result.to_payload()

        for key in ("url", "crawl", "metadata", "html", "markdown", "timeTaken",
                    "networkSummary", "challenge", "diagnostics",
                    "links", "images", "headings", "text", "prices", "tables"):
            assert key in payload
        assert "fullHtml" not in payload
        assert payload["screenshotUrl"] is None

        assert payload["crawl"]["loadedUrl"] == URL
        assert payload["crawl"]["referrerUrl"] == URL
        assert payload["crawl"]["httpStatusCode"] == 200
        assert payload["crawl"]["depth"] == 0
        assert payload["crawl"]["contentType"].startswith("text/html")
        assert payload["crawl"]["loadedTime"].endswith("Z")
        assert payload["metadata"]["title"] == "Blue Widget | Example Shop"
        assert payload["metadata"]["openGraph"] == {"title": "Blue Widget"}
        assert payload["markdown"].startswith("# Blue Widget")
        assert payload["prices"]["items"][0]["text"] == "$19.99"
        assert payload["prices"]["items"][0]["class"] == "price"
        assert payload["networkSummary"] == {
            "totalRequests": 2,
            "byType": {"document": 1, "script": 1},
        }
        assert payload["challenge"] == {"detected": False, "resolved": True, "strategy": None}
        assert payload["diagnostics"] == []
        assert re.fullmatch(r"\d+\.\d{2}s", payload["timeTaken"])

    @pytest.mark.asyncio
    async def test_only_requested_extractors_are_present(self):
        result = await scrape(_request(extractors=["links", "links"], full_html=True), FakeDriver())
        payload = result.to_payload()
        assert "links" in payload
        for key in ("images", "headings", "text", "prices", "tables"):
            assert key not in payload
        assert "Blue Widget" in payload["fullHtml"]

    @pytest.mark.asyncio
    async def test_links_and_headings_end_to_end(self):
        page = (
            "<html><body><h1>Fixture heading</h1>"
            '<a href="/inside">Inside</a>'
            '<a href="https://elsewhere.example/">Outside</a>'
            "</body></html>"
        )
        request = ScrapeRequest(url="http://example.test", wait_for=0, extractors=["links", "headings"])
        result = await scrape(request, FakeDriver(html=page))
        payload = result.to_payload()

        assert payload["links"]["total"] == 2
        assert [item["isExternal"] for item in payload["links"]["items"]] == [False, True]
        assert payload["headings"]["h1"] == ["Fixture heading"]
        for key in ("images", "text", "prices", "tables"):
            assert key not in payload

    @pytest.mark.asyncio
    async def test_session_is_closed_once(self):
        driver = FakeDriver()
        await scrape(_request(), driver)
        (session,) = driver.sessions
        assert session.close_calls == 1

    @pytest.mark.asyncio
    async def test_render_wait_is_capped(self):
        driver = FakeDriver()
        await scrape(_request(wait_for=60000), driver)
        assert 5000 in driver.sessions[0].waits
        assert 60000 not in driver.sessions[0].waits

    @pytest.mark.asyncio
    async def test_overlay_dismissal_runs_before_capture(self):
        driver = FakeDriver()
        await scrape(_request(), driver)
        assert len(driver.sessions[0].evaluated) == 1

    @pytest.mark.asyncio
    async def test_status_comes_from_last_document(self):
        driver = FakeDriver(
            html=CHALLENGE_PAGE, status=403, clear_after_navigations=3, cleared_status=200
        )
        result = await scrape(_request(), driver)
        assert result.challenge.detected is True
        assert result.challenge.resolved is True
        assert result.challenge.strategy == "origin-cookie"
        assert result.crawl.http_status_code == 200
        assert result.metadata.title == "Blue Widget | Example Shop"

    @pytest.mark.asyncio
    async def test_unresolved_challenge_still_returns_a_result(self):
        driver = FakeDriver(html=CHALLENGE_PAGE, status=403)
        result = await scrape(_request(), driver)
        assert result.challenge.detected is True
        assert result.challenge.resolved is False
        assert result.crawl.http_status_code == 403

    @pytest.mark.asyncio
    async def test_screenshot_is_a_data_url(self):
        result = await scrape(_request(screenshot=True), FakeDriver())
        assert result.screenshot_url.startswith("data:image/png;base64,")

    @pytest.mark.asyncio
    async def test_failing_extractor_yields_empty_section_and_diagnostic(self):
        with patch(
            "pagescope.services.extraction.extract_links", side_effect=RuntimeError("boom")
        ):
            result = await scrape(_request(), FakeDriver())
        payload = result.to_payload()
        assert payload["links"] == {"total": 0, "items": []}
        assert payload["images"]["total"] == 1
        assert {"step": "links", "error": "boom"} in payload["diagnostics"]

    @pytest.mark.asyncio
    async def test_session_setup_failures_become_diagnostics(self):
        driver = FakeDriver(
            setup_failures=(Outcome("stealth", False, error="init script rejected"),)
        )
        result = await scrape(_request(extractors=["links"]), driver)
        payload = result.to_payload()
        assert payload["diagnostics"] == [{"step": "stealth", "error": "init script rejected"}]
        assert payload["metadata"]["title"] == "Blue Widget | Example Shop"

    @pytest.mark.asyncio
    async def test_launch_failure_propagates(self):
        with pytest.raises(BrowserLaunchError):
            await scrape(_request(), FakeDriver(fail_launch=True))

    @pytest.mark.asyncio
    async def test_navigation_failure_closes_session(self):
        driver = FakeDriver(nav_outcomes=[Exception("net::ERR_NAME_NOT_RESOLVED")] * 4)
        with pytest.raises(NavigationError):
            await scrape(_request(), driver)
        assert driver.sessions[0].close_calls == 1

    @pytest.mark.asyncio
    async def test_deadline_raises_timeout_and_closes_session(self):
        driver = FakeDriver(hang=True)
        with pytest.raises(ScrapeTimeoutError) as exc_info:
            await scrape(_request(), driver, timeout=0.05)
        assert exc_info.value.status_code == 504
        assert "timed out" in exc_info.value.message
        assert driver.sessions[0].close_calls == 1
