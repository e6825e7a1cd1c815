"""Single-page scrape orchestration.

Stages run strictly in order on one fresh browser session:

    launch -> navigate -> challenge -> render wait -> overlays -> capture -> extract

Only three failures escape: the browser could not be launched, navigation
failed, or the whole scrape ran past its wall-clock deadline. The session
is always closed, whichever way the scrape ends.
"""

import asyncio
import base64
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone

from pagescope.config import settings
from pagescope.core.exceptions import ScrapeTimeoutError
from pagescope.core.metrics import scrape_duration_seconds
from pagescope.schemas.scrape import (
    ChallengeReport,
    CrawlInfo,
    NetworkSummary,
    ScrapeRequest,
    ScrapeResult,
)
from pagescope.services.browser import BrowserDriver, BrowserSession, NavResponse
from pagescope.services.challenge import ChallengeResolver
from pagescope.services.extraction import run_pipeline
from pagescope.services.navigator import Navigator
from pagescope.services.outcome import Outcome, best_effort
from pagescope.services.overlay import dismiss_overlays

logger = logging.getLogger(__name__)

_extraction_executor = ThreadPoolExecutor(max_workers=4)


@dataclass
class Capture:
    """Snapshot of the settled page."""
    html: str
    title: str
    url: str
    status: int | None
    content_type: str
    headers: dict[str, str] = field(default_factory=dict)
    screenshot_url: str | None = None


async def capture_page(
    session: BrowserSession,
    html: str,
    nav_response: NavResponse | None,
    screenshot: bool = False,
) -> tuple[Capture, list[Outcome]]:
    """Read the final page state.

    Status and headers come from the last document response the page
    received, which after a challenge redirect is not the navigation
    response.
    """
    failures = []
    html = await session.sample_content() or html

    title = await best_effort("page_title", session.title(), default="")
    if not title.ok:
        failures.append(title)

    last_doc = session.network_log.last_document
    final = last_doc or nav_response
    if final is not None and nav_response is not None and final.status != nav_response.status:
        logger.info(f"Final status: {final.status} (initial was {nav_response.status})")
    headers = dict(final.headers) if final is not None else {}

    screenshot_url = None
    if screenshot:
        shot = await best_effort("screenshot", session.screenshot())
        if shot.ok:
            screenshot_url = "data:image/png;base64," + base64.b64encode(shot.value).decode("ascii")
        else:
            failures.append(shot)

    capture = Capture(
        html=html,
        title=title.value or "",
        url=session.url,
        status=final.status if final is not None else None,
        content_type=headers.get("content-type", ""),
        headers=headers,
        screenshot_url=screenshot_url,
    )
    return capture, failures


async def scrape_page(request: ScrapeRequest, driver: BrowserDriver) -> ScrapeResult:
    start = time.monotonic()
    failures: list[Outcome] = []

    session = await driver.launch()
    failures.extend(session.setup_failures)
    try:
        logger.info(f"Navigating to: {request.url}")
        response = await Navigator(session).navigate(request.url)
        if response is None:
            logger.info("No response object, using page content as-is")

        html = await session.sample_content() or ""
        status = response.status if response is not None else 200

        challenge = await ChallengeResolver(session).resolve(request.url, html, status)
        html = challenge.html
        if challenge.response is not None:
            response = challenge.response
        if not challenge.detected:
            logger.info("Page loaded (no challenge)")

        if request.wait_for > 0:
            await session.wait(min(request.wait_for, settings.RENDER_WAIT_CAP_MS))

        overlay = await dismiss_overlays(session)
        if not overlay.ok:
            failures.append(overlay)

        capture, capture_failures = await capture_page(
            session, html, response, screenshot=request.screenshot
        )
        failures.extend(capture_failures)
    finally:
        # Shield cleanup from cancellation so a timed-out scrape still
        # releases its browser process.
        try:
            await asyncio.shield(session.close())
        except (asyncio.CancelledError, Exception):
            pass

    loop = asyncio.get_running_loop()
    extraction = await loop.run_in_executor(
        _extraction_executor,
        run_pipeline,
        capture.html,
        capture.url,
        request.extractors,
        capture.headers,
    )
    failures.extend(extraction.failures)

    elapsed = time.monotonic() - start
    scrape_duration_seconds.observe(elapsed)

    result = ScrapeResult(
        url=capture.url,
        crawl=CrawlInfo(
            loaded_url=capture.url,
            loaded_time=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            referrer_url=request.url,
            http_status_code=capture.status,
            depth=0,
            content_type=capture.content_type,
        ),
        metadata=extraction.metadata,
        html=extraction.html,
        markdown=extraction.markdown,
        screenshot_url=capture.screenshot_url,
        time_taken=f"{elapsed:.2f}s",
        network_summary=NetworkSummary(**session.network_log.summary()),
        challenge=ChallengeReport(**challenge.report()),
        diagnostics=[f.as_diagnostic() for f in failures],
        full_html=capture.html if request.full_html else None,
        **extraction.sections,
    )
    return result


async def scrape(
    request: ScrapeRequest,
    driver: BrowserDriver,
    timeout: float = settings.SCRAPE_TIMEOUT,
) -> ScrapeResult:
    """Run one scrape under the wall-clock deadline."""
    try:
        return await asyncio.wait_for(scrape_page(request, driver), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Scrape of {request.url} timed out after {timeout:g}s")
        raise ScrapeTimeoutError(f"Scrape timed out after {timeout:g}s") from None
