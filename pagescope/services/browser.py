"""Browser sessions.

The scrape engine talks to the browser only through ``BrowserSession``:
navigate, wait, read content, gesture, click a challenge widget, evaluate
a script, screenshot, close. ``PlaywrightDriver`` provides the real thing;
tests provide an in-memory fake.

Every scrape gets its own browser process. The installed Chrome channel is
tried first because its TLS and HTTP/2 fingerprints match a real browser;
the bundled Chromium build is the fallback.
"""

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    async_playwright,
)

from pagescope.config import settings
from pagescope.core.exceptions import BrowserLaunchError
from pagescope.core.metrics import active_browser_sessions
from pagescope.services.network_capture import NetworkLog, NetworkLogRecorder
from pagescope.services.outcome import Outcome, best_effort
from pagescope.services.stealth import (
    CHROMIUM_ARGS,
    apply_stealth,
    context_options,
    setup_route_blocking,
)

logger = logging.getLogger(__name__)

CHALLENGE_FRAME_MARKERS = ("challenges.cloudflare.com", "turnstile")
CHALLENGE_WIDGET_SELECTOR = "input[type='checkbox'], .ctp-checkbox-label, #challenge-stage"


@dataclass
class NavResponse:
    """The parts of a navigation response the engine cares about."""
    url: str
    status: int
    headers: dict[str, str] = field(default_factory=dict)


class BrowserSession(ABC):
    """One isolated page with its own context and network log."""

    network_log: NetworkLog
    # Stealth patches or route blocking that failed while the session was set up
    setup_failures: tuple[Outcome, ...] = ()

    @property
    @abstractmethod
    def url(self) -> str: ...

    @abstractmethod
    async def navigate(self, url: str, timeout_ms: int) -> NavResponse | None:
        """Load ``url`` and resolve once the DOM is parsed."""

    @abstractmethod
    async def wait_for_load_state(self, state: str, timeout_ms: int) -> None: ...

    @abstractmethod
    async def wait_for_navigation(self, timeout_ms: int) -> bool:
        """True if the main frame navigated within ``timeout_ms``. Never raises."""

    @abstractmethod
    async def content(self) -> str: ...

    @abstractmethod
    async def title(self) -> str: ...

    @abstractmethod
    async def human_gesture(self) -> None:
        """Short pointer movement plus a small scroll."""

    @abstractmethod
    async def click_challenge_widget(self) -> bool:
        """Click the checkbox inside a challenge iframe, if one is present."""

    @abstractmethod
    async def evaluate(self, script: str, arg: Any = None) -> Any: ...

    @abstractmethod
    async def screenshot(self) -> bytes:
        """Viewport-only PNG."""

    @abstractmethod
    async def close(self) -> None:
        """Release every browser resource. Idempotent, never raises."""

    async def wait(self, ms: float) -> None:
        await asyncio.sleep(max(ms, 0) / 1000)

    async def settle(self, state: str, timeout_ms: int) -> bool:
        """Wait for a load state, giving up quietly after ``timeout_ms``."""
        try:
            await self.wait_for_load_state(state, timeout_ms)
            return True
        except Exception as e:
            logger.debug(f"{state} not reached within {timeout_ms}ms: {e}")
            return False

    async def sample_content(self, retry_ms: int = 2000) -> str | None:
        """Read the page HTML, retrying once if the page is mid-navigation."""
        try:
            return await self.content()
        except Exception as e:
            logger.debug(f"Content read failed, retrying in {retry_ms}ms: {e}")
        await self.wait(retry_ms)
        try:
            return await self.content()
        except Exception as e:
            logger.warning(f"Content unavailable: {e}")
            return None


class BrowserDriver(ABC):
    @abstractmethod
    async def launch(self) -> BrowserSession:
        """Start a stealth-configured session or raise BrowserLaunchError."""


class PlaywrightSession(BrowserSession):
    def __init__(
        self,
        playwright: Playwright,
        browser: Browser,
        context: BrowserContext,
        page: Page,
        network_log: NetworkLog,
        setup_failures: tuple[Outcome, ...] = (),
    ):
        self._playwright = playwright
        self._browser = browser
        self._context = context
        self._page = page
        self.network_log = network_log
        self.setup_failures = setup_failures
        self._closed = False

    @property
    def url(self) -> str:
        return self._page.url

    async def navigate(self, url: str, timeout_ms: int) -> NavResponse | None:
        response = await self._page.goto(
            url, wait_until="domcontentloaded", timeout=timeout_ms
        )
        if response is None:
            return None
        return NavResponse(
            url=response.url, status=response.status, headers=dict(response.headers)
        )

    async def wait_for_load_state(self, state: str, timeout_ms: int) -> None:
        await self._page.wait_for_load_state(state, timeout=timeout_ms)

    async def wait_for_navigation(self, timeout_ms: int) -> bool:
        page = self._page
        try:
            await page.wait_for_event(
                "framenavigated",
                predicate=lambda frame: frame == page.main_frame,
                timeout=timeout_ms,
            )
            await page.wait_for_load_state("domcontentloaded", timeout=timeout_ms)
            return True
        except Exception:
            return False

    async def content(self) -> str:
        return await self._page.content()

    async def title(self) -> str:
        return await self._page.title()

    async def human_gesture(self) -> None:
        await self._page.mouse.move(
            400 + random.random() * 600, 300 + random.random() * 200, steps=3
        )
        await self._page.evaluate("window.scrollBy(0, 80)")

    async def click_challenge_widget(self) -> bool:
        for frame in self._page.frames:
            if not any(marker in frame.url for marker in CHALLENGE_FRAME_MARKERS):
                continue
            checkbox = await frame.query_selector(CHALLENGE_WIDGET_SELECTOR)
            if checkbox is None:
                return False
            await checkbox.click(delay=60 + random.random() * 80)
            await self.wait(2000)
            return True
        return False

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        return await self._page.evaluate(script, arg)

    async def screenshot(self) -> bytes:
        return await self._page.screenshot(full_page=False, type="png")

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        active_browser_sessions.dec()
        await _safe_teardown(self._browser, self._playwright)


async def _safe_teardown(browser: Browser | None, playwright: Playwright | None) -> None:
    """Close the browser and stop the driver, safe against cancellation."""
    if browser is not None:
        try:
            await browser.close()
        except (asyncio.CancelledError, Exception):
            pass
    if playwright is not None:
        try:
            await playwright.stop()
        except (asyncio.CancelledError, Exception):
            pass


class PlaywrightDriver(BrowserDriver):
    """Launches one Chromium process per session."""

    def __init__(self, channel: str | None = None, headless: bool | None = None):
        self.channel = settings.BROWSER_CHANNEL if channel is None else channel
        self.headless = settings.BROWSER_HEADLESS if headless is None else headless

    async def _launch_browser(self, playwright: Playwright) -> Browser:
        if self.channel:
            try:
                return await playwright.chromium.launch(
                    channel=self.channel, headless=self.headless, args=CHROMIUM_ARGS
                )
            except Exception as e:
                logger.info(
                    f"Chrome channel '{self.channel}' unavailable, falling back to bundled Chromium: {e}"
                )
        try:
            return await playwright.chromium.launch(
                headless=self.headless, args=CHROMIUM_ARGS
            )
        except Exception as e:
            raise BrowserLaunchError(f"Browser launch failed: {e}") from e

    async def launch(self) -> BrowserSession:
        try:
            playwright = await _start_playwright()
        except Exception as e:
            raise BrowserLaunchError(f"Playwright failed to start: {e}") from e

        browser = None
        try:
            browser = await self._launch_browser(playwright)
            context = await browser.new_context(**context_options())
            stealth = await best_effort("stealth", apply_stealth(context))
            page = await context.new_page()
            routes = await best_effort("route_blocking", setup_route_blocking(page))
            recorder = NetworkLogRecorder()
            recorder.attach(page)
        except BaseException as e:
            await asyncio.shield(_safe_teardown(browser, playwright))
            if isinstance(e, BrowserLaunchError) or not isinstance(e, Exception):
                raise
            raise BrowserLaunchError(f"Browser session setup failed: {e}") from e

        setup_failures = tuple(o for o in (stealth, routes) if not o.ok)
        for failure in setup_failures:
            logger.warning(f"Session setup step {failure.name} failed: {failure.error}")
        active_browser_sessions.inc()
        logger.debug("Browser session started")
        return PlaywrightSession(
            playwright, browser, context, page, recorder.log, setup_failures
        )


# Stop tasks for drivers whose launch was cancelled mid-start
_orphan_stops: set[asyncio.Task] = set()


async def _start_playwright() -> Playwright:
    """Start the driver; if cancelled mid-start, stop it once it is up."""
    starting = asyncio.ensure_future(async_playwright().start())
    try:
        return await asyncio.shield(starting)
    except asyncio.CancelledError:
        starting.add_done_callback(_stop_started_playwright)
        raise


def _stop_started_playwright(starting: asyncio.Future) -> None:
    if starting.cancelled() or starting.exception() is not None:
        return
    task = asyncio.ensure_future(starting.result().stop())
    _orphan_stops.add(task)
    task.add_done_callback(_orphan_stops.discard)
