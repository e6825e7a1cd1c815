"""Shared fixtures: an in-memory browser session and an API client wired to it."""

import asyncio

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from pagescope.api.deps import get_browser_driver, get_job_ledger
from pagescope.core.exceptions import BrowserLaunchError
from pagescope.main import app
from pagescope.services.browser import BrowserDriver, BrowserSession, NavResponse
from pagescope.services.jobs import JobLedger
from pagescope.services.network_capture import NetworkLog

PRODUCT_PAGE = """
<html lang="en">
<head>
    <title>Blue Widget | Example Shop</title>
    <meta name="description" content="A very blue widget.">
    <meta property="og:title" content="Blue Widget">
    <link rel="canonical" href="https://example.com/products/blue-widget">
</head>
<body>
    <nav><a href="/">Home</a> <a href="/products">Products</a></nav>
    <main>
        <h1>Blue Widget</h1>
        <p>The blue widget is our most popular widget, machined from a single block of aluminium.</p>
        <p>It ships worldwide within two business days and comes with a two year warranty.</p>
        <p>Every widget is tested by hand before it leaves the workshop in Izmir.</p>
        <span class="price">$19.99</span>
        <ul><li>Anodised finish</li><li>Fits every standard socket</li></ul>
        <a href="https://partner.example.org/review">Independent review</a>
        <img src="/img/blue.png" alt="Blue widget">
    </main>
</body>
</html>
"""

CHALLENGE_PAGE = """
<html><head><title>Just a moment...</title></head>
<body><div id="cf-challenge-running">Checking your browser before accessing.</div>
<script>window._cf_chl_opt = {cType: 'managed'};</script>
<p>Ray ID: 8a1b2c3d4e5f</p></body></html>
"""


class FakeSession(BrowserSession):
    """Scripted stand-in for a browser page.

    ``nav_outcomes`` is consumed one entry per ``navigate`` call: an exception
    is raised, None means "load normally". ``contents`` is consumed one entry
    per ``content`` call the same way, after which ``html`` is returned.
    ``clear_after_navigations`` swaps ``html`` for ``cleared_html`` (and the
    status for ``cleared_status``) once that many navigations have happened.
    """

    def __init__(
        self,
        html: str = PRODUCT_PAGE,
        status: int = 200,
        headers: dict | None = None,
        nav_outcomes: list | None = None,
        contents: list | None = None,
        navigation_happens: bool = False,
        clear_after_navigations: int | None = None,
        cleared_html: str = PRODUCT_PAGE,
        cleared_status: int = 200,
        hang: bool = False,
        setup_failures: tuple = (),
    ):
        self.network_log = NetworkLog()
        self.html = html
        self.status = status
        self.headers = headers or {"content-type": "text/html; charset=utf-8"}
        self.nav_outcomes = list(nav_outcomes or [])
        self.contents = list(contents or [])
        self.navigation_happens = navigation_happens
        self.clear_after_navigations = clear_after_navigations
        self.cleared_html = cleared_html
        self.cleared_status = cleared_status
        self.hang = hang
        self.setup_failures = tuple(setup_failures)
        self._url = "about:blank"

        self.navigations: list[tuple[str, int]] = []
        self.waits: list[float] = []
        self.gestures = 0
        self.widget_clicks = 0
        self.evaluated: list = []
        self.close_calls = 0

    @property
    def url(self) -> str:
        return self._url

    async def navigate(self, url, timeout_ms):
        self.navigations.append((url, timeout_ms))
        if self.hang:
            await asyncio.sleep(3600)
        if self.nav_outcomes:
            outcome = self.nav_outcomes.pop(0)
            if isinstance(outcome, BaseException):
                raise outcome
        if self.clear_after_navigations is not None and len(self.navigations) >= self.clear_after_navigations:
            self.html = self.cleared_html
            self.status = self.cleared_status
        self._url = url
        self.network_log.record(url, self.status, "document", self.headers)
        self.network_log.record(url + "app.js", 200, "script")
        return NavResponse(url=url, status=self.status, headers=dict(self.headers))

    async def wait_for_load_state(self, state, timeout_ms):
        return None

    async def wait_for_navigation(self, timeout_ms):
        if self.navigation_happens:
            self.html = self.cleared_html
            return True
        return False

    async def content(self):
        await asyncio.sleep(0)
        if self.contents:
            item = self.contents.pop(0)
            if isinstance(item, BaseException):
                raise item
            return item
        return self.html

    async def title(self):
        return "Fake title"

    async def wait(self, ms):
        self.waits.append(ms)
        await asyncio.sleep(0)

    async def human_gesture(self):
        self.gestures += 1

    async def click_challenge_widget(self):
        self.widget_clicks += 1
        return False

    async def evaluate(self, script, arg=None):
        self.evaluated.append((script, arg))
        return {"clicked": 0, "textClicked": 0, "hidden": 0}

    async def screenshot(self):
        return b"\x89PNG\r\n\x1a\nfake"

    async def close(self):
        self.close_calls += 1


class FakeDriver(BrowserDriver):
    """Hands out a fresh ``FakeSession`` per launch, built from ``session_kwargs``."""

    def __init__(self, fail_launch: bool = False, **session_kwargs):
        self.fail_launch = fail_launch
        self.session_kwargs = session_kwargs
        self.sessions: list[FakeSession] = []

    async def launch(self):
        if self.fail_launch:
            raise BrowserLaunchError("Browser launch failed: no chromium")
        session = FakeSession(**self.session_kwargs)
        self.sessions.append(session)
        return session


@pytest.fixture
def fake_driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def job_ledger() -> JobLedger:
    return JobLedger()


@pytest_asyncio.fixture
async def client(fake_driver, job_ledger):
    app.dependency_overrides[get_browser_driver] = lambda: fake_driver
    app.dependency_overrides[get_job_ledger] = lambda: job_ledger
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
