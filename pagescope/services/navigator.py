"""Navigation with retry and an origin-first fallback.

Edge networks frequently abort the very first request from a fresh
browser (ERR_ABORTED, connection resets, timeouts). Each retry waits a
little longer than the last, and before the final attempt the site's
origin is visited once so that any first-party cookies are in place.
"""

import enum
import logging
import random
from urllib.parse import urlparse

from pagescope.config import settings
from pagescope.core.exceptions import NavigationError
from pagescope.core.metrics import navigation_attempts_total
from pagescope.services.browser import BrowserSession, NavResponse
from pagescope.services.outcome import Outcome, best_effort

logger = logging.getLogger(__name__)

RETRYABLE_SIGNATURES = (
    "ERR_ABORTED",
    "ERR_CONNECTION",
    "ERR_TIMED_OUT",
    "ERR_NAME",
    "net::",
    "Timeout",
)

ORIGIN_NAV_TIMEOUT_MS = 20000
ORIGIN_SETTLE_MS = 2000


class NavState(str, enum.Enum):
    IDLE = "idle"
    NAVIGATING = "navigating"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


def is_retryable(exc: BaseException) -> bool:
    message = str(exc)
    return any(sig in message for sig in RETRYABLE_SIGNATURES)


def origin_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


class Navigator:
    """Loads one URL into a session, retrying transient network failures."""

    def __init__(
        self,
        session: BrowserSession,
        max_attempts: int = settings.NAV_MAX_ATTEMPTS,
        timeout_ms: int = settings.NAV_TIMEOUT_MS,
        idle_timeout_ms: int = settings.NAV_IDLE_TIMEOUT_MS,
        backoff_ms: int = settings.NAV_BACKOFF_MS,
        jitter_ms: int = settings.NAV_JITTER_MS,
        rng: random.Random | None = None,
    ):
        self.session = session
        self.max_attempts = max_attempts
        self.timeout_ms = timeout_ms
        self.idle_timeout_ms = idle_timeout_ms
        self.backoff_ms = backoff_ms
        self.jitter_ms = jitter_ms
        self._rng = rng or random.Random()
        self.state = NavState.IDLE
        self.attempts = 0
        self.origin_visit: Outcome | None = None

    def _backoff(self, attempt: int) -> float:
        return attempt * self.backoff_ms + self._rng.random() * self.jitter_ms

    async def navigate(self, url: str) -> NavResponse | None:
        """Return the navigation response (None for same-document loads).

        Raises NavigationError wrapping the last failure when the error is
        not transient or every attempt has been used.
        """
        for attempt in range(1, self.max_attempts + 1):
            self.state = NavState.NAVIGATING
            self.attempts = attempt
            try:
                response = await self.session.navigate(url, self.timeout_ms)
            except Exception as e:
                retry = attempt < self.max_attempts and is_retryable(e)
                if not retry:
                    self.state = NavState.FAILED
                    navigation_attempts_total.labels(outcome="fatal").inc()
                    logger.warning(
                        f"Navigation to {url} failed on attempt {attempt}/{self.max_attempts}: {e}"
                    )
                    raise NavigationError(
                        f"Navigation to {url} failed after {attempt} attempt(s): {e}",
                        attempts=attempt,
                    ) from e

                self.state = NavState.RETRYING
                navigation_attempts_total.labels(outcome="retry").inc()
                delay = self._backoff(attempt)
                logger.info(
                    f"Navigation attempt {attempt}/{self.max_attempts} failed ({e}); "
                    f"retrying in {delay / 1000:.1f}s"
                )
                await self.session.wait(delay)
                if attempt == 2:
                    self.origin_visit = await best_effort(
                        "origin_visit", self._visit_origin(url)
                    )
                    if not self.origin_visit.ok:
                        logger.info("Origin visit failed, retrying target directly")
                continue

            navigation_attempts_total.labels(outcome="success").inc()
            await self.session.settle("networkidle", self.idle_timeout_ms)
            self.state = NavState.SUCCEEDED
            return response

        # Unreachable: the last attempt either returns or raises
        raise NavigationError(f"Navigation to {url} failed", attempts=self.attempts)

    async def _visit_origin(self, url: str) -> None:
        origin = origin_of(url)
        logger.info(f"Visiting origin first: {origin}")
        await self.session.navigate(origin, ORIGIN_NAV_TIMEOUT_MS)
        await self.session.settle("networkidle", self.idle_timeout_ms)
        await self.session.wait(ORIGIN_SETTLE_MS)
        await self.session.human_gesture()
