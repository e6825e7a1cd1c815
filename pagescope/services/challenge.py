"""Bot-challenge detection and resolution.

Detection is a cheap string scan over the page HTML, no DOM needed.
Resolution is a fixed protocol:

1. one human-like gesture;
2. race "the page navigated away" against "polling shows a normal page",
   clicking the challenge checkbox on each poll that still sees a challenge;
3. let the page settle and re-read it;
4. if still challenged, load the site's origin (to pick up clearance
   cookies) and reload the target.

A challenge that survives all of this is not an error: the scrape
continues with whatever the page shows and the report says so.
"""

import logging
from dataclasses import dataclass

from pagescope.config import settings
from pagescope.core.metrics import challenge_detections_total
from pagescope.services.browser import BrowserSession, NavResponse
from pagescope.services.navigator import origin_of
from pagescope.services.outcome import best_effort, first_true

logger = logging.getLogger(__name__)

VENDOR_MARKERS = ("cf_chl_opt", "cf-challenge", "cf-turnstile")
VERIFICATION_MARKERS = ("managed_checking_msg", "cf-browser-verification")
GENERIC_MARKERS = ("checking your browser", "ddos protection")
GENERIC_MAX_SIZE = 20000
ACCESS_DENIED_MAX_SIZE = 10000
CHALLENGE_STATUSES = frozenset({403, 429, 503})


def looks_like_challenge(html: str, max_size: int = settings.CHALLENGE_MAX_HTML) -> bool:
    """True if ``html`` reads like an interstitial rather than the real page."""
    if len(html) > max_size:
        return False
    lowered = html.lower()
    if any(marker in lowered for marker in VENDOR_MARKERS):
        return True
    if "just a moment" in lowered and ("cloudflare" in lowered or "ray id" in lowered):
        return True
    if any(marker in lowered for marker in VERIFICATION_MARKERS):
        return True
    if any(marker in lowered for marker in GENERIC_MARKERS) and len(html) < GENERIC_MAX_SIZE:
        return True
    if "access denied" in lowered and len(html) < ACCESS_DENIED_MAX_SIZE:
        return True
    return False


def needs_challenge_handling(html: str, status: int) -> bool:
    return looks_like_challenge(html) or status in CHALLENGE_STATUSES


@dataclass
class ChallengeOutcome:
    detected: bool
    resolved: bool
    strategy: str | None
    html: str
    response: NavResponse | None = None  # set when the target was reloaded

    def report(self) -> dict:
        return {"detected": self.detected, "resolved": self.resolved, "strategy": self.strategy}


class ChallengeResolver:
    def __init__(
        self,
        session: BrowserSession,
        deadline_ms: int = settings.CHALLENGE_DEADLINE_MS,
        poll_ms: int = settings.CHALLENGE_POLL_MS,
    ):
        self.session = session
        self.deadline_ms = deadline_ms
        self.poll_ms = poll_ms

    async def resolve(self, url: str, html: str, status: int) -> ChallengeOutcome:
        if not needs_challenge_handling(html, status):
            return ChallengeOutcome(detected=False, resolved=True, strategy=None, html=html)

        logger.info(f"Challenge detected (status {status}, {len(html)}b), waiting for auto-resolve")
        await best_effort("human_gesture", self.session.human_gesture())

        winner = await first_true(
            {
                "redirect": self.session.wait_for_navigation(self.deadline_ms),
                "content": self._poll_until_clear(),
            },
            timeout=self.deadline_ms / 1000,
        )
        if winner:
            logger.info(f"Challenge cleared ({winner})")

        await self.session.settle("domcontentloaded", 5000)
        html = await self.session.sample_content() or html
        await self.session.settle("networkidle", 5000)

        strategy = winner
        response = None
        if looks_like_challenge(html):
            logger.info("Still blocked, retrying via origin for clearance cookies")
            retry = await best_effort("origin_cookie_retry", self._retry_via_origin(url))
            if retry.ok:
                response, html = retry.value
                strategy = "origin-cookie"
            else:
                logger.info(f"Cookie retry failed: {retry.error}")

        resolved = not looks_like_challenge(html)
        if not resolved:
            strategy = None
            logger.warning(f"Bot protection could not be bypassed for {url}")
        challenge_detections_total.labels(outcome="bypassed" if resolved else "blocked").inc()
        return ChallengeOutcome(
            detected=True, resolved=resolved, strategy=strategy, html=html, response=response
        )

    async def _poll_until_clear(self) -> bool:
        elapsed = 0.0
        while elapsed < self.deadline_ms:
            await self.session.wait(self.poll_ms)
            elapsed += self.poll_ms
            try:
                html = await self.session.content()
            except Exception:
                # Mid-navigation; skip this tick
                continue
            if not looks_like_challenge(html):
                return True
            await best_effort("challenge_widget", self.session.click_challenge_widget())
        return False

    async def _retry_via_origin(self, url: str) -> tuple[NavResponse | None, str]:
        await self.session.navigate(origin_of(url), 15000)
        await self.session.wait_for_navigation(15000)
        await self.session.settle("networkidle", 8000)
        response = await self.session.navigate(url, 20000)
        await self.session.settle("networkidle", 8000)
        await self.session.wait(2000)
        return response, await self.session.content()
