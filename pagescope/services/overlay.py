"""Popup, modal and cookie-wall dismissal.

The rules are plain data; a single in-page script applies them in order:
click visible close controls, click visible elements whose whole text is
a close glyph or word, hide large fixed/absolute overlays, then restore
page scrolling. Each selector is tried independently so one invalid or
throwing selector only skips itself.
"""

import logging

from pagescope.config import settings
from pagescope.services.browser import BrowserSession
from pagescope.services.outcome import Outcome, best_effort

logger = logging.getLogger(__name__)

CLOSE_SELECTORS = [
    'button[class*="close"]',
    'a[class*="close"]',
    'span[class*="close"]',
    'div[class*="close"]',
    'button[class*="Close"]',
    'a[class*="Close"]',
    '[class*="popup-close"]',
    '[class*="modal-close"]',
    '[class*="overlay-close"]',
    '[class*="dismiss"]',
    '[class*="Dismiss"]',
    '[aria-label="Close"]',
    '[aria-label="close"]',
    '[aria-label="Kapat"]',
    '[aria-label="kapat"]',
    '[data-dismiss="modal"]',
    '[data-dismiss="popup"]',
    "[data-close]",
    '[data-action="close"]',
    '[class*="kapat"]',
    '[class*="Kapat"]',
    ".modal .close",
    ".modal-header .close",
    ".btn-close",
    ".fancybox-close",
    ".fancybox-close-small",
    ".lightbox-close",
    "button:has(> svg)",
]

CLOSE_TEXT_CANDIDATES = "button, a, span, div, i"
CLOSE_GLYPHS = ["×", "X", "x", "✕", "✖", "✗"]
CLOSE_WORDS = ["close", "kapat"]

OVERLAY_SELECTORS = [
    '[class*="popup"]',
    '[class*="Popup"]',
    '[class*="modal"]',
    '[class*="Modal"]',
    '[class*="overlay"]',
    '[class*="Overlay"]',
    '[class*="lightbox"]',
    '[class*="Lightbox"]',
    '[id*="popup"]',
    '[id*="Popup"]',
    '[id*="modal"]',
    '[id*="Modal"]',
    '[id*="overlay"]',
    '[id*="Overlay"]',
    ".fancybox-container",
    ".fancybox-overlay",
]

OVERLAY_MIN_SIZE = 200  # px, both dimensions

DISMISS_SCRIPT = """
(rules) => {
    const stats = { clicked: 0, textClicked: 0, hidden: 0 };
    const isVisible = (el, checkOpacity) => {
        const style = window.getComputedStyle(el);
        return style.display !== 'none'
            && style.visibility !== 'hidden'
            && (!checkOpacity || style.opacity !== '0')
            && el.offsetParent !== null;
    };

    for (const sel of rules.closeSelectors) {
        try {
            document.querySelectorAll(sel).forEach((el) => {
                if (isVisible(el, true)) { el.click(); stats.clicked++; }
            });
        } catch (e) {}
    }

    try {
        document.querySelectorAll(rules.textCandidates).forEach((el) => {
            const text = (el.textContent || '').trim();
            const matches = rules.glyphs.includes(text)
                || rules.words.includes(text.toLowerCase());
            if (matches && isVisible(el, false)) { el.click(); stats.textClicked++; }
        });
    } catch (e) {}

    for (const sel of rules.overlaySelectors) {
        try {
            document.querySelectorAll(sel).forEach((el) => {
                const rect = el.getBoundingClientRect();
                if (rect.width > rules.minSize && rect.height > rules.minSize) {
                    const pos = window.getComputedStyle(el).position;
                    if (pos === 'fixed' || pos === 'absolute') {
                        el.style.display = 'none';
                        stats.hidden++;
                    }
                }
            });
        } catch (e) {}
    }

    document.body.style.overflow = 'auto';
    document.body.style.overflowY = 'auto';
    document.documentElement.style.overflow = 'auto';
    return stats;
}
"""


def dismiss_rules() -> dict:
    return {
        "closeSelectors": CLOSE_SELECTORS,
        "textCandidates": CLOSE_TEXT_CANDIDATES,
        "glyphs": CLOSE_GLYPHS,
        "words": CLOSE_WORDS,
        "overlaySelectors": OVERLAY_SELECTORS,
        "minSize": OVERLAY_MIN_SIZE,
    }


async def dismiss_overlays(
    session: BrowserSession, settle_ms: int = settings.OVERLAY_SETTLE_MS
) -> Outcome:
    """Apply the dismissal rules once, then give the page a moment to repaint."""
    outcome = await best_effort(
        "overlay_dismiss", session.evaluate(DISMISS_SCRIPT, dismiss_rules())
    )
    if outcome.ok:
        logger.debug(f"Overlay dismissal: {outcome.value}")
    else:
        logger.info(f"Overlay dismissal error (non-fatal): {outcome.error}")
    await session.wait(settle_ms)
    return outcome
