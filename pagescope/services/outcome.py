"""Best-effort step results.

Most of what happens inside a scrape is allowed to fail: cookie-banner
clicks, settle waits, stealth patches, a single extractor. Those steps
are run through ``best_effort`` / ``best_effort_call`` which log the
failure and hand back an ``Outcome`` instead of raising. The orchestrator
collects failed outcomes into the result's ``diagnostics`` list.

``first_true`` races several boolean coroutines and cancels the losers.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


@dataclass
class Outcome:
    """Result of a step that must never abort the scrape."""

    name: str
    ok: bool
    value: Any = None
    error: str | None = None

    def as_diagnostic(self) -> dict[str, str]:
        return {"step": self.name, "error": self.error or ""}


async def best_effort(name: str, awaitable: Awaitable, default: Any = None) -> Outcome:
    try:
        return Outcome(name=name, ok=True, value=await awaitable)
    except Exception as e:
        logger.debug(f"{name} failed (non-fatal): {e}")
        return Outcome(name=name, ok=False, value=default, error=str(e) or type(e).__name__)


def best_effort_call(
    name: str, func: Callable[..., Any], *args: Any, default: Any = None, **kwargs: Any
) -> Outcome:
    """Synchronous twin of ``best_effort``, used by the extraction pipeline."""
    try:
        return Outcome(name=name, ok=True, value=func(*args, **kwargs))
    except Exception as e:
        logger.warning(f"{name} failed (non-fatal): {e}")
        return Outcome(name=name, ok=False, value=default, error=str(e) or type(e).__name__)


async def first_true(arms: dict[str, Awaitable[bool]], timeout: float) -> str | None:
    """Run ``arms`` concurrently; return the name of the first to yield True.

    Arms that raise or return a falsy value simply drop out of the race.
    Returns None when every arm lost or ``timeout`` seconds elapsed. All
    arms still running when the race is decided are cancelled and awaited.
    """
    tasks = {asyncio.ensure_future(coro): name for name, coro in arms.items()}
    pending = set(tasks)
    winner = None
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    try:
        while pending and winner is None:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            done, pending = await asyncio.wait(
                pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
            )
            for task in done:
                if task.cancelled():
                    continue
                if task.exception() is not None:
                    logger.debug(f"Race arm {tasks[task]} failed: {task.exception()}")
                    continue
                if task.result() is True:
                    winner = tasks[task]
                    break
    finally:
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
    return winner
