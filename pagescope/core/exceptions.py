"""Exception hierarchy and the FastAPI handlers that render it.

Only three failures ever escape a scrape: the browser could not be launched,
navigation failed after the retry budget, or the wall-clock deadline passed.
Everything else inside the engine is best-effort and is reported through
``Outcome`` values instead.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class PageScopeError(Exception):
    status_code = 500
    error_code = "SCRAPE_FAILED"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class BrowserLaunchError(PageScopeError):
    """Neither the installed browser channel nor the bundled engine started."""

    status_code = 503
    error_code = "BROWSER_UNAVAILABLE"


class NavigationError(PageScopeError):
    """Page load failed: either non-retryable, or retries were exhausted."""

    status_code = 502
    error_code = "NAVIGATION_FAILED"

    def __init__(self, message: str = "", attempts: int = 1):
        super().__init__(message)
        self.attempts = attempts


class ScrapeTimeoutError(PageScopeError):
    status_code = 504
    error_code = "TIMEOUT"


class NotFoundError(PageScopeError):
    status_code = 404
    error_code = "NOT_FOUND"


async def _pagescope_error_handler(request: Request, exc: PageScopeError):
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message, "error_code": exc.error_code},
    )


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        # Drop the leading "body"/"query" location segment
        loc = [str(p) for p in err.get("loc", ())[1:]]
        errors.append({"field": ".".join(loc), "message": err.get("msg", "")})
    return JSONResponse(status_code=400, content={"success": False, "errors": errors})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PageScopeError, _pagescope_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
