"""Request and job correlation ids.

The HTTP request id comes from the X-Request-ID header (or a fresh UUID4)
and is echoed back on the response. Background scrapes started by the
async and batch endpoints outlive their request, so they bind their own
job id instead. Both live in contextvars and are picked up by the logging
filter.
"""

import contextvars
import uuid
from contextlib import contextmanager

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "request_id", default=""
)
job_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("job_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = request_id_var.set(rid)
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = rid
            return response
        finally:
            request_id_var.reset(token)


@contextmanager
def bind_job_id(job_id: str):
    """Tag every log line emitted inside the block with ``job_id``."""
    token = job_id_var.set(job_id)
    try:
        yield
    finally:
        job_id_var.reset(token)


def get_request_id() -> str:
    return request_id_var.get()


def get_job_id() -> str:
    return job_id_var.get()
