import time

from fastapi import APIRouter
from fastapi.responses import Response

from pagescope.config import settings
from pagescope.core.exceptions import NotFoundError
from pagescope.core.metrics import get_metrics, get_metrics_content_type

router = APIRouter()

_started_at = time.monotonic()


@router.get(
    "/health",
    summary="Liveness check",
    description="Returns HTTP 200 with the process uptime in seconds while the application is running.",
)
async def health():
    return {"status": "ok", "uptime": round(time.monotonic() - _started_at, 3)}


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    description="Scrape counters, durations, challenge outcomes and open browser sessions in Prometheus text format.",
    include_in_schema=False,
)
async def metrics():
    if not settings.METRICS_ENABLED:
        raise NotFoundError("Metrics are disabled")
    return Response(content=get_metrics(), media_type=get_metrics_content_type())
