"""In-memory job ledger for async and batch scrapes.

Records live for the lifetime of the process; nothing is persisted. A
job is created ``running`` and moves exactly once to ``completed`` or
``failed``.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Awaitable

from pagescope.core.metrics import jobs_in_flight, scrape_requests_total
from pagescope.middleware.request_id import bind_job_id
from pagescope.schemas.job import JobRecord
from pagescope.schemas.scrape import ScrapeResult

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def new_job_id() -> str:
    return str(uuid.uuid4())


class JobLedger:
    def __init__(self):
        self._jobs: dict[str, JobRecord] = {}

    def create(self, job_id: str, url: str, batch_id: str | None = None) -> JobRecord:
        record = JobRecord(job_id=job_id, created_at=_now(), url=url, batch_id=batch_id)
        self._jobs[job_id] = record
        return record

    def complete(self, job_id: str, data: ScrapeResult) -> None:
        record = self._jobs.get(job_id)
        if record is None or record.is_terminal:
            return
        self._jobs[job_id] = record.model_copy(
            update={"status": "completed", "data": data, "completed_at": _now()}
        )

    def fail(self, job_id: str, error: str) -> None:
        record = self._jobs.get(job_id)
        if record is None or record.is_terminal:
            return
        self._jobs[job_id] = record.model_copy(
            update={"status": "failed", "error": error, "completed_at": _now()}
        )

    def get(self, job_id: str) -> JobRecord | None:
        return self._jobs.get(job_id)

    def list_all(self) -> list[dict]:
        """Every job in creation order, without result data."""
        return [record.to_payload(include_data=False) for record in self._jobs.values()]

    def __len__(self) -> int:
        return len(self._jobs)


async def run_job(
    ledger: JobLedger, job_id: str, scrape: Awaitable[ScrapeResult], mode: str = "async"
) -> None:
    """Await ``scrape`` and record its outcome. Never raises."""
    jobs_in_flight.inc()
    with bind_job_id(job_id):
        try:
            result = await scrape
        except Exception as e:
            logger.warning(f"Job {job_id} failed: {e}")
            ledger.fail(job_id, str(e) or type(e).__name__)
            scrape_requests_total.labels(mode=mode, status="error").inc()
        else:
            ledger.complete(job_id, result)
            scrape_requests_total.labels(mode=mode, status="success").inc()
            logger.info(f"Job {job_id} completed")
        finally:
            jobs_in_flight.dec()
