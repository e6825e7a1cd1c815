from fastapi import APIRouter, Depends

from pagescope.api.deps import get_job_ledger
from pagescope.api.fields import parse_fields, pick_fields
from pagescope.core.exceptions import NotFoundError
from pagescope.services.jobs import JobLedger

router = APIRouter()


@router.get(
    "",
    summary="List jobs",
    description="Every async and batch job known to this process, without result data.",
)
async def list_jobs(ledger: JobLedger = Depends(get_job_ledger)):
    return ledger.list_all()


@router.get(
    "/{job_id}",
    summary="Get a job",
    description="Status and, once completed, the scrape result. `?fields=` projects the result's top-level keys.",
)
async def get_job(
    job_id: str,
    fields: list[str] = Depends(parse_fields),
    ledger: JobLedger = Depends(get_job_ledger),
):
    record = ledger.get(job_id)
    if record is None:
        raise NotFoundError("Job not found")

    payload = record.to_payload()
    if "data" in payload:
        payload["data"] = pick_fields(payload["data"], fields)
    return payload
