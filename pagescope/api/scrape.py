import asyncio
import logging

from fastapi import APIRouter, BackgroundTasks, Depends

from pagescope.api.deps import get_browser_driver, get_job_ledger
from pagescope.api.fields import parse_fields, pick_fields
from pagescope.core.exceptions import PageScopeError
from pagescope.core.metrics import scrape_requests_total
from pagescope.schemas.job import AsyncJobResponse, BatchJobResponse
from pagescope.schemas.scrape import BatchScrapeRequest, ScrapeRequest
from pagescope.services.browser import BrowserDriver
from pagescope.services.jobs import JobLedger, new_job_id, run_job
from pagescope.services.scraper import scrape

router = APIRouter()
logger = logging.getLogger(__name__)


async def _run_scrape_job(
    ledger: JobLedger,
    driver: BrowserDriver,
    job_id: str,
    request: ScrapeRequest,
    mode: str = "async",
) -> None:
    await run_job(ledger, job_id, scrape(request, driver), mode=mode)


async def _run_batch(
    ledger: JobLedger,
    driver: BrowserDriver,
    jobs: list[tuple[str, ScrapeRequest]],
) -> None:
    # All URLs of a batch run concurrently, each in its own browser session
    await asyncio.gather(
        *(_run_scrape_job(ledger, driver, job_id, req, mode="batch") for job_id, req in jobs)
    )


@router.post(
    "",
    summary="Scrape a single URL",
    description="Load the page in a stealth browser, clear bot challenges and overlays, and return metadata, readable HTML, Markdown and the requested extractor sections.",
)
async def scrape_sync(
    request: ScrapeRequest,
    fields: list[str] = Depends(parse_fields),
    driver: BrowserDriver = Depends(get_browser_driver),
):
    try:
        result = await scrape(request, driver)
    except PageScopeError:
        scrape_requests_total.labels(mode="sync", status="error").inc()
        raise
    except Exception as e:
        scrape_requests_total.labels(mode="sync", status="error").inc()
        logger.exception(f"Scrape error for {request.url}")
        raise PageScopeError(str(e) or type(e).__name__) from e

    scrape_requests_total.labels(mode="sync", status="success").inc()
    return {"success": True, "data": pick_fields(result.to_payload(), fields)}


@router.post(
    "/async",
    response_model=AsyncJobResponse,
    summary="Start a background scrape",
    description="Create a job and return its id immediately. Poll GET /api/jobs/{jobId} for the result.",
)
async def scrape_async(
    request: ScrapeRequest,
    background_tasks: BackgroundTasks,
    ledger: JobLedger = Depends(get_job_ledger),
    driver: BrowserDriver = Depends(get_browser_driver),
):
    job_id = new_job_id()
    ledger.create(job_id, request.url)
    background_tasks.add_task(_run_scrape_job, ledger, driver, job_id, request)
    logger.info(f"Async scrape job {job_id} queued for {request.url}")
    return AsyncJobResponse(job_id=job_id)


@router.post(
    "/batch",
    response_model=BatchJobResponse,
    summary="Start a batch of background scrapes",
    description="Create one job per URL (at most 10) sharing a batch id. Screenshots are not taken in batch mode.",
)
async def scrape_batch(
    request: BatchScrapeRequest,
    background_tasks: BackgroundTasks,
    ledger: JobLedger = Depends(get_job_ledger),
    driver: BrowserDriver = Depends(get_browser_driver),
):
    batch_id = new_job_id()
    jobs = []
    for page_request in request.to_requests():
        job_id = new_job_id()
        ledger.create(job_id, page_request.url, batch_id=batch_id)
        jobs.append((job_id, page_request))

    background_tasks.add_task(_run_batch, ledger, driver, jobs)
    logger.info(f"Batch {batch_id} queued with {len(jobs)} URLs")
    return BatchJobResponse(batch_id=batch_id, job_ids=[job_id for job_id, _ in jobs])
