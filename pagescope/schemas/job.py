from typing import Any, Literal

from pagescope.schemas.scrape import CamelModel, ScrapeResult

JobStatus = Literal["running", "completed", "failed"]


class JobRecord(CamelModel):
    job_id: str
    status: JobStatus = "running"
    created_at: str
    completed_at: str | None = None
    url: str
    batch_id: str | None = None
    data: ScrapeResult | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status != "running"

    def to_payload(self, include_data: bool = True) -> dict[str, Any]:
        payload = self.model_dump(
            by_alias=True, mode="json", exclude={"data"}, exclude_none=True
        )
        if include_data and self.data is not None:
            payload["data"] = self.data.to_payload()
        return payload


class AsyncJobResponse(CamelModel):
    success: bool = True
    job_id: str
    message: str = "Scraping started. Poll /api/jobs/{jobId} for results."


class BatchJobResponse(CamelModel):
    success: bool = True
    batch_id: str
    job_ids: list[str]
    message: str = "Batch scraping started."
