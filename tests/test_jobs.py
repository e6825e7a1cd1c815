"""Tests for the in-memory job ledger and background job runner."""
import pytest

from pagescope.core.exceptions import NavigationError
from pagescope.schemas.scrape import CrawlInfo, PageMetadata, ScrapeResult
from pagescope.services.jobs import JobLedger, new_job_id, run_job


def _result(url: str = "https://example.com/") -> ScrapeResult:
    return ScrapeResult(
        url=url,
        crawl=CrawlInfo(loaded_url=url, loaded_time="2026-01-01T00:00:00Z", referrer_url=url),
        metadata=PageMetadata(canonical_url=url),
    )


class TestJobLedger:
    def test_create_starts_running(self):
        ledger = JobLedger()
        record = ledger.create("job-1", "https://example.com/")
        assert record.status == "running"
        assert record.completed_at is None
        assert record.created_at.endswith("Z")
        assert ledger.get("job-1") is record
        assert len(ledger) == 1

    def test_complete_sets_data_and_timestamp(self):
        ledger = JobLedger()
        ledger.create("job-1", "https://example.com/")
        ledger.complete("job-1", _result())
        record = ledger.get("job-1")
        assert record.status == "completed"
        assert record.data.url == "https://example.com/"
        assert record.completed_at is not None

    def test_terminal_state_is_final(self):
        ledger = JobLedger()
        ledger.create("job-1", "https://example.com/")
        ledger.fail("job-1", "Navigation failed")
        ledger.complete("job-1", _result())
        record = ledger.get("job-1")
        assert record.status == "failed"
        assert record.error == "Navigation failed"
        assert record.data is None

    def test_unknown_job_updates_are_ignored(self):
        ledger = JobLedger()
        ledger.complete("missing", _result())
        ledger.fail("missing", "boom")
        assert ledger.get("missing") is None
        assert len(ledger) == 0

    def test_list_all_omits_data(self):
        ledger = JobLedger()
        ledger.create("a", "https://a.example/", batch_id="batch-1")
        ledger.create("b", "https://b.example/")
        ledger.complete("a", _result("https://a.example/"))
        listing = ledger.list_all()
        assert [job["jobId"] for job in listing] == ["a", "b"]
        assert "data" not in listing[0]
        assert listing[0]["batchId"] == "batch-1"
        assert "batchId" not in listing[1]

    def test_payload_is_camel_case(self):
        ledger = JobLedger()
        ledger.create("a", "https://a.example/")
        ledger.complete("a", _result("https://a.example/"))
        payload = ledger.get("a").to_payload()
        assert payload["status"] == "completed"
        assert payload["data"]["crawl"]["loadedUrl"] == "https://a.example/"
        assert "links" not in payload["data"]

    def test_job_ids_are_unique(self):
        assert len({new_job_id() for _ in range(50)}) == 50


class TestRunJob:
    @pytest.mark.asyncio
    async def test_success_completes_job(self):
        ledger = JobLedger()
        ledger.create("job-1", "https://example.com/")

        async def scrape():
            return _result()

        await run_job(ledger, "job-1", scrape())
        assert ledger.get("job-1").status == "completed"

    @pytest.mark.asyncio
    async def test_failure_is_recorded_not_raised(self):
        ledger = JobLedger()
        ledger.create("job-1", "https://example.com/")

        async def scrape():
            raise NavigationError("Navigation failed: net::ERR_NAME_NOT_RESOLVED", attempts=1)

        await run_job(ledger, "job-1", scrape())
        record = ledger.get("job-1")
        assert record.status == "failed"
        assert "ERR_NAME_NOT_RESOLVED" in record.error

    @pytest.mark.asyncio
    async def test_error_without_message_uses_type_name(self):
        ledger = JobLedger()
        ledger.create("job-1", "https://example.com/")

        async def scrape():
            raise RuntimeError()

        await run_job(ledger, "job-1", scrape(), mode="batch")
        assert ledger.get("job-1").error == "RuntimeError"
