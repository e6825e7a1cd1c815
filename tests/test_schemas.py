"""Tests for request validation and result serialization."""
import pytest
from pydantic import ValidationError

from pagescope.config import settings
from pagescope.schemas.scrape import (
    ALL_EXTRACTORS,
    BatchScrapeRequest,
    Collection,
    CrawlInfo,
    PageMetadata,
    PriceItem,
    ScrapeRequest,
    ScrapeResult,
)


class TestScrapeRequest:
    def test_defaults(self):
        req = ScrapeRequest(url="https://example.com")
        assert req.wait_for == settings.DEFAULT_WAIT_FOR
        assert req.extractors == ALL_EXTRACTORS
        assert req.full_html is False
        assert req.screenshot is False

    def test_camel_case_aliases(self):
        req = ScrapeRequest.model_validate(
            {"url": "https://example.com", "waitFor": 100, "fullHtml": True}
        )
        assert req.wait_for == 100
        assert req.full_html is True

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("example.com", "https://example.com"),
            ("  example.com/path?q=1 ", "https://example.com/path?q=1"),
            ("//example.com", "https://example.com"),
            ("http://example.com", "http://example.com"),
            ("localhost:8080/a", "https://localhost:8080/a"),
            ("example.com:443", "https://example.com:443"),
        ],
    )
    def test_url_normalization(self, raw, expected):
        assert ScrapeRequest(url=raw).url == expected

    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "   ",
            "https://",
            "ftp://example.com",
            "mailto://x",
            "file:/etc/passwd",
            "javascript:alert(1)",
            "data:text/html,hi",
            "http:example.com",
        ],
    )
    def test_invalid_urls(self, raw):
        with pytest.raises(ValidationError):
            ScrapeRequest(url=raw)

    def test_wait_for_is_clamped(self):
        assert ScrapeRequest(url="example.com", wait_for=-5).wait_for == 0
        assert ScrapeRequest(url="example.com", wait_for=10**9).wait_for == settings.MAX_WAIT_FOR
        assert ScrapeRequest(url="example.com", wait_for=None).wait_for == settings.DEFAULT_WAIT_FOR

    def test_extractors_are_deduplicated_in_order(self):
        req = ScrapeRequest(url="example.com", extractors=["tables", "links", "tables"])
        assert req.extractors == ("tables", "links")

    def test_empty_extractor_list_is_allowed(self):
        assert ScrapeRequest(url="example.com", extractors=[]).extractors == ()

    def test_unknown_extractor(self):
        with pytest.raises(ValidationError):
            ScrapeRequest(url="example.com", extractors=["emails"])

    def test_request_is_immutable(self):
        req = ScrapeRequest(url="example.com")
        with pytest.raises(ValidationError):
            req.url = "https://other.example"


class TestBatchScrapeRequest:
    def test_to_requests_never_screenshots(self):
        batch = BatchScrapeRequest(urls=["a.example", "b.example"], wait_for=0, extractors=["links"])
        requests = batch.to_requests()
        assert [r.url for r in requests] == ["https://a.example", "https://b.example"]
        assert all(r.screenshot is False for r in requests)
        assert all(r.extractors == ("links",) for r in requests)

    def test_size_limits(self):
        with pytest.raises(ValidationError):
            BatchScrapeRequest(urls=[])
        with pytest.raises(ValidationError):
            BatchScrapeRequest(urls=[f"https://e.example/{i}" for i in range(settings.BATCH_MAX_URLS + 1)])


class TestScrapeResult:
    def _result(self, **kwargs) -> ScrapeResult:
        url = "https://example.com/"
        return ScrapeResult(
            url=url,
            crawl=CrawlInfo(loaded_url=url, loaded_time="2026-01-01T00:00:00Z", referrer_url=url),
            metadata=PageMetadata(canonical_url=url),
            **kwargs,
        )

    def test_unrequested_sections_are_absent(self):
        payload = self._result().to_payload()
        for key in ("links", "images", "headings", "text", "prices", "tables", "fullHtml"):
            assert key not in payload
        assert payload["html"] is None
        assert payload["markdown"] is None
        assert payload["metadata"]["canonicalUrl"] == "https://example.com/"

    def test_requested_empty_section_is_present(self):
        payload = self._result(prices=Collection[PriceItem].of([])).to_payload()
        assert payload["prices"] == {"total": 0, "items": []}

    def test_price_class_key(self):
        item = PriceItem(text="$5", element="span", class_="price")
        assert item.model_dump(by_alias=True) == {
            "text": "$5",
            "dataPrice": None,
            "element": "span",
            "class": "price",
        }
