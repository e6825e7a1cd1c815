import re
from typing import Any, Generic, Literal, TypeVar
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from pagescope.config import settings

ExtractorName = Literal["links", "images", "headings", "text", "prices", "tables"]
ALL_EXTRACTORS: tuple[str, ...] = (
    "links",
    "images",
    "headings",
    "text",
    "prices",
    "tables",
)

T = TypeVar("T")

# An explicit scheme, unless what follows the colon is a port ("localhost:8080/a")
_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:(?!\d+(?:[/?#]|$))")


def _normalize_url(url: str) -> str:
    """Prepend https:// if no scheme is present, then require http(s) and a host."""
    if not isinstance(url, str):
        raise ValueError("A valid URL is required")
    url = url.strip()
    if url and not _SCHEME_RE.match(url):
        url = f"https://{url.lstrip('/')}"
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("A valid URL is required")
    return url


def _dedupe_extractors(value: Any) -> Any:
    if value is None:
        return ALL_EXTRACTORS
    if isinstance(value, str):
        value = [value]
    if isinstance(value, (list, tuple)):
        # Order-preserving, first occurrence wins
        return tuple(dict.fromkeys(value))
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class ScrapeRequest(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    url: str
    wait_for: int = settings.DEFAULT_WAIT_FOR  # ms of extra render time
    extractors: tuple[ExtractorName, ...] = ALL_EXTRACTORS
    full_html: bool = False
    screenshot: bool = False

    @field_validator("url", mode="before")
    @classmethod
    def _check_url(cls, v):
        return _normalize_url(v)

    @field_validator("wait_for", mode="before")
    @classmethod
    def _default_wait(cls, v):
        return settings.DEFAULT_WAIT_FOR if v is None else v

    @field_validator("wait_for")
    @classmethod
    def _clamp_wait(cls, v: int) -> int:
        return max(0, min(v, settings.MAX_WAIT_FOR))

    @field_validator("extractors", mode="before")
    @classmethod
    def _unique_extractors(cls, v):
        return _dedupe_extractors(v)


class BatchScrapeRequest(CamelModel):
    urls: list[str] = Field(min_length=1, max_length=settings.BATCH_MAX_URLS)
    wait_for: int = settings.DEFAULT_WAIT_FOR
    extractors: tuple[ExtractorName, ...] = ALL_EXTRACTORS
    full_html: bool = False

    @field_validator("urls")
    @classmethod
    def _check_urls(cls, v: list[str]) -> list[str]:
        return [_normalize_url(u) for u in v]

    @field_validator("wait_for", mode="before")
    @classmethod
    def _default_wait(cls, v):
        return settings.DEFAULT_WAIT_FOR if v is None else v

    @field_validator("wait_for")
    @classmethod
    def _clamp_wait(cls, v: int) -> int:
        return max(0, min(v, settings.MAX_WAIT_FOR))

    @field_validator("extractors", mode="before")
    @classmethod
    def _unique_extractors(cls, v):
        return _dedupe_extractors(v)

    def to_requests(self) -> list[ScrapeRequest]:
        """One single-page request per URL; batches never take screenshots."""
        return [
            ScrapeRequest(
                url=url,
                wait_for=self.wait_for,
                extractors=self.extractors,
                full_html=self.full_html,
                screenshot=False,
            )
            for url in self.urls
        ]


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


class CrawlInfo(CamelModel):
    loaded_url: str
    loaded_time: str  # ISO-8601
    referrer_url: str
    http_status_code: int | None = None
    depth: int = 0
    content_type: str = ""


# Only the attributes present on the tag: name, property, content, httpEquiv, charset
MetaTag = dict[str, str]


class MicrodataItem(CamelModel):
    itemtype: str = ""
    properties: dict[str, str] = {}


class PageMetadata(CamelModel):
    canonical_url: str
    title: str | None = None
    description: str | None = None
    author: str | None = None
    keywords: str | None = None
    language_code: str | None = None
    robots: str | None = None
    favicon: str = "/favicon.ico"
    open_graph: dict[str, str] | None = None
    twitter: dict[str, str] | None = None
    json_ld: list[Any] | None = None
    microdata: list[MicrodataItem] | None = None
    all_meta: list[MetaTag] = []
    headers: dict[str, str] = {}


class LinkItem(CamelModel):
    href: str
    text: str = ""
    title: str = ""
    rel: str = ""
    is_external: bool = False


class ImageItem(CamelModel):
    src: str
    alt: str = ""
    title: str = ""
    width: str | None = None
    height: str | None = None
    descriptor: str | None = None  # srcset entries only


class PriceItem(CamelModel):
    text: str
    data_price: str | None = None
    element: str
    class_: str = Field(default="", alias="class")


class HeadingsMap(CamelModel):
    h1: list[str] = []
    h2: list[str] = []
    h3: list[str] = []
    h4: list[str] = []
    h5: list[str] = []
    h6: list[str] = []


class TextContent(CamelModel):
    body_text_length: int = 0
    body_text_preview: str = ""
    paragraphs: list[str] = []
    list_items: list[str] = []


class TableItem(CamelModel):
    headers: list[str] = []
    rows: list[list[str]] = []


class Collection(CamelModel, Generic[T]):
    total: int = 0
    items: list[T] = []

    @classmethod
    def of(cls, items: list[T]) -> "Collection[T]":
        return cls(total=len(items), items=items)


class NetworkSummary(CamelModel):
    total_requests: int = 0
    by_type: dict[str, int] = {}


class ChallengeReport(CamelModel):
    detected: bool = False
    resolved: bool = True
    strategy: Literal["redirect", "content", "origin-cookie"] | None = None


class Diagnostic(CamelModel):
    step: str
    error: str


# Keys that are only present in the payload when requested
OPTIONAL_KEYS = ("links", "images", "headings", "text", "prices", "tables", "full_html")


class ScrapeResult(CamelModel):
    url: str
    crawl: CrawlInfo
    metadata: PageMetadata
    html: str | None = None
    markdown: str | None = None
    screenshot_url: str | None = None
    time_taken: str = "0.00s"
    network_summary: NetworkSummary = NetworkSummary()
    challenge: ChallengeReport = ChallengeReport()
    diagnostics: list[Diagnostic] = []

    links: Collection[LinkItem] | None = None
    images: Collection[ImageItem] | None = None
    headings: HeadingsMap | None = None
    text: TextContent | None = None
    prices: Collection[PriceItem] | None = None
    tables: Collection[TableItem] | None = None
    full_html: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys; unrequested sections are absent."""
        data = self.model_dump(by_alias=True, mode="json")
        for name in OPTIONAL_KEYS:
            if getattr(self, name) is None:
                data.pop(to_camel(name), None)
        return data
