"""Extraction pipeline.

Parses the captured HTML once and runs metadata, the readable/Markdown
reduction and every requested extractor over it. Extractors are isolated:
one that raises yields its empty value, bumps ``extractor_failures_total``
and is reported as a failed ``Outcome``; the others are unaffected.

CPU-bound and synchronous; the orchestrator runs it in a thread pool.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from bs4 import BeautifulSoup

from pagescope.core.metrics import extractor_failures_total
from pagescope.schemas.scrape import (
    Collection,
    HeadingsMap,
    ImageItem,
    LinkItem,
    PageMetadata,
    PriceItem,
    TableItem,
    TextContent,
)
from pagescope.services.content import (
    extract_headings,
    extract_images,
    extract_links,
    extract_metadata,
    extract_prices,
    extract_text,
    parse_html,
)
from pagescope.services.markdown import readable_markdown
from pagescope.services.outcome import Outcome, best_effort_call
from pagescope.services.table_extraction import extract_tables

logger = logging.getLogger(__name__)


def _links(soup: BeautifulSoup, url: str):
    return Collection[LinkItem].of(extract_links(soup, url))


def _images(soup: BeautifulSoup, url: str):
    return Collection[ImageItem].of(extract_images(soup, url))


def _headings(soup: BeautifulSoup, url: str):
    return HeadingsMap(**extract_headings(soup))


def _text(soup: BeautifulSoup, url: str):
    return TextContent(**extract_text(soup))


def _prices(soup: BeautifulSoup, url: str):
    return Collection[PriceItem].of(extract_prices(soup))


def _tables(soup: BeautifulSoup, url: str):
    return Collection[TableItem].of(extract_tables(soup))


# name -> (extractor, empty value factory)
EXTRACTORS: dict[str, tuple[Callable[[BeautifulSoup, str], Any], Callable[[], Any]]] = {
    "links": (_links, Collection[LinkItem]),
    "images": (_images, Collection[ImageItem]),
    "headings": (_headings, HeadingsMap),
    "text": (_text, TextContent),
    "prices": (_prices, Collection[PriceItem]),
    "tables": (_tables, Collection[TableItem]),
}


@dataclass
class Extraction:
    metadata: PageMetadata
    html: str | None = None
    markdown: str | None = None
    sections: dict[str, Any] = field(default_factory=dict)
    failures: list[Outcome] = field(default_factory=list)


def run_extractor(name: str, soup: BeautifulSoup, page_url: str) -> Outcome:
    extractor, empty = EXTRACTORS[name]
    outcome = best_effort_call(name, extractor, soup, page_url)
    if not outcome.ok:
        extractor_failures_total.labels(extractor=name).inc()
        outcome.value = empty()
    return outcome


def run_pipeline(
    html: str,
    page_url: str,
    extractors: tuple[str, ...] | list[str],
    response_headers: dict | None = None,
) -> Extraction:
    soup = parse_html(html)
    failures = []

    meta = best_effort_call(
        "metadata", lambda: PageMetadata(**extract_metadata(soup, page_url, response_headers))
    )
    if not meta.ok:
        extractor_failures_total.labels(extractor="metadata").inc()
        failures.append(meta)
        meta.value = PageMetadata(canonical_url=page_url, headers=dict(response_headers or {}))

    readable_html, markdown = readable_markdown(html, page_url)

    sections = {}
    for name in extractors:
        outcome = run_extractor(name, soup, page_url)
        sections[name] = outcome.value
        if not outcome.ok:
            failures.append(outcome)

    return Extraction(
        metadata=meta.value,
        html=readable_html,
        markdown=markdown,
        sections=sections,
        failures=failures,
    )
