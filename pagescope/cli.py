"""CLI tool for PageScope.

Usage:
    pagescope scrape https://example.com
    pagescope scrape https://example.com --extractors links prices tables
    pagescope -o markdown scrape https://example.com --wait-for 0
    pagescope serve --port 3010
"""

import argparse
import asyncio
import json
import logging
import sys

from pagescope.config import settings
from pagescope.core.exceptions import PageScopeError
from pagescope.core.logging_config import configure_logging
from pagescope.schemas.scrape import ALL_EXTRACTORS

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool = False):
    configure_logging(
        log_format="text",
        log_level="DEBUG" if verbose else "WARNING",
        stream=sys.stderr,
    )


async def _cmd_scrape(args) -> int:
    """Scrape a single URL."""
    from pagescope.core.metrics import scrape_requests_total
    from pagescope.schemas.scrape import ScrapeRequest
    from pagescope.services.browser import PlaywrightDriver
    from pagescope.services.scraper import scrape

    request = ScrapeRequest(
        url=args.url,
        wait_for=args.wait_for,
        extractors=args.extractors or ALL_EXTRACTORS,
        full_html=args.full_html,
        screenshot=args.screenshot,
    )

    try:
        result = await scrape(request, PlaywrightDriver(), timeout=args.timeout)
    except PageScopeError as e:
        scrape_requests_total.labels(mode="cli", status="error").inc()
        print(f"error: {e.message}", file=sys.stderr)
        return 1
    scrape_requests_total.labels(mode="cli", status="success").inc()

    output = result.to_payload()
    if args.output == "markdown" and result.markdown:
        print(result.markdown)
    elif args.output == "text":
        print(f"--- {result.url} ({result.crawl.http_status_code}, {result.time_taken}) ---")
        if result.metadata.title:
            print(result.metadata.title)
            print()
        if result.text is not None:
            print(result.text.body_text_preview)
        elif result.markdown:
            print(result.markdown[:2000])
    else:
        print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


def _cmd_serve(args) -> int:
    import uvicorn

    uvicorn.run("pagescope.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def main():
    parser = argparse.ArgumentParser(
        prog="pagescope",
        description="PageScope CLI - scrape a single page through a stealth browser",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "-o", "--output", default="json",
        choices=["json", "markdown", "text"],
        help="Output format (default: json)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # --- scrape ---
    scrape_parser = subparsers.add_parser("scrape", help="Scrape a single URL")
    scrape_parser.add_argument("url", help="URL to scrape")
    scrape_parser.add_argument(
        "--extractors", nargs="+", default=None, choices=list(ALL_EXTRACTORS),
        help="Extractors to run (default: all)",
    )
    scrape_parser.add_argument(
        "--wait-for", type=int, default=settings.DEFAULT_WAIT_FOR,
        help="Extra render time in ms after the page settles",
    )
    scrape_parser.add_argument("--full-html", action="store_true", help="Include the raw page HTML")
    scrape_parser.add_argument("--screenshot", action="store_true", help="Include a viewport screenshot")
    scrape_parser.add_argument(
        "--timeout", type=float, default=settings.SCRAPE_TIMEOUT,
        help="Overall deadline in seconds",
    )

    # --- serve ---
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=settings.PORT, help="Bind port")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "scrape":
        _setup_logging(args.verbose)
        sys.exit(asyncio.run(_cmd_scrape(args)))
    elif args.command == "serve":
        sys.exit(_cmd_serve(args))


if __name__ == "__main__":
    main()
