"""Readable-content reduction and Markdown rendering.

The primary region is found by semantic containers first (``main``,
``article``, ``[role=main]``, ``#content``). Pages without a usable
container fall back to trafilatura. Whatever is found is rendered with a
markdownify converter configured for ATX headings, ``*`` bullets and
fenced code.
"""

import logging
import re

import trafilatura
from bs4 import BeautifulSoup, Tag
from markdownify import MarkdownConverter

logger = logging.getLogger(__name__)

JUNK_TAGS = {
    "script",
    "style",
    "noscript",
    "iframe",
    "svg",
    "canvas",
    "object",
    "embed",
    "template",
    "dialog",
    "form",
}

BOILERPLATE_TAGS = {"nav", "header", "footer", "aside"}

MAIN_SELECTORS = [
    "main",
    "article",
    "[role='main']",
    "#content",
    "#main-content",
    ".main-content",
]

MIN_MAIN_TEXT = 200


class PageScopeConverter(MarkdownConverter):
    """Markdown converter that keeps links, images and code blocks intact."""

    def convert_a(self, el, text, *args, **kwargs):
        href = el.get("href", "")
        title = el.get("title", "")
        text = (text or "").strip()

        if not text or not href:
            return text or ""

        # Skip anchor-only links
        if href.startswith("#") and len(href) <= 1:
            return text

        if title:
            return f'[{text}]({href} "{title}")'
        return f"[{text}]({href})"

    def convert_img(self, el, text, *args, **kwargs):
        alt = el.get("alt", "")
        src = el.get("src", "")
        if not src:
            return ""
        return f"![{alt}]({src})"

    def convert_pre(self, el, text, *args, **kwargs):
        code = el.find("code")
        lang = ""
        if code:
            for cls in code.get("class", []):
                if cls.startswith("language-"):
                    lang = cls[9:]
                    break
            text = code.get_text()
        else:
            text = el.get_text()
        return f"\n```{lang}\n{text.strip(chr(10))}\n```\n"


_CONVERTER = PageScopeConverter(
    heading_style="ATX",
    bullets="*",
    code_language="",
    strip=["script", "style"],
)


def _postprocess_markdown(markdown: str) -> str:
    """Collapse blank-line runs and trailing spaces outside fenced code."""
    parts = re.split(r"(```[^\n]*\n.*?```)", markdown, flags=re.DOTALL)
    cleaned = []
    for i, part in enumerate(parts):
        if i % 2 == 1:
            cleaned.append(part)
        else:
            part = re.sub(r"[ \t]+\n", "\n", part)
            part = re.sub(r"\n{3,}", "\n\n", part)
            cleaned.append(part)
    return "".join(cleaned).strip()


def html_to_markdown(html: str) -> str:
    return _postprocess_markdown(_CONVERTER.convert(html))


def _readable_title(soup: BeautifulSoup) -> str:
    og_title = soup.find("meta", attrs={"property": "og:title"})
    if og_title and og_title.get("content", "").strip():
        return og_title["content"].strip()
    if soup.title and soup.title.get_text().strip():
        return soup.title.get_text().strip()
    h1 = soup.find("h1")
    if h1:
        return h1.get_text().strip()
    return ""


def _find_main_container(soup: BeautifulSoup) -> Tag | None:
    for selector in MAIN_SELECTORS:
        el = soup.select_one(selector)
        if el and len(el.get_text(strip=True)) > MIN_MAIN_TEXT:
            return el
    return None


def _trafilatura_extract(html: str, url: str) -> Tag | None:
    result = trafilatura.extract(
        html,
        include_links=True,
        include_images=True,
        include_tables=True,
        favor_recall=True,
        url=url or None,
        output_format="html",
    )
    if not result:
        return None
    traf_soup = BeautifulSoup(result, "lxml")
    body = traf_soup.body or traf_soup
    return body if body.get_text(strip=True) else None


def extract_readable(html: str, url: str = "") -> tuple[str, str] | None:
    """Return ``(title, readable_html)`` or None if no primary content was found."""
    soup = BeautifulSoup(html, "lxml")
    title = _readable_title(soup)

    for tag in soup.find_all(list(JUNK_TAGS)):
        tag.decompose()

    main = _find_main_container(soup)
    if main is None:
        try:
            main = _trafilatura_extract(html, url)
        except Exception as e:
            logger.debug(f"Trafilatura extraction failed: {e}")
            main = None
    if main is None:
        return None

    for tag in main.find_all(list(BOILERPLATE_TAGS)):
        tag.decompose()
    if not main.get_text(strip=True):
        return None

    if main.name in ("body", "[document]"):
        readable_html = "".join(str(child) for child in main.contents)
    else:
        readable_html = str(main)
    return title, readable_html


def readable_markdown(html: str, url: str = "") -> tuple[str | None, str | None]:
    """Readable HTML and its Markdown rendition; ``(None, None)`` on failure."""
    try:
        readable = extract_readable(html, url)
        if readable is None:
            return None, None
        title, readable_html = readable
        markdown = html_to_markdown(readable_html)
    except Exception as e:
        logger.warning(f"Readable extraction failed (non-fatal): {e}")
        return None, None
    if title:
        markdown = f"# {title}\n\n{markdown}"
    return readable_html, markdown or None
