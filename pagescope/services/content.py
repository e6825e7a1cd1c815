import copy
import json
import logging
import re
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

NON_TEXT_TAGS = ["script", "style", "noscript", "iframe"]

LINK_TEXT_LIMIT = 200
TEXT_PREVIEW_LIMIT = 1000
TEXT_ITEM_LIMIT = 50
PARAGRAPH_MIN_LENGTH = 20
LIST_ITEM_MIN_LENGTH = 5
LIST_ITEM_MAX_LENGTH = 500

PRICE_SELECTORS = [
    '[class*="price"]',
    '[class*="Price"]',
    '[id*="price"]',
    '[id*="Price"]',
    "[data-price]",
    '[itemprop="price"]',
    '[class*="cost"]',
    '[class*="amount"]',
]

# A number is only a price when it carries a currency: a symbol in front
# or an ISO-ish code behind. A code must not run on into a longer word
# ("3 European").
_CURRENCY_CODES = r"(?:TL|USD|EUR|GBP|TRY|₺)(?![A-Za-z])"
PRICE_PATTERN = re.compile(
    r"[$€£₺₹]\s*\d[\d,.]*(?:\s*" + _CURRENCY_CODES + r")?"
    r"|\d[\d,.]*\s*" + _CURRENCY_CODES,
    re.IGNORECASE,
)

DEFAULT_FAVICON = "/favicon.ico"


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")


def resolve_url(href: str, base_url: str) -> str:
    """Absolute form of ``href``; the raw value if it cannot be resolved."""
    try:
        return urljoin(base_url, href)
    except ValueError:
        return href


def is_external_link(href: str, base_url: str) -> bool:
    try:
        link_host = urlparse(urljoin(base_url, href)).hostname
        base_host = urlparse(base_url).hostname
    except ValueError:
        return False
    return link_host != base_host


def _attr(el: Tag, name: str) -> str:
    """Attribute value as a string; multi-valued attributes are space-joined."""
    value = el.get(name)
    if value is None:
        return ""
    if isinstance(value, list):
        return " ".join(value)
    return value


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


def _meta_content(soup: BeautifulSoup, name: str) -> str | None:
    tag = soup.find("meta", attrs={"name": name})
    return (_attr(tag, "content") or None) if tag else None


def _favicon(soup: BeautifulSoup) -> str:
    # Exact rel match: rel="icon" first, then rel="shortcut icon"
    for rel in ("icon", "shortcut icon"):
        for link in soup.find_all("link", href=True):
            if _attr(link, "rel") == rel and _attr(link, "href"):
                return _attr(link, "href")
    return DEFAULT_FAVICON


def _prefixed_meta(soup: BeautifulSoup, attr: str, prefix: str) -> dict[str, str]:
    values = {}
    for meta in soup.find_all("meta"):
        key = _attr(meta, attr)
        if key.startswith(prefix):
            values[key[len(prefix):]] = _attr(meta, "content")
    return values


def _json_ld(soup: BeautifulSoup) -> list:
    blocks = []
    for script in soup.find_all("script", type="application/ld+json"):
        try:
            text = script.string or script.get_text()
            blocks.append(json.loads(text))
        except (json.JSONDecodeError, TypeError):
            pass
    return blocks


def _microdata_value(prop: Tag) -> str:
    return (
        _attr(prop, "content")
        or _attr(prop, "href")
        or _attr(prop, "src")
        or prop.get_text().strip()
    )


def _microdata(soup: BeautifulSoup) -> list[dict]:
    items = []
    for el in soup.find_all(attrs={"itemtype": True}):
        properties = {}
        for prop in el.find_all(attrs={"itemprop": True}):
            # A repeated itemprop name keeps its last value
            properties[_attr(prop, "itemprop")] = _microdata_value(prop)
        items.append({"itemtype": _attr(el, "itemtype"), "properties": properties})
    return items


_META_ATTRS = (
    ("name", "name"),
    ("property", "property"),
    ("content", "content"),
    ("http-equiv", "httpEquiv"),
    ("charset", "charset"),
)


def _all_meta(soup: BeautifulSoup) -> list[dict[str, str]]:
    tags = []
    for meta in soup.find_all("meta"):
        attrs = {key: _attr(meta, attr) for attr, key in _META_ATTRS if _attr(meta, attr)}
        if attrs:
            tags.append(attrs)
    return tags


def extract_metadata(
    soup: BeautifulSoup, page_url: str, response_headers: dict | None = None
) -> dict:
    """Document-level metadata. Absent maps and lists are None, not empty."""
    canonical = soup.find("link", attrs={"rel": "canonical"})
    title_tag = soup.find("title")
    html_tag = soup.find("html")

    open_graph = _prefixed_meta(soup, "property", "og:")
    twitter = _prefixed_meta(soup, "name", "twitter:")
    json_ld = _json_ld(soup)
    microdata = _microdata(soup)

    return {
        "canonical_url": (_attr(canonical, "href") if canonical else "") or page_url,
        "title": (title_tag.get_text().strip() if title_tag else "") or None,
        "description": _meta_content(soup, "description"),
        "author": _meta_content(soup, "author"),
        "keywords": _meta_content(soup, "keywords"),
        "language_code": (_attr(html_tag, "lang") if html_tag else "") or None,
        "robots": _meta_content(soup, "robots"),
        "favicon": _favicon(soup),
        "open_graph": open_graph or None,
        "twitter": twitter or None,
        "json_ld": json_ld or None,
        "microdata": microdata or None,
        "all_meta": _all_meta(soup),
        "headers": dict(response_headers or {}),
    }


# ---------------------------------------------------------------------------
# Links and images
# ---------------------------------------------------------------------------


def extract_links(soup: BeautifulSoup, base_url: str) -> list[dict]:
    """Every ``a[href]`` except empty, javascript: and fragment-only targets."""
    links = []
    for a_tag in soup.find_all("a", href=True):
        href = _attr(a_tag, "href")
        if not href or href.startswith(("javascript:", "#")):
            continue
        links.append({
            "href": resolve_url(href, base_url),
            "text": a_tag.get_text().strip()[:LINK_TEXT_LIMIT],
            "title": _attr(a_tag, "title"),
            "rel": _attr(a_tag, "rel"),
            "is_external": is_external_link(href, base_url),
        })
    return links


def _parse_srcset(srcset: str, base_url: str) -> list[dict]:
    """Parse srcset attribute into list of {src, descriptor} dicts."""
    entries = []
    for part in srcset.split(","):
        tokens = part.strip().split()
        if tokens:
            entries.append({
                "src": resolve_url(tokens[0], base_url),
                "descriptor": tokens[1] if len(tokens) > 1 else "",
            })
    return entries


def extract_images(soup: BeautifulSoup, base_url: str) -> list[dict]:
    """``img`` sources (with lazy-load fallbacks) followed by every srcset candidate.

    De-duplicated by resolved URL; the first occurrence keeps its attributes.
    """
    images = []
    for img in soup.find_all("img"):
        src = _attr(img, "src") or _attr(img, "data-src") or _attr(img, "data-lazy")
        if not src:
            continue
        images.append({
            "src": resolve_url(src, base_url),
            "alt": _attr(img, "alt"),
            "title": _attr(img, "title"),
            "width": _attr(img, "width"),
            "height": _attr(img, "height"),
        })

    for el in soup.find_all(attrs={"srcset": True}):
        for entry in _parse_srcset(_attr(el, "srcset"), base_url):
            images.append({"src": entry["src"], "alt": "", "title": "", "descriptor": entry["descriptor"]})

    unique = {}
    for image in images:
        unique.setdefault(image["src"], image)
    return list(unique.values())


# ---------------------------------------------------------------------------
# Headings, text, prices
# ---------------------------------------------------------------------------


def extract_headings(soup: BeautifulSoup) -> dict[str, list[str]]:
    headings = {f"h{level}": [] for level in range(1, 7)}
    for tag_name, texts in headings.items():
        for tag in soup.find_all(tag_name):
            text = tag.get_text().strip()
            if text:
                texts.append(text)
    return headings


def extract_text(soup: BeautifulSoup) -> dict:
    body_text = ""
    if soup.body is not None:
        body = copy.copy(soup.body)
        for tag in body.find_all(NON_TEXT_TAGS):
            tag.decompose()
        body_text = re.sub(r"\s+", " ", body.get_text()).strip()

    paragraphs = []
    for p in soup.find_all("p"):
        text = p.get_text().strip()
        if len(text) > PARAGRAPH_MIN_LENGTH:
            paragraphs.append(text)

    list_items = []
    for li in soup.find_all("li"):
        text = li.get_text().strip()
        if LIST_ITEM_MIN_LENGTH < len(text) < LIST_ITEM_MAX_LENGTH:
            list_items.append(text)

    return {
        "body_text_length": len(body_text),
        "body_text_preview": body_text[:TEXT_PREVIEW_LIMIT],
        "paragraphs": paragraphs[:TEXT_ITEM_LIMIT],
        "list_items": list_items[:TEXT_ITEM_LIMIT],
    }


def extract_prices(soup: BeautifulSoup) -> list[dict]:
    """Currency-marked amounts inside price-like elements, unique by literal."""
    prices = []
    seen = set()
    for selector in PRICE_SELECTORS:
        for el in soup.select(selector):
            text = el.get_text().strip()
            data_price = _attr(el, "data-price") or _attr(el, "content") or None
            for match in PRICE_PATTERN.finditer(text):
                literal = match.group(0).strip()
                if not 1 < len(literal) < 30 or literal in seen:
                    continue
                seen.add(literal)
                prices.append({
                    "text": literal,
                    "data_price": data_price,
                    "element": el.name or "",
                    "class_": _attr(el, "class"),
                })
    return prices
