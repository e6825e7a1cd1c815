"""Table extraction from HTML."""

import logging

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

MAX_TABLES = 10


def _cell_text(cell: Tag) -> str:
    return cell.get_text().strip()


def extract_table(table: Tag) -> dict | None:
    """Headers are every ``th`` in document order; rows are the ``td`` cells of each ``tr``.

    Returns None for a table with neither.
    """
    headers = [_cell_text(th) for th in table.find_all("th")]
    rows = []
    for tr in table.find_all("tr"):
        cells = [_cell_text(td) for td in tr.find_all("td")]
        if cells:
            rows.append(cells)
    if not headers and not rows:
        return None
    return {"headers": headers, "rows": rows}


def extract_tables(soup: BeautifulSoup, limit: int = MAX_TABLES) -> list[dict]:
    """Extract the first ``limit`` tables that carry any headers or data.

    Layout tables are not filtered out; an empty table still counts
    towards ``limit``.
    """
    results = []
    for table in soup.find_all("table", limit=limit):
        data = extract_table(table)
        if data is not None:
            results.append(data)
    return results
