"""Browser response log.

Every response the page receives is recorded as it arrives. The log feeds
two things: the network summary in the scrape result, and the status code
and headers of the final document, which can differ from the initial
navigation response after a challenge redirect.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class NetworkResponse:
    """A captured network response."""
    url: str
    status: int
    resource_type: str = ""
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class NetworkLog:
    """Ordered responses for one browser session."""
    responses: list[NetworkResponse] = field(default_factory=list)

    def record(
        self,
        url: str,
        status: int,
        resource_type: str = "",
        headers: dict[str, str] | None = None,
    ) -> None:
        self.responses.append(NetworkResponse(
            url=url,
            status=status,
            resource_type=resource_type,
            headers=dict(headers or {}),
        ))

    @property
    def last_document(self) -> NetworkResponse | None:
        """Most recent top-level document response, if any."""
        for resp in reversed(self.responses):
            if resp.resource_type == "document":
                return resp
        return None

    def summary(self) -> dict[str, Any]:
        counts = Counter(r.resource_type or "other" for r in self.responses)
        return {"total_requests": len(self.responses), "by_type": dict(counts)}


class NetworkLogRecorder:
    """Attaches to a Playwright page and fills a ``NetworkLog``.

    Usage:
        recorder = NetworkLogRecorder()
        recorder.attach(page)
        # ... page navigation ...
        log = recorder.log
    """

    def __init__(self, log: NetworkLog | None = None):
        self.log = log if log is not None else NetworkLog()

    def attach(self, page) -> None:
        page.on("response", self._on_response)

    def _on_response(self, response) -> None:
        """Handle response event (sync, headers only)."""
        try:
            self.log.record(
                url=response.url,
                status=response.status,
                resource_type=response.request.resource_type if response.request else "",
                headers=response.headers,
            )
        except Exception as e:
            logger.debug(f"Dropped response event: {e}")
