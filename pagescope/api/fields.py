from typing import Any

from fastapi import Query


def parse_fields(
    fields: str | None = Query(
        None,
        description="Comma-separated top-level result keys to keep, e.g. `url,metadata,links`.",
    ),
) -> list[str]:
    if not fields:
        return []
    return [f.strip() for f in fields.split(",") if f.strip()]


def pick_fields(data: dict[str, Any], fields: list[str] | None) -> dict[str, Any]:
    """Keep only the named top-level keys; the whole dict when ``fields`` is empty.

    Unknown names are ignored.
    """
    if not fields:
        return data
    return {key: data[key] for key in fields if key in data}
