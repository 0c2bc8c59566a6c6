from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Union


# PUBLIC_INTERFACE
def pagination_envelope(
    items: Union[Sequence[Any], Iterable[Any]],
    total: int,
    page: int,
    limit: int,
) -> Dict[str, Any]:
    """
    Build the standard envelope for the task list endpoint.

    Args:
        items: The list/iterable of tasks for the current page.
        total: Total number of tasks that match the query (ignoring pagination).
        page: The 1-based page that was requested.
        limit: The page size used.

    Returns:
        Dict with keys: tasks, pagination{page, limit, total, totalPages}.
    """
    materialized: List[Any] = list(items) if not isinstance(items, list) else items
    limit = max(int(limit), 1)
    return {
        "tasks": materialized,
        "pagination": {
            "page": int(page),
            "limit": limit,
            "total": int(total),
            "totalPages": math.ceil(int(total) / limit),
        },
    }


_LOCATION_PREFIXES = {"body", "query", "path", "cookie", "header"}


# PUBLIC_INTERFACE
def field_errors(errors: Iterable[Mapping[str, Any]]) -> Dict[str, List[str]]:
    """
    Flatten pydantic/FastAPI error entries into ``{field: [messages]}``.

    Only the location and message are kept; input values and exception
    objects never make it into the client-facing payload.
    """
    out: Dict[str, List[str]] = {}
    for err in errors:
        loc = [str(p) for p in err.get("loc", ())]
        if loc and loc[0] in _LOCATION_PREFIXES:
            loc = loc[1:]
        key = ".".join(loc) or "_"
        out.setdefault(key, []).append(str(err.get("msg", "Invalid value")))
    return out
