"""Response error extraction for load test observability.

Parses StationFlow API error responses into human-readable messages.
Handles three response shapes:

- Pydantic validation (422): {"detail": [{"loc": [...], "msg": "...", "type": "..."}]}
- Domain validation and lookups (400/404): {"error": {"field": ["msg"]}}
- Invalid transitions (409): {"error": "Cannot move kitchen task from Ready to InProgress"}
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from requests import Response


def extract_error_detail(response: Response) -> str:
    """Extract a compact error message from an API error response."""
    try:
        body = response.json()
    except ValueError:
        text = getattr(response, "text", "") or ""
        return text[:300] or "(empty response body)"

    if isinstance(body, dict) and isinstance(body.get("detail"), list):
        parts = []
        for err in body["detail"]:
            loc = ".".join(str(p) for p in err.get("loc", []))
            msg = err.get("msg", str(err))
            parts.append(f"{loc}: {msg}" if loc else msg)
        return " | ".join(parts)

    if isinstance(body, dict) and "error" in body:
        error = body["error"]
        if isinstance(error, dict):
            return " | ".join(
                f"{field}: {'; '.join(map(str, messages)) if isinstance(messages, list) else messages}"
                for field, messages in error.items()
            )
        return str(error)

    return str(body)[:300]
