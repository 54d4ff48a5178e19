"""
Shared HTTP error parsing for the store and identity clients.

The parsing extracts semantic meaning from HTTP errors; each client maps the parsed
category onto its own exception types.
"""

from dataclasses import dataclass
from typing import Any, Literal

import httpx

ErrorCategory = Literal[
    "auth",        # 401 - Invalid or expired token
    "forbidden",   # 403 - Row-level policy denied the request
    "not_found",   # 404 - Resource not found
    "validation",  # 400/422 - Malformed request or check constraint
    "conflict",    # 409 - Unique/foreign key constraint violation
    "internal",    # 5xx or unexpected errors
]


@dataclass
class ParsedApiError:
    """Parsed API error with semantic category and message."""

    category: ErrorCategory
    message: str
    code: str | None = None


def parse_http_error(  # noqa: PLR0911
    e: httpx.HTTPStatusError,
    entity_type: str = "",
    entity_id: str = "",
) -> ParsedApiError:
    """
    Parse HTTP error into semantic categories.

    Args:
        e: The HTTP status error from httpx
        entity_type: Type of entity (e.g., "bookmark") for error messages
        entity_id: ID of entity for error messages

    Returns:
        ParsedApiError with category, message, and the server's error code if any
    """
    status = e.response.status_code
    body = _safe_get_body(e)
    code = body.get("code") if isinstance(body.get("code"), str) else None

    if status == 401:
        return ParsedApiError("auth", "Invalid or expired token", code)

    if status == 403:
        return ParsedApiError("forbidden", "Access denied", code)

    if status == 404:
        if entity_id:
            msg = f"{entity_type.title()} '{entity_id}' not found" if entity_type else f"'{entity_id}' not found"  # noqa: E501
        else:
            msg = f"{entity_type.title()} not found" if entity_type else "Not found"
        return ParsedApiError("not_found", msg, code)

    if status == 409:
        return ParsedApiError("conflict", _extract_message(body, "Conflicting row already exists"), code)  # noqa: E501

    if status in (400, 422):
        return ParsedApiError("validation", _extract_message(body, "Validation error"), code)

    # Generic error for other status codes
    return ParsedApiError("internal", f"API error {status}", code)


def _safe_get_body(e: httpx.HTTPStatusError) -> dict[str, Any]:
    """Safely extract the JSON error body from the response."""
    try:
        body = e.response.json()
    except ValueError:
        return {}
    # Non-dict JSON body (list, string, etc.) - treat as empty
    return body if isinstance(body, dict) else {}


def _extract_message(body: dict[str, Any], default: str) -> str:
    """
    Extract a human-readable message from an error body.

    The store returns `{"message", "details", "hint", "code"}`; the identity provider
    returns `{"msg"}` or `{"error_description"}`.
    """
    for key in ("message", "msg", "error_description", "detail"):
        value = body.get(key)
        if isinstance(value, str) and value:
            details = body.get("details")
            if key == "message" and isinstance(details, str) and details:
                return f"{value}: {details}"
            return value
    return default
