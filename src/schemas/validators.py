"""
Validation functions for user-entered bookmark input.

The URL classifier runs entirely client-side: a rejected input never reaches the store.
Rejection reasons are checked in a fixed order so that a dangerous scheme is caught
before `https://` gets prepended and masks it.
"""
import re
from dataclasses import dataclass

from pydantic import HttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from services.exceptions import BookmarkValidationError, ValidationReason

DISALLOWED_SCHEMES = ("javascript:", "data:", "vbscript:", "file:", "ftp:")
ALLOWED_SCHEMES = frozenset({"http", "https"})
DEFAULT_SCHEME_PREFIX = "https://"
DEFAULT_MAX_TITLE_LENGTH = 500

# http:// or https:// at the start of the input, any case
SCHEME_PREFIX_PATTERN = re.compile(r"^https?://", re.IGNORECASE)

# Domain shape: alphanumeric/hyphen labels joined by dots, at least one dot
# (e.g., 'example.com', 'docs.python.org', 'my-site.co.uk')
DOMAIN_PATTERN = re.compile(r"^[a-z0-9-]+(\.[a-z0-9-]+)+$", re.IGNORECASE)

# Optional trailing port on the host part (e.g., 'example.com:8080')
PORT_SUFFIX_PATTERN = re.compile(r":\d+$")

_http_url_adapter = TypeAdapter(HttpUrl)


@dataclass(frozen=True)
class Accepted:
    """Input accepted; `url` is the normalized address to store."""

    url: str


@dataclass(frozen=True)
class Rejected:
    """Input rejected with a specific reason."""

    reason: ValidationReason


def _host_part(value: str) -> str:
    """Return the host portion of a scheme-less address, without any port."""
    host = re.split(r"[/?#]", value, maxsplit=1)[0]
    return PORT_SUFFIX_PATTERN.sub("", host)


def classify_url(raw: str) -> Accepted | Rejected:
    """
    Classify a raw user-entered string as a safe web address.

    Args:
        raw: The string typed into the URL field.

    Returns:
        Accepted with the normalized URL, or Rejected with the first failing reason.
    """
    trimmed = raw.strip()
    if not trimmed:
        return Rejected(ValidationReason.EMPTY_INPUT)

    lowered = trimmed.lower()
    if lowered.startswith(DISALLOWED_SCHEMES):
        return Rejected(ValidationReason.DISALLOWED_SCHEME)

    stripped = SCHEME_PREFIX_PATTERN.sub("", trimmed)
    scheme_match = SCHEME_PREFIX_PATTERN.match(trimmed)
    # Scheme is stored lower-case; the rest of the address is kept as typed
    prefix = scheme_match.group(0).lower() if scheme_match else DEFAULT_SCHEME_PREFIX
    candidate = f"{prefix}{stripped}"

    if not DOMAIN_PATTERN.match(_host_part(stripped)):
        return Rejected(ValidationReason.INVALID_DOMAIN)

    try:
        parsed = _http_url_adapter.validate_python(candidate)
    except PydanticValidationError:
        return Rejected(ValidationReason.INVALID_URL)
    if parsed.scheme not in ALLOWED_SCHEMES:
        return Rejected(ValidationReason.INVALID_URL)

    return Accepted(candidate)


def resolve_title(
    title: str | None,
    url: str,
    max_length: int = DEFAULT_MAX_TITLE_LENGTH,
) -> str:
    """
    Resolve the title to store for a bookmark.

    A title that trims to empty falls back to the accepted URL.

    Raises:
        BookmarkValidationError: If the trimmed title exceeds `max_length`.
    """
    trimmed = (title or "").strip()
    if not trimmed:
        return url
    if len(trimmed) > max_length:
        raise BookmarkValidationError(
            ValidationReason.TITLE_TOO_LONG,
            f"Title exceeds maximum length of {max_length:,} characters "
            f"(got {len(trimmed):,} characters).",
        )
    return trimmed


def validate_submission(
    raw_url: str,
    raw_title: str | None = None,
    max_title_length: int = DEFAULT_MAX_TITLE_LENGTH,
) -> tuple[str, str]:
    """
    Validate a bookmark form submission.

    Returns:
        Tuple of (url, title) ready for insertion.

    Raises:
        BookmarkValidationError: If the URL is rejected or the title is too long.
    """
    result = classify_url(raw_url)
    if isinstance(result, Rejected):
        raise BookmarkValidationError(result.reason)
    return result.url, resolve_title(raw_title, result.url, max_title_length)
