"""HTTP client helpers for the remote store's REST and auth endpoints."""

from typing import Any

import httpx

from core.config import Settings

CLIENT_INFO = "bookmark-sync/0.1"


def create_http_client(settings: Settings) -> httpx.AsyncClient:
    """
    Create the HTTP client shared by the store, identity, and feed clients.

    Constructed once per process and passed to each component; the caller owns its
    lifetime and closes it with `aclose()`.
    """
    return httpx.AsyncClient(
        base_url=settings.store_base_url,
        timeout=settings.store_request_timeout,
        headers={"apikey": settings.store_api_key, "X-Client-Info": CLIENT_INFO},
    )


def get_headers(
    api_key: str,
    token: str | None = None,
    prefer: str | None = None,
) -> dict[str, str]:
    """
    Get common headers for store requests.

    The public API key identifies the project; the bearer token identifies the owner so
    that row-level policies apply. Without a session token the API key is sent as the
    bearer, which the store treats as anonymous.
    """
    headers = {
        "apikey": api_key,
        "Authorization": f"Bearer {token or api_key}",
        "X-Client-Info": CLIENT_INFO,
    }
    if prefer:
        headers["Prefer"] = prefer
    return headers


async def api_get(
    client: httpx.AsyncClient,
    path: str,
    headers: dict[str, str],
    params: dict[str, Any] | None = None,
) -> Any:
    """Make an authenticated GET request and return the decoded JSON body."""
    response = await client.get(path, params=params, headers=headers)
    response.raise_for_status()
    return response.json()


async def api_post(
    client: httpx.AsyncClient,
    path: str,
    headers: dict[str, str],
    json: Any = None,
    params: dict[str, Any] | None = None,
) -> Any:
    """Make an authenticated POST request and return the decoded JSON body, if any."""
    response = await client.post(path, json=json, params=params, headers=headers)
    response.raise_for_status()
    return _json_or_none(response)


async def api_delete(
    client: httpx.AsyncClient,
    path: str,
    headers: dict[str, str],
    params: dict[str, Any] | None = None,
) -> Any:
    """Make an authenticated DELETE request and return the decoded JSON body, if any."""
    response = await client.delete(path, params=params, headers=headers)
    response.raise_for_status()
    return _json_or_none(response)


def _json_or_none(response: httpx.Response) -> Any:
    """Decode a JSON body; 204 and empty bodies decode to None."""
    if response.status_code == 204 or not response.content:
        return None
    return response.json()
