"""Server-sent-event change channel over httpx."""
import json
import logging
from collections.abc import AsyncIterator

import httpx
from pydantic import ValidationError

from schemas.bookmark import ChangeEvent
from services.api_client import get_headers
from services.exceptions import SubscriptionError

logger = logging.getLogger(__name__)

BOOKMARKS_TABLE = "bookmarks"


class SseChangeChannel:
    """
    Change channel reading `text/event-stream` from the store's feed endpoint.

    The stream is filtered server-side to one owner's rows. Each SSE event's `data`
    field is a JSON change payload; comment lines (`: keep-alive`) are ignored.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: str,
        owner_id: str,
        token: str | None = None,
        feed_path: str = "/realtime/v1/changes",
    ) -> None:
        self._http = http_client
        self._api_key = api_key
        self._owner_id = owner_id
        self._token = token
        self._feed_path = feed_path
        self._response: httpx.Response | None = None

    async def connect(self) -> None:
        """Open the stream. Raises SubscriptionError on non-2xx or transport failure."""
        headers = get_headers(self._api_key, self._token)
        headers["Accept"] = "text/event-stream"
        request = self._http.build_request(
            "GET",
            self._feed_path,
            params={"table": BOOKMARKS_TABLE, "filter": f"owner_id=eq.{self._owner_id}"},
            headers=headers,
            # The stream stays open indefinitely between events
            timeout=httpx.Timeout(10.0, read=None),
        )
        try:
            response = await self._http.send(request, stream=True)
        except httpx.TransportError as e:
            raise SubscriptionError(f"Change feed connect failed: {e}") from e
        if not response.is_success:
            await response.aclose()
            raise SubscriptionError(f"Change feed connect failed: HTTP {response.status_code}")
        self._response = response
        logger.debug("change_feed_connected owner_id=%s", self._owner_id)

    async def events(self) -> AsyncIterator[ChangeEvent]:
        """Yield parsed change events until the stream ends."""
        if self._response is None:
            raise SubscriptionError("Change feed is not connected")
        data_lines: list[str] = []
        try:
            async for line in self._response.aiter_lines():
                if line == "":
                    if data_lines:
                        event = self._parse("\n".join(data_lines))
                        data_lines = []
                        if event is not None:
                            yield event
                    continue
                if line.startswith(":"):
                    continue
                field, _, value = line.partition(":")
                if field == "data":
                    data_lines.append(value[1:] if value.startswith(" ") else value)
            if data_lines:
                event = self._parse("\n".join(data_lines))
                if event is not None:
                    yield event
        except httpx.TransportError as e:
            raise SubscriptionError(f"Change feed dropped: {e}") from e

    async def close(self) -> None:
        """Close the underlying response stream."""
        response, self._response = self._response, None
        if response is not None:
            await response.aclose()

    def _parse(self, data: str) -> ChangeEvent | None:
        """Parse one event payload; malformed payloads are logged and skipped."""
        try:
            payload = json.loads(data)
            # Realtime wraps the row change in a `payload` envelope
            if isinstance(payload, dict) and isinstance(payload.get("payload"), dict):
                payload = payload["payload"]
            return ChangeEvent.model_validate(payload)
        except (ValueError, ValidationError) as e:
            logger.warning("change_event_unparseable owner_id=%s error=%s", self._owner_id, e)
            return None
