"""Pytest fixtures for testing."""
import asyncio
from collections.abc import AsyncGenerator, AsyncIterator, Callable, Generator
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import pytest
import respx

from core.config import Settings
from schemas.bookmark import Bookmark, ChangeEvent
from schemas.session import Session, UserProfile
from services.exceptions import SubscriptionError

STORE_URL = "https://project.store.test"
API_KEY = "public-anon-key"
OWNER_ID = "owner-1"
OTHER_OWNER_ID = "owner-2"

BASE_TIME = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


def make_bookmark(
    bookmark_id: str,
    minutes: int = 0,
    owner_id: str = OWNER_ID,
    title: str | None = None,
    url: str | None = None,
) -> Bookmark:
    """Build a bookmark created `minutes` after BASE_TIME."""
    return Bookmark(
        id=bookmark_id,
        owner_id=owner_id,
        title=title or f"Bookmark {bookmark_id}",
        url=url or f"https://{bookmark_id}.example.com",
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


def bookmark_row(bookmark: Bookmark) -> dict[str, Any]:
    """Serialize a bookmark the way the store returns it."""
    return bookmark.model_dump(mode="json")


def make_session(owner_id: str = OWNER_ID, token: str = "access-token") -> Session:
    return Session(
        access_token=token,
        refresh_token="refresh-token",
        user=UserProfile(id=owner_id, email=f"{owner_id}@example.com"),
    )


class FakeChannel:
    """In-memory change channel; tests push events or drop the connection."""

    def __init__(self, owner_id: str, fail_connect: bool = False) -> None:
        self.owner_id = owner_id
        self.fail_connect = fail_connect
        self.connected = False
        self.closed = False
        self._queue: asyncio.Queue[ChangeEvent | Exception | None] = asyncio.Queue()

    async def connect(self) -> None:
        if self.fail_connect:
            raise SubscriptionError("connect refused")
        self.connected = True

    async def events(self) -> AsyncIterator[ChangeEvent]:
        while True:
            item = await self._queue.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def close(self) -> None:
        self.closed = True

    def push(self, event: ChangeEvent) -> None:
        self._queue.put_nowait(event)

    def drop(self, error: Exception | None = None) -> None:
        self._queue.put_nowait(error)


class FakeChannelFactory:
    """Channel factory recording every channel it opens."""

    def __init__(self, fail_first: int = 0) -> None:
        self.channels: list[FakeChannel] = []
        self._fail_first = fail_first

    def __call__(self, owner_id: str) -> FakeChannel:
        channel = FakeChannel(owner_id, fail_connect=len(self.channels) < self._fail_first)
        self.channels.append(channel)
        return channel

    @property
    def latest(self) -> FakeChannel:
        return self.channels[-1]


class RecordingNavigator:
    """Navigator that records visited paths."""

    def __init__(self) -> None:
        self.paths: list[str] = []

    def navigate(self, path: str) -> None:
        self.paths.append(path)


async def wait_for(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the event loop until `predicate()` holds."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0)


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment and any local .env file."""
    return Settings(
        _env_file=None,
        store_url=STORE_URL,
        store_api_key=API_KEY,
        feed_retry_initial_seconds=0.0,
        feed_retry_max_seconds=0.0,
    )


@pytest.fixture
def session() -> Session:
    return make_session()


@pytest.fixture
def mock_api() -> Generator[respx.MockRouter]:
    """Context manager for mocking store API responses."""
    with respx.mock(base_url=STORE_URL, assert_all_called=False) as respx_mock:
        yield respx_mock


@pytest.fixture
async def http_client(settings: Settings) -> AsyncGenerator[httpx.AsyncClient]:
    """HTTP client pointed at the mocked store."""
    async with httpx.AsyncClient(base_url=settings.store_base_url) as client:
        yield client


@pytest.fixture
def channel_factory() -> FakeChannelFactory:
    return FakeChannelFactory()


@pytest.fixture
def navigator() -> RecordingNavigator:
    return RecordingNavigator()
