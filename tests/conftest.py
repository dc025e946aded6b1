import pytest
from typing import AsyncGenerator
from httpx import AsyncClient, ASGITransport

from shortlink.app import create_app
from shortlink.config import Settings
from shortlink.exceptions import StoreError
from shortlink.services.rate_limiter import AdmissionController
from shortlink.services.shortener import ShortenerService
from shortlink.stores.memory import InMemoryMappingStore

BASE_URL = "http://sho.rt"
FAKE_PNG = b"\x89PNG\r\n\x1a\nfake-qr"


class FakeEncoder:
    def __init__(self):
        self.encoded = []

    def encode(self, data: str) -> bytes:
        self.encoded.append(data)
        return FAKE_PNG


class FailingEncoder:
    def encode(self, data: str) -> bytes:
        raise ValueError("data too long")


class FlakyStore(InMemoryMappingStore):
    """In-memory store whose operations can be switched to fail."""

    def __init__(self):
        super().__init__()
        self.fail_find = False
        self.fail_insert = False
        self.fail_increment = False

    async def find_by_alias(self, alias):
        if self.fail_find:
            raise StoreError("lookup timed out")
        return await super().find_by_alias(alias)

    async def insert(self, record):
        if self.fail_insert:
            raise StoreError("write rejected")
        return await super().insert(record)

    async def increment_click_count(self, alias):
        if self.fail_increment:
            raise StoreError("update timed out")
        return await super().increment_click_count(alias)


@pytest.fixture
def settings() -> Settings:
    return Settings(BASE_URL=BASE_URL, STORE_BACKEND="memory")


@pytest.fixture
def store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def encoder() -> FakeEncoder:
    return FakeEncoder()


@pytest.fixture
def shortener(store, encoder) -> ShortenerService:
    return ShortenerService(store, encoder, BASE_URL)


@pytest.fixture
def admission() -> AdmissionController:
    # Generous enough that API tests never hit the limit.
    return AdmissionController(capacity=1000, refill_rate=1000)


@pytest.fixture
def app(settings, store, encoder, admission):
    return create_app(settings, store=store, encoder=encoder, admission=admission)


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
