from .base import MappingStore
from .memory import InMemoryMappingStore
from .redis import RedisMappingStore
from .sql import SQLMappingStore
from ..config import Settings


def build_store(settings: Settings) -> MappingStore:
    backend = settings.STORE_BACKEND.lower()
    if backend == "memory":
        return InMemoryMappingStore()
    if backend == "sql":
        return SQLMappingStore(settings.DATABASE_URL, echo=settings.ENVIRONMENT == "development")
    if backend == "redis":
        return RedisMappingStore(settings.REDIS_URL)
    raise ValueError(f"Unknown STORE_BACKEND: {settings.STORE_BACKEND!r}")
