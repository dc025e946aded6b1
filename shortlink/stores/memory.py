import uuid
from typing import Dict, List, Optional

from .base import MappingStore
from .exceptions import AliasAlreadyExistsError
from ..schemas import URLRecord


class InMemoryMappingStore(MappingStore):
    """Process-local store keyed by alias.

    Each method runs without suspending, so on a single event loop every
    operation is atomic.
    """

    def __init__(self):
        self._records: Dict[str, URLRecord] = {}

    @property
    def records(self) -> List[URLRecord]:
        return [record.model_copy() for record in self._records.values()]

    async def find_by_alias(self, alias: str) -> Optional[URLRecord]:
        record = self._records.get(alias)
        return record.model_copy() if record else None

    async def insert(self, record: URLRecord) -> URLRecord:
        if record.short_url in self._records:
            raise AliasAlreadyExistsError(f"Alias '{record.short_url}' already exists")
        stored = record.model_copy(update={"id": uuid.uuid4().hex})
        self._records[stored.short_url] = stored
        return stored.model_copy()

    async def increment_click_count(self, alias: str) -> None:
        record = self._records.get(alias)
        if record is not None:
            record.click_count += 1
