"""Abstract base class for alias → URL mapping stores.

All backends (in-memory, SQL, Redis) implement the same three operations used
by the shorten and redirect flows, plus ``connect``/``close`` hooks driven by
the application lifespan.

Error contract:
    - ``find_by_alias`` returns ``None`` for an unknown alias.
    - ``insert`` raises ``AliasAlreadyExistsError`` when the alias is taken.
    - Any other backend failure is raised as ``StoreError``.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..schemas import URLRecord


class MappingStore(ABC):

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        pass

    @abstractmethod
    async def find_by_alias(self, alias: str) -> Optional[URLRecord]:
        """Return the record stored under ``alias``, or None."""

    @abstractmethod
    async def insert(self, record: URLRecord) -> URLRecord:
        """Persist ``record`` and return it with its store-assigned ``id``."""

    @abstractmethod
    async def increment_click_count(self, alias: str) -> None:
        """Atomically add one to the click count of ``alias``."""
