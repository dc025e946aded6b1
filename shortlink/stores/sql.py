import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .base import MappingStore
from .exceptions import AliasAlreadyExistsError, StoreError
from .. import crud
from ..database import Base, create_engine, create_sessionmaker
from ..models import URLMapping
from ..schemas import URLRecord

logger = logging.getLogger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops the offset; values are always written in UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_record(mapping: URLMapping) -> URLRecord:
    return URLRecord(
        id=str(mapping.id),
        original_url=mapping.original_url,
        short_url=mapping.short_url,
        creation_date=_as_utc(mapping.creation_date),
        expiration_date=_as_utc(mapping.expiration_date),
        user_id=mapping.user_id,
        click_count=mapping.click_count,
    )


class SQLMappingStore(MappingStore):
    """Mapping store on an async SQLAlchemy engine.

    Alias uniqueness is enforced by the unique index on ``short_url``.
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.engine = create_engine(database_url, echo=echo)
        self.session_factory = create_sessionmaker(self.engine)

    async def connect(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()

    async def find_by_alias(self, alias: str) -> Optional[URLRecord]:
        try:
            async with self.session_factory() as db:
                mapping = await crud.get_mapping_by_short_url(db, alias)
        except SQLAlchemyError as e:
            raise StoreError(f"Lookup of '{alias}' failed: {e}") from e
        return _to_record(mapping) if mapping else None

    async def insert(self, record: URLRecord) -> URLRecord:
        mapping = URLMapping(
            original_url=record.original_url,
            short_url=record.short_url,
            creation_date=record.creation_date,
            expiration_date=record.expiration_date,
            user_id=record.user_id,
            click_count=record.click_count,
        )
        async with self.session_factory() as db:
            try:
                created = await crud.create_mapping(db, mapping)
            except IntegrityError as e:
                await db.rollback()
                raise AliasAlreadyExistsError(f"Alias '{record.short_url}' already exists") from e
            except SQLAlchemyError as e:
                await db.rollback()
                raise StoreError(f"Insert of '{record.short_url}' failed: {e}") from e
            return _to_record(created)

    async def increment_click_count(self, alias: str) -> None:
        try:
            async with self.session_factory() as db:
                updated = await crud.increment_click_count(db, alias)
        except SQLAlchemyError as e:
            raise StoreError(f"Click count increment of '{alias}' failed: {e}") from e
        if not updated:
            logger.debug("No mapping updated for alias %s", alias)
