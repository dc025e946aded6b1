import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable
from urllib.parse import quote

from pydantic import AnyUrl, TypeAdapter, ValidationError
from starlette.concurrency import run_in_threadpool

from ..exceptions import (
    AliasConflictError,
    EncodingError,
    InvalidAliasError,
    InvalidURLError,
    LinkNotFoundError,
    StoreError,
)
from ..observability import CLICK_INCREMENT_FAILURES_TOTAL, LINKS_CREATED_TOTAL
from ..schemas import URLRecord
from ..stores.base import MappingStore
from ..stores.exceptions import AliasAlreadyExistsError
from ..utils import generate_alias
from .qr_encoder import Encoder

logger = logging.getLogger(__name__)

# Characters allowed unescaped in a path segment besides the unreserved set.
PATH_SEGMENT_SAFE = "!$&'()*+,;=:@~"

GENERATED_ALIAS_CONFLICT = "Generated alias collided with an existing link, please try again."

_absolute_url = TypeAdapter(AnyUrl)


def validate_url(url: str) -> None:
    """Raise InvalidURLError unless ``url`` is an absolute, well-formed URI."""
    if not url or url != url.strip():
        raise InvalidURLError()
    try:
        _absolute_url.validate_python(url)
    except ValidationError:
        raise InvalidURLError()


def check_custom_slug(slug: str) -> None:
    """Raise InvalidAliasError unless ``slug`` can travel as one path segment."""
    if "/" in slug or slug in (".", ".."):
        raise InvalidAliasError()
    if any(ch.isspace() or not ch.isprintable() for ch in slug):
        raise InvalidAliasError()


@dataclass
class ShortenResult:
    short_url: str
    qr_code: bytes
    click_count: int
    creation_date: datetime


class ShortenerService:
    def __init__(self, store: MappingStore, encoder: Encoder, base_url: str,
                 reserved_aliases: Iterable[str] = ()):
        self.store = store
        self.encoder = encoder
        self.base_url = base_url.rstrip("/")
        # Fixed routes that would shadow GET /{alias}.
        self.reserved_aliases = frozenset(reserved_aliases)

    def build_short_url(self, alias: str) -> str:
        return f"{self.base_url}/{quote(alias, safe=PATH_SEGMENT_SAFE)}"

    async def _alias_available(self, alias: str) -> bool:
        try:
            existing = await self.store.find_by_alias(alias)
        except StoreError:
            # Lookup failures do not block creation; the insert is the final word.
            logger.warning("Lookup failed while checking custom slug, treating as available",
                           exc_info=True, extra={"alias": alias})
            return True
        return existing is None

    async def _encode(self, short_url: str) -> bytes:
        try:
            return await run_in_threadpool(self.encoder.encode, short_url)
        except Exception as e:
            logger.error(f"QR code generation failed for {short_url}: {e}")
            raise EncodingError(f"Could not generate QR code: {e}") from e

    async def shorten(self, original_url: str, custom_slug: str = "") -> ShortenResult:
        validate_url(original_url)

        if custom_slug:
            check_custom_slug(custom_slug)
            if custom_slug in self.reserved_aliases:
                raise AliasConflictError(f"'{custom_slug}' is reserved, please choose another one.")
            if not await self._alias_available(custom_slug):
                raise AliasConflictError()

        alias = custom_slug or generate_alias()
        if alias in self.reserved_aliases:
            raise AliasConflictError(GENERATED_ALIAS_CONFLICT)
        short_url = self.build_short_url(alias)

        qr_code = await self._encode(short_url)

        record = URLRecord(
            original_url=original_url,
            short_url=alias,
            creation_date=datetime.now(timezone.utc),
            click_count=0,
        )

        try:
            stored = await self.store.insert(record)
        except AliasAlreadyExistsError:
            logger.info("Alias taken at insert time", extra={"alias": alias})
            raise AliasConflictError(None if custom_slug else GENERATED_ALIAS_CONFLICT)
        except StoreError as e:
            logger.error(f"Failed to store short URL: {e}", extra={"alias": alias})
            raise

        LINKS_CREATED_TOTAL.inc()
        logger.info(f"Shortened {original_url[:50]} to {alias}", extra={"alias": alias})

        return ShortenResult(
            short_url=short_url,
            qr_code=qr_code,
            click_count=stored.click_count,
            creation_date=stored.creation_date,
        )

    async def get_link(self, alias: str) -> URLRecord:
        record = await self.store.find_by_alias(alias)
        if record is None:
            raise LinkNotFoundError()
        return record

    async def resolve(self, alias: str) -> str:
        """Return the original URL for ``alias`` and count the click."""
        try:
            record = await self.store.find_by_alias(alias)
        except StoreError:
            logger.error("Lookup failed during redirect", exc_info=True, extra={"alias": alias})
            raise LinkNotFoundError()
        if record is None:
            raise LinkNotFoundError()

        try:
            await self.store.increment_click_count(alias)
        except StoreError as e:
            CLICK_INCREMENT_FAILURES_TOTAL.inc()
            logger.warning(f"Failed to increment click count: {e}", extra={"alias": alias})

        return record.original_url
