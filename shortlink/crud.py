from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from .models import URLMapping
from typing import Optional


async def create_mapping(db: AsyncSession, mapping: URLMapping) -> URLMapping:
    db.add(mapping)
    await db.commit()
    await db.refresh(mapping)
    return mapping


async def get_mapping_by_short_url(db: AsyncSession, short_url: str) -> Optional[URLMapping]:
    result = await db.execute(select(URLMapping).where(URLMapping.short_url == short_url))
    return result.scalar_one_or_none()


async def increment_click_count(db: AsyncSession, short_url: str) -> int:
    result = await db.execute(
        update(URLMapping)
        .where(URLMapping.short_url == short_url)
        .values(click_count=URLMapping.click_count + 1)
    )
    await db.commit()
    return result.rowcount
