import uuid
from datetime import datetime
from typing import Optional
from sqlalchemy import String, DateTime, BigInteger, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from .database import Base


class URLMapping(Base):
    __tablename__ = "url_mapping"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    original_url: Mapped[str] = mapped_column(String, nullable=False)
    short_url: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    creation_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expiration_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    user_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    click_count: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
