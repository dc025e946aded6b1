import base64
import json
from pydantic import BaseModel, Field, field_validator
from typing import Any, Optional
from datetime import datetime


class URLRecord(BaseModel):
    id: Optional[str] = None  # assigned by the store on insert
    original_url: str
    short_url: str
    creation_date: datetime
    expiration_date: Optional[datetime] = None
    user_id: Optional[int] = None
    click_count: int = Field(0, ge=0)


class ShortenRequest(BaseModel):
    original_url: str = ""
    custom_slug: str = ""

    @field_validator("original_url", "custom_slug", mode="before")
    @classmethod
    def blank_if_not_string(cls, v: Any) -> str:
        # Wrong-typed fields decode as empty, the same as missing ones.
        return v if isinstance(v, str) else ""

    @classmethod
    def from_body(cls, body: bytes) -> "ShortenRequest":
        try:
            payload = json.loads(body) if body else {}
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}
        return cls.model_validate(payload)


class ShortenResponse(BaseModel):
    short_url: str
    qr_code: str  # base64 PNG
    click_count: int
    creation_date: datetime

    @classmethod
    def build(cls, short_url: str, qr_code: bytes, click_count: int, creation_date: datetime) -> "ShortenResponse":
        return cls(
            short_url=short_url,
            qr_code=base64.b64encode(qr_code).decode("ascii"),
            click_count=click_count,
            creation_date=creation_date,
        )


class LinkMetadata(BaseModel):
    short_url: str
    original_url: str
    click_count: int
    creation_date: datetime
    expiration_date: Optional[datetime]
