from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models import BookingStatus, Venue


class BookingCreate(BaseModel):
    start: str                      # ISO 字串；伺服器轉成 datetime
    venue: Venue
    category: Optional[str] = Field(default=None, max_length=100)
    note: Optional[str] = Field(default=None, max_length=2000)
    created_by: Optional[str] = Field(default=None, max_length=255)

    @field_validator("category", "note", "created_by")
    @classmethod
    def blank_to_none(cls, v):
        if v is None:
            return v
        v = v.strip()
        return v or None


class BookingOut(BaseModel):
    id: str
    venue: Venue
    start: datetime = Field(validation_alias="start_ts")
    end: datetime = Field(validation_alias="end_ts")
    status: BookingStatus
    category: Optional[str] = None
    note: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    rejection_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class BookingPublic(BaseModel):
    """公開清單只給行事曆需要的欄位，不帶申請人與審核資料"""
    id: str
    venue: Venue
    start: datetime = Field(validation_alias="start_ts")
    end: datetime = Field(validation_alias="end_ts")
    status: BookingStatus
    category: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class BookingCreated(BaseModel):
    id: str
    start: datetime
    end: datetime
    truncated: bool
    status: BookingStatus
    venue: Venue
    category: Optional[str] = None
    note: Optional[str] = None
    created_by: Optional[str] = None


class BookingList(BaseModel):
    items: List[BookingOut]


class BookingPublicList(BaseModel):
    items: List[BookingPublic]


class RepeatPreview(BaseModel):
    start: str
    venue: Venue
    # 每週勾選的星期，0=日 ... 6=六
    weeks_days: List[List[int]] = Field(default_factory=list, max_length=8)


class PreviewItem(BaseModel):
    requested: datetime
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    truncated: bool = False
    error: Optional[str] = None


class RejectBody(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class TermsAcceptBody(BaseModel):
    email: Optional[str] = Field(default=None, max_length=255)


class OkResponse(BaseModel):
    ok: bool = True
