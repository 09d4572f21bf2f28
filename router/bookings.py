import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

import config
import lifecycle
from admission import admit_booking
from database import get_db
from errors import BookingError, InvalidCategory
from identity import Identity, require_identity
from models import BookingStatus, Venue
from schemas import (
    BookingCreate, BookingCreated, BookingList, BookingOut,
    BookingPublic, BookingPublicList,
    OkResponse, PreviewItem, RepeatPreview,
)
from time_window import build_repeat_starts, normalize_window, parse_start

router = APIRouter(prefix="/bookings", tags=["bookings"])


def _items(bookings) -> BookingList:
    return BookingList(items=[BookingOut.model_validate(b) for b in bookings])


def _public_items(bookings) -> BookingPublicList:
    return BookingPublicList(items=[BookingPublic.model_validate(b) for b in bookings])


# ---------------------------
# 建立申請單：只送 start，伺服器依規則算出實際區間
# ---------------------------
@router.post("", response_model=BookingCreated, status_code=201)
def create_booking(
    data: BookingCreate,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
):
    if config.ALLOWED_CATEGORIES and data.category not in config.ALLOWED_CATEGORIES:
        raise InvalidCategory()

    requested = parse_start(data.start)
    window = normalize_window(requested, data.venue)
    if window.truncated:
        logging.info(f"結束時間截短到 {window.end.strftime('%H:%M')}: {data.venue.value}")

    booking = admit_booking(
        db,
        identity=identity,
        venue=data.venue,
        window=window,
        category=data.category,
        note=data.note,
        created_by=data.created_by,
    )
    return BookingCreated(
        id=booking.id,
        start=booking.start_ts,
        end=booking.end_ts,
        truncated=window.truncated,
        status=booking.status,
        venue=booking.venue,
        category=booking.category,
        note=booking.note,
        created_by=booking.created_by,
    )


# ---------------------------
# 重複預約預覽：每一筆各自套規則，不寫入資料庫
# ---------------------------
@router.post("/preview", response_model=List[PreviewItem])
def preview_repeat(data: RepeatPreview):
    first = parse_start(data.start)
    starts = build_repeat_starts(first, data.weeks_days) if data.weeks_days else [first]

    result = []
    for s in starts:
        try:
            w = normalize_window(s, data.venue)
        except BookingError as e:
            result.append(PreviewItem(requested=s, error=e.code))
            continue
        result.append(PreviewItem(requested=s, start=w.start, end=w.end, truncated=w.truncated))
    return result


# ---------------------------
# 清單（行事曆用），依開始時間排序；不需登入，只回公開欄位
# ---------------------------
@router.get("", response_model=BookingPublicList)
def get_bookings(
    status: Optional[BookingStatus] = None,
    venue: Optional[Venue] = None,
    days: Optional[int] = Query(None, ge=1, le=180),
    db: Session = Depends(get_db),
):
    statuses = [status] if status else None
    return _public_items(lifecycle.list_bookings(db, statuses=statuses, venue=venue, days=days))


@router.get("/approved", response_model=BookingPublicList)
def get_approved_bookings(
    venue: Optional[Venue] = None,
    days: Optional[int] = Query(None, ge=1, le=180),
    db: Session = Depends(get_db),
):
    return _public_items(lifecycle.list_bookings(db, statuses=[BookingStatus.approved], venue=venue, days=days))


@router.get("/mine", response_model=BookingList)
def get_my_bookings(
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
):
    return _items(lifecycle.list_bookings(db, owner=identity.subject))


# ---------------------------
# 申請者本人或管理者取消
# ---------------------------
@router.post("/{booking_id}/cancel", response_model=OkResponse)
def cancel_booking(
    booking_id: str,
    identity: Identity = Depends(require_identity),
    db: Session = Depends(get_db),
):
    lifecycle.cancel(db, booking_id, identity)
    return OkResponse()
