import logging
from typing import Optional

from fastapi import APIRouter, Depends, Form, Query
from sqlalchemy.orm import Session

import lifecycle
from database import get_db
from errors import Unauthorized
from identity import ADMIN, Identity, current_identity, issue_token, require_admin, verify_admin
from models import BookingStatus, Venue
from schemas import BookingList, BookingOut, RejectBody

router = APIRouter(prefix="/admin", tags=["admin"])


# 管理者登入，回傳 token（之後每個請求帶 Authorization: Bearer）
@router.post("/login")
def login(username: str = Form(...), password: str = Form(...)):
    logging.info(f"管理者登入請求：username={username}")
    if not verify_admin(username, password):
        logging.warning(f"管理者 {username} 登入失敗")
        raise Unauthorized()
    logging.info(f"管理者 {username} 登入成功")
    return {"ok": True, "user": username, "token": issue_token(username, role=ADMIN)}


@router.get("/me")
def me(identity: Optional[Identity] = Depends(current_identity)):
    user = identity.subject if identity and identity.is_admin else None
    return {"user": user}


# -------------------------------
# 審核清單，預設列出全部狀態
# -------------------------------
@router.get("/review", response_model=BookingList)
def review_list(
    status: Optional[BookingStatus] = None,
    venue: Optional[Venue] = None,
    days: Optional[int] = Query(None, ge=1, le=180),
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    statuses = [status] if status else None
    bookings = lifecycle.list_bookings(db, statuses=statuses, venue=venue, days=days)
    return BookingList(items=[BookingOut.model_validate(b) for b in bookings])


@router.post("/bookings/{booking_id}/approve", response_model=BookingOut)
def approve_booking(
    booking_id: str,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return BookingOut.model_validate(lifecycle.approve(db, booking_id, admin.subject))


@router.post("/bookings/{booking_id}/reject", response_model=BookingOut)
def reject_booking(
    booking_id: str,
    body: Optional[RejectBody] = None,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    reason = body.reason if body else None
    return BookingOut.model_validate(lifecycle.reject(db, booking_id, admin.subject, reason))
