"""
申請狀態轉換

pending  -> approved | rejected   （管理者審核）
pending | approved -> cancelled   （申請者本人或管理者）
rejected、cancelled 為終態
"""
import logging
from datetime import timedelta
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from admission import find_conflict, is_overlap_violation, lock_venue, overlap_error
from errors import BookingError, Forbidden, InvalidStatus, NotFound, Overlap
from identity import Identity
from models import Booking, BookingStatus, Venue, utcnow

CANCELLABLE = (BookingStatus.pending, BookingStatus.approved)


def list_bookings(
    db: Session,
    statuses: Optional[Iterable[BookingStatus]] = None,
    venue: Optional[Venue] = None,
    days: Optional[int] = None,
    owner: Optional[str] = None,
    limit: int = 1000,
) -> List[Booking]:
    q = db.query(Booking)
    if statuses:
        q = q.filter(Booking.status.in_(list(statuses)))
    if venue:
        q = q.filter(Booking.venue == venue)
    if days:
        q = q.filter(Booking.start_ts >= utcnow() - timedelta(days=days))
    if owner:
        q = q.filter(Booking.owner == owner)
    return q.order_by(Booking.start_ts.asc()).limit(limit).all()


def _load_for_update(db: Session, booking_id: str) -> Booking:
    booking = (
        db.query(Booking)
        .filter(Booking.id == booking_id)
        .with_for_update()
        .first()
    )
    if not booking:
        raise NotFound()
    return booking


def _mark_reviewed(booking: Booking, reviewer: str) -> None:
    # 只在離開 pending 的那一次記錄
    if booking.status == BookingStatus.pending:
        booking.reviewed_at = utcnow()
        booking.reviewed_by = reviewer


def _commit(db: Session, booking: Booking) -> Booking:
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if is_overlap_violation(e):
            logging.warning(f"資料庫重疊約束擋下核准: {booking.id}")
            raise Overlap() from e
        raise
    db.refresh(booking)
    return booking


def approve(db: Session, booking_id: str, reviewer: str) -> Booking:
    try:
        booking = _load_for_update(db, booking_id)
        if booking.status != BookingStatus.pending:
            raise InvalidStatus()

        if booking.venue.exclusive:
            lock_venue(db, booking.venue)
            conflict = find_conflict(
                db, booking.venue, booking.start_ts, booking.end_ts,
                (BookingStatus.approved,), exclude_id=booking.id,
            )
            if conflict:
                logging.info(f"核准失敗，與 {conflict.id} 重疊: {booking.id}")
                raise overlap_error(conflict)

        _mark_reviewed(booking, reviewer)
        booking.status = BookingStatus.approved
        booking = _commit(db, booking)
    except (BookingError, SQLAlchemyError):
        db.rollback()
        raise

    logging.info(f"申請 {booking.id} 已核准 by {reviewer}")
    return booking


def reject(db: Session, booking_id: str, reviewer: str, reason: Optional[str] = None) -> Booking:
    try:
        booking = _load_for_update(db, booking_id)
        if booking.status != BookingStatus.pending:
            raise InvalidStatus()

        _mark_reviewed(booking, reviewer)
        booking.status = BookingStatus.rejected
        booking.rejection_reason = reason
        booking = _commit(db, booking)
    except (BookingError, SQLAlchemyError):
        db.rollback()
        raise

    logging.info(f"申請 {booking.id} 已退回 by {reviewer}: {reason}")
    return booking


def cancel(db: Session, booking_id: str, identity: Identity) -> Booking:
    try:
        booking = _load_for_update(db, booking_id)
        if not identity.is_admin and booking.owner != identity.subject:
            raise Forbidden()
        if booking.status not in CANCELLABLE:
            raise InvalidStatus()

        _mark_reviewed(booking, identity.subject)
        booking.status = BookingStatus.cancelled
        booking = _commit(db, booking)
    except (BookingError, SQLAlchemyError):
        db.rollback()
        raise

    logging.info(f"申請 {booking.id} 已取消 by {identity.subject}")
    return booking
