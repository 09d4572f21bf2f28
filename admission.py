"""
送出申請：條款檢查 + 重疊檢查 + 寫入，全部在同一個交易內。

- 只有獨占場地（大會堂、康樂廳）需要檢查重疊
- 先鎖住該場地（PostgreSQL advisory lock），再查佔住時段的申請是否與 [start, end) 相交
- BLOCK_PENDING_OVERLAP 開啟時，新的 pending 申請也佔住時段（holds_slot）。
  資料庫的 bookings_no_overlap 約束是最後防線：兩個交易同時通過檢查時，
  後寫入的一方會被擋下，一樣回報 Overlap
"""
import logging
from typing import Iterable, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

import config
import terms
from database import is_postgres
from errors import BookingError, Overlap, TermsRequired
from identity import Identity
from migrate import OVERLAP_CONSTRAINT
from models import Booking, BookingStatus, Venue
from time_window import Window


def blocking_statuses() -> tuple:
    if config.BLOCK_PENDING_OVERLAP:
        return (BookingStatus.approved, BookingStatus.pending)
    return (BookingStatus.approved,)


def lock_venue(db: Session, venue: Venue) -> None:
    """同一場地的檢查+寫入排隊進行，交易結束自動釋放"""
    if is_postgres(db):
        db.execute(select(func.pg_advisory_xact_lock(func.hashtext(f"bookings:{venue.value}"))))


def find_conflict(
    db: Session,
    venue: Venue,
    start,
    end,
    statuses: Iterable[BookingStatus] = (BookingStatus.approved,),
    exclude_id: Optional[str] = None,
) -> Optional[Booking]:
    # 半開區間：A.start < B.end AND A.end > B.start，相接不算重疊
    # 佔住時段的列不論狀態都算
    q = db.query(Booking).filter(
        Booking.venue == venue,
        or_(Booking.status.in_(list(statuses)), Booking.holds_slot.is_(True)),
        Booking.start_ts < end,
        Booking.end_ts > start,
    )
    if exclude_id:
        q = q.filter(Booking.id != exclude_id)
    return q.order_by(Booking.start_ts.asc()).first()


def is_overlap_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, "orig", None)
    diag = getattr(orig, "diag", None)
    constraint_name = getattr(diag, "constraint_name", None) or ""
    if constraint_name:
        return constraint_name == OVERLAP_CONSTRAINT
    return OVERLAP_CONSTRAINT in str(orig)


def overlap_error(conflict: Optional[Booking]) -> Overlap:
    if conflict is not None and config.EXPOSE_CONFLICTS:
        return Overlap(conflict_id=conflict.id)
    return Overlap()


def _ensure_terms(db: Session, identity: Identity) -> None:
    if not config.TERMS_ENABLED or terms.has_accepted(db, identity.subject):
        return
    if not config.ALLOW_GUEST_TERMS:
        raise TermsRequired()
    terms.record_acceptance(db, identity.subject)
    logging.info(f"自動記錄條款同意: {identity.subject}")


def admit_booking(
    db: Session,
    *,
    identity: Identity,
    venue: Venue,
    window: Window,
    category: Optional[str] = None,
    note: Optional[str] = None,
    created_by: Optional[str] = None,
) -> Booking:
    try:
        _ensure_terms(db, identity)

        if venue.exclusive:
            lock_venue(db, venue)
            conflict = find_conflict(db, venue, window.start, window.end, blocking_statuses())
            if conflict:
                logging.info(f"時段衝突: {venue.value} {window.start}~{window.end} 與 {conflict.id}")
                raise overlap_error(conflict)

        booking = Booking(
            venue=venue,
            start_ts=window.start,
            end_ts=window.end,
            status=BookingStatus.pending,
            category=category,
            note=note,
            created_by=created_by or identity.subject,
            owner=identity.subject,
            holds_slot=venue.exclusive and config.BLOCK_PENDING_OVERLAP,
        )
        db.add(booking)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if is_overlap_violation(e):
            logging.warning(f"資料庫重疊約束擋下: {venue.value} {window.start}~{window.end}")
            raise Overlap() from e
        raise
    except (BookingError, SQLAlchemyError):
        db.rollback()
        raise

    db.refresh(booking)
    logging.info(f"新申請 {booking.id}: {venue.value} {booking.start_ts}~{booking.end_ts} by {identity.subject}")
    return booking
