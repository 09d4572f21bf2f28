import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, String, Text, DateTime, Enum, Index, event
from sqlalchemy.types import TypeDecorator

from database import Base


class BookingStatus(str, enum.Enum):
    pending = "pending"       # 審核中
    approved = "approved"     # 已核准
    rejected = "rejected"     # 已退回
    cancelled = "cancelled"   # 已取消


class Venue(str, enum.Enum):
    main_hall = "大會堂"
    recreation_hall = "康樂廳"
    classroom = "其它教室"

    @property
    def exclusive(self) -> bool:
        """核准後時段不得重疊的場地"""
        return self in EXCLUSIVE_VENUES


# 其它教室是多間教室共用的名稱，同時段可以核准多筆
EXCLUSIVE_VENUES = frozenset({Venue.main_hall, Venue.recreation_hall})


def _values(enum_cls):
    return [m.value for m in enum_cls]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """一律以 UTC 存取；SQLite 沒有時區欄位，存成不帶時區的 UTC 時間"""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            raise ValueError("datetime 必須帶時區")
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    venue = Column(
        Enum(Venue, native_enum=False, values_callable=_values, length=20),
        nullable=False,
    )
    start_ts = Column(UTCDateTime, nullable=False)
    end_ts = Column(UTCDateTime, nullable=False)
    status = Column(
        Enum(BookingStatus, native_enum=False, values_callable=_values, length=20),
        default=BookingStatus.pending,
        nullable=False,
    )
    category = Column(String(100))
    note = Column(Text)
    created_by = Column(String(255))
    # 送出申請的身分（token subject 或 guest:<IP>），用來判斷誰能取消
    owner = Column(String(255), nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    reviewed_at = Column(UTCDateTime)
    reviewed_by = Column(String(255))
    rejection_reason = Column(Text)
    # 佔住時段：已核准的列，以及 BLOCK_PENDING_OVERLAP 開啟時送出的 pending
    # 資料庫的 bookings_no_overlap 只看這個欄位
    holds_slot = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("ix_bookings_venue_start", "venue", "start_ts"),
        Index("ix_bookings_status", "status"),
    )

    def __repr__(self):
        return f"<Booking(id={self.id}, venue={self.venue}, status={self.status})>"


@event.listens_for(Booking, "before_insert")
@event.listens_for(Booking, "before_update")
def _sync_holds_slot(mapper, connection, target):
    if target.status == BookingStatus.approved:
        target.holds_slot = True
    elif target.status in (BookingStatus.rejected, BookingStatus.cancelled):
        target.holds_slot = False
    elif target.holds_slot is None:
        target.holds_slot = False


class TermsAcceptance(Base):
    __tablename__ = "terms_acceptances"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(255), unique=True, nullable=False)
    user_email = Column(String(255))
    accepted_at = Column(UTCDateTime, nullable=False, default=utcnow)
    ip = Column(String(64))
    version = Column(String(20))
