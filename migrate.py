"""
建立資料表與「佔住的時段不得重疊」的資料庫層保證。

佔住時段的列 = holds_slot 為真：已核准的申請，以及 BLOCK_PENDING_OVERLAP
開啟時送出的 pending 申請。

PostgreSQL：btree_gist + EXCLUDE 約束
SQLite（開發/測試）：BEFORE INSERT/UPDATE trigger，違反時 ABORT

兩者都用 bookings_no_overlap 這個名稱，衝突判斷靠它辨識。
"""
import logging

from sqlalchemy import text

from database import Base, engine as default_engine
from models import EXCLUSIVE_VENUES

OVERLAP_CONSTRAINT = "bookings_no_overlap"


def _exclusive_sql_list() -> str:
    return ", ".join(f"'{v.value}'" for v in sorted(EXCLUSIVE_VENUES, key=lambda v: v.value))


def _postgres_exclusion(conn):
    conn.execute(text("CREATE EXTENSION IF NOT EXISTS btree_gist"))
    # 舊資料表補欄位
    conn.execute(text(
        "ALTER TABLE bookings ADD COLUMN IF NOT EXISTS holds_slot BOOLEAN NOT NULL DEFAULT false"
    ))
    conn.execute(text(f"""
        DO $$
        BEGIN
          IF NOT EXISTS (
            SELECT 1 FROM pg_constraint WHERE conname = '{OVERLAP_CONSTRAINT}'
          ) THEN
            ALTER TABLE bookings
            ADD CONSTRAINT {OVERLAP_CONSTRAINT} EXCLUDE USING gist (
              venue WITH =,
              tstzrange(start_ts, end_ts, '[)') WITH &&
            ) WHERE (holds_slot AND venue IN ({_exclusive_sql_list()}));
          END IF;
        END $$;
    """))


def _sqlite_trigger(conn, event: str):
    # NEW.id 排除自己，UPDATE 時才不會跟自己衝突
    conn.execute(text(f"""
        CREATE TRIGGER IF NOT EXISTS {OVERLAP_CONSTRAINT}_{event.split()[0].lower()}
        BEFORE {event} ON bookings
        WHEN NEW.holds_slot = 1
          AND NEW.venue IN ({_exclusive_sql_list()})
          AND EXISTS (
            SELECT 1 FROM bookings b
            WHERE b.venue = NEW.venue
              AND b.holds_slot = 1
              AND b.id != NEW.id
              AND b.start_ts < NEW.end_ts
              AND b.end_ts > NEW.start_ts
          )
        BEGIN
          SELECT RAISE(ABORT, '{OVERLAP_CONSTRAINT}');
        END
    """))


def ensure_schema(engine=None):
    engine = engine or default_engine
    Base.metadata.create_all(bind=engine)
    dialect = engine.dialect.name
    with engine.begin() as conn:
        if dialect == "postgresql":
            _postgres_exclusion(conn)
        elif dialect == "sqlite":
            _sqlite_trigger(conn, "INSERT")
            _sqlite_trigger(conn, "UPDATE OF status, venue, start_ts, end_ts, holds_slot")
        else:
            logging.warning(f"⚠️ {dialect} 沒有重疊約束，只靠交易內的檢查")
    logging.info(f"[migrate] done ({dialect})")


if __name__ == "__main__":
    ensure_schema()
