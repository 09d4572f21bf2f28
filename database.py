import logging
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

import config

# 設定 log 輸出
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)

DATABASE_URL = config.DATABASE_URL


def _engine_options(url):
    if url.get_backend_name() == "sqlite":
        options = {"connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            # 記憶體資料庫要共用同一條連線，否則每個連線都是空的
            options["poolclass"] = StaticPool
        return options
    return {
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 0,
        "pool_timeout": 10,
        "pool_recycle": 1800,
    }


# 建立資料庫引擎
_url = make_url(DATABASE_URL)
try:
    engine = create_engine(_url, **_engine_options(_url))
    logging.info(f"✅ 資料庫引擎建立成功: {_url.render_as_string(hide_password=True)}")
except Exception as e:
    logging.error(f"❌ 無法建立資料庫引擎: {e}")
    raise

# 建立 Session
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# 建立 Base
Base = declarative_base()


# 測試資料庫連線
def test_connection():
    with engine.connect():
        logging.info("✅ 成功連線到資料庫")


def is_postgres(db) -> bool:
    return db.get_bind().dialect.name == "postgresql"


# FastAPI 依賴：取得 DB Session
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
