import os
import json
import logging
from dotenv import load_dotenv

load_dotenv()  # 讀取根目錄的 .env 檔案


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _csv(name: str) -> list:
    return [s.strip() for s in os.getenv(name, "").split(",") if s.strip()]


PORT = int(os.getenv("PORT", "3000"))

# ---------- 資料庫 ----------
DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    # 沒有設定時用本機 SQLite（方便開發）
    DATABASE_URL = "sqlite:///./venue_booking.db"
elif DATABASE_URL.startswith("postgres://"):
    # Render 會提供舊格式 postgres://，SQLAlchemy 需要 postgresql+psycopg2://
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql+psycopg2://", 1)

# ---------- 身分驗證 ----------
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
TOKEN_TTL_HOURS = int(os.getenv("TOKEN_TTL_HOURS", "168"))  # 7 天


def admin_users() -> dict:
    """username -> bcrypt hash，格式錯誤時視為沒有管理者"""
    raw = os.getenv("ADMIN_USERS_JSON")
    if not raw:
        return {}
    try:
        users = json.loads(raw)
    except ValueError as e:
        logging.error(f"ADMIN_USERS_JSON 解析失敗: {e}")
        return {}
    if not isinstance(users, dict):
        logging.error("ADMIN_USERS_JSON 必須是 {\"帳號\": \"雜湊\"} 物件")
        return {}
    return users


# ---------- CORS ----------
DEFAULT_ORIGINS = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "https://venue-booking-frontend.onrender.com",
]
CORS_ORIGINS = list(dict.fromkeys(DEFAULT_ORIGINS + _csv("CORS_ORIGINS")))

# ---------- 使用條款 ----------
TERMS_ENABLED = _flag("TERMS_ENABLED", "true")
TERMS_VERSION = os.getenv("TERMS_VERSION", "v1")
TERMS_URL = os.getenv("TERMS_URL", "")
# 允許訪客同意條款（以 guest:<IP> 當 user_id）
ALLOW_GUEST_TERMS = _flag("ALLOW_GUEST_TERMS", "true")

# ---------- 借用規則 ----------
REFERENCE_TZ = os.getenv("REFERENCE_TZ", "Asia/Taipei")
# 衝突時是否回傳對方的申請編號（預設隱藏）
EXPOSE_CONFLICTS = _flag("EXPOSE_CONFLICTS", "false")
# 送出時是否連審核中的申請也視為衝突
BLOCK_PENDING_OVERLAP = _flag("BLOCK_PENDING_OVERLAP", "false")
# 允許的用途類別，空白代表不限制
ALLOWED_CATEGORIES = _csv("ALLOWED_CATEGORIES")
