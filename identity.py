"""每個請求自帶 Bearer token 驗證身分，伺服器不保存 session"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, Header, Request
from passlib.context import CryptContext

import config
from errors import Forbidden, Unauthorized

ALGORITHM = "HS256"
ADMIN = "admin"
USER = "user"
GUEST = "guest"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


@dataclass(frozen=True)
class Identity:
    subject: str
    role: str = USER

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN

    @property
    def is_guest(self) -> bool:
        return self.role == GUEST


def issue_token(subject: str, role: str = USER, ttl: Optional[timedelta] = None) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "role": role,
        "iat": now,
        "exp": now + (ttl or timedelta(hours=config.TOKEN_TTL_HOURS)),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=ALGORITHM)


def decode_token(token: str) -> Identity:
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[ALGORITHM])
    except jwt.PyJWTError as e:
        logging.warning(f"token 驗證失敗: {e}")
        raise Unauthorized()
    subject = payload.get("sub")
    if not subject:
        raise Unauthorized()
    return Identity(subject=subject, role=payload.get("role", USER))


def verify_admin(username: str, password: str) -> bool:
    hashed = config.admin_users().get(username)
    if not hashed or not isinstance(hashed, str):
        return False
    try:
        return pwd_context.verify(password, hashed)
    except ValueError as e:
        # 不是 bcrypt 雜湊
        logging.error(f"管理者 {username} 的密碼雜湊無法辨識: {e}")
        return False


def client_ip(request: Request) -> str:
    xff = request.headers.get("x-forwarded-for")
    if xff:
        first = xff.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"


# ---------- FastAPI 依賴 ----------
def current_identity(authorization: Optional[str] = Header(None)) -> Optional[Identity]:
    """有帶 token 就驗證；沒帶回傳 None；帶了但無效 -> 401"""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthorized()
    return decode_token(token.strip())


def effective_identity(
    request: Request,
    identity: Optional[Identity] = Depends(current_identity),
) -> Optional[Identity]:
    """未登入時，若允許訪客，以 guest:<IP> 當身分"""
    if identity:
        return identity
    if not config.ALLOW_GUEST_TERMS:
        return None
    return Identity(subject=f"guest:{client_ip(request)}", role=GUEST)


def require_identity(identity: Optional[Identity] = Depends(effective_identity)) -> Identity:
    if identity is None:
        raise Unauthorized()
    return identity


def require_admin(identity: Optional[Identity] = Depends(current_identity)) -> Identity:
    if identity is None:
        raise Unauthorized()
    if not identity.is_admin:
        raise Forbidden()
    return identity
