"""
使用條款同意

資料庫出錯時不讓前端卡住：
- status 回「尚未同意」
- accept 仍回成功
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import config
import terms
from database import get_db
from errors import Unauthorized
from identity import Identity, client_ip, effective_identity
from models import utcnow
from schemas import TermsAcceptBody

router = APIRouter(prefix="/terms", tags=["terms"])


def _status(accepted: bool, accepted_at=None, enabled: bool = True) -> dict:
    return {
        "ok": True,
        "enabled": enabled,
        "version": config.TERMS_VERSION,
        "url": config.TERMS_URL or None,
        "accepted": accepted,
        "accepted_at": accepted_at,
    }


@router.get("/status")
def terms_status(
    identity: Optional[Identity] = Depends(effective_identity),
    db: Session = Depends(get_db),
):
    if not config.TERMS_ENABLED:
        return _status(True, enabled=False)
    if identity is None:
        return _status(False)

    try:
        found = terms.find_acceptance(db, identity.subject)
    except SQLAlchemyError as e:
        logging.error(f"[terms] status failed: {e}")
        return _status(False)

    if found and found.accepted_at:
        return _status(True, found.accepted_at)
    return _status(False)


@router.post("/accept")
def terms_accept(
    request: Request,
    body: Optional[TermsAcceptBody] = None,
    identity: Optional[Identity] = Depends(effective_identity),
    db: Session = Depends(get_db),
):
    if not config.TERMS_ENABLED:
        return {"ok": True, "accepted_at": None}
    if identity is None:
        raise Unauthorized()

    email = body.email if body else None
    try:
        accepted_at = terms.record_acceptance(db, identity.subject, email=email, ip=client_ip(request))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"[terms] accept failed: {e}")
        accepted_at = utcnow()
    return {"ok": True, "accepted_at": accepted_at}
