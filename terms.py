"""使用條款同意紀錄（不負責 commit，由呼叫端決定交易範圍）"""
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

import config
from models import TermsAcceptance, utcnow


def find_acceptance(db: Session, user_id: str) -> Optional[TermsAcceptance]:
    return db.query(TermsAcceptance).filter(TermsAcceptance.user_id == user_id).first()


def has_accepted(db: Session, user_id: str) -> bool:
    found = find_acceptance(db, user_id)
    return bool(found and found.accepted_at)


def record_acceptance(
    db: Session,
    user_id: str,
    email: Optional[str] = None,
    ip: Optional[str] = None,
) -> datetime:
    now = utcnow()
    found = find_acceptance(db, user_id)
    if found:
        found.accepted_at = now
        found.version = config.TERMS_VERSION
        if email:
            found.user_email = email
    else:
        db.add(TermsAcceptance(
            user_id=user_id,
            user_email=email,
            accepted_at=now,
            ip=ip,
            version=config.TERMS_VERSION,
        ))
    db.flush()
    return now
