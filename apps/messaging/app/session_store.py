from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from iobuilds_shared import VerificationSession

from .models import OtpSession


def _to_session(row: OtpSession) -> VerificationSession:
    return VerificationSession(
        id=row.id,
        phone=row.phone,
        code=row.otp_code,
        expires_at=row.expires_at,
        verified=bool(row.verified),
        attempts=row.attempts or 0,
        created_at=row.created_at,
    )


class SqlSessionStore:
    """``otp_sessions`` table access.

    Each mutation commits immediately: error responses roll back the request
    transaction and must not undo attempt counting or terminal deletions.
    Attempt counting and verification are conditional UPDATEs, so concurrent
    verifies for one phone cannot both pass the ceiling or both win.
    """

    def __init__(self, db: Session):
        self.db = db

    def replace(self, phone: str, code: str, expires_at: datetime) -> VerificationSession:
        self.db.query(OtpSession).filter(OtpSession.phone == phone).delete(synchronize_session=False)
        row = OtpSession(
            phone=phone,
            otp_code=code,
            expires_at=expires_at,
            verified=False,
            attempts=0,
        )
        self.db.add(row)
        self.db.flush()
        session = _to_session(row)
        self.db.commit()
        return session

    def get_pending(self, phone: str) -> Optional[VerificationSession]:
        row = (
            self.db.query(OtpSession)
            .filter(OtpSession.phone == phone, OtpSession.verified.is_(False))
            .order_by(OtpSession.created_at.desc())
            .first()
        )
        return _to_session(row) if row else None

    def get_verified(self, session_id: str, phone: str) -> Optional[VerificationSession]:
        row = (
            self.db.query(OtpSession)
            .filter(
                OtpSession.id == session_id,
                OtpSession.phone == phone,
                OtpSession.verified.is_(True),
            )
            .one_or_none()
        )
        return _to_session(row) if row else None

    def register_attempt(self, session_id: str, max_attempts: int) -> Optional[int]:
        row = (
            self.db.query(OtpSession)
            .filter(OtpSession.id == session_id)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )
        if row is None:
            self.db.rollback()
            return None
        before = row.attempts or 0
        updated = (
            self.db.query(OtpSession)
            .filter(OtpSession.id == session_id, OtpSession.attempts == before, OtpSession.attempts < max_attempts)
            .update({OtpSession.attempts: before + 1}, synchronize_session=False)
        )
        self.db.commit()
        return before if updated == 1 else None

    def mark_verified(self, session_id: str) -> bool:
        updated = (
            self.db.query(OtpSession)
            .filter(OtpSession.id == session_id, OtpSession.verified.is_(False))
            .update({OtpSession.verified: True}, synchronize_session=False)
        )
        self.db.commit()
        return updated == 1

    def delete(self, session_id: str) -> None:
        self.db.query(OtpSession).filter(OtpSession.id == session_id).delete(synchronize_session=False)
        self.db.commit()

    def purge_stale(self, now: datetime, reset_grace: timedelta) -> int:
        # Verified sessions stay consumable until expires_at + reset_grace.
        deleted = (
            self.db.query(OtpSession)
            .filter(
                or_(
                    and_(OtpSession.verified.is_(False), OtpSession.expires_at < now),
                    and_(OtpSession.verified.is_(True), OtpSession.expires_at < now - reset_grace),
                )
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted
