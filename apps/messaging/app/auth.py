import hashlib
import secrets

from fastapi import Header, HTTPException, status

from .config import settings
from .database import SessionLocal


def get_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def _is_admin_token_valid(incoming: str | None) -> bool:
    if not incoming:
        return False
    token_plain = settings.ADMIN_TOKEN or ""
    for candidate in [t.strip() for t in token_plain.split(",") if t.strip()]:
        if secrets.compare_digest(incoming, candidate):
            return True
    digest = hashlib.sha256(incoming.encode()).hexdigest().lower()
    for candidate in settings.admin_token_hashes:
        if secrets.compare_digest(digest, candidate):
            return True
    return False


def require_admin(x_admin_token: str | None = Header(default=None, alias="X-Admin-Token")):
    if not _is_admin_token_valid(x_admin_token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "unauthorized", "message": "Admin token invalid"},
        )
