from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from iobuilds_shared import OTPConfig, SessionStore, mask_phone

from .auth import get_db
from .config import settings
from .directory import (
    AccountDirectory,
    CredentialUpdateError,
    CredentialUpdater,
    SqlAccountDirectory,
    default_credential_updater,
)
from .errors import (
    InvalidSessionError,
    NotFoundError,
    SessionExpiredError,
    UpdateFailedError,
    ValidationError,
)
from .metrics import OTP_EVENTS
from .otp_utils import canonical_phone, otp_config
from .session_store import SqlSessionStore

logger = logging.getLogger("messaging.otp")


class PasswordResetCoordinator:
    """Consumes a verified OTP session to set a new password, once."""

    def __init__(
        self,
        store: SessionStore,
        directory: AccountDirectory,
        credentials: CredentialUpdater,
        cfg: Optional[OTPConfig] = None,
        *,
        clock: Callable[[], datetime] = datetime.utcnow,
        country_code: str = settings.PHONE_COUNTRY_CODE,
        min_password_length: int = settings.PASSWORD_MIN_LENGTH,
    ):
        self.store = store
        self.directory = directory
        self.credentials = credentials
        self.cfg = cfg or otp_config()
        self.clock = clock
        self.country_code = country_code
        self.min_password_length = min_password_length

    def reset(self, phone: str, new_password: str, session_id: str) -> None:
        if not (phone and new_password and session_id):
            raise ValidationError("Phone, new password, and session ID are required")
        if len(new_password) < self.min_password_length:
            raise ValidationError(f"Password must be at least {self.min_password_length} characters")

        canonical = canonical_phone(phone, self.country_code)
        session = self.store.get_verified(session_id, canonical)
        if session is None:
            raise InvalidSessionError("Invalid or expired session. Please verify your phone again.")

        # Verification does not extend the session; only this step honours the grace window.
        if self.clock() > session.reset_deadline(self.cfg):
            self.store.delete(session.id)
            OTP_EVENTS.labels("reset_expired").inc()
            raise SessionExpiredError("Session expired. Please verify your phone again.")

        account = self.directory.find_by_phone(canonical)
        if account is None:
            raise NotFoundError("User not found")

        try:
            self.credentials.update_password(account.user_id, new_password)
        except CredentialUpdateError as exc:
            logger.error("Password update failed for %s: %s", mask_phone(canonical), exc)
            raise UpdateFailedError("Failed to update password")

        self.store.delete(session.id)
        OTP_EVENTS.labels("reset").inc()
        logger.info("Password reset for %s", mask_phone(canonical))


def get_reset_coordinator(
    db: Session = Depends(get_db),
    credentials: CredentialUpdater = Depends(default_credential_updater),
) -> PasswordResetCoordinator:
    return PasswordResetCoordinator(SqlSessionStore(db), SqlAccountDirectory(db), credentials)
