from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from iobuilds_shared import (
    OTPConfig,
    SessionStore,
    build_otp_message,
    codes_match,
    issue_code,
    mask_phone,
    normalize_phone,
)

from .auth import get_db
from .config import settings
from .directory import AccountDirectory, SqlAccountDirectory
from .errors import (
    AttemptsExceededError,
    ConflictError,
    ExpiredError,
    InvalidCodeError,
    NotFoundError,
    ProviderNotConfiguredError,
    ValidationError,
)
from .metrics import OTP_EVENTS
from .session_store import SqlSessionStore
from .sms_provider import NotificationDispatcher, get_dispatcher

logger = logging.getLogger("messaging.otp")

PURPOSES = ("registration", "forgot_password")


def otp_config() -> OTPConfig:
    return OTPConfig(
        mode=settings.OTP_MODE,
        ttl_secs=settings.OTP_TTL_SECS,
        max_attempts=settings.OTP_MAX_ATTEMPTS,
        reset_grace_secs=settings.OTP_RESET_GRACE_SECS,
        dev_code=settings.OTP_DEV_CODE,
    )


def canonical_phone(phone: str, country_code: str) -> str:
    canonical = normalize_phone(phone, country_code)
    if canonical == country_code:
        raise ValidationError("Phone number is required")
    return canonical


@dataclass
class IssueResult:
    phone: str
    session_id: str
    delivered: bool


class OTPService:
    """Issues and verifies phone OTP challenges.

    One session per canonical phone: issuing replaces whatever was there.
    Attempts are counted before the code comparison, so with a ceiling of
    five the sixth call fails even with the right code.
    """

    def __init__(
        self,
        store: SessionStore,
        directory: AccountDirectory,
        dispatcher: NotificationDispatcher,
        cfg: Optional[OTPConfig] = None,
        *,
        clock: Callable[[], datetime] = datetime.utcnow,
        country_code: str = settings.PHONE_COUNTRY_CODE,
        template: str = settings.OTP_SMS_TEMPLATE,
    ):
        self.store = store
        self.directory = directory
        self.dispatcher = dispatcher
        self.cfg = cfg or otp_config()
        self.clock = clock
        self.country_code = country_code
        self.template = template

    def issue(self, phone: str, purpose: str) -> IssueResult:
        if purpose not in PURPOSES:
            raise ValidationError(f"Unsupported purpose '{purpose}'")
        canonical = canonical_phone(phone, self.country_code)
        account = self.directory.find_by_phone(canonical)
        if purpose == "forgot_password" and account is None:
            OTP_EVENTS.labels("rejected").inc()
            raise NotFoundError("No account found with this phone number")
        if purpose == "registration" and account is not None:
            OTP_EVENTS.labels("rejected").inc()
            raise ConflictError("This phone number is already registered")

        code = issue_code(self.cfg)
        session = self.store.replace(canonical, code, self.clock() + self.cfg.ttl)
        OTP_EVENTS.labels("issued").inc()
        logger.info("OTP issued for %s (%s)", mask_phone(canonical), purpose)
        delivered = self._deliver(canonical, code)
        return IssueResult(phone=canonical, session_id=session.id, delivered=delivered)

    def _deliver(self, phone: str, code: str) -> bool:
        # The session stands whether or not the SMS goes out.
        message = build_otp_message(self.template, code)
        try:
            result = self.dispatcher.send(phone, message)
        except ProviderNotConfiguredError as exc:
            logger.warning("OTP for %s not delivered: %s", mask_phone(phone), exc.message)
            OTP_EVENTS.labels("undelivered").inc()
            return False
        except Exception:
            logger.exception("OTP delivery to %s failed", mask_phone(phone))
            OTP_EVENTS.labels("undelivered").inc()
            return False
        if not result.success:
            logger.warning("OTP for %s not delivered: status=%s", mask_phone(phone), result.status)
            OTP_EVENTS.labels("undelivered").inc()
        return result.success

    def verify(self, phone: str, code: str) -> str:
        if not (code or "").strip():
            raise ValidationError("Phone and OTP code are required")
        canonical = canonical_phone(phone, self.country_code)
        session = self.store.get_pending(canonical)
        if session is None:
            raise NotFoundError("No pending OTP found. Please request a new code.")

        if session.is_expired(self.clock()):
            self.store.delete(session.id)
            OTP_EVENTS.labels("expired").inc()
            raise ExpiredError("OTP has expired. Please request a new code.")

        if session.attempts >= self.cfg.max_attempts:
            self.store.delete(session.id)
            OTP_EVENTS.labels("attempts_exceeded").inc()
            raise AttemptsExceededError("Too many attempts. Please request a new code.")

        before = self.store.register_attempt(session.id, self.cfg.max_attempts)
        if before is None:
            # A concurrent verify consumed the last attempt.
            self.store.delete(session.id)
            OTP_EVENTS.labels("attempts_exceeded").inc()
            raise AttemptsExceededError("Too many attempts. Please request a new code.")

        if not codes_match(session.code, code):
            remaining = session.remaining_attempts(before, self.cfg)
            OTP_EVENTS.labels("invalid").inc()
            raise InvalidCodeError(f"Invalid OTP. {remaining} attempts remaining.", remaining)

        if not self.store.mark_verified(session.id):
            raise NotFoundError("No pending OTP found. Please request a new code.")
        OTP_EVENTS.labels("verified").inc()
        logger.info("OTP verified for %s", mask_phone(canonical))
        return session.id

    def purge_stale(self) -> int:
        deleted = self.store.purge_stale(self.clock(), self.cfg.reset_grace)
        if deleted:
            OTP_EVENTS.labels("purged").inc(deleted)
        return deleted


def get_otp_service(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> OTPService:
    return OTPService(SqlSessionStore(db), SqlAccountDirectory(db), dispatcher)
