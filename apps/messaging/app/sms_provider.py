from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import httpx
from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from iobuilds_shared import (
    ProviderConfig,
    ProviderError,
    build_adapter,
    mask_phone,
    normalize_recipients,
)

from .auth import get_db
from .config import settings
from .errors import ProviderNotConfiguredError
from .metrics import SMS_DISPATCH
from .models import SYSTEM_USER_ID, Notification, SmsProviderConfig

logger = logging.getLogger("messaging.sms")


@dataclass
class DispatchResult:
    success: bool
    status: str  # sent|failed|disabled
    provider_response: Optional[str] = None
    notification_id: Optional[str] = None


def load_provider_config(db: Session) -> Optional[ProviderConfig]:
    """Active provider settings: newest admin-maintained row, else environment."""
    row = db.query(SmsProviderConfig).order_by(SmsProviderConfig.updated_at.desc()).first()
    if row is not None:
        return ProviderConfig(
            provider=row.provider,
            api_key=row.api_key,
            api_secret=row.api_secret,
            sender_id=row.sender_id or settings.SMS_SENDER_ID,
            api_url=row.api_url,
            enabled=bool(row.enabled),
        )
    provider = (settings.SMS_PROVIDER or "").lower()
    if provider != "log" and not settings.SMS_API_KEY:
        return None
    return ProviderConfig(
        provider=provider,
        api_key=settings.SMS_API_KEY or None,
        api_secret=settings.SMS_API_SECRET or None,
        sender_id=settings.SMS_SENDER_ID,
        api_url=settings.SMS_API_URL or None,
        enabled=settings.SMS_ENABLED,
    )


class NotificationDispatcher:
    """Sends one SMS through the configured vendor and keeps the audit row.

    The ``notifications`` row is written as ``pending`` before the vendor call
    and moved to ``sent``/``failed`` afterwards with the raw vendor body.
    Vendor failures never propagate out of :meth:`send`.
    """

    def __init__(
        self,
        db: Session,
        *,
        config_loader: Callable[[Session], Optional[ProviderConfig]] = load_provider_config,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = settings.SMS_TIMEOUT_SECS,
        country_code: str = settings.PHONE_COUNTRY_CODE,
    ):
        self.db = db
        self.config_loader = config_loader
        self.transport = transport
        self.timeout = timeout
        self.country_code = country_code

    def active_config(self) -> ProviderConfig:
        cfg = self.config_loader(self.db)
        if cfg is None:
            raise ProviderNotConfiguredError("SMS API token not configured")
        return cfg

    def _adapter(self, cfg: ProviderConfig):
        return build_adapter(cfg, timeout=self.timeout, transport=self.transport)

    def _record_pending(self, recipients: str, message: str, order_id, user_id) -> Optional[Notification]:
        record = Notification(
            phone=recipients,
            message=message,
            order_id=order_id,
            user_id=user_id or SYSTEM_USER_ID,
            status="pending",
        )
        try:
            self.db.add(record)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Could not write notification audit row for %s", mask_phone(recipients))
            return None
        return record

    def _record_outcome(self, record: Optional[Notification], status: str, raw: Optional[str]) -> None:
        if record is None:
            return
        try:
            record.status = status
            record.provider_response = raw
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Could not update notification %s to %s", record.id, status)

    def send(
        self,
        phone: str,
        message: str,
        order_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> DispatchResult:
        cfg = self.active_config()
        recipients = normalize_recipients(phone, self.country_code)
        if not cfg.enabled:
            logger.info("SMS disabled; skipped send to %s", mask_phone(recipients))
            SMS_DISPATCH.labels(cfg.provider, "disabled").inc()
            return DispatchResult(success=False, status="disabled")

        # An unwritable audit table must not stop the message going out.
        record = self._record_pending(recipients, message, order_id, user_id)
        notification_id = record.id if record is not None else None

        try:
            result = self._adapter(cfg).send(recipients, message, cfg.sender_id)
            success, raw = result.success, result.raw
        except ProviderError as exc:
            logger.warning("SMS provider %s failed for %s: %s", cfg.provider, mask_phone(recipients), exc)
            success, raw = False, str(exc)
        except Exception as exc:
            logger.exception("Unexpected SMS dispatch error via %s", cfg.provider)
            success, raw = False, f"{type(exc).__name__}: {exc}"

        status = "sent" if success else "failed"
        self._record_outcome(record, status, raw)
        SMS_DISPATCH.labels(cfg.provider, status).inc()
        logger.info("SMS %s via %s to %s", status, cfg.provider, mask_phone(recipients))
        return DispatchResult(success=success, status=status, provider_response=raw, notification_id=notification_id)

    def balance(self) -> dict:
        cfg = self.active_config()
        try:
            result = self._adapter(cfg).balance()
        except ProviderError as exc:
            logger.warning("SMS balance lookup via %s failed: %s", cfg.provider, exc)
            return {"success": False, "error": str(exc), "raw": None}
        if not result.success:
            return {"success": False, "error": result.error or "Failed to fetch balance", "raw": result.raw}
        return {
            "success": True,
            "balance": result.balance,
            "raw": result.raw,
            "lowBalance": result.balance < settings.SMS_LOW_BALANCE_THRESHOLD,
        }


def get_dispatcher(db: Session = Depends(get_db)) -> NotificationDispatcher:
    return NotificationDispatcher(db)
