from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from iobuilds_shared import normalize_phone

from .config import settings
from .models import Order, Profile, ShopOrder, SystemSetting
from .sms_provider import NotificationDispatcher

logger = logging.getLogger("messaging.orders")

ORDER_TYPES = ("print", "shop")
NOTIFICATION_TYPES = ("new_order", "thank_you")


@dataclass
class OrderSummary:
    order_id: str
    order_type: str
    customer_name: str = "Customer"
    customer_phone: str = ""
    user_id: Optional[str] = None
    total: float = 0.0

    @property
    def short_id(self) -> str:
        return self.order_id[:8]


class OrderLookup(Protocol):
    def get(self, order_id: str, order_type: str) -> OrderSummary:
        ...

    def admin_phone(self) -> Optional[str]:
        ...


class SqlOrderLookup:
    """Reads order, customer and admin phone from the storefront tables."""

    def __init__(self, db: Session):
        self.db = db

    def _profile(self, user_id: Optional[str]) -> Optional[Profile]:
        if not user_id:
            return None
        return self.db.query(Profile).filter(Profile.user_id == user_id).one_or_none()

    def get(self, order_id: str, order_type: str) -> OrderSummary:
        summary = OrderSummary(order_id=order_id, order_type=order_type)
        if order_type == "shop":
            order = self.db.get(ShopOrder, order_id)
            if order is not None:
                summary.customer_phone = order.phone or ""
                summary.total = float(order.total_price or 0)
                summary.user_id = order.user_id
                profile = self._profile(order.user_id)
                summary.customer_name = (profile.first_name if profile else "") or "Customer"
        else:
            order = self.db.get(Order, order_id)
            if order is not None:
                summary.user_id = order.user_id
                profile = self._profile(order.user_id)
                summary.customer_name = (profile.first_name if profile else "") or "Customer"
                summary.customer_phone = (profile.phone if profile else "") or ""
        return summary

    def admin_phone(self) -> Optional[str]:
        row = self.db.query(SystemSetting).filter(SystemSetting.key == "admin_phone").one_or_none()
        if row is None or not row.value:
            return None
        # Stored as a JSON string, sometimes with its quotes kept.
        return str(row.value).replace('"', "") or None


def format_total(total: float) -> str:
    if float(total).is_integer():
        return f"{total:,.0f}"
    return f"{total:,.2f}"


def new_order_message(summary: OrderSummary) -> str:
    kind = "Shop" if summary.order_type == "shop" else "3D Print"
    tail = f"Total: LKR {format_total(summary.total)}" if summary.total > 0 else "Please review and price."
    return f"New {kind} Order #{summary.short_id} from {summary.customer_name}! {tail}"


def thank_you_message(summary: OrderSummary, store_name: str = settings.STORE_NAME) -> str:
    if summary.order_type == "shop":
        return (
            f"Thank you for your order #{summary.short_id}! We're processing it immediately. "
            f"You'll receive an update once your payment is verified. - {store_name}"
        )
    return (
        f"Thank you for your 3D print order #{summary.short_id}! "
        f"We'll review and price your items shortly. - {store_name}"
    )


class OrderNotifier:
    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        lookup: OrderLookup,
        *,
        fallback_admin_phone: str = settings.ADMIN_PHONE_FALLBACK,
        country_code: str = settings.PHONE_COUNTRY_CODE,
    ):
        self.dispatcher = dispatcher
        self.lookup = lookup
        self.fallback_admin_phone = fallback_admin_phone
        self.country_code = country_code

    def notify(self, order_id: str, order_type: str, notification_type: str) -> list[dict]:
        # Fail before any lookups when no provider is configured.
        self.dispatcher.active_config()
        summary = self.lookup.get(order_id, order_type)

        outgoing: list[tuple[str, str, Optional[str]]] = []
        if notification_type == "new_order":
            admin = self.lookup.admin_phone() or self.fallback_admin_phone
            outgoing.append((normalize_phone(admin, self.country_code), new_order_message(summary), None))
        if notification_type == "thank_you":
            if summary.customer_phone:
                phone = normalize_phone(summary.customer_phone, self.country_code)
                outgoing.append((phone, thank_you_message(summary), summary.user_id))
            else:
                logger.info("No customer phone for order %s; thank-you skipped", summary.short_id)

        results = []
        for phone, message, user_id in outgoing:
            result = self.dispatcher.send(phone, message, order_id=order_id, user_id=user_id)
            results.append(
                {
                    "phone": phone,
                    "success": result.success,
                    "status": result.status,
                    "response": result.provider_response,
                }
            )
        return results
