import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base


Base = declarative_base()

# Placeholder owner for audit rows not tied to a customer (admin alerts, OTPs).
SYSTEM_USER_ID = "00000000-0000-0000-0000-000000000000"


def default_uuid() -> str:
    return str(uuid.uuid4())


class OtpSession(Base):
    __tablename__ = "otp_sessions"
    __table_args__ = (Index("ix_otp_sessions_phone_verified", "phone", "verified"),)

    id = Column(String(36), primary_key=True, default=default_uuid)
    phone = Column(String(32), nullable=False)
    otp_code = Column(String(12), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    verified = Column(Boolean, nullable=False, default=False)
    attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class Notification(Base):
    """Audit row per outgoing SMS, in the storefront's existing `notifications` shape."""

    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_order", "order_id"),
        Index("ix_notifications_sent_at", "sent_at"),
    )

    id = Column(String(36), primary_key=True, default=default_uuid)
    phone = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    order_id = Column(String(36), nullable=True)
    user_id = Column(String(36), nullable=False, default=SYSTEM_USER_ID)
    status = Column(String(16), nullable=True, default="pending")  # pending|sent|failed
    provider_response = Column(Text, nullable=True)
    sent_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class SmsProviderConfig(Base):
    """Provider settings maintained from the admin panel; read-only here."""

    __tablename__ = "sms_provider_configs"

    id = Column(String(36), primary_key=True, default=default_uuid)
    provider = Column(String(32), nullable=False)
    api_key = Column(Text, nullable=True)
    api_secret = Column(Text, nullable=True)
    sender_id = Column(String(64), nullable=True)
    api_url = Column(Text, nullable=True)
    enabled = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)


# Storefront tables below are owned by the storefront schema and only read here.


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=default_uuid)
    user_id = Column(String(36), nullable=False, unique=True)
    first_name = Column(String(128), nullable=False, default="")
    last_name = Column(String(128), nullable=False, default="")
    phone = Column(String(32), nullable=False, default="")
    email = Column(String(255), nullable=True)


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=default_uuid)
    user_id = Column(String(36), nullable=False)
    total_price = Column(Numeric(12, 2, asdecimal=False), nullable=True)
    status = Column(String(32), nullable=False, default="pending")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class ShopOrder(Base):
    __tablename__ = "shop_orders"

    id = Column(String(36), primary_key=True, default=default_uuid)
    user_id = Column(String(36), nullable=False)
    phone = Column(String(32), nullable=False, default="")
    total_price = Column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    status = Column(String(32), nullable=False, default="pending")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class SystemSetting(Base):
    __tablename__ = "system_settings"

    id = Column(String(36), primary_key=True, default=default_uuid)
    key = Column(String(64), nullable=False, unique=True)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
