from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx
from sqlalchemy.orm import Session

from iobuilds_shared import mask_phone, phone_match_strategies

from .config import settings
from .models import Profile

logger = logging.getLogger("messaging.directory")


@dataclass
class Account:
    user_id: str
    phone: str
    first_name: str = ""


class AccountDirectory(Protocol):
    def find_by_phone(self, canonical_phone: str) -> Optional[Account]:
        ...


class CredentialUpdateError(Exception):
    pass


class CredentialUpdater(Protocol):
    def update_password(self, user_id: str, new_password: str) -> None:
        ...


class SqlAccountDirectory:
    """Looks up storefront profiles with the tolerant phone match strategies."""

    def __init__(self, db: Session, country_code: str = settings.PHONE_COUNTRY_CODE):
        self.db = db
        self.country_code = country_code

    def find_by_phone(self, canonical_phone: str) -> Optional[Account]:
        for strategy in phone_match_strategies(canonical_phone, self.country_code):
            query = self.db.query(Profile)
            if strategy.op == "eq":
                query = query.filter(Profile.phone == strategy.value)
            else:
                query = query.filter(Profile.phone.ilike(f"%{strategy.value}%"))
            profile = query.order_by(Profile.id).first()
            if profile is not None:
                logger.debug("Profile matched %s via %s", mask_phone(canonical_phone), strategy.name)
                return Account(user_id=profile.user_id, phone=profile.phone, first_name=profile.first_name or "")
        return None


@dataclass
class SupabaseCredentialUpdater:
    """Sets a user's password through the hosted auth admin REST API."""

    base_url: str
    service_key: str
    timeout: float = 10.0
    transport: Optional[httpx.BaseTransport] = None

    def update_password(self, user_id: str, new_password: str) -> None:
        if not (self.base_url and self.service_key):
            raise CredentialUpdateError("Credential service is not configured")
        url = f"{self.base_url.rstrip('/')}/auth/v1/admin/users/{user_id}"
        headers = {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": "application/json",
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                res = client.put(url, json={"password": new_password}, headers=headers)
        except httpx.HTTPError as exc:
            raise CredentialUpdateError(f"Credential service unreachable: {exc}") from exc
        if res.status_code >= 400:
            raise CredentialUpdateError(f"Credential update failed ({res.status_code}): {res.text}")


def default_credential_updater() -> SupabaseCredentialUpdater:
    return SupabaseCredentialUpdater(
        base_url=settings.SUPABASE_URL,
        service_key=settings.SUPABASE_SERVICE_ROLE_KEY,
    )
