from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import httpx

from .phone_utils import mask_phone

logger = logging.getLogger("iobuilds.sms")

DEFAULT_TIMEOUT_SECS = 10.0
TEXTLK_BASE_URL = "https://app.text.lk/api/v3"
NOTIFYLK_BASE_URL = "https://app.notify.lk/api/v1"
BALANCE_FIELDS = ("remaining_unit", "balance", "units", "sms_unit", "acc_balance")


class ProviderError(Exception):
    """Transport-level failure talking to an SMS vendor."""


@dataclass
class ProviderConfig:
    provider: str
    api_key: Optional[str] = None
    api_secret: Optional[str] = None
    sender_id: Optional[str] = None
    api_url: Optional[str] = None
    enabled: bool = True


@dataclass
class ProviderResult:
    success: bool
    raw: str
    status_code: Optional[int] = None


@dataclass
class BalanceResult:
    success: bool
    balance: float = 0.0
    raw: Any = None
    error: Optional[str] = None


class SmsAdapter(Protocol):
    name: str

    def send(self, recipients: str, message: str, sender_id: Optional[str]) -> ProviderResult:  # pragma: no cover - interface
        ...

    def balance(self) -> BalanceResult:  # pragma: no cover - interface
        ...


def _json_or_none(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return None


def _is_2xx(status_code: int) -> bool:
    return 200 <= status_code < 300


def parse_balance(data: Any) -> float:
    """Vendors report balance as a number, a numeric string or an object."""
    if isinstance(data, bool):
        return 0.0
    if isinstance(data, (int, float)):
        return float(data)
    if isinstance(data, str):
        try:
            return float(data)
        except ValueError:
            return 0.0
    if isinstance(data, dict):
        for key in BALANCE_FIELDS:
            value = data.get(key)
            if value:
                return parse_balance(value)
    return 0.0


@dataclass
class _HttpAdapter:
    api_key: Optional[str] = None
    api_secret: Optional[str] = None
    api_url: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT_SECS
    transport: Optional[httpx.BaseTransport] = field(default=None, repr=False)

    name = "http"

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                return client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise ProviderError(f"{self.name} request failed: {exc}") from exc

    def balance(self) -> BalanceResult:
        return BalanceResult(success=False, error=f"Balance lookup not supported by {self.name}")


@dataclass
class TextLkBackend(_HttpAdapter):
    """Text.lk v3: JSON body, bearer token, JSON ``status`` flag."""

    name = "textlk"

    @property
    def base_url(self) -> str:
        return (self.api_url or TEXTLK_BASE_URL).rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def send(self, recipients: str, message: str, sender_id: Optional[str]) -> ProviderResult:
        payload = {
            "recipient": recipients,
            "sender_id": sender_id,
            "type": "plain",
            "message": message,
        }
        res = self._request("POST", f"{self.base_url}/sms/send", json=payload, headers=self._headers())
        body = _json_or_none(res.text)
        ok = False
        if _is_2xx(res.status_code) and isinstance(body, dict):
            data = body.get("data")
            ok = body.get("status") == "success" or (isinstance(data, dict) and bool(data.get("id")))
        return ProviderResult(success=ok, raw=res.text, status_code=res.status_code)

    def balance(self) -> BalanceResult:
        res = self._request("GET", f"{self.base_url}/balance", headers=self._headers())
        body = _json_or_none(res.text)
        if isinstance(body, dict) and body.get("status") == "success":
            data = body.get("data")
            return BalanceResult(success=True, balance=parse_balance(data), raw=data)
        message = body.get("message") if isinstance(body, dict) else None
        return BalanceResult(success=False, raw=body if body is not None else res.text, error=message or "Failed to fetch balance")


@dataclass
class NotifyLkBackend(_HttpAdapter):
    """Notify.lk: form-encoded credentials, ``api_secret`` is the account user id."""

    name = "notifylk"

    @property
    def base_url(self) -> str:
        return (self.api_url or NOTIFYLK_BASE_URL).rstrip("/")

    def _credentials(self) -> dict[str, str]:
        return {"user_id": self.api_secret or "", "api_key": self.api_key or ""}

    def send(self, recipients: str, message: str, sender_id: Optional[str]) -> ProviderResult:
        form = self._credentials() | {
            "sender_id": sender_id or "",
            "to": recipients,
            "message": message,
        }
        res = self._request("POST", f"{self.base_url}/send", data=form)
        body = _json_or_none(res.text)
        ok = _is_2xx(res.status_code) and isinstance(body, dict) and body.get("status") == "success"
        return ProviderResult(success=ok, raw=res.text, status_code=res.status_code)

    def balance(self) -> BalanceResult:
        res = self._request("GET", f"{self.base_url}/status", params=self._credentials())
        body = _json_or_none(res.text)
        if isinstance(body, dict) and body.get("status") == "success":
            data = body.get("data")
            return BalanceResult(success=True, balance=parse_balance(data), raw=data)
        return BalanceResult(success=False, raw=body if body is not None else res.text, error="Failed to fetch balance")


@dataclass
class HttpBackend(_HttpAdapter):
    """Generic JSON gateway; any 2xx counts as accepted."""

    name = "http"

    def send(self, recipients: str, message: str, sender_id: Optional[str]) -> ProviderResult:
        if not (self.api_url or "").strip():
            raise ProviderError("SMS URL must be configured for the http provider")
        payload = {"to": recipients, "message": message}
        if sender_id:
            payload["sender"] = sender_id
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self.api_key:
            headers["X-Api-Key"] = self.api_key
        res = self._request("POST", self.api_url, json=payload, headers=headers)
        return ProviderResult(success=_is_2xx(res.status_code), raw=res.text, status_code=res.status_code)


@dataclass
class LogBackend:
    name = "log"

    def send(self, recipients: str, message: str, sender_id: Optional[str]) -> ProviderResult:
        masked = ",".join(mask_phone(p) for p in recipients.split(","))
        logger.info("SMS log backend to=%s sender=%s msg=%s", masked, sender_id, _mask_code_in_message(message))
        return ProviderResult(success=True, raw=json.dumps({"status": "logged"}))

    def balance(self) -> BalanceResult:
        return BalanceResult(success=True, balance=0.0, raw={"provider": "log"})


ADAPTERS = {
    "textlk": TextLkBackend,
    "notifylk": NotifyLkBackend,
    "http": HttpBackend,
}


def build_adapter(
    cfg: ProviderConfig,
    *,
    timeout: float = DEFAULT_TIMEOUT_SECS,
    transport: Optional[httpx.BaseTransport] = None,
) -> SmsAdapter:
    name = (cfg.provider or "").strip().lower()
    if name == "log":
        return LogBackend()
    backend_cls = ADAPTERS.get(name)
    if backend_cls is None:
        raise ProviderError(f"Unsupported SMS provider '{cfg.provider}'")
    return backend_cls(
        api_key=cfg.api_key,
        api_secret=cfg.api_secret,
        api_url=cfg.api_url,
        timeout=timeout,
        transport=transport,
    )


def _mask_code(code: str) -> str:
    if len(code) <= 2:
        return "*" * len(code)
    return "*" * (len(code) - 2) + code[-2:]


def _mask_code_in_message(message: str) -> str:
    return re.sub(r"\d{4,}", lambda m: _mask_code(m.group(0)), message or "")
