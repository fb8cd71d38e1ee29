from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Protocol


CODE_MIN = 100000
CODE_MAX = 999999


@dataclass
class OTPConfig:
    mode: str = "live"  # "dev" or "live"
    ttl_secs: int = 300
    max_attempts: int = 5
    reset_grace_secs: int = 600
    dev_code: str = "123456"

    @property
    def ttl(self) -> timedelta:
        return timedelta(seconds=self.ttl_secs)

    @property
    def reset_grace(self) -> timedelta:
        return timedelta(seconds=self.reset_grace_secs)


def generate_otp_code() -> str:
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


def issue_code(cfg: OTPConfig) -> str:
    if cfg.mode == "dev":
        return cfg.dev_code
    return generate_otp_code()


def codes_match(expected: str, submitted: str) -> bool:
    return secrets.compare_digest((expected or "").encode(), (submitted or "").strip().encode())


def build_otp_message(template: str, code: str) -> str:
    try:
        return template.format(code=code)
    except (KeyError, IndexError, ValueError):
        return f"Your verification code is {code}"


@dataclass
class VerificationSession:
    id: str
    phone: str
    code: str
    expires_at: datetime
    verified: bool = False
    attempts: int = 0
    created_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def reset_deadline(self, cfg: OTPConfig) -> datetime:
        return self.expires_at + cfg.reset_grace

    def remaining_attempts(self, attempts_before: int, cfg: OTPConfig) -> int:
        return max(cfg.max_attempts - 1 - attempts_before, 0)


class SessionStore(Protocol):
    """Durable storage of at most one OTP challenge per canonical phone."""

    def replace(self, phone: str, code: str, expires_at: datetime) -> VerificationSession:
        ...

    def get_pending(self, phone: str) -> Optional[VerificationSession]:
        ...

    def get_verified(self, session_id: str, phone: str) -> Optional[VerificationSession]:
        ...

    def register_attempt(self, session_id: str, max_attempts: int) -> Optional[int]:
        """Increment attempts unless the ceiling is reached; return the count before."""
        ...

    def mark_verified(self, session_id: str) -> bool:
        ...

    def delete(self, session_id: str) -> None:
        ...

    def purge_stale(self, now: datetime, reset_grace: timedelta) -> int:
        ...
