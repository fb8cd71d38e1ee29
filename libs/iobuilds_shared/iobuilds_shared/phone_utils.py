from __future__ import annotations

import re
from dataclasses import dataclass


DEFAULT_COUNTRY_CODE = "94"
# Shorter national parts would make the containment match far too broad.
MIN_CONTAINS_DIGITS = 7


def normalize_phone(phone: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """Normalize a user-entered phone number to country-prefixed digits.

    ``077 123 4567``, ``+94771234567`` and ``94771234567`` all become
    ``94771234567``. The result is not validated for length.
    """
    digits = re.sub(r"\D", "", phone or "")
    if digits.startswith("0"):
        return country_code + digits[1:]
    if not digits.startswith(country_code):
        return country_code + digits
    return digits


def normalize_recipients(raw: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """Normalize a comma-separated recipient list (bulk sends)."""
    parts = [p.strip() for p in (raw or "").split(",")]
    return ",".join(normalize_phone(p, country_code) for p in parts if p)


def national_part(canonical: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    if canonical.startswith(country_code):
        return canonical[len(country_code):]
    return canonical


def mask_phone(phone: str, visible_digits: int = 2) -> str:
    if not phone:
        return ""
    if len(phone) <= visible_digits:
        return phone
    return "*" * (len(phone) - visible_digits) + phone[-visible_digits:]


@dataclass(frozen=True)
class PhoneMatch:
    """One tolerant lookup strategy for stored phone values.

    ``op`` is ``eq`` (stored value equals ``value``) or ``contains`` (stored
    value contains ``value``).
    """

    name: str
    op: str
    value: str

    def matches(self, stored: str | None) -> bool:
        if not stored:
            return False
        if self.op == "eq":
            return stored == self.value
        if self.op == "contains":
            return self.value in stored
        raise ValueError(f"Unknown phone match op {self.op!r}")


def phone_match_strategies(canonical: str, country_code: str = DEFAULT_COUNTRY_CODE) -> list[PhoneMatch]:
    """Ordered strategies for matching inconsistently formatted stored phones.

    Legacy profile rows hold numbers as ``94...``, ``+94...`` or ``0...``.
    Callers evaluate the list in order and stop at the first hit.
    """
    national = national_part(canonical, country_code)
    strategies = [
        PhoneMatch("exact", "eq", canonical),
        PhoneMatch("international", "eq", "+" + canonical),
        PhoneMatch("local", "eq", "0" + national),
    ]
    if len(national) >= MIN_CONTAINS_DIGITS:
        strategies.append(PhoneMatch("contains", "contains", national))
    return strategies

