from __future__ import annotations

import os
from typing import Iterable, List, Optional

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _raw(name: str) -> Optional[str]:
    """Trimmed value of ``name``; blank counts as unset."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def env_bool(name: str, *, default: bool = False) -> bool:
    """Boolean flag such as ``SMS_ENABLED``; unparseable values raise ``ValueError``."""
    value = _raw(name)
    if value is None:
        return default
    if value.lower() in _TRUE_VALUES:
        return True
    if value.lower() in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for {name!r}: {value!r}")


def env_int(name: str, default: int) -> int:
    value = _raw(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Invalid integer for {name!r}: {value!r}") from None


def env_float(name: str, default: float) -> float:
    value = _raw(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Invalid number for {name!r}: {value!r}") from None


def env_list(name: str, *, default: Iterable[str] | None = None, separator: str = ",") -> List[str]:
    """Delimited list, e.g. ``ALLOWED_ORIGINS``; unset falls back to ``default``."""
    if os.getenv(name) is None:
        return list(default or [])
    return [part.strip() for part in os.environ[name].split(separator) if part.strip()]


def env_first(*names: str, default: str = "") -> str:
    """First non-blank value among alias names (``SMS_API_KEY``, ``TEXTLK_API_TOKEN``)."""
    for name in names:
        value = _raw(name)
        if value is not None:
            return value
    return default


__all__ = ["env_bool", "env_int", "env_float", "env_list", "env_first"]
