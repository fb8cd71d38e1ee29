from .otp import (
    OTPConfig,
    VerificationSession,
    SessionStore,
    generate_otp_code,
    issue_code,
    codes_match,
    build_otp_message,
)
from .sms_provider import (
    ProviderConfig,
    ProviderResult,
    ProviderError,
    BalanceResult,
    SmsAdapter,
    build_adapter,
)
from .rate_limit import SlidingWindowLimiter, RedisRateLimiter
from .env import env_bool, env_int, env_float, env_list, env_first
from .phone_utils import (
    normalize_phone,
    normalize_recipients,
    mask_phone,
    phone_match_strategies,
    PhoneMatch,
)

__all__ = [
    "OTPConfig",
    "VerificationSession",
    "SessionStore",
    "generate_otp_code",
    "issue_code",
    "codes_match",
    "build_otp_message",
    "ProviderConfig",
    "ProviderResult",
    "ProviderError",
    "BalanceResult",
    "SmsAdapter",
    "build_adapter",
    "SlidingWindowLimiter",
    "RedisRateLimiter",
    "env_bool",
    "env_list",
    "env_first",
    "env_int",
    "env_float",
    "normalize_phone",
    "normalize_recipients",
    "mask_phone",
    "phone_match_strategies",
    "PhoneMatch",
]
