import pytest

from iobuilds_shared import env_bool, env_first, env_float, env_int, env_list


def test_env_bool_parses_and_defaults(monkeypatch):
    monkeypatch.setenv("SMS_ENABLED", "yes")
    assert env_bool("SMS_ENABLED") is True
    monkeypatch.setenv("SMS_ENABLED", "Off")
    assert env_bool("SMS_ENABLED", default=True) is False
    monkeypatch.setenv("SMS_ENABLED", "  ")
    assert env_bool("SMS_ENABLED", default=True) is True
    monkeypatch.delenv("SMS_ENABLED")
    assert env_bool("SMS_ENABLED") is False


def test_env_bool_rejects_garbage(monkeypatch):
    monkeypatch.setenv("SMS_ENABLED", "maybe")
    with pytest.raises(ValueError):
        env_bool("SMS_ENABLED")


def test_env_numbers(monkeypatch):
    monkeypatch.delenv("OTP_TTL_SECS", raising=False)
    assert env_int("OTP_TTL_SECS", 300) == 300
    monkeypatch.setenv("OTP_TTL_SECS", " 120 ")
    assert env_int("OTP_TTL_SECS", 300) == 120
    monkeypatch.setenv("SMS_TIMEOUT_SECS", "2.5")
    assert env_float("SMS_TIMEOUT_SECS", 10) == 2.5
    monkeypatch.setenv("OTP_TTL_SECS", "five")
    with pytest.raises(ValueError):
        env_int("OTP_TTL_SECS", 300)


def test_env_list(monkeypatch):
    monkeypatch.delenv("ALLOWED_ORIGINS", raising=False)
    assert env_list("ALLOWED_ORIGINS", default=["*"]) == ["*"]
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.lk, ,https://b.lk")
    assert env_list("ALLOWED_ORIGINS") == ["https://a.lk", "https://b.lk"]


def test_env_first_skips_blank_aliases(monkeypatch):
    monkeypatch.setenv("SMS_API_KEY", "")
    monkeypatch.setenv("TEXTLK_API_TOKEN", "tok")
    assert env_first("SMS_API_KEY", "TEXTLK_API_TOKEN") == "tok"
    monkeypatch.delenv("TEXTLK_API_TOKEN")
    assert env_first("SMS_API_KEY", "TEXTLK_API_TOKEN", default="none") == "none"
