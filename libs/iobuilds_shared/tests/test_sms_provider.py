import json
import urllib.parse

import httpx
import pytest

from iobuilds_shared.sms_provider import (
    HttpBackend,
    LogBackend,
    NotifyLkBackend,
    ProviderConfig,
    ProviderError,
    TextLkBackend,
    build_adapter,
    parse_balance,
)


def _transport(status_code=200, body="", seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, text=body)

    return httpx.MockTransport(handler)


def test_textlk_sends_json_with_bearer_token():
    seen = []
    backend = TextLkBackend(api_key="tok", transport=_transport(200, json.dumps({"status": "success"}), seen))
    result = backend.send("94771234567", "hello", "IO Builds")
    assert result.success
    req = seen[0]
    assert str(req.url) == "https://app.text.lk/api/v3/sms/send"
    assert req.headers["Authorization"] == "Bearer tok"
    assert json.loads(req.content) == {
        "recipient": "94771234567",
        "sender_id": "IO Builds",
        "type": "plain",
        "message": "hello",
    }


def test_textlk_accepts_data_id_without_status():
    body = json.dumps({"data": {"id": "abc"}})
    assert TextLkBackend(api_key="t", transport=_transport(200, body)).send("94", "m", None).success


def test_textlk_error_status_is_failure_with_raw_body():
    body = json.dumps({"status": "error", "message": "bad sender"})
    result = TextLkBackend(api_key="t", transport=_transport(200, body)).send("94", "m", None)
    assert not result.success
    assert result.raw == body


@pytest.mark.parametrize("body", ["<html>oops</html>", "", "[1, 2]", '"success"'])
def test_textlk_malformed_body_never_raises(body):
    result = TextLkBackend(api_key="t", transport=_transport(200, body)).send("94", "m", None)
    assert not result.success
    assert result.raw == body


def test_notifylk_posts_form_and_checks_status():
    seen = []
    backend = NotifyLkBackend(
        api_key="key",
        api_secret="user-7",
        transport=_transport(200, json.dumps({"status": "success"}), seen),
    )
    assert backend.send("94771234567", "hi there", "IOB").success
    form = dict(urllib.parse.parse_qsl(seen[0].content.decode()))
    assert form == {
        "user_id": "user-7",
        "api_key": "key",
        "sender_id": "IOB",
        "to": "94771234567",
        "message": "hi there",
    }
    assert seen[0].headers["Content-Type"].startswith("application/x-www-form-urlencoded")


def test_notifylk_2xx_without_success_status_fails():
    result = NotifyLkBackend(api_key="k", transport=_transport(200, json.dumps({"status": "failed"}))).send("94", "m", None)
    assert not result.success


def test_http_backend_is_bare_2xx():
    seen = []
    backend = HttpBackend(api_key="k1", api_url="https://sms.example/send", transport=_transport(202, "queued", seen))
    result = backend.send("94771234567", "m", "IOB")
    assert result.success and result.raw == "queued"
    assert seen[0].headers["X-Api-Key"] == "k1"
    assert json.loads(seen[0].content) == {"to": "94771234567", "message": "m", "sender": "IOB"}

    failed = HttpBackend(api_url="https://sms.example/send", transport=_transport(500, json.dumps({"status": "success"})))
    assert not failed.send("94", "m", None).success


def test_http_backend_requires_url():
    with pytest.raises(ProviderError):
        HttpBackend(api_url="").send("94", "m", None)


def test_transport_errors_become_provider_errors():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    backend = TextLkBackend(api_key="t", transport=httpx.MockTransport(handler))
    with pytest.raises(ProviderError):
        backend.send("94", "m", None)


def test_log_backend_always_succeeds():
    result = LogBackend().send("94771234567,94777654321", "Your code is 123456", "IOB")
    assert result.success
    assert LogBackend().balance().success


def test_build_adapter_by_name():
    assert isinstance(build_adapter(ProviderConfig(provider="TextLK", api_key="t")), TextLkBackend)
    assert isinstance(build_adapter(ProviderConfig(provider="notifylk")), NotifyLkBackend)
    assert isinstance(build_adapter(ProviderConfig(provider="log")), LogBackend)
    with pytest.raises(ProviderError):
        build_adapter(ProviderConfig(provider="carrier-pigeon"))


@pytest.mark.parametrize(
    "data, expected",
    [
        (1500, 1500.0),
        ("42.5", 42.5),
        ("n/a", 0.0),
        ({"remaining_unit": 75}, 75.0),
        ({"balance": "12"}, 12.0),
        ({"units": 0, "sms_unit": 9}, 9.0),
        (None, 0.0),
        ([1, 2], 0.0),
    ],
)
def test_parse_balance_shapes(data, expected):
    assert parse_balance(data) == expected


def test_textlk_balance_success_and_failure():
    ok = TextLkBackend(api_key="t", transport=_transport(200, json.dumps({"status": "success", "data": {"remaining_unit": 80}})))
    res = ok.balance()
    assert res.success and res.balance == 80.0 and res.raw == {"remaining_unit": 80}

    bad = TextLkBackend(api_key="t", transport=_transport(401, json.dumps({"status": "error", "message": "Unauthenticated"})))
    res = bad.balance()
    assert not res.success and res.error == "Unauthenticated"


def test_http_backend_has_no_balance():
    res = HttpBackend(api_url="https://sms.example").balance()
    assert not res.success and res.error
