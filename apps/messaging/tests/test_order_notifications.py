import httpx
import pytest

from iobuilds_shared import ProviderConfig

from app.errors import ProviderNotConfiguredError
from app.models import SYSTEM_USER_ID, Notification, Order, Profile, ShopOrder, SystemSetting
from app.order_notifications import OrderNotifier, SqlOrderLookup, format_total
from app.sms_provider import NotificationDispatcher


SHOP_ID = "abcdef12-0000-4000-8000-000000000001"
PRINT_ID = "12345678-0000-4000-8000-000000000002"


def _notifier(db, cfg=None, transport=None):
    cfg = cfg if cfg is not None else ProviderConfig(provider="log", sender_id="IO Builds")
    dispatcher = NotificationDispatcher(db, config_loader=lambda _db: cfg, transport=transport)
    return OrderNotifier(dispatcher, SqlOrderLookup(db))


@pytest.fixture
def shop_order(db):
    db.add(Profile(user_id="u-shop", first_name="Nimal", phone="0771112223"))
    db.add(ShopOrder(id=SHOP_ID, user_id="u-shop", phone="077 444 5556", total_price=12500))
    db.commit()


@pytest.fixture
def print_order(db):
    db.add(Profile(user_id="u-print", first_name="", phone="+94775556667"))
    db.add(Order(id=PRINT_ID, user_id="u-print", total_price=None))
    db.commit()


def test_new_shop_order_goes_to_configured_admin(db, shop_order):
    db.add(SystemSetting(key="admin_phone", value='"0719998887"'))
    db.commit()
    results = _notifier(db).notify(SHOP_ID, "shop", "new_order")
    assert len(results) == 1
    assert results[0]["phone"] == "94719998887"
    assert results[0]["success"] is True
    row = db.query(Notification).one()
    assert row.message == "New Shop Order #abcdef12 from Nimal! Total: LKR 12,500"
    assert row.order_id == SHOP_ID
    assert row.user_id == SYSTEM_USER_ID


def test_new_print_order_uses_fallback_admin_phone(db, print_order):
    results = _notifier(db).notify(PRINT_ID, "print", "new_order")
    assert results[0]["phone"] == "94770000000"
    row = db.query(Notification).one()
    assert row.message == "New 3D Print Order #12345678 from Customer! Please review and price."


def test_shop_thank_you_goes_to_order_phone(db, shop_order):
    results = _notifier(db).notify(SHOP_ID, "shop", "thank_you")
    assert [r["phone"] for r in results] == ["94774445556"]
    row = db.query(Notification).one()
    assert row.user_id == "u-shop"
    assert row.message == (
        "Thank you for your order #abcdef12! We're processing it immediately. "
        "You'll receive an update once your payment is verified. - IO Builds"
    )


def test_print_thank_you_goes_to_profile_phone(db, print_order):
    results = _notifier(db).notify(PRINT_ID, "print", "thank_you")
    assert results[0]["phone"] == "94775556667"
    assert db.query(Notification).one().message == (
        "Thank you for your 3D print order #12345678! We'll review and price your items shortly. - IO Builds"
    )


def test_thank_you_skipped_without_customer_phone(db):
    assert _notifier(db).notify("missing-order", "print", "thank_you") == []
    assert db.query(Notification).count() == 0


def test_vendor_failure_is_embedded_in_results(db, shop_order):
    cfg = ProviderConfig(provider="textlk", api_key="tok", sender_id="IO Builds")
    transport = httpx.MockTransport(lambda r: httpx.Response(500, text="upstream down"))
    results = _notifier(db, cfg, transport).notify(SHOP_ID, "shop", "new_order")
    assert results[0]["success"] is False
    assert results[0]["status"] == "failed"
    assert results[0]["response"] == "upstream down"


def test_requires_configured_provider(db):
    dispatcher = NotificationDispatcher(db, config_loader=lambda _db: None)
    with pytest.raises(ProviderNotConfiguredError):
        OrderNotifier(dispatcher, SqlOrderLookup(db)).notify(SHOP_ID, "shop", "new_order")


def test_format_total():
    assert format_total(12500) == "12,500"
    assert format_total(1234.5) == "1,234.50"
