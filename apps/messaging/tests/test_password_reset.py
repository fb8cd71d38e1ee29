from datetime import timedelta

import pytest

from iobuilds_shared import OTPConfig

from app.errors import (
    InvalidSessionError,
    NotFoundError,
    SessionExpiredError,
    UpdateFailedError,
    ValidationError,
)
from app.models import OtpSession
from app.password_reset import PasswordResetCoordinator
from app.session_store import SqlSessionStore

from fakes import Clock, FakeCredentials, FakeDirectory


CANONICAL = "94771234567"


@pytest.fixture
def clock():
    return Clock()


def _coordinator(db, clock, credentials=None, directory=None):
    return PasswordResetCoordinator(
        SqlSessionStore(db),
        directory or FakeDirectory(["+94771234567"]),
        credentials or FakeCredentials(),
        OTPConfig(),
        clock=clock,
    )


def _session(db, clock, verified=True, phone=CANONICAL):
    store = SqlSessionStore(db)
    session = store.replace(phone, "123456", clock() + timedelta(minutes=5))
    if verified:
        store.mark_verified(session.id)
    return session.id


def test_reset_updates_credentials_and_consumes_session(db, clock):
    creds = FakeCredentials()
    session_id = _session(db, clock)
    _coordinator(db, clock, creds).reset("0771234567", "n3w-secret", session_id)
    assert creds.calls == [("user-1", "n3w-secret")]
    assert db.query(OtpSession).count() == 0
    with pytest.raises(InvalidSessionError):
        _coordinator(db, clock, creds).reset("0771234567", "n3w-secret", session_id)


def test_short_password_is_rejected_first(db, clock):
    creds = FakeCredentials()
    session_id = _session(db, clock)
    with pytest.raises(ValidationError):
        _coordinator(db, clock, creds).reset(CANONICAL, "12345", session_id)
    assert creds.calls == []
    assert db.query(OtpSession).count() == 1


def test_unverified_session_is_invalid(db, clock):
    session_id = _session(db, clock, verified=False)
    with pytest.raises(InvalidSessionError):
        _coordinator(db, clock).reset(CANONICAL, "secret1", session_id)


def test_session_for_other_phone_is_invalid(db, clock):
    session_id = _session(db, clock, phone="94779999999")
    with pytest.raises(InvalidSessionError):
        _coordinator(db, clock).reset(CANONICAL, "secret1", session_id)


def test_unknown_session_id_is_invalid(db, clock):
    _session(db, clock)
    with pytest.raises(InvalidSessionError):
        _coordinator(db, clock).reset(CANONICAL, "secret1", "no-such-session")


def test_reset_allowed_until_grace_deadline(db, clock):
    session_id = _session(db, clock)
    clock.advance(minutes=15)
    _coordinator(db, clock).reset(CANONICAL, "secret1", session_id)
    assert db.query(OtpSession).count() == 0


def test_reset_after_grace_deletes_session(db, clock):
    creds = FakeCredentials()
    session_id = _session(db, clock)
    clock.advance(minutes=15, seconds=1)
    with pytest.raises(SessionExpiredError):
        _coordinator(db, clock, creds).reset(CANONICAL, "secret1", session_id)
    assert creds.calls == []
    assert db.query(OtpSession).count() == 0


def test_missing_account_is_not_found(db, clock):
    session_id = _session(db, clock)
    with pytest.raises(NotFoundError):
        _coordinator(db, clock, directory=FakeDirectory()).reset(CANONICAL, "secret1", session_id)
    assert db.query(OtpSession).count() == 1


def test_failed_update_keeps_session_for_retry(db, clock):
    session_id = _session(db, clock)
    with pytest.raises(UpdateFailedError):
        _coordinator(db, clock, FakeCredentials(fail=True)).reset(CANONICAL, "secret1", session_id)
    assert db.query(OtpSession).count() == 1

    creds = FakeCredentials()
    _coordinator(db, clock, creds).reset(CANONICAL, "secret1", session_id)
    assert creds.calls == [("user-1", "secret1")]
    assert db.query(OtpSession).count() == 0
