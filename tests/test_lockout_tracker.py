from datetime import datetime, timedelta

import pytest

from app import create_app
from config import TestConfig
from models.user_security import UserSecurity
from security.errors import InvalidState, NotFound
from security.lockout import INVALID_CREDENTIALS


def test_three_failures_lock_and_mint_token(services, homeowner, outbox, record_of):
    now = datetime(2026, 10, 18, 9, 30)
    services.set_clock(lambda: now)

    first = services.tracker.record_failed_attempt(homeowner.email, ip_address="203.0.113.5")
    second = services.tracker.record_failed_attempt(homeowner.email)
    third = services.tracker.record_failed_attempt(homeowner.email)

    assert (first.locked, first.attempts_remaining, first.status_code) == (False, 2, 401)
    assert (second.locked, second.attempts_remaining, second.status_code) == (False, 1, 401)
    assert (third.locked, third.attempts_remaining, third.status_code) == (True, 0, 423)
    assert third.just_locked

    record = record_of(homeowner)
    assert record.account_locked
    assert record.failed_login_count == 3
    assert record.locked_at == now
    assert record.locked_reason == "Automatic lockout due to 3 failed login attempts"
    assert len(record.unlock_token) == 64
    assert record.unlock_token_expires == now + timedelta(days=7)
    assert record.ip_address == "203.0.113.5"


def test_counter_is_frozen_once_locked(services, locked_homeowner, record_of):
    token = record_of(locked_homeowner).unlock_token

    fourth = services.tracker.record_failed_attempt(locked_homeowner.email)

    assert fourth.locked and fourth.attempts_remaining == 0
    assert not fourth.just_locked
    record = record_of(locked_homeowner)
    assert record.failed_login_count == 3
    assert record.unlock_token == token


def test_unknown_email_creates_nothing(services, app):
    result = services.tracker.record_failed_attempt("ghost@example.com")

    assert result.message == INVALID_CREDENTIALS
    assert result.failed_count == 0
    assert result.attempts_remaining == 0
    assert not result.locked
    assert UserSecurity.query.count() == 0


def test_admin_is_never_locked(services, admin_user, outbox):
    for _ in range(5):
        result = services.tracker.record_failed_attempt(admin_user.email)
        assert not result.locked
        assert result.message == INVALID_CREDENTIALS

    assert UserSecurity.query.count() == 0
    assert outbox.sent == []


def test_lock_email_sent_with_unlock_link(services, locked_homeowner, outbox, record_of):
    record = record_of(locked_homeowner)

    assert len(outbox.sent) == 1
    message = outbox.sent[0]
    assert message.to_email == "u1@x.com"
    assert "Locked" in message.subject
    assert f"https://portal.example.com/unlock-request?email=u1%40x.com&token={record.unlock_token}" in message.text_body
    assert record.lock_email_sent is True


def test_lock_survives_email_failure(services, homeowner, outbox, record_of):
    outbox.fail_with = "SMTP down"

    for _ in range(3):
        result = services.tracker.record_failed_attempt(homeowner.email)

    assert result.locked
    record = record_of(homeowner)
    assert record.account_locked
    assert record.lock_email_sent is False


def test_get_status_for_new_and_existing_users(services, homeowner):
    fresh = services.tracker.get_status(email=homeowner.email)
    assert fresh.is_new_user and fresh.attempts_remaining is None

    missing = services.tracker.get_status(email="nobody@example.com")
    assert missing.is_new_user and missing.attempts_remaining is None

    services.tracker.record_failed_attempt(homeowner.email)
    status = services.tracker.get_status(user_id=str(homeowner.id))
    assert not status.is_new_user
    assert status.failed_login_count == 1
    assert status.attempts_remaining == 2
    assert status.last_login_attempt is not None


def test_get_status_hides_warning_at_zero_count(services, homeowner):
    services.tracker.record_failed_attempt(homeowner.email)
    services.tracker.record_successful_login(str(homeowner.id))

    status = services.tracker.get_status(email=homeowner.email)
    assert not status.is_new_user
    assert status.failed_login_count == 0
    assert status.attempts_remaining is None


def test_successful_login_does_not_touch_locked_record(services, locked_homeowner, record_of):
    services.tracker.record_successful_login(str(locked_homeowner.id))

    record = record_of(locked_homeowner)
    assert record.account_locked
    assert record.failed_login_count == 3
    assert record.last_successful_login is None


def test_admin_lock_account(services, homeowner, admin_user, outbox, record_of):
    record = services.tracker.lock_account(homeowner.email, acting_admin_id=admin_user.id, reason="Suspicious activity")

    assert record.account_locked
    assert record.locked_by == str(admin_user.id)
    assert record.locked_reason == "Suspicious activity"
    assert record.unlock_token
    assert len(outbox.sent) == 1
    assert record_of(homeowner).lock_email_sent


def test_admin_lock_refuses_admins_and_locked_accounts(services, locked_homeowner, admin_user):
    with pytest.raises(InvalidState):
        services.tracker.lock_account(admin_user.email, acting_admin_id=admin_user.id)
    with pytest.raises(InvalidState):
        services.tracker.lock_account(locked_homeowner.email, acting_admin_id=admin_user.id)
    with pytest.raises(NotFound):
        services.tracker.lock_account("nobody@example.com", acting_admin_id=admin_user.id)


def test_threshold_follows_config(app, services, homeowner):
    app.config["MAX_FAILED_LOGINS"] = 5

    results = [services.tracker.record_failed_attempt(homeowner.email) for _ in range(5)]

    assert [r.attempts_remaining for r in results] == [4, 3, 2, 1, 0]
    assert results[-1].locked
    assert not any(r.locked for r in results[:-1])


def _stale_first_read(monkeypatch, store):
    """First lookup misses, as if another request inserted the row right after we read."""
    real_find_one = store.find_one
    calls = []

    def find_one(user_id):
        calls.append(user_id)
        return None if len(calls) == 1 else real_find_one(user_id)

    monkeypatch.setattr(store, "find_one", find_one)
    return calls


def test_concurrent_first_failure_reuses_existing_record(services, homeowner, monkeypatch, record_of):
    services.store.save(services.store.create(homeowner.id, failed_login_count=1))
    calls = _stale_first_read(monkeypatch, services.store)

    result = services.tracker.record_failed_attempt(homeowner.email)

    assert len(calls) == 2
    assert result.failed_count == 2
    assert result.attempts_remaining == 1
    assert result.status_code == 401
    assert UserSecurity.query.filter_by(user_id=str(homeowner.id)).count() == 1
    assert record_of(homeowner).failed_login_count == 2


def test_admin_lock_survives_concurrent_record_creation(services, homeowner, admin_user, monkeypatch, record_of):
    services.store.save(services.store.create(homeowner.id))
    _stale_first_read(monkeypatch, services.store)

    services.tracker.lock_account(homeowner.email, acting_admin_id=admin_user.id)

    assert UserSecurity.query.filter_by(user_id=str(homeowner.id)).count() == 1
    assert record_of(homeowner).account_locked is True


def test_threshold_is_capped_by_counter_limit(app, services, homeowner):
    app.config["MAX_FAILED_LOGINS"] = 25

    results = [services.tracker.record_failed_attempt(homeowner.email) for _ in range(10)]

    assert results[-1].locked
    assert results[-1].failed_count == 10
    assert not any(r.locked for r in results[:-1])


@pytest.mark.parametrize("threshold", [0, 11])
def test_unreachable_threshold_is_rejected_at_startup(threshold):
    class BadConfig(TestConfig):
        MAX_FAILED_LOGINS = threshold

    with pytest.raises(ValueError, match="MAX_FAILED_LOGINS"):
        create_app(BadConfig)
