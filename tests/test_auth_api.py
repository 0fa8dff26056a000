from models.audit_log import AuditLog
from models.user_security import UserSecurity


def _fail(client, email, **extra):
    return client.post("/auth/failed-login", json={"email": email, **extra})


def test_scenario_three_failures_then_locked(client, homeowner, outbox, record_of):
    responses = [_fail(client, "u1@x.com", ipAddress="198.51.100.20") for _ in range(3)]

    assert [r.status_code for r in responses] == [401, 401, 423]
    assert [r.get_json()["attemptsRemaining"] for r in responses] == [2, 1, 0]
    assert responses[0].get_json()["message"] == "Invalid credentials. 2 attempts remaining."
    assert responses[1].get_json()["message"] == "Invalid credentials. 1 attempt remaining."

    last = responses[-1].get_json()
    assert last["success"] is False
    assert last["accountLocked"] is True
    assert last["failedLoginCount"] == 3

    record = record_of(homeowner)
    assert record.account_locked
    assert record.unlock_token
    assert record.ip_address == "198.51.100.20"
    assert AuditLog.query.filter_by(action="ACCOUNT_LOCKED").count() == 1

    fourth = _fail(client, "u1@x.com")
    assert fourth.status_code == 423
    assert fourth.get_json()["attemptsRemaining"] == 0
    assert record_of(homeowner).failed_login_count == 3


def test_unknown_email_is_generic_and_leaves_no_record(client, app):
    resp = _fail(client, "ghost@example.com")

    assert resp.status_code == 401
    body = resp.get_json()
    assert body["message"] == "Invalid credentials."
    assert body["failedLoginCount"] == 0
    assert body["attemptsRemaining"] == 0
    assert body["accountLocked"] is False
    assert UserSecurity.query.count() == 0


def test_admin_failures_are_exempt(client, admin_user):
    for _ in range(4):
        resp = _fail(client, admin_user.email)
        assert resp.status_code == 401
        assert resp.get_json()["attemptsRemaining"] is None
    assert UserSecurity.query.count() == 0


def test_client_supplied_user_id_is_ignored(client, homeowner):
    resp = _fail(client, "ghost@example.com", userId=str(homeowner.id))

    assert resp.get_json()["failedLoginCount"] == 0
    assert UserSecurity.query.count() == 0


def test_failed_login_rejects_bad_payload(client):
    assert _fail(client, "not-an-email").status_code == 400
    assert client.post("/auth/failed-login", json={}).status_code == 400
    assert _fail(client, "a@b.co", ipAddress=123).status_code == 400


def test_status_endpoint(client, homeowner):
    assert client.get("/auth/failed-login").status_code == 400

    fresh = client.get("/auth/failed-login", query_string={"email": "u1@x.com"}).get_json()
    assert fresh == {
        "success": True,
        "accountLocked": False,
        "failedLoginCount": 0,
        "attemptsRemaining": None,
        "isNewUser": True,
    }

    _fail(client, "u1@x.com")
    body = client.get("/auth/failed-login", query_string={"userId": str(homeowner.id)}).get_json()
    assert body["isNewUser"] is False
    assert body["attemptsRemaining"] == 2
    assert body["lastLoginAttempt"] is not None
    assert body["lockedAt"] is None


def test_login_success_resets_counter_and_sets_session(client, homeowner, record_of, password):
    bad = client.post("/auth/login", json={"email": "u1@x.com", "password": "wrong-password"})
    assert bad.status_code == 401
    assert bad.get_json()["attemptsRemaining"] == 2

    ok = client.post("/auth/login", json={"email": "u1@x.com", "password": password})
    assert ok.status_code == 200
    assert client.get_cookie("subdivisync_session") is not None
    assert client.get_cookie("csrf_token") is not None

    record = record_of(homeowner)
    assert record.failed_login_count == 0
    assert record.last_successful_login is not None

    me = client.get("/auth/me")
    assert me.status_code == 200
    assert me.get_json()["email"] == "u1@x.com"


def test_login_refused_while_locked(client, locked_homeowner, password):
    resp = client.post("/auth/login", json={"email": "u1@x.com", "password": password})

    assert resp.status_code == 423
    assert resp.get_json()["accountLocked"] is True
    assert client.get_cookie("subdivisync_session") is None


def test_logout_requires_csrf(client, homeowner, password):
    client.post("/auth/login", json={"email": "u1@x.com", "password": password})

    assert client.post("/auth/logout").status_code == 403
    csrf = client.get_cookie("csrf_token").value
    assert client.post("/auth/logout", headers={"X-CSRF-Token": csrf}).status_code == 200
    assert client.get("/auth/me").status_code == 401


def test_security_headers(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.headers["X-Frame-Options"] == "DENY"


def test_concurrent_first_failure_answers_401(client, services, homeowner, monkeypatch):
    services.store.save(services.store.create(homeowner.id))
    real_find_one = services.store.find_one
    calls = []

    def find_one(user_id):
        calls.append(user_id)
        return None if len(calls) == 1 else real_find_one(user_id)

    monkeypatch.setattr(services.store, "find_one", find_one)

    resp = _fail(client, "u1@x.com")

    assert resp.status_code == 401
    assert resp.get_json()["failedLoginCount"] == 1
