from models.unlock_request import UnlockRequest


def _submit(client, token, reason, email="u1@x.com", **extra):
    return client.post("/unlock-request", json={"email": email, "reason": reason, "token": token, **extra})


def test_scenario_submit_then_wrong_token(client, locked_homeowner, record_of, good_reason):
    token = record_of(locked_homeowner).unlock_token

    ok = _submit(client, token, good_reason)
    assert ok.status_code == 200
    assert ok.get_json()["success"] is True
    assert record_of(locked_homeowner).unlock_request.status == "pending"

    bad = _submit(client, "0" * 64, good_reason)
    assert bad.status_code == 403
    assert bad.get_json()["success"] is False
    assert UnlockRequest.query.count() == 1


def test_submit_status_codes(client, homeowner, make_user, record_of, outbox, good_reason):
    assert _submit(client, "t", good_reason, email="ghost@example.com").status_code == 404
    assert _submit(client, "t", good_reason).status_code == 404

    client.post("/auth/failed-login", json={"email": "u1@x.com"})
    assert _submit(client, "t", good_reason).status_code == 400

    for _ in range(2):
        client.post("/auth/failed-login", json={"email": "u1@x.com"})
    token = record_of(homeowner).unlock_token

    short = _submit(client, token, "please unlock")
    assert short.status_code == 400
    assert "20 words" in short.get_json()["message"]
    assert _submit(client, token, good_reason, email="bad-email").status_code == 400


def test_status_check_drives_unlock_page(client, locked_homeowner, record_of, good_reason):
    token = record_of(locked_homeowner).unlock_token

    body = client.get("/unlock-request", query_string={"email": "u1@x.com", "token": token}).get_json()
    assert body["success"] is True
    assert body["accountLocked"] is True
    assert body["hasUnlockRequest"] is False
    assert body["tokenValid"] is True
    assert "unlockRequestStatus" not in body

    _submit(client, token, good_reason)
    body = client.get("/unlock-request", query_string={"email": "u1@x.com", "token": token}).get_json()
    assert body["hasUnlockRequest"] is True
    assert body["unlockRequestStatus"] == "pending"

    assert client.get("/unlock-request", query_string={"email": "u1@x.com"}).status_code == 400
    assert client.get("/unlock-request", query_string={"email": "u1@x.com", "token": "x"}).status_code == 403
    assert client.get("/unlock-request", query_string={"email": "no@x.com", "token": "x"}).status_code == 404
