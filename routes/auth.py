from flask import Blueprint, request, jsonify, current_app, g

from models.user import User
from security.csrf import issue_csrf_token
from security.lockout import ACCOUNT_LOCKED_MESSAGE
from security.password import verify_password
from security.services import lockout_services
from security.session import create_session, revoke_session, revoke_all_sessions
from utils.audit import log_event
from utils.auth_context import login_required
from utils.directory import is_valid_email, normalize_email


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _client_ip():
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote_addr


def _failed_login_response(email: str, ip_address):
    result = lockout_services().tracker.record_failed_attempt(email, ip_address=ip_address)
    user_id = int(result.user_id) if result.user_id else None

    log_event(
        "LOGIN_FAIL",
        user_id=user_id,
        metadata={"email": email, "fail_count": result.failed_count, "locked": result.locked},
    )
    if result.just_locked:
        revoked = revoke_all_sessions(user_id)
        log_event(
            "ACCOUNT_LOCKED",
            user_id=user_id,
            entity="user_security",
            entity_id=result.user_id,
            metadata={"fail_count": result.failed_count, "revoked_sessions": revoked},
        )

    return jsonify(
        success=False,
        message=result.message,
        accountLocked=result.locked,
        failedLoginCount=result.failed_count,
        attemptsRemaining=result.attempts_remaining,
    ), result.status_code


@auth_bp.post("/failed-login")
def failed_login():
    data = request.get_json(silent=True) or {}
    email = normalize_email(data.get("email"))
    ip_address = data.get("ipAddress")

    if not is_valid_email(email):
        return jsonify(success=False, message="Invalid request data"), 400
    if ip_address is not None and not isinstance(ip_address, str):
        return jsonify(success=False, message="Invalid request data"), 400

    # userId from the client is advisory only; identity always comes from the email
    return _failed_login_response(email, ip_address or _client_ip())


@auth_bp.get("/failed-login")
def failed_login_status():
    user_id = (request.args.get("userId") or "").strip() or None
    email = normalize_email(request.args.get("email")) or None

    if not user_id and not email:
        return jsonify(success=False, message="userId or email is required"), 400

    status = lockout_services().tracker.get_status(email=email, user_id=user_id)
    body = dict(
        success=True,
        accountLocked=status.account_locked,
        failedLoginCount=status.failed_login_count,
        attemptsRemaining=status.attempts_remaining,
        isNewUser=status.is_new_user,
    )
    if not status.is_new_user:
        body["lockedAt"] = status.locked_at.isoformat() if status.locked_at else None
        body["lastLoginAttempt"] = status.last_login_attempt.isoformat() if status.last_login_attempt else None
    return jsonify(body), 200


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = normalize_email(data.get("email"))
    password = data.get("password") or ""

    if not is_valid_email(email) or not isinstance(password, str) or not password:
        return jsonify(success=False, message="Invalid request data"), 400

    tracker = lockout_services().tracker
    user = User.query.filter_by(email=email).first()

    if user and tracker.is_locked(str(user.id)):
        log_event("LOGIN_LOCKED", user_id=user.id, metadata={"email": email})
        return jsonify(
            success=False,
            message=ACCOUNT_LOCKED_MESSAGE,
            accountLocked=True,
            attemptsRemaining=0,
        ), 423

    if not user or not verify_password(password, user.password_hash):
        return _failed_login_response(email, _client_ip())

    tracker.record_successful_login(str(user.id))

    # Rotate: revoke any existing sessions for this user
    revoked_count = revoke_all_sessions(user.id)
    raw_token = create_session(user.id)

    resp = jsonify(success=True, message="Login OK")
    resp.set_cookie(
        current_app.config.get("AUTH_COOKIE_NAME", "subdivisync_session"),
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60),
        path="/",
    )
    resp = issue_csrf_token(resp)

    log_event("LOGIN_SUCCESS", user_id=user.id, metadata={"revoked_sessions": revoked_count})
    return resp, 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(
        id=g.user.id,
        email=g.user.email,
        name=g.user.name,
        roles=sorted(g.user.role_names),
    ), 200


@auth_bp.post("/logout")
@login_required
def logout():
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "subdivisync_session")
    revoke_session(request.cookies.get(cookie_name))
    log_event("LOGOUT", user_id=g.user.id)

    resp = jsonify(success=True, message="Logged out")
    resp.delete_cookie(cookie_name, path="/")
    return resp, 200
