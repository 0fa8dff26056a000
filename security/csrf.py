import hmac
import secrets
from flask import request, jsonify, current_app

CSRF_COOKIE = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"

def issue_csrf_token(resp):
    resp.set_cookie(
        CSRF_COOKIE,
        secrets.token_urlsafe(32),
        httponly=False,  # read by the portal's JS and echoed in the header
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        path="/",
    )
    return resp

def require_csrf():
    cookie_token = request.cookies.get(CSRF_COOKIE)
    header_token = request.headers.get(CSRF_HEADER)
    if not cookie_token or not header_token or not hmac.compare_digest(cookie_token, header_token):
        return jsonify(success=False, message="CSRF validation failed"), 403
    return None
