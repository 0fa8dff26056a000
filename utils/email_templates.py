from datetime import datetime
from urllib.parse import quote

from flask import current_app, render_template

from utils.emailer import OutgoingEmail


def _base_url() -> str:
    return (current_app.config.get("APP_BASE_URL") or "http://localhost:3000").rstrip("/")


def unlock_request_url(email: str, token: str) -> str:
    return f"{_base_url()}/unlock-request?email={quote(email, safe='')}&token={token}"


def login_url() -> str:
    return f"{_base_url()}/login"


def _render(template: str, to_email: str, name, subject: str, sender: str, **context) -> OutgoingEmail:
    app_name = current_app.config.get("APP_NAME", "SubdiviSync")
    context.update(app_name=app_name, name=name, year=datetime.utcnow().year)
    return OutgoingEmail(
        to_email=to_email,
        to_name=name,
        subject=subject.format(app_name=app_name),
        html_body=render_template(f"email/{template}.html", **context),
        text_body=render_template(f"email/{template}.txt", **context),
        sender_name=f"{app_name} {sender}",
    )


def account_locked_email(to_email: str, name, token: str, lock_reason: str) -> OutgoingEmail:
    return _render(
        "account_locked",
        to_email,
        name,
        "Your {app_name} Account Has Been Locked",
        "Security",
        header_color="#dc2626",
        action_url=unlock_request_url(to_email, token),
        lock_reason=lock_reason,
        token_ttl_days=current_app.config.get("UNLOCK_TOKEN_TTL_DAYS", 7),
    )


def account_unlocked_email(to_email: str, name) -> OutgoingEmail:
    return _render(
        "account_unlocked",
        to_email,
        name,
        "Your {app_name} Account Has Been Unlocked",
        "Support",
        header_color="#16a34a",
        action_url=login_url(),
    )


def unlock_more_info_email(to_email: str, name, token: str) -> OutgoingEmail:
    return _render(
        "unlock_more_info",
        to_email,
        name,
        "Additional Information Required - {app_name} Account Unlock",
        "Support",
        header_color="#f59e0b",
        action_url=unlock_request_url(to_email, token),
    )


def unlock_rejected_email(to_email: str, name, token: str, admin_notes=None) -> OutgoingEmail:
    return _render(
        "unlock_rejected",
        to_email,
        name,
        "Your {app_name} Unlock Request Was Declined",
        "Support",
        header_color="#991b1b",
        action_url=unlock_request_url(to_email, token),
        admin_notes=admin_notes,
    )
