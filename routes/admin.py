from flask import Blueprint, jsonify, g, request

from security.errors import ValidationFailed
from security.rbac import require_roles
from security.services import lockout_services
from security.session import revoke_all_sessions
from utils.audit import log_event
from utils.directory import is_valid_email, normalize_email

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def _iso(value):
    return value.isoformat() if value else None


def _payload_email(data) -> str:
    email = normalize_email(data.get("email"))
    if not is_valid_email(email):
        raise ValidationFailed("Invalid request data")
    return email


def _optional_text(data, key: str, max_length: int = 500):
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or len(value) > max_length:
        raise ValidationFailed(f"Invalid {key}")
    return value.strip() or None


@admin_bp.post("/unlock-account-by-email")
@require_roles("ADMIN")
def unlock_account_by_email():
    data = request.get_json(silent=True) or {}
    email = _payload_email(data)
    reason = _optional_text(data, "reason")

    outcome = lockout_services().admin.unlock_by_email(email, acting_admin_id=g.user.id, reason=reason)

    log_event(
        "ADMIN_UNLOCK_ACCOUNT",
        user_id=g.user.id,
        entity="user_security",
        entity_id=outcome.corrected_user_id,
        metadata={"email": outcome.email, "reason": outcome.unlock_reason, "user_id_was_fixed": outcome.user_id_was_fixed},
    )

    previous = dict(outcome.previous_state)
    previous["lockedAt"] = _iso(previous.get("lockedAt"))
    message = "Account unlocked successfully"
    if outcome.user_id_was_fixed:
        message = "Account unlocked and userId corrected successfully"

    return jsonify(
        success=True,
        message=message,
        data={
            "email": outcome.email,
            "correctedUserId": outcome.corrected_user_id,
            "unlockedAt": _iso(outcome.unlocked_at),
            "unlockedBy": outcome.unlocked_by,
            "unlockReason": outcome.unlock_reason,
            "previousState": previous,
            "userIdWasFixed": outcome.user_id_was_fixed,
        },
    ), 200


@admin_bp.post("/resend-unlock-email")
@require_roles("ADMIN")
def resend_unlock_email():
    data = request.get_json(silent=True) or {}
    email = _payload_email(data)
    user_name = _optional_text(data, "userName", max_length=120)

    record = lockout_services().admin.request_more_info(email, user_name=user_name)

    log_event("ADMIN_REQUEST_MORE_INFO", user_id=g.user.id, entity="user_security", entity_id=record.user_id)
    return jsonify(success=True, message="Email sent successfully. User can now resubmit their reason."), 200


@admin_bp.post("/reject-unlock-request")
@require_roles("ADMIN")
def reject_unlock_request():
    data = request.get_json(silent=True) or {}
    email = _payload_email(data)
    notes = _optional_text(data, "adminNotes")

    row = lockout_services().workflow.reject_request(email, acting_admin_id=g.user.id, admin_notes=notes)

    log_event(
        "ADMIN_REJECT_UNLOCK_REQUEST",
        user_id=g.user.id,
        entity="user_security",
        entity_id=row.security.user_id,
        metadata={"admin_notes": notes},
    )
    return jsonify(success=True, message="Unlock request rejected", status=row.status), 200


@admin_bp.post("/lock-account")
@require_roles("ADMIN")
def lock_account():
    data = request.get_json(silent=True) or {}
    email = _payload_email(data)
    reason = _optional_text(data, "reason")

    record = lockout_services().tracker.lock_account(email, acting_admin_id=g.user.id, reason=reason)
    revoked = revoke_all_sessions(int(record.user_id))

    log_event(
        "ADMIN_LOCK_ACCOUNT",
        user_id=g.user.id,
        entity="user_security",
        entity_id=record.user_id,
        metadata={"reason": record.locked_reason, "revoked_sessions": revoked},
    )
    return jsonify(
        success=True,
        message="Account locked",
        data={"email": email, "lockedAt": _iso(record.locked_at), "lockedReason": record.locked_reason},
    ), 200


@admin_bp.get("/locked-accounts")
@require_roles("ADMIN")
def locked_accounts():
    page = request.args.get("page", type=int) or 1
    limit = request.args.get("limit", type=int) or 20

    result = lockout_services().admin.list_locked_accounts(page=page, limit=limit)

    accounts = []
    for record, entry in result.items:
        unlock_request = record.unlock_request
        accounts.append({
            "userId": record.user_id,
            "email": entry.email if entry else None,
            "name": entry.name if entry else None,
            "failedLoginCount": record.failed_login_count,
            "lockedAt": _iso(record.locked_at),
            "lockedBy": record.locked_by,
            "lockedReason": record.locked_reason,
            "lockEmailSent": record.lock_email_sent,
            "lastLoginAttempt": _iso(record.last_login_attempt),
            "ipAddress": record.ip_address,
            "unlockRequest": {
                "email": unlock_request.email,
                "name": unlock_request.name,
                "reason": unlock_request.reason,
                "submittedAt": _iso(unlock_request.submitted_at),
                "status": unlock_request.status,
                "adminNotes": unlock_request.admin_notes,
            } if unlock_request else None,
        })

    total_pages = (result.total_count + result.limit - 1) // result.limit
    return jsonify(
        success=True,
        data={
            "accounts": accounts,
            "pagination": {
                "page": result.page,
                "limit": result.limit,
                "totalCount": result.total_count,
                "totalPages": total_pages,
            },
        },
    ), 200


@admin_bp.delete("/homeowners/<int:user_id>")
@require_roles("ADMIN")
def delete_homeowner(user_id: int):
    email = lockout_services().admin.delete_homeowner(user_id)
    log_event("ADMIN_DELETE_HOMEOWNER", user_id=g.user.id, entity="user", entity_id=user_id, metadata={"email": email})
    return jsonify(success=True, message="Homeowner deleted successfully"), 200
