from flask import Blueprint, request, jsonify

from security.services import lockout_services
from utils.audit import log_event

unlock_bp = Blueprint("unlock_request", __name__, url_prefix="/unlock-request")


@unlock_bp.post("")
def submit_unlock_request():
    data = request.get_json(silent=True) or {}

    row = lockout_services().workflow.submit_request(
        email=(data.get("email") or "").strip(),
        reason=data.get("reason"),
        token=data.get("token"),
        name=data.get("name"),
    )
    log_event(
        "UNLOCK_REQUEST_SUBMITTED",
        entity="user_security",
        entity_id=row.security.user_id,
        metadata={"email": row.email, "words": len(row.reason.split())},
    )
    return jsonify(
        success=True,
        message="Unlock request submitted successfully. An administrator will review your request.",
    ), 200


@unlock_bp.get("")
def unlock_request_status():
    status = lockout_services().workflow.check_status(
        email=(request.args.get("email") or "").strip(),
        token=request.args.get("token") or "",
    )
    body = dict(
        success=True,
        accountLocked=status.account_locked,
        hasUnlockRequest=status.has_unlock_request,
        tokenValid=status.token_valid,
    )
    if status.unlock_request_status:
        body["unlockRequestStatus"] = status.unlock_request_status
    if status.locked_at:
        body["lockedAt"] = status.locked_at.isoformat()
    return jsonify(body), 200
