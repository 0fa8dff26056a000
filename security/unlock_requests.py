import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from flask import current_app

from models.unlock_request import UnlockRequest
from security.errors import Forbidden, InvalidState, NotFound, ValidationFailed
from security.lockout import ensure_live_token
from utils.directory import is_valid_email
from utils.email_templates import unlock_rejected_email
from utils.emailer import dispatch_quietly

logger = logging.getLogger(__name__)

INVALID_LINK = "Invalid or expired unlock link. Please use the link from your email."
EXPIRED_LINK = "This unlock link has expired. Please contact support for a new link."


def validate_reason(reason) -> str:
    """Unlock justifications need at least UNLOCK_REASON_MIN_WORDS words."""
    if not isinstance(reason, str) or not reason.strip():
        raise ValidationFailed("Reason is required")
    reason = reason.strip()

    min_words = current_app.config.get("UNLOCK_REASON_MIN_WORDS", 20)
    max_length = current_app.config.get("UNLOCK_REASON_MAX_LENGTH", 1000)
    if len(reason.split()) < min_words:
        raise ValidationFailed(f"Please provide a reason with at least {min_words} words")
    if len(reason) > max_length:
        raise ValidationFailed(f"Reason must be at most {max_length} characters")
    return reason


@dataclass
class UnlockStatus:
    account_locked: bool
    has_unlock_request: bool
    token_valid: bool
    unlock_request_status: Optional[str] = None
    locked_at: Optional[datetime] = None


class UnlockRequestWorkflow:
    def __init__(self, store, directory, notifier, clock=datetime.utcnow):
        self.store = store
        self.directory = directory
        self.notifier = notifier
        self.clock = clock

    def _locate(self, email: str):
        entry = self.directory.find_by_email(email)
        if entry is None:
            raise NotFound("No account found with this email")
        return entry, self.store.find_one(entry.id)

    def _check_token(self, record, token, now):
        if not record.token_matches(token):
            raise Forbidden(INVALID_LINK)
        if record.token_expired(now):
            raise Forbidden(EXPIRED_LINK)

    def submit_request(self, email: str, reason: str, token: str, name: str = None) -> UnlockRequest:
        if not is_valid_email(email):
            raise ValidationFailed("Invalid email")
        if not isinstance(token, str) or not token:
            raise ValidationFailed("Token is required")
        if name is not None and (not isinstance(name, str) or not name.strip() or len(name.strip()) > 120):
            raise ValidationFailed("Invalid name")

        entry, record = self._locate(email)
        if record is None:
            raise NotFound("No security record found for this account")
        if not record.account_locked:
            raise InvalidState("This account is not locked")

        now = self.clock()
        self._check_token(record, token, now)
        reason = validate_reason(reason)

        # one active request per record; resubmission overwrites it in place
        request_row = record.unlock_request
        if request_row is None:
            request_row = UnlockRequest()
            record.unlock_request = request_row
        request_row.email = entry.email
        request_row.name = name.strip() if name else entry.name
        request_row.reason = reason
        request_row.submitted_at = now
        request_row.status = "pending"
        request_row.admin_notes = None
        request_row.reviewed_by = None
        request_row.reviewed_at = None

        self.store.save(record)
        logger.info("Unlock request submitted for %s", entry.id)
        return request_row

    def check_status(self, email: str, token: str) -> UnlockStatus:
        if not email or not token:
            raise ValidationFailed("Invalid unlock request link")

        _, record = self._locate(email)
        if record is None or not record.account_locked:
            return UnlockStatus(account_locked=False, has_unlock_request=False, token_valid=False)

        self._check_token(record, token, self.clock())

        request_row = record.unlock_request
        return UnlockStatus(
            account_locked=True,
            has_unlock_request=request_row is not None,
            token_valid=True,
            unlock_request_status=request_row.status if request_row else None,
            locked_at=record.locked_at,
        )

    def reject_request(self, email: str, acting_admin_id, admin_notes: str = None) -> UnlockRequest:
        if admin_notes is not None and len(admin_notes) > 500:
            raise ValidationFailed("Admin notes must be at most 500 characters")

        entry, record = self._locate(email)
        if record is None:
            raise NotFound("No security record found for this account")
        if not record.account_locked:
            raise InvalidState("This account is not locked")

        request_row = record.unlock_request
        if request_row is None or request_row.status != "pending":
            raise InvalidState("No pending unlock request for this account")

        now = self.clock()
        request_row.status = "rejected"
        request_row.admin_notes = admin_notes
        request_row.reviewed_by = str(acting_admin_id)
        request_row.reviewed_at = now
        ensure_live_token(record, now)
        self.store.save(record)

        dispatch_quietly(
            self.notifier,
            lambda: unlock_rejected_email(entry.email, entry.name, record.unlock_token, admin_notes),
        )
        return request_row
