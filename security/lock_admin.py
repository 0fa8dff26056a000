import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from models.user_security import UserSecurity
from security.errors import InvalidState, NotFound
from security.lockout import ensure_live_token
from security.records import needs_reset_clause
from utils.email_templates import account_unlocked_email, unlock_more_info_email
from utils.emailer import dispatch_quietly

logger = logging.getLogger(__name__)

RESET_REASON = "Reset via script"


@dataclass
class UnlockOutcome:
    email: str
    corrected_user_id: str
    unlocked_at: datetime
    unlocked_by: str
    unlock_reason: str
    previous_state: dict
    user_id_was_fixed: bool


@dataclass
class ResetOutcome:
    reset_count: int
    matched_count: int
    email: Optional[str] = None


@dataclass
class LockedAccountsPage:
    items: list = field(default_factory=list)
    total_count: int = 0
    page: int = 1
    limit: int = 20


def _record_keys(entry):
    # older records were keyed by the raw email before ids were stable
    return [entry.id, entry.email, f"email:{entry.email}"]


class AdminLockManagement:
    """Administrative overrides. Callers are trusted to have verified the admin session."""

    def __init__(self, store, directory, notifier, clock=datetime.utcnow):
        self.store = store
        self.directory = directory
        self.notifier = notifier
        self.clock = clock

    def unlock_by_email(self, email: str, acting_admin_id, reason: str = None) -> UnlockOutcome:
        entry = self.directory.find_by_email(email)
        if entry is None:
            raise NotFound("User not found with this email")

        record = self.store.find_first(_record_keys(entry))
        if record is None:
            raise NotFound("No security record found for this email")
        if not record.account_locked:
            raise InvalidState("Account is not locked")

        previous_state = {
            "lockedAt": record.locked_at,
            "lockedBy": record.locked_by,
            "lockedReason": record.locked_reason,
            "failedLoginCount": record.failed_login_count,
            "oldUserId": record.user_id,
        }
        user_id_was_fixed = record.user_id != entry.id
        if user_id_was_fixed:
            logger.warning("Repairing security record user id %r -> %r", record.user_id, entry.id)
            record.user_id = entry.id

        now = self.clock()
        unlock_reason = reason or "Unlocked by admin via email"
        record.unlock(unlock_reason, now, unlocked_by=str(acting_admin_id))
        self.store.save(record)
        logger.info("Account %s unlocked by admin %s", entry.id, acting_admin_id)

        dispatch_quietly(self.notifier, lambda: account_unlocked_email(entry.email, entry.name))

        return UnlockOutcome(
            email=entry.email,
            corrected_user_id=entry.id,
            unlocked_at=now,
            unlocked_by=str(acting_admin_id),
            unlock_reason=unlock_reason,
            previous_state=previous_state,
            user_id_was_fixed=user_id_was_fixed,
        )

    def request_more_info(self, email: str, user_name: str = None) -> UserSecurity:
        entry = self.directory.find_by_email(email)
        if entry is None:
            raise NotFound("No account found with this email")
        record = self.store.find_one(entry.id)
        if record is None:
            raise NotFound("No security record found for this account")
        if not record.account_locked:
            raise InvalidState("This account is not locked")

        # back to "locked, no request"; lock and token stay
        record.unlock_request = None
        if ensure_live_token(record, self.clock()):
            logger.info("Issued a fresh unlock token for %s", entry.id)
        self.store.save(record)

        name = user_name or entry.name
        dispatch_quietly(self.notifier, lambda: unlock_more_info_email(entry.email, name, record.unlock_token))
        return record

    def reset_failed_login(self, email: str = None) -> ResetOutcome:
        if email:
            return self._reset_one(email)

        clause = needs_reset_clause()
        matched = self.store.count_documents(clause)
        if matched == 0:
            return ResetOutcome(reset_count=0, matched_count=0)

        self.store.delete_requests(clause)
        reset = self.store.update_many(
            clause,
            {
                "failed_login_count": 0,
                "account_locked": False,
                "locked_at": None,
                "locked_by": None,
                "locked_reason": None,
                "unlock_token": None,
                "unlock_token_expires": None,
                "unlocked_at": self.clock(),
                "unlocked_by": None,
                "unlock_reason": RESET_REASON,
            },
        )
        logger.warning("Bulk reset of %s security record(s)", reset)
        return ResetOutcome(reset_count=reset, matched_count=matched)

    def _reset_one(self, email: str) -> ResetOutcome:
        entry = self.directory.find_by_email(email)
        if entry is None:
            raise NotFound("No user found with this email")

        record = self.store.find_one(entry.id)
        if record is None or record.is_clean:
            return ResetOutcome(reset_count=0, matched_count=0, email=entry.email)

        record.unlock(RESET_REASON, self.clock())
        self.store.save(record)
        return ResetOutcome(reset_count=1, matched_count=1, email=entry.email)

    def list_locked_accounts(self, page: int = 1, limit: int = 20) -> LockedAccountsPage:
        page = max(1, page)
        limit = max(1, min(limit, 100))
        clause = UserSecurity.account_locked.is_(True)

        total = self.store.count_documents(clause)
        records = self.store.find_many(clause, offset=(page - 1) * limit, limit=limit)
        items = [(record, self.directory.find_by_id(record.user_id)) for record in records]
        return LockedAccountsPage(items=items, total_count=total, page=page, limit=limit)

    def delete_homeowner(self, user_id) -> str:
        entry = self.directory.find_by_id(user_id)
        if entry is None:
            raise NotFound("Homeowner not found")
        if entry.is_admin:
            raise InvalidState("Can only delete homeowner accounts")

        try:
            self.store.delete_for_user(_record_keys(entry))
            self.directory.delete_user(entry.id)
            self.store.session.commit()
        except Exception:
            self.store.session.rollback()
            raise
        logger.info("Deleted homeowner %s and their security record", entry.id)
        return entry.email
