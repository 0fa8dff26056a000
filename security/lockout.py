import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from flask import current_app

from models.user_security import FAILED_LOGIN_COUNT_CAP, UserSecurity
from security.errors import InvalidState, NotFound
from utils.email_templates import account_locked_email
from utils.emailer import dispatch_quietly

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials."
ACCOUNT_LOCKED_MESSAGE = "Account is locked. Please contact admin or customer service."
JUST_LOCKED_MESSAGE = "Account locked. Too many failed login attempts. Please contact admin or customer service."


def generate_unlock_token() -> str:
    # 256 bits, hex encoded
    return secrets.token_hex(32)


def max_failed_logins() -> int:
    # the stored counter never passes the cap, so neither can the threshold
    return min(current_app.config.get("MAX_FAILED_LOGINS", 3), FAILED_LOGIN_COUNT_CAP)


def token_ttl() -> timedelta:
    return timedelta(days=current_app.config.get("UNLOCK_TOKEN_TTL_DAYS", 7))


def ensure_live_token(record: UserSecurity, now: datetime) -> bool:
    """Mint a fresh unlock token when the current one is missing or expired."""
    if record.unlock_token and not record.token_expired(now):
        return False
    record.unlock_token = generate_unlock_token()
    record.unlock_token_expires = now + token_ttl()
    return True


@dataclass
class AttemptResult:
    locked: bool
    failed_count: int
    attempts_remaining: Optional[int]
    message: str
    just_locked: bool = False
    user_id: Optional[str] = None

    @property
    def status_code(self) -> int:
        return 423 if self.locked else 401


@dataclass
class AccountStatus:
    account_locked: bool
    failed_login_count: int
    attempts_remaining: Optional[int]
    is_new_user: bool
    locked_at: Optional[datetime] = None
    last_login_attempt: Optional[datetime] = None


class LockoutTracker:
    def __init__(self, store, directory, notifier, clock=datetime.utcnow):
        self.store = store
        self.directory = directory
        self.notifier = notifier
        self.clock = clock

    def record_failed_attempt(self, email: str, ip_address: str = None) -> AttemptResult:
        entry = self.directory.find_by_email(email)
        if entry is None:
            # unknown emails leave no trace so lockout can't be used to probe accounts
            return AttemptResult(locked=False, failed_count=0, attempts_remaining=0, message=INVALID_CREDENTIALS)

        if entry.is_admin:
            logger.info("Admin account %s exempt from lockout tracking", entry.id)
            return AttemptResult(locked=False, failed_count=0, attempts_remaining=None, message=INVALID_CREDENTIALS)

        record = self.store.find_one(entry.id) or self.store.create(entry.id)

        # counter is frozen while locked
        if record.account_locked:
            return AttemptResult(
                locked=True,
                failed_count=record.failed_login_count,
                attempts_remaining=0,
                message=ACCOUNT_LOCKED_MESSAGE,
                user_id=entry.id,
            )

        now = self.clock()
        record.failed_login_count += 1
        record.last_login_attempt = now
        if ip_address:
            record.ip_address = ip_address

        threshold = max_failed_logins()
        attempts_remaining = max(0, threshold - record.failed_login_count)
        just_locked = record.failed_login_count >= threshold
        if just_locked:
            record.lock(
                reason=f"Automatic lockout due to {threshold} failed login attempts",
                token=generate_unlock_token(),
                token_expires=now + token_ttl(),
                now=now,
            )
            attempts_remaining = 0

        self.store.save(record)

        if just_locked:
            logger.warning("Account %s locked after %s failed logins", entry.id, record.failed_login_count)
            self.send_lock_email(entry, record)
            message = JUST_LOCKED_MESSAGE
        else:
            plural = "" if attempts_remaining == 1 else "s"
            message = f"Invalid credentials. {attempts_remaining} attempt{plural} remaining."

        return AttemptResult(
            locked=just_locked,
            failed_count=record.failed_login_count,
            attempts_remaining=attempts_remaining,
            message=message,
            just_locked=just_locked,
            user_id=entry.id,
        )

    def get_status(self, email: str = None, user_id: str = None) -> AccountStatus:
        target = user_id
        if email and not user_id:
            entry = self.directory.find_by_email(email)
            target = entry.id if entry else None

        record = self.store.find_one(target) if target else None
        if record is None:
            # no history, nothing to warn about
            return AccountStatus(account_locked=False, failed_login_count=0, attempts_remaining=None, is_new_user=True)

        count = record.failed_login_count
        return AccountStatus(
            account_locked=record.account_locked,
            failed_login_count=count,
            attempts_remaining=max(0, max_failed_logins() - count) if count > 0 else None,
            is_new_user=False,
            locked_at=record.locked_at,
            last_login_attempt=record.last_login_attempt,
        )

    def is_locked(self, user_id) -> bool:
        record = self.store.find_one(user_id)
        return bool(record and record.account_locked)

    def record_successful_login(self, user_id):
        record = self.store.find_one(user_id)
        if record is None or record.account_locked:
            return record
        record.failed_login_count = 0
        record.last_successful_login = self.clock()
        return self.store.save(record)

    def lock_account(self, email: str, acting_admin_id, reason: str = None) -> UserSecurity:
        entry = self.directory.find_by_email(email)
        if entry is None:
            raise NotFound("User not found with this email")
        if entry.is_admin:
            raise InvalidState("Admin accounts cannot be locked")

        record = self.store.find_one(entry.id) or self.store.create(entry.id)
        if record.account_locked:
            raise InvalidState("Account is already locked")

        now = self.clock()
        record.lock(
            reason=reason or "Locked by admin",
            token=generate_unlock_token(),
            token_expires=now + token_ttl(),
            now=now,
            locked_by=str(acting_admin_id),
        )
        self.store.save(record)
        logger.warning("Account %s locked by admin %s", entry.id, acting_admin_id)
        self.send_lock_email(entry, record)
        return record

    def send_lock_email(self, entry, record: UserSecurity):
        user_id = record.user_id

        def _mark_sent():
            self.store.update_many(UserSecurity.user_id == user_id, {"lock_email_sent": True})

        return dispatch_quietly(
            self.notifier,
            lambda: account_locked_email(entry.email, entry.name, record.unlock_token, record.locked_reason),
            on_sent=_mark_sent,
        )
