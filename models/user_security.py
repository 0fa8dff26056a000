import hmac
import ipaddress
from datetime import datetime
from sqlalchemy.orm import validates
from models.db import db

# Hard ceiling for the stored counter, independent of the lock threshold
FAILED_LOGIN_COUNT_CAP = 10


class UserSecurity(db.Model):
    __tablename__ = "user_security"
    __table_args__ = (
        db.CheckConstraint(
            f"failed_login_count >= 0 AND failed_login_count <= {FAILED_LOGIN_COUNT_CAP}",
            name="ck_user_security_failed_login_count_range",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)

    # External identity reference (str(users.id)); deletion is cascaded by hand
    user_id = db.Column(db.String(64), unique=True, nullable=False, index=True)

    failed_login_count = db.Column(db.Integer, default=0, nullable=False)
    account_locked = db.Column(db.Boolean, default=False, nullable=False, index=True)

    locked_at = db.Column(db.DateTime, nullable=True, index=True)
    locked_by = db.Column(db.String(64), nullable=True)
    locked_reason = db.Column(db.String(500), nullable=True)

    unlocked_at = db.Column(db.DateTime, nullable=True)
    unlocked_by = db.Column(db.String(64), nullable=True)
    unlock_reason = db.Column(db.String(500), nullable=True)

    unlock_token = db.Column(db.String(128), nullable=True)
    unlock_token_expires = db.Column(db.DateTime, nullable=True)

    last_login_attempt = db.Column(db.DateTime, nullable=True)
    last_successful_login = db.Column(db.DateTime, nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)

    lock_email_sent = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    unlock_request = db.relationship(
        "UnlockRequest",
        uselist=False,
        back_populates="security",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @validates("failed_login_count")
    def _clamp_failed_login_count(self, key, value):
        value = int(value or 0)
        return max(0, min(value, FAILED_LOGIN_COUNT_CAP))

    @validates("ip_address")
    def _validate_ip_address(self, key, value):
        if not value:
            return None
        try:
            return str(ipaddress.ip_address(value.strip()))
        except ValueError:
            # advisory telemetry only, keep the previous value
            return self.ip_address

    def lock(self, reason: str, token: str, token_expires: datetime, now: datetime, locked_by=None):
        self.account_locked = True
        self.locked_at = now
        self.locked_by = locked_by
        self.locked_reason = reason
        self.unlock_token = token
        self.unlock_token_expires = token_expires
        self.lock_email_sent = False

    def unlock(self, reason: str, now: datetime, unlocked_by=None):
        self.account_locked = False
        self.unlocked_at = now
        self.unlocked_by = unlocked_by
        self.unlock_reason = reason
        self.failed_login_count = 0

        self.locked_at = None
        self.locked_by = None
        self.locked_reason = None
        self.unlock_token = None
        self.unlock_token_expires = None
        self.unlock_request = None

    def token_matches(self, token) -> bool:
        if not self.unlock_token or not isinstance(token, str) or not token:
            return False
        return hmac.compare_digest(self.unlock_token, token)

    def token_expired(self, now: datetime) -> bool:
        return self.unlock_token_expires is not None and now > self.unlock_token_expires

    @property
    def is_clean(self) -> bool:
        return self.failed_login_count == 0 and not self.account_locked
