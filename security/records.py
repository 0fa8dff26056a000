import logging
from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError

from models.unlock_request import UnlockRequest
from models.user_security import UserSecurity

logger = logging.getLogger(__name__)


def needs_reset_clause():
    return or_(UserSecurity.failed_login_count > 0, UserSecurity.account_locked.is_(True))


class SecurityRecordStore:
    """
    Persistence for per-identity security records.

    Every method works through the injected SQLAlchemy session; writes are
    committed before returning so callers never see a half-applied change.
    """

    def __init__(self, session):
        self.session = session

    def find_one(self, user_id):
        if user_id is None:
            return None
        return UserSecurity.query.filter_by(user_id=str(user_id)).first()

    def find_first(self, user_ids):
        for user_id in user_ids:
            record = self.find_one(user_id)
            if record is not None:
                return record
        return None

    def create(self, user_id, **fields) -> UserSecurity:
        fields.setdefault("failed_login_count", 0)
        fields.setdefault("account_locked", False)
        fields.setdefault("lock_email_sent", False)
        record = UserSecurity(user_id=str(user_id), **fields)
        try:
            # savepoint so a concurrent insert only undoes this row
            with self.session.begin_nested():
                self.session.add(record)
        except IntegrityError:
            existing = self.find_one(user_id)
            if existing is None:
                raise
            logger.info("Security record for %s created concurrently, reusing it", user_id)
            return existing
        return record

    def save(self, record: UserSecurity) -> UserSecurity:
        self.session.add(record)
        try:
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return record

    def update_many(self, clause, patch: dict) -> int:
        """Single UPDATE over every record matching ``clause``; returns the row count."""
        patch = dict(patch)
        patch.setdefault("updated_at", datetime.utcnow())
        try:
            result = self.session.execute(
                UserSecurity.__table__.update().where(clause).values(**patch)
            )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return result.rowcount

    def count_documents(self, clause=None) -> int:
        q = UserSecurity.query
        if clause is not None:
            q = q.filter(clause)
        return q.count()

    def find_many(self, clause=None, offset: int = 0, limit: int = None):
        q = UserSecurity.query
        if clause is not None:
            q = q.filter(clause)
        q = q.order_by(UserSecurity.locked_at.desc(), UserSecurity.id.desc()).offset(offset)
        if limit is not None:
            q = q.limit(limit)
        return q.all()

    def delete_requests(self, clause) -> int:
        """Drop unlock requests belonging to records matching ``clause``."""
        matching = select(UserSecurity.id).where(clause)
        result = self.session.execute(
            UnlockRequest.__table__.delete().where(UnlockRequest.security_id.in_(matching))
        )
        return result.rowcount

    def delete_for_user(self, user_ids) -> int:
        """Delete every record keyed by any of ``user_ids``. Caller commits."""
        records = UserSecurity.query.filter(UserSecurity.user_id.in_([str(u) for u in user_ids])).all()
        for record in records:
            self.session.delete(record)
        return len(records)
