"""Email -> identity lookups against the users table."""
from dataclasses import dataclass
from typing import Optional

from models import db
from models.session import Session
from models.user import User


def normalize_email(value: str) -> str:
    return (value or "").strip().lower()


def is_valid_email(email: str) -> bool:
    if not isinstance(email, str) or len(email) > 255:
        return False
    local, _, domain = email.partition("@")
    return bool(local) and "." in domain and "@" not in domain and " " not in email


@dataclass(frozen=True)
class DirectoryEntry:
    id: str
    email: str
    name: Optional[str]
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "ADMIN"


def _primary_role(user: User) -> str:
    names = user.role_names
    if "ADMIN" in names:
        return "ADMIN"
    for name in ("HOMEOWNER", "TENANT"):
        if name in names:
            return name
    return next(iter(sorted(names)), "HOMEOWNER")


class UserDirectory:
    def find_by_email(self, email: str) -> Optional[DirectoryEntry]:
        email = normalize_email(email)
        if not email:
            return None
        user = User.query.filter_by(email=email).first()
        if not user:
            return None
        return DirectoryEntry(id=str(user.id), email=user.email, name=user.name, role=_primary_role(user))

    def find_by_id(self, user_id) -> Optional[DirectoryEntry]:
        try:
            pk = int(user_id)
        except (TypeError, ValueError):
            return None
        user = db.session.get(User, pk)
        if not user:
            return None
        return DirectoryEntry(id=str(user.id), email=user.email, name=user.name, role=_primary_role(user))

    def delete_user(self, user_id) -> bool:
        """Remove a user and their sessions. Caller commits."""
        user = db.session.get(User, int(user_id))
        if not user:
            return False
        Session.query.filter_by(user_id=user.id).delete()
        user.roles = []
        db.session.delete(user)
        return True
