import logging

from models import db
from models.user import Role

logger = logging.getLogger(__name__)

# portal roles; only ADMIN is exempt from lockout
PORTAL_ROLES = ("HOMEOWNER", "TENANT", "ADMIN")


def seed_roles(names=PORTAL_ROLES):
    existing = {r.name for r in Role.query.all()}
    missing = [name for name in names if name not in existing]
    for name in missing:
        db.session.add(Role(name=name))
    db.session.commit()
    if missing:
        logger.info("Seeded roles: %s", ", ".join(missing))
    return missing
