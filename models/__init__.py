from .db import db
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .session import Session
from .user_security import UserSecurity, FAILED_LOGIN_COUNT_CAP
from .unlock_request import UnlockRequest, UNLOCK_REQUEST_STATUSES
