from dataclasses import dataclass
from datetime import datetime

from flask import current_app

from models import db, FAILED_LOGIN_COUNT_CAP
from security.lock_admin import AdminLockManagement
from security.lockout import LockoutTracker
from security.records import SecurityRecordStore
from security.unlock_requests import UnlockRequestWorkflow
from utils.directory import UserDirectory
from utils.emailer import Notifier


@dataclass
class LockoutServices:
    store: SecurityRecordStore
    directory: UserDirectory
    notifier: Notifier
    tracker: LockoutTracker
    workflow: UnlockRequestWorkflow
    admin: AdminLockManagement

    def set_clock(self, clock):
        for component in (self.tracker, self.workflow, self.admin):
            component.clock = clock


def build_services(session, notifier: Notifier, directory: UserDirectory = None, clock=datetime.utcnow) -> LockoutServices:
    store = SecurityRecordStore(session)
    directory = directory or UserDirectory()
    return LockoutServices(
        store=store,
        directory=directory,
        notifier=notifier,
        tracker=LockoutTracker(store, directory, notifier, clock),
        workflow=UnlockRequestWorkflow(store, directory, notifier, clock),
        admin=AdminLockManagement(store, directory, notifier, clock),
    )


def init_lockout(app, notifier: Notifier = None):
    threshold = app.config.get("MAX_FAILED_LOGINS", 3)
    if not 1 <= threshold <= FAILED_LOGIN_COUNT_CAP:
        raise ValueError(f"MAX_FAILED_LOGINS must be between 1 and {FAILED_LOGIN_COUNT_CAP}, got {threshold}")

    notifier = notifier or Notifier()
    notifier.init_app(app)
    app.extensions["lockout"] = build_services(db.session, notifier)
    return app.extensions["lockout"]


def lockout_services() -> LockoutServices:
    return current_app.extensions["lockout"]
