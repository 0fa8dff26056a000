import pytest

from app import create_app
from config import TestConfig
from models import db
from models.user import User, Role
from security.password import hash_password
from utils.seed import seed_roles

PASSWORD = "CorrectHorseBattery1!"

# 24 words
GOOD_REASON = (
    "I mistyped my password several times after changing it last week on my phone "
    "and I would like my homeowner account unlocked again please"
)


class RecordingTransport:
    """Stands in for the SMTP transport; records what would have been sent."""

    def __init__(self):
        self.sent = []
        self.fail_with = None

    def __call__(self, message):
        if self.fail_with is not None:
            return False, self.fail_with
        self.sent.append(message)
        return True, None

    @property
    def subjects(self):
        return [m.subject for m in self.sent]


@pytest.fixture()
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        seed_roles()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def services(app):
    return app.extensions["lockout"]


@pytest.fixture()
def outbox(app):
    transport = RecordingTransport()
    app.extensions["notifier"].transport = transport
    return transport


@pytest.fixture()
def make_user(app):
    def _make(email="homeowner@example.com", name="Hana Homeowner", role="HOMEOWNER", password=PASSWORD):
        user = User(email=email, name=name, password_hash=hash_password(password, rounds=4))
        user.roles.append(Role.query.filter_by(name=role).first())
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture()
def homeowner(make_user):
    return make_user("u1@x.com", "User One")


@pytest.fixture()
def admin_user(make_user):
    return make_user("admin@example.com", "Ada Admin", role="ADMIN")


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def admin_client(app, admin_user):
    client = app.test_client()
    resp = client.post("/auth/login", json={"email": admin_user.email, "password": PASSWORD})
    assert resp.status_code == 200
    # every state-changing call from a logged-in session must echo the CSRF cookie
    client.environ_base["HTTP_X_CSRF_TOKEN"] = client.get_cookie("csrf_token").value
    return client


@pytest.fixture()
def locked_homeowner(services, homeowner, outbox):
    for _ in range(3):
        services.tracker.record_failed_attempt(homeowner.email)
    return homeowner


@pytest.fixture()
def record_of(services):
    def _lookup(user):
        db.session.expire_all()
        return services.store.find_one(str(user.id))
    return _lookup


@pytest.fixture()
def good_reason():
    return GOOD_REASON


@pytest.fixture()
def password():
    return PASSWORD
