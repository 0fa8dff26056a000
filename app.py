import logging

from flask import Flask, request, g, jsonify
from flask_migrate import Migrate
from sqlalchemy.exc import SQLAlchemyError

from config import Config
from models import db
from routes import health_bp, auth_bp, unlock_bp, admin_bp
from security.csrf import require_csrf
from security.errors import LockoutError
from security.services import init_lockout
from utils.auth_context import load_current_user
from utils.seed import seed_roles


CSRF_EXEMPT_PATHS = {
    "/auth/login",
    "/auth/failed-login",
    "/unlock-request",
    "/health",
}


def _configure_logging(app):
    level = app.config.get("LOG_LEVEL", "INFO")
    if not logging.getLogger().handlers:
        logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app.logger.setLevel(level)


def create_app(config_object=Config, notifier=None):
    app = Flask(__name__)
    app.config.from_object(config_object)
    _configure_logging(app)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(unlock_bp)
    app.register_blueprint(admin_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Lockout components (store, directory, notifier)
    init_lockout(app, notifier)

    if app.config.get("SEED_ROLES_ON_STARTUP", True):
        with app.app_context():
            seed_roles()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.before_request
    def _csrf_protect():
        # Only protect state-changing requests
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            if request.path in CSRF_EXEMPT_PATHS:
                return None

            # Only enforce CSRF if user is already authenticated (cookie session)
            if getattr(g, "user", None) is not None:
                failure = require_csrf()
                if failure:
                    return failure

    @app.errorhandler(LockoutError)
    def _lockout_error(exc):
        return jsonify(success=False, message=exc.message), exc.status_code

    @app.errorhandler(SQLAlchemyError)
    def _database_error(exc):
        db.session.rollback()
        app.logger.exception("Database error while handling %s %s", request.method, request.path)
        return jsonify(success=False, message="Internal server error"), 500

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------
import click
from models.user import User, Role
from security.records import needs_reset_clause
from security.password import hash_password
from security.services import lockout_services
from security.errors import NotFound
from utils.directory import is_valid_email, normalize_email

def register_cli(app):
    @app.cli.command("create-user")
    @click.argument("email")
    @click.argument("name")
    @click.option("--role", default="HOMEOWNER", type=click.Choice(["HOMEOWNER", "TENANT", "ADMIN"], case_sensitive=False))
    @click.password_option()
    def create_user(email, name, role, password):
        """Create a portal user (bootstrap admins and test homeowners)."""
        email = normalize_email(email)
        if not is_valid_email(email):
            raise click.BadParameter("Invalid email", param_hint="EMAIL")
        if User.query.filter_by(email=email).first():
            raise click.ClickException(f"User {email} already exists")

        role_row = Role.query.filter_by(name=role.upper()).first()
        if not role_row:
            role_row = Role(name=role.upper())
            db.session.add(role_row)

        rounds = app.config.get("BCRYPT_ROUNDS", 12)
        user = User(email=email, name=name, password_hash=hash_password(password, rounds=rounds))
        user.roles.append(role_row)
        db.session.add(user)
        db.session.commit()
        click.echo(f"Created {role.upper()} {email} (id {user.id})")

    @app.cli.command("reset-failed-login")
    @click.argument("email", required=False)
    @click.option("--yes", is_flag=True, help="Skip the confirmation prompt for a bulk reset.")
    def reset_failed_login(email, yes):
        """Reset failed login counters and locks for EMAIL, or for every affected account."""
        admin = lockout_services().admin

        if email:
            try:
                outcome = admin.reset_failed_login(email)
            except NotFound as exc:
                raise click.ClickException(exc.message)
            if outcome.reset_count == 0:
                click.echo(f"{outcome.email} is already in good standing. Nothing to reset.")
            else:
                click.echo(f"Reset security record for {outcome.email}.")
            return

        affected = admin.store.count_documents(needs_reset_clause())
        if affected == 0:
            click.echo("All accounts are in good standing. Nothing to reset.")
            return

        click.echo(f"Found {affected} account(s) with failed login attempts or locks.")
        if not yes:
            click.confirm("Reset all of them?", abort=True)

        outcome = admin.reset_failed_login()
        click.echo(f"Reset {outcome.reset_count} security record(s).")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
