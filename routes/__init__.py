from .health import health_bp
from .auth import auth_bp
from .unlock_requests import unlock_bp
from .admin import admin_bp
