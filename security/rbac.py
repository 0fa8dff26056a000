from functools import wraps
from flask import g, jsonify

def require_roles(*role_names: str):
    """
    Usage: @require_roles("ADMIN")
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return jsonify(success=False, message="Authentication required"), 401

            if not user.role_names.intersection(role_names):
                return jsonify(success=False, message="Admin access required"), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator
