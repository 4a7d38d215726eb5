# auth_utils.py
"""
Admin authentication helpers for routes
"""

from functools import wraps

from flask import current_app, g, request, jsonify

from logging_config import security_logger


def is_admin_request() -> bool:
    """True when the request carries a valid admin cookie (or auth is disabled)"""
    if current_app.config.get('LOGIN_DISABLED', False):
        return True

    auth_service = current_app.services.get('admin_auth')
    return auth_service.is_authenticated(request.cookies.get(auth_service.cookie_name))


def admin_required(f):
    """Reject the request with 401 JSON unless the admin cookie is valid"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not is_admin_request():
            security_logger.log_unauthorized_access(request.path, request.remote_addr)
            return jsonify({'error': 'Unauthorized'}), 401

        g.is_admin = True
        return f(*args, **kwargs)
    return decorated_function
