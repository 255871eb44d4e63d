# backend/checkin_app/utils/decorators.py
"""Custom decorators for authorization."""
from functools import wraps
from flask import g
from flask_jwt_extended import get_jwt_identity
from checkin_app import db
from checkin_app.models.admin import Admin
from checkin_app.utils.helpers import error_response

def admin_required(f):
    """Decorator to require an authenticated, active admin.

    Must be stacked under ``@jwt_required()``. The admin is exposed as
    ``g.current_admin``.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        current_admin_id = get_jwt_identity()
        try:
            admin = db.session.get(Admin, int(current_admin_id))
        except (TypeError, ValueError):
            admin = None
        
        if not admin:
            return error_response("Admin not found", 404)
        
        if not admin.is_active:
            return error_response("Admin access required", 403)
        
        g.current_admin = admin
        return f(*args, **kwargs)
    return decorated_function
