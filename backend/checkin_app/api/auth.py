# File: backend/checkin_app/api/auth.py
"""Admin authentication API."""
from flask import Blueprint, request, g
from flask_jwt_extended import jwt_required
from checkin_app import limiter
from checkin_app.services.auth_service import AuthService
from checkin_app.utils.decorators import admin_required
from checkin_app.utils.helpers import success_response, error_response

auth_bp = Blueprint("auth", __name__)

@auth_bp.route("/health", methods=["GET"])
def health_check():
    """Health check endpoint."""
    return success_response(message="Auth service is running")

@auth_bp.route("/login", methods=["POST"])
@limiter.limit("5 per minute")
def login():
    """Admin login."""
    data = request.get_json(silent=True)
    
    if not isinstance(data, dict) or not data:
        return error_response("Request body must be JSON", 400)
    
    email = data.get("email") or ""
    password = data.get("password") or ""
    
    if not isinstance(email, str) or not isinstance(password, str):
        return error_response("Email and password must be text", 400)
    
    email = email.strip()
    if not email or not password:
        return error_response("Email and password are required", 400)
    
    result, error = AuthService.login(email, password)
    
    if error:
        return error_response(error, 401)
    
    return success_response(
        data=result,
        message="Login successful"
    )

@auth_bp.route("/me", methods=["GET"])
@jwt_required()
@admin_required
def me():
    """Current admin profile."""
    return success_response(data=g.current_admin.to_dict())
