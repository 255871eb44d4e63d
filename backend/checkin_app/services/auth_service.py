"""Authentication service for admin accounts."""
from flask_jwt_extended import create_access_token, create_refresh_token
from checkin_app import db
from checkin_app.models.admin import Admin
from checkin_app.utils.validators import Validator
from datetime import datetime

MIN_PASSWORD_LENGTH = 6

class AuthService:
    @staticmethod
    def validate_password(password: str) -> tuple[bool, str]:
        """Validate password strength."""
        if len(password) < MIN_PASSWORD_LENGTH:
            return False, f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        return True, ""
    
    @staticmethod
    def login(email: str, password: str) -> tuple[dict, str]:
        """Authenticate admin and return tokens."""
        if not email or not password:
            return None, "Email and password are required"
        
        if not Validator.validate_email(email):
            return None, "Invalid email format"
        
        admin = Admin.query.filter_by(email=email.lower().strip()).first()
        
        if not admin:
            return None, "Invalid email or password"
        
        if not admin.check_password(password):
            admin.failed_login_attempts = (admin.failed_login_attempts or 0) + 1
            admin.save()
            return None, "Invalid email or password"
        
        if not admin.is_active:
            return None, "Account is deactivated"
        
        admin.failed_login_attempts = 0
        admin.last_login = datetime.utcnow()
        admin.save()
        
        # JWT subjects must be strings
        access_token = create_access_token(identity=str(admin.id))
        refresh_token = create_refresh_token(identity=str(admin.id))
        
        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "admin": admin.to_dict()
        }, None
    
    @staticmethod
    def create_admin(email: str, password: str, name: str = None) -> tuple[Admin, str]:
        """Create a new admin account."""
        if not Validator.validate_email(email or ''):
            return None, "Invalid email format"
        
        is_valid, password_error = AuthService.validate_password(password or '')
        if not is_valid:
            return None, password_error
        
        email = email.lower().strip()
        if Admin.query.filter_by(email=email).first():
            return None, "Email already exists"
        
        admin = Admin(email=email, name=name)
        admin.set_password(password)
        db.session.add(admin)
        db.session.commit()
        return admin, None
