"""Admin model for authenticating privileged operations."""
from werkzeug.security import generate_password_hash, check_password_hash
from checkin_app import db
from checkin_app.models.base import BaseModel

class Admin(BaseModel):
    """Administrator allowed to toggle sessions and add manual attendance."""
    
    __tablename__ = 'admins'
    
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255), nullable=True)
    
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_login = db.Column(db.DateTime, nullable=True)
    failed_login_attempts = db.Column(db.Integer, default=0)
    
    def set_password(self, password: str) -> None:
        """Set admin password with hashing."""
        self.password_hash = generate_password_hash(password)
    
    def check_password(self, password: str) -> bool:
        """Check if provided password matches the stored hash."""
        return check_password_hash(self.password_hash, password)
    
    def to_dict(self, exclude: list = None) -> dict:
        """Convert to dictionary excluding sensitive data."""
        default_exclude = ['password_hash', 'failed_login_attempts']
        exclude = (exclude or []) + default_exclude
        return super().to_dict(exclude=exclude)
    
    def __repr__(self):
        return f'<Admin {self.email}>'
