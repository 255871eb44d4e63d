"""Per-session enable/disable switch controlled by admins."""
from checkin_app import db
from checkin_app.models.base import BaseModel

class SessionControl(BaseModel):
    """Gate record for one session identifier."""
    
    __tablename__ = 'session_controls'
    
    session = db.Column(db.String(20), unique=True, nullable=False, index=True)
    is_enabled = db.Column(db.Boolean, default=True, nullable=False)
    updated_by = db.Column(db.String(255), nullable=True)
    
    def to_dict(self):
        return {
            'session': self.session,
            'is_enabled': self.is_enabled,
            'updated_by': self.updated_by,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }
    
    def __repr__(self):
        return f'<SessionControl {self.session}={self.is_enabled}>'
