"""IP presence registration."""
from datetime import datetime
from checkin_app import db
from checkin_app.models.base import BaseModel

class IPRegistration(BaseModel):
    """First/last sighting of a client IP address."""
    
    __tablename__ = 'ip_registrations'
    
    ip_address = db.Column(db.String(64), unique=True, nullable=False, index=True)
    first_seen = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    last_seen = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    visit_count = db.Column(db.Integer, default=1, nullable=False)
    is_verified = db.Column(db.Boolean, default=True, nullable=False)
    user_agent = db.Column(db.String(512), nullable=True)
    
    def __repr__(self):
        return f'<IPRegistration {self.ip_address}>'
