"""Identity ledger used for duplicate check-in detection."""
from checkin_app import db
from checkin_app.models.base import BaseModel

class IdentityLedgerEntry(BaseModel):
    """One row per accepted check-in. Never updated or deleted."""
    
    __tablename__ = 'identity_ledger'
    
    ip_address = db.Column(db.String(64), nullable=False)
    device_fingerprint = db.Column(db.String(255), nullable=False)
    session = db.Column(db.String(20), nullable=False)
    day = db.Column(db.Date, nullable=False)
    email = db.Column(db.String(255), nullable=False, index=True)
    
    __table_args__ = (
        db.UniqueConstraint(
            'ip_address', 'device_fingerprint', 'session', 'day',
            name='uq_ledger_device_session_day'
        ),
        db.UniqueConstraint('email', 'session', 'day', name='uq_ledger_email_session_day'),
    )
    
    def __repr__(self):
        return f'<IdentityLedgerEntry {self.email} {self.session} {self.day}>'
