"""Student model keyed by normalized email, with embedded attendance."""
from datetime import date
from typing import Callable, List
from sqlalchemy.ext.mutable import MutableList
from checkin_app import db
from checkin_app.models.base import BaseModel
from checkin_app.models.attendance import AttendanceRecord

def normalize_email(email: str) -> str:
    """Lower-case and trim an email so it can serve as identity key."""
    return (email or '').strip().lower()

class Student(BaseModel):
    """Student created on first successful check-in."""
    
    __tablename__ = 'students'
    
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    specialty = db.Column(db.String(50), nullable=False, index=True)
    major = db.Column(db.String(50), nullable=False, index=True)
    
    # Append-only list of AttendanceRecord dicts
    attendance_records = db.Column(MutableList.as_mutable(db.JSON), nullable=False, default=list)
    
    def refresh_profile(self, name: str, specialty: str, major: str) -> None:
        """Overwrite the descriptive fields with the latest submission."""
        self.name = name
        self.specialty = specialty
        self.major = major
    
    @property
    def records(self) -> List[AttendanceRecord]:
        return [AttendanceRecord.from_dict(r) for r in (self.attendance_records or [])]
    
    def append_record(self, record: AttendanceRecord) -> None:
        if self.attendance_records is None:
            self.attendance_records = []
        self.attendance_records.append(record.to_dict())
    
    def has_record_for(self, session: str, day: date, day_of: Callable) -> bool:
        """Check whether a record for ``session`` already exists on ``day``.

        ``day_of`` maps a record timestamp to its calendar day in the
        attendance timezone.
        """
        return any(
            record.session == session and day_of(record.timestamp) == day
            for record in self.records
        )
    
    def to_dict(self, include_records: bool = True) -> dict:
        """Convert to dictionary."""
        data = {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'specialty': self.specialty,
            'major': self.major,
            'created_at': self.created_at.isoformat() if self.created_at else None
        }
        if include_records:
            data['attendance_records'] = list(self.attendance_records or [])
        return data
    
    def __repr__(self):
        return f'<Student {self.email}>'
