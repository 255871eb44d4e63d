"""Attendance record embedded in a student document."""
from dataclasses import dataclass, asdict, field
from datetime import datetime
from typing import Any, Dict, Optional

ADMIN_FINGERPRINT = 'admin-added'

@dataclass(frozen=True)
class AttendanceRecord:
    """One attendance event. Immutable once appended to a student."""
    timestamp: datetime
    session: Optional[str]
    latitude: float
    longitude: float
    verified: bool
    distance: int
    device_fingerprint: Optional[str] = None
    added_by_admin: bool = False
    
    @classmethod
    def admin_entry(cls, timestamp: datetime, session: str) -> 'AttendanceRecord':
        """Build a record for the manual admin path (no location, trusted)."""
        return cls(
            timestamp=timestamp,
            session=session,
            latitude=0.0,
            longitude=0.0,
            verified=True,
            distance=0,
            device_fingerprint=ADMIN_FINGERPRINT,
            added_by_admin=True
        )
    
    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['timestamp'] = self.timestamp.isoformat()
        return data
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AttendanceRecord':
        # Legacy rows may lack session, fingerprint and admin flag
        return cls(
            timestamp=datetime.fromisoformat(data.get('timestamp') or data['date']),
            session=data.get('session'),
            latitude=float(data.get('latitude', 0.0)),
            longitude=float(data.get('longitude', 0.0)),
            verified=bool(data.get('verified', False)),
            distance=int(data.get('distance', 0)),
            device_fingerprint=data.get('device_fingerprint'),
            added_by_admin=bool(data.get('added_by_admin', False))
        )
