"""Models package with all models."""
from .base import BaseModel
from .admin import Admin
from .attendance import AttendanceRecord
from .student import Student, normalize_email
from .location import AttendanceLocation
from .session_control import SessionControl
from .ip_registration import IPRegistration
from .identity_ledger import IdentityLedgerEntry

__all__ = [
    'BaseModel', 'Admin', 'AttendanceRecord',
    'Student', 'normalize_email', 'AttendanceLocation',
    'SessionControl', 'IPRegistration', 'IdentityLedgerEntry'
]
