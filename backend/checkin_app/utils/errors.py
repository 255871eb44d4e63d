"""Check-in error taxonomy."""
from enum import Enum
from typing import Any, Dict, Optional

class ReasonCode(Enum):
    """Distinct rejection reasons surfaced to the client."""
    MISSING_FIELDS = 'MISSING_FIELDS'
    INVALID_INPUT = 'INVALID_INPUT'
    OUTSIDE_HOURS = 'OUTSIDE_HOURS'
    NO_ACTIVE_SESSION = 'NO_ACTIVE_SESSION'
    SESSION_DISABLED = 'SESSION_DISABLED'
    VPN_DETECTED = 'VPN_DETECTED'
    PRIVATE_BROWSING = 'PRIVATE_BROWSING'
    IP_UNDETECTABLE = 'IP_UNDETECTABLE'
    IP_NOT_REGISTERED = 'IP_NOT_REGISTERED'
    IP_NOT_VERIFIED = 'IP_NOT_VERIFIED'
    MISSING_FINGERPRINT = 'MISSING_FINGERPRINT'
    DEVICE_ALREADY_USED = 'DEVICE_ALREADY_USED'
    EMAIL_ALREADY_USED = 'EMAIL_ALREADY_USED'
    NO_ACTIVE_LOCATIONS = 'NO_ACTIVE_LOCATIONS'
    OUT_OF_RANGE = 'OUT_OF_RANGE'
    ALREADY_MARKED = 'ALREADY_MARKED'

# Policy rejections the client cannot fix by resubmitting the same form
FORBIDDEN_REASONS = {
    ReasonCode.VPN_DETECTED,
    ReasonCode.PRIVATE_BROWSING,
    ReasonCode.SESSION_DISABLED,
    ReasonCode.IP_NOT_REGISTERED,
    ReasonCode.IP_NOT_VERIFIED,
}

class CheckInError(Exception):
    """Base class for every error raised by the check-in core."""
    status_code = 500
    
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            'error': True,
            'message': self.message,
            'status_code': self.status_code
        }

class InputError(CheckInError):
    """Missing or malformed request fields."""
    status_code = 400
    
    def __init__(self, message: str, reason_code: ReasonCode = ReasonCode.MISSING_FIELDS,
                 fields: Optional[list] = None):
        super().__init__(message)
        self.reason_code = reason_code
        self.fields = fields or []

class PolicyRejection(CheckInError):
    """Expected, user-facing rejection. Not retriable without a change of conditions."""
    
    def __init__(self, reason_code: ReasonCode, message: str, **extra: Any):
        super().__init__(message)
        self.reason_code = reason_code
        self.extra = extra
    
    @property
    def status_code(self) -> int:
        return 403 if self.reason_code in FORBIDDEN_REASONS else 400
    
    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            'accepted': False,
            'reasonCode': self.reason_code.value,
        })
        data.update(self.extra)
        return data

class DependencyError(CheckInError):
    """The store was unreachable or timed out. Safe for the caller to retry."""
    status_code = 503

class IntegrityViolation(CheckInError):
    """Persisted state is inconsistent and needs operator reconciliation."""
    status_code = 500

class LedgerConflict(Exception):
    """The ledger's composite key already exists in storage."""
