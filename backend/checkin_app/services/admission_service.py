# File: backend/checkin_app/services/admission_service.py
"""Check-in admission controller."""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from checkin_app import db
from checkin_app.models.attendance import AttendanceRecord
from checkin_app.models.location import AttendanceLocation
from checkin_app.models.student import normalize_email
from checkin_app.services.fraud_service import (
    Confidence, DEFAULT_STORAGE_QUOTA_BYTES, FraudService,
    PrivateBrowsingEnsemble, VPNEnsemble
)
from checkin_app.services.geofence_service import Geofence, GeofenceService
from checkin_app.services.ip_registry import IPRegistry
from checkin_app.services.ledger_service import IdentityLedger
from checkin_app.services.session_calendar import SessionCalendar, is_valid_session, session_label
from checkin_app.services.session_gate import GatePolicy, SessionGate
from checkin_app.services.student_service import StudentService
from checkin_app.utils.errors import (
    DependencyError, InputError, IntegrityViolation, LedgerConflict,
    PolicyRejection, ReasonCode
)
from checkin_app.utils.validators import Validator

logger = logging.getLogger(__name__)

CHECKIN_FIELDS = ['name', 'email', 'specialty', 'major', 'latitude', 'longitude']
MANUAL_ENTRY_FIELDS = ['name', 'email', 'specialty', 'major', 'date', 'session']

def current_time() -> datetime:
    return datetime.now(timezone.utc)

class AdmissionState(Enum):
    """Linear states of the check-in pipeline."""
    INIT = 'init'
    VALIDATE_INPUT = 'validate_input'
    CHECK_HOURS = 'check_hours'
    CHECK_SESSION = 'check_session'
    CHECK_SESSION_GATE = 'check_session_gate'
    CHECK_ANTI_FRAUD = 'check_anti_fraud'
    CHECK_IP_REGISTRATION = 'check_ip_registration'
    CHECK_DEVICE_FINGERPRINT = 'check_device_fingerprint'
    CHECK_DEDUP_DEVICE_SESSION = 'check_dedup_device_session'
    CHECK_DEDUP_EMAIL_SESSION = 'check_dedup_email_session'
    CHECK_GEOFENCE = 'check_geofence'
    CHECK_STUDENT_RECORD = 'check_student_record'
    CHECK_SESSION_VALID = 'check_session_valid'
    COMMIT = 'commit'
    ACCEPTED = 'accepted'

@dataclass
class CheckInRequest:
    """Parsed self-service check-in request."""
    name: str
    email: str
    specialty: str
    major: str
    latitude: float
    longitude: float
    device_fingerprint: Optional[str]
    browser_signal: Dict[str, Any]
    vpn_suspected: bool
    vpn_probes: Dict[str, Any]
    ip_address: Optional[str]
    headers: Mapping[str, str]

    @classmethod
    def from_payload(cls, payload: Any, ip_address: Optional[str],
                     headers: Mapping[str, str]) -> 'CheckInRequest':
        if not isinstance(payload, dict):
            raise InputError("Request body must be JSON")

        Validator.require_fields(payload, CHECKIN_FIELDS)
        Validator.require_strings(payload, ['name', 'email', 'specialty', 'major'])

        email = normalize_email(payload['email'])
        if not Validator.validate_email(email):
            raise InputError("Invalid email format", reason_code=ReasonCode.INVALID_INPUT)

        browser_signal = payload.get('browserSignal') or payload.get('browserFingerprint') or {}
        if not isinstance(browser_signal, dict):
            browser_signal = {}

        vpn_probes = payload.get('vpnProbes') or {}
        if not isinstance(vpn_probes, dict):
            vpn_probes = {}

        return cls(
            name=str(payload['name']).strip(),
            email=email,
            specialty=str(payload['specialty']).strip(),
            major=str(payload['major']).strip(),
            latitude=Validator.coordinate(payload['latitude'], 'Latitude', 90),
            longitude=Validator.coordinate(payload['longitude'], 'Longitude', 180),
            device_fingerprint=Validator.optional_str(payload.get('deviceFingerprint'), 255),
            browser_signal=browser_signal,
            vpn_suspected=payload.get('vpnSuspected', payload.get('isVPN')) is True,
            vpn_probes=vpn_probes,
            ip_address=ip_address,
            headers=headers
        )

@dataclass
class AdmissionDecision:
    """Structured accept/reject result handed back to the transport layer."""
    accepted: bool
    message: str
    state: AdmissionState
    reason_code: Optional[ReasonCode] = None
    status_code: int = 200
    fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def rejected(cls, error, state: AdmissionState) -> 'AdmissionDecision':
        fields = dict(getattr(error, 'extra', {}))
        if getattr(error, 'fields', None):
            fields['fields'] = error.fields
        return cls(
            accepted=False,
            message=error.message,
            state=state,
            reason_code=error.reason_code,
            status_code=error.status_code,
            fields=fields
        )

    def to_dict(self) -> Dict[str, Any]:
        """Decision fields sit at the top level in both outcomes.

        Accepted bodies also carry them under ``data`` to match the
        ``success_response`` envelope.
        """
        if self.accepted:
            body = {
                'error': False,
                'message': self.message,
                'accepted': True
            }
            body.update(self.fields)
            body['data'] = dict(self.fields)
            return body

        body = {
            'error': True,
            'message': self.message,
            'status_code': self.status_code,
            'accepted': False,
            'reasonCode': self.reason_code.value if self.reason_code else None
        }
        body.update(self.fields)
        return body

class AdmissionRun:
    """Tracks how far one request got through the pipeline."""

    def __init__(self):
        self.state = AdmissionState.INIT

    def advance(self, state: AdmissionState) -> None:
        self.state = state

class AdmissionController:
    """
    Admission controller for attendance check-ins.

    Flow (each failure is a terminal rejection):
    ValidateInput -> CheckHours -> CheckSession -> CheckSessionGate ->
    CheckAntiFraud (VPN, then private browsing) -> CheckIPRegistration ->
    CheckDeviceFingerprint -> dedup by device -> dedup by email ->
    CheckGeofence -> CheckStudentRecord -> Commit -> Accepted

    Store errors fail closed as DependencyError. Nothing is retried here.
    """

    def __init__(
        self,
        calendar: SessionCalendar,
        gate: SessionGate,
        private_block_confidence: Confidence = Confidence.HIGH,
        storage_quota_threshold: int = DEFAULT_STORAGE_QUOTA_BYTES,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.calendar = calendar
        self.gate = gate
        self.private_block_confidence = private_block_confidence
        self.storage_quota_threshold = storage_quota_threshold
        self.clock = clock

    @classmethod
    def from_config(cls, config, clock: Optional[Callable[[], datetime]] = None) -> 'AdmissionController':
        return cls(
            calendar=SessionCalendar(config.get('ATTENDANCE_TIMEZONE')),
            gate=SessionGate(GatePolicy.from_config(config)),
            private_block_confidence=Confidence(
                config.get('PRIVATE_BROWSING_BLOCK_CONFIDENCE', 'high')
            ),
            storage_quota_threshold=config.get(
                'PRIVATE_STORAGE_QUOTA_BYTES', DEFAULT_STORAGE_QUOTA_BYTES
            ),
            clock=clock
        )

    def _now(self) -> datetime:
        return (self.clock or current_time)()

    # =================== ENTRY POINTS ===================

    def check_in(self, payload: Any, ip_address: Optional[str] = None,
                 headers: Optional[Mapping[str, str]] = None) -> AdmissionDecision:
        """Run the self-service pipeline for one request."""
        run = AdmissionRun()
        return self._decide(run, lambda: self._check_in(run, payload, ip_address, headers or {}))

    def manual_entry(self, payload: Any, actor: str) -> AdmissionDecision:
        """Run the shorter admin pipeline. Bypasses geofence, anti-fraud and IP checks."""
        run = AdmissionRun()
        return self._decide(run, lambda: self._manual_entry(run, payload, actor))

    def _decide(self, run: AdmissionRun, pipeline: Callable[[], AdmissionDecision]) -> AdmissionDecision:
        try:
            return pipeline()
        except (InputError, PolicyRejection) as rejection:
            logger.info(
                "Check-in rejected at %s: %s (%s)",
                run.state.value, rejection.reason_code.value, rejection.message
            )
            return AdmissionDecision.rejected(rejection, run.state)
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.error("Store failure at %s: %s", run.state.value, exc)
            raise DependencyError(
                "Failed to mark attendance. Please try again."
            ) from exc

    # =================== SELF-SERVICE PIPELINE ===================

    def _check_in(self, run: AdmissionRun, payload: Any, ip_address: Optional[str],
                  headers: Mapping[str, str]) -> AdmissionDecision:
        run.advance(AdmissionState.VALIDATE_INPUT)
        request = CheckInRequest.from_payload(payload, ip_address, headers)
        now = self._now()

        run.advance(AdmissionState.CHECK_HOURS)
        if not self.calendar.within_attendance_hours(now):
            raise PolicyRejection(
                ReasonCode.OUTSIDE_HOURS,
                "Attendance can only be marked during authorized hours (8:00 AM - End of Day)."
            )

        run.advance(AdmissionState.CHECK_SESSION)
        session = self.calendar.session_for(now)
        if session is None:
            raise PolicyRejection(
                ReasonCode.NO_ACTIVE_SESSION,
                "No active attendance session at this time."
            )

        run.advance(AdmissionState.CHECK_SESSION_GATE)
        if not self.gate.is_enabled(session):
            raise PolicyRejection(
                ReasonCode.SESSION_DISABLED,
                "Attendance marking is currently disabled for this session by the administrator.",
                session=session
            )

        run.advance(AdmissionState.CHECK_ANTI_FRAUD)
        self._check_anti_fraud(request)

        run.advance(AdmissionState.CHECK_IP_REGISTRATION)
        self._check_ip_registration(request.ip_address)

        run.advance(AdmissionState.CHECK_DEVICE_FINGERPRINT)
        if not request.device_fingerprint:
            raise PolicyRejection(
                ReasonCode.MISSING_FINGERPRINT,
                "Device fingerprint required. Please refresh the page."
            )

        day = self.calendar.day_of(now)

        run.advance(AdmissionState.CHECK_DEDUP_DEVICE_SESSION)
        used = IdentityLedger.find_device_entry(
            request.ip_address, request.device_fingerprint, session, day
        )
        if used is not None:
            raise PolicyRejection(
                ReasonCode.DEVICE_ALREADY_USED,
                f"This device has already marked attendance for this session with email: {used.email}.",
                usedEmail=used.email
            )

        run.advance(AdmissionState.CHECK_DEDUP_EMAIL_SESSION)
        if IdentityLedger.has_email_entry(request.email, session, day):
            raise PolicyRejection(
                ReasonCode.EMAIL_ALREADY_USED,
                "This email has already marked attendance for this session."
            )

        run.advance(AdmissionState.CHECK_GEOFENCE)
        geofences = [Geofence.from_location(loc) for loc in AttendanceLocation.active()]
        evaluation = GeofenceService.evaluate(request.latitude, request.longitude, geofences)
        if evaluation.no_geofences:
            raise PolicyRejection(
                ReasonCode.NO_ACTIVE_LOCATIONS,
                "No active attendance locations available"
            )
        if not evaluation.admitted:
            raise PolicyRejection(
                ReasonCode.OUT_OF_RANGE,
                f"You are {evaluation.distance_meters} meters away from the nearest location. "
                f"You must be within {evaluation.nearest.radius_meters} meters.",
                distanceMeters=evaluation.distance_meters,
                radiusMeters=evaluation.nearest.radius_meters,
                geofenceName=evaluation.nearest.name,
                verified=False
            )

        run.advance(AdmissionState.CHECK_STUDENT_RECORD)
        student = StudentService.find_by_email(request.email)
        if student is not None and student.has_record_for(session, day, self.calendar.day_of):
            raise PolicyRejection(
                ReasonCode.ALREADY_MARKED,
                "You have already marked attendance for this session today"
            )

        run.advance(AdmissionState.COMMIT)
        record = AttendanceRecord(
            timestamp=now,
            session=session,
            latitude=request.latitude,
            longitude=request.longitude,
            verified=True,
            distance=evaluation.distance_meters,
            device_fingerprint=request.device_fingerprint,
            added_by_admin=False
        )
        self._commit(request, record, day)

        run.advance(AdmissionState.ACCEPTED)
        logger.info("Check-in accepted for %s in %s", request.email, session)
        return AdmissionDecision(
            accepted=True,
            message=(
                f"Attendance marked successfully! You were {evaluation.distance_meters} "
                f"meters from {evaluation.nearest.name}"
            ),
            state=run.state,
            fields={
                'distanceMeters': evaluation.distance_meters,
                'geofenceName': evaluation.nearest.name,
                'session': session,
                'sessionLabel': session_label(session),
                'verified': True
            }
        )

    def _check_anti_fraud(self, request: CheckInRequest) -> None:
        vpn = VPNEnsemble.evaluate(FraudService.vpn_probes(
            request.vpn_suspected, request.vpn_probes,
            request.browser_signal, request.headers
        ))
        if vpn.suspected:
            raise PolicyRejection(
                ReasonCode.VPN_DETECTED,
                "VPN usage detected. Please disable your VPN to mark attendance.",
                indicators=vpn.indicators
            )

        # The browser already voted its own probes when it reports isPrivate
        if request.browser_signal.get('isPrivate') is True:
            raise PolicyRejection(
                ReasonCode.PRIVATE_BROWSING,
                "Private/Incognito browsing is not allowed. Please use normal browsing mode.",
                indicators=['client-verdict']
            )

        verdict = PrivateBrowsingEnsemble.evaluate(FraudService.private_browsing_probes(
            request.browser_signal, request.headers, self.storage_quota_threshold
        ))
        if not verdict.suspected:
            return

        if self.private_block_confidence is Confidence.LOW or verdict.confidence is Confidence.HIGH:
            raise PolicyRejection(
                ReasonCode.PRIVATE_BROWSING,
                "Private browsing detected. Please use normal browsing mode.",
                indicators=verdict.indicators,
                confidence=verdict.confidence.value
            )
        logger.warning(
            "Low-confidence private browsing suspicion for %s: %s",
            request.email, ', '.join(verdict.indicators)
        )

    @staticmethod
    def _check_ip_registration(ip_address: Optional[str]) -> None:
        if not ip_address:
            raise PolicyRejection(
                ReasonCode.IP_UNDETECTABLE,
                "Cannot detect IP address. Please disable private browsing mode."
            )

        registration = IPRegistry.lookup(ip_address)
        if registration is None:
            raise PolicyRejection(
                ReasonCode.IP_NOT_REGISTERED,
                "IP address not registered. Please reload the page to register your IP."
            )
        if not registration.is_verified:
            raise PolicyRejection(
                ReasonCode.IP_NOT_VERIFIED,
                "IP address is not verified. Please contact administrator."
            )

    def _commit(self, request: CheckInRequest, record: AttendanceRecord, day) -> None:
        """Write the ledger entry, then append the record to the student.

        The ledger insert goes first because its unique keys settle races
        between concurrent identical requests. The two writes are separate
        round trips; if the second fails the ledger entry stays behind and
        is reported for manual reconciliation.
        """
        try:
            IdentityLedger.record(
                request.ip_address, request.device_fingerprint,
                record.session, day, request.email
            )
        except LedgerConflict:
            raise PolicyRejection(
                ReasonCode.ALREADY_MARKED,
                "You have already marked attendance for this session today"
            )

        try:
            StudentService.append_attendance(
                request.email, request.name, request.specialty, request.major, record
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.critical(
                "Ledger entry written without attendance record: ip=%s device=%s "
                "session=%s day=%s email=%s error=%s",
                request.ip_address, request.device_fingerprint,
                record.session, day, request.email, exc
            )
            raise IntegrityViolation(
                "Attendance could not be saved. Please contact the administrator."
            ) from exc

    # =================== MANUAL ADMIN PIPELINE ===================

    def _manual_entry(self, run: AdmissionRun, payload: Any, actor: str) -> AdmissionDecision:
        run.advance(AdmissionState.VALIDATE_INPUT)
        if not isinstance(payload, dict):
            raise InputError("Request body must be JSON")
        Validator.require_fields(payload, MANUAL_ENTRY_FIELDS)
        Validator.require_strings(payload, MANUAL_ENTRY_FIELDS)

        email = normalize_email(payload['email'])
        if not Validator.validate_email(email):
            raise InputError("Invalid email format", reason_code=ReasonCode.INVALID_INPUT)
        day = Validator.parse_day(payload['date'])

        run.advance(AdmissionState.CHECK_SESSION_VALID)
        session = payload['session']
        if not is_valid_session(session):
            raise InputError("Invalid attendance session", reason_code=ReasonCode.INVALID_INPUT)

        run.advance(AdmissionState.COMMIT)
        existing = StudentService.find_by_email(email)
        if existing is not None and existing.has_record_for(session, day, self.calendar.day_of):
            logger.warning("Admin %s adding repeat %s entry for %s on %s", actor, session, email, day)

        record = AttendanceRecord.admin_entry(self.calendar.start_of_day(day), session)
        StudentService.append_attendance(
            email,
            str(payload['name']).strip(),
            str(payload['specialty']).strip(),
            str(payload['major']).strip(),
            record
        )

        run.advance(AdmissionState.ACCEPTED)
        logger.info("Admin %s added %s attendance for %s on %s", actor, session, email, day)
        return AdmissionDecision(
            accepted=True,
            message="Attendance added successfully by admin",
            state=run.state,
            fields={
                'email': email,
                'session': session,
                'date': day.isoformat(),
                'addedByAdmin': True
            }
        )
