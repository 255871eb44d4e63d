"""Test the admission controller pipeline."""
from datetime import date

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from checkin_app.models.identity_ledger import IdentityLedgerEntry
from checkin_app.models.ip_registration import IPRegistration
from checkin_app.models.attendance import AttendanceRecord
from checkin_app.models.location import AttendanceLocation
from checkin_app.models.student import Student
from checkin_app.services import admission_service
from checkin_app.services.admission_service import (
    AdmissionController, AdmissionState, CheckInRequest
)
from checkin_app.services.fraud_service import Confidence
from checkin_app.services.ledger_service import IdentityLedger
from checkin_app.services.session_calendar import SessionCalendar
from checkin_app.services.session_gate import SessionGate
from checkin_app.services.student_service import StudentService
from checkin_app.utils.errors import (
    DependencyError, InputError, IntegrityViolation, ReasonCode
)

from conftest import BROWSER_HEADERS, CAMPUS, CLIENT_IP, at, checkin_payload

class Clock:
    """Settable clock handed to the controller."""

    def __init__(self, moment):
        self.moment = moment

    def __call__(self):
        return self.moment

@pytest.fixture
def clock():
    return Clock(at(10, 0))

@pytest.fixture
def controller(app, clock):
    return AdmissionController(SessionCalendar(), SessionGate(), clock=clock)

@pytest.fixture
def ready(campus, registered_ip):
    """A campus geofence and a registered client IP."""
    return campus

def check_in(controller, headers=None, ip=CLIENT_IP, **overrides):
    return controller.check_in(checkin_payload(**overrides), ip,
                               BROWSER_HEADERS if headers is None else headers)

# =================== ACCEPT ===================

def test_accepted_check_in(controller, ready):
    decision = check_in(controller)

    assert decision.accepted
    assert decision.state is AdmissionState.ACCEPTED
    assert decision.status_code == 200
    assert decision.fields == {
        'distanceMeters': 0,
        'geofenceName': 'Main Campus',
        'session': 'session2',
        'sessionLabel': '9:30 AM - 11:00 AM',
        'verified': True
    }

    student = StudentService.find_by_email('amina.benali@example.com')
    assert student.name == 'Amina Benali'
    [record] = student.records
    assert record.session == 'session2'
    assert record.verified
    assert record.distance == 0
    assert record.device_fingerprint == 'fp-device-1'
    assert not record.added_by_admin

    assert IdentityLedger.has_device_entry(CLIENT_IP, 'fp-device-1', 'session2', date(2026, 3, 2))
    assert IdentityLedger.has_email_entry('amina.benali@example.com', 'session2', date(2026, 3, 2))

def test_accept_body_shape(controller, ready):
    body = check_in(controller).to_dict()
    assert body['error'] is False
    assert body['accepted'] is True
    assert body['distanceMeters'] == 0
    assert body['geofenceName'] == 'Main Campus'
    assert body['session'] == 'session2'
    assert body['data']['verified'] is True
    assert body['data']['session'] == body['session']
    assert 'Main Campus' in body['message']

def test_equator_coordinates_are_not_missing(controller, campus, registered_ip):
    """Test zero-valued coordinates pass the presence check."""
    decision = check_in(controller, latitude=0, longitude=0)

    assert decision.reason_code is ReasonCode.OUT_OF_RANGE

def test_same_email_in_next_session(controller, clock, ready):
    assert check_in(controller).accepted

    clock.moment = at(11, 15)
    decision = check_in(controller)

    assert decision.accepted
    assert decision.fields['session'] == 'session3'
    assert len(StudentService.find_by_email('amina.benali@example.com').records) == 2

def test_same_session_next_day(controller, clock, ready):
    assert check_in(controller).accepted

    clock.moment = at(10, 0, day=3)
    assert check_in(controller).accepted

def test_profile_is_refreshed_on_later_check_in(controller, clock, ready):
    check_in(controller)
    clock.moment = at(12, 45)
    check_in(controller, name='Amina B.', major='SE')

    student = StudentService.find_by_email('amina.benali@example.com')
    assert student.name == 'Amina B.'
    assert student.major == 'SE'

# =================== DEDUP ===================

def test_second_attempt_same_device(controller, ready):
    assert check_in(controller).accepted

    decision = check_in(controller, email='someone.else@example.com')

    assert not decision.accepted
    assert decision.reason_code is ReasonCode.DEVICE_ALREADY_USED
    assert decision.fields['usedEmail'] == 'amina.benali@example.com'
    assert 'already marked attendance for this session' in decision.message

def test_second_attempt_same_email_other_device(controller, ready):
    assert check_in(controller).accepted

    decision = check_in(controller, deviceFingerprint='fp-device-2')

    assert decision.reason_code is ReasonCode.EMAIL_ALREADY_USED
    assert 'already marked attendance for this session' in decision.message

def test_student_record_blocks_after_manual_entry(controller, ready):
    """Test an admin-added record blocks a self check-in for the same session."""
    manual = controller.manual_entry({
        'name': 'Amina Benali', 'email': 'amina.benali@example.com',
        'specialty': 'MI', 'major': 'CS', 'date': '2026-03-02', 'session': 'session2'
    }, 'admin@university.edu')
    assert manual.accepted

    decision = check_in(controller)

    assert decision.reason_code is ReasonCode.ALREADY_MARKED
    assert decision.state is AdmissionState.CHECK_STUDENT_RECORD

def test_ledger_conflict_at_commit_is_already_marked(controller, ready, monkeypatch):
    """Test a racing request that passed the read checks loses on insert."""
    IdentityLedger.record(CLIENT_IP, 'fp-device-1', 'session2', date(2026, 3, 2),
                          'amina.benali@example.com')
    monkeypatch.setattr(IdentityLedger, 'find_device_entry', staticmethod(lambda *a: None))
    monkeypatch.setattr(IdentityLedger, 'has_email_entry', staticmethod(lambda *a: False))

    decision = check_in(controller)

    assert decision.reason_code is ReasonCode.ALREADY_MARKED
    assert decision.state is AdmissionState.COMMIT
    assert StudentService.find_by_email('amina.benali@example.com') is None

# =================== REJECTIONS ===================

def test_missing_fields(controller, ready):
    payload = checkin_payload(name='  ', latitude=None)
    del payload['major']

    decision = controller.check_in(payload, CLIENT_IP, BROWSER_HEADERS)

    assert decision.reason_code is ReasonCode.MISSING_FIELDS
    assert decision.status_code == 400
    assert decision.state is AdmissionState.VALIDATE_INPUT
    assert set(decision.fields['fields']) == {'name', 'major', 'latitude'}

def test_non_json_body(controller):
    decision = controller.check_in(None, CLIENT_IP, BROWSER_HEADERS)
    assert decision.reason_code is ReasonCode.MISSING_FIELDS
    assert decision.status_code == 400

def test_invalid_email(controller, ready):
    decision = check_in(controller, email='not-an-email')
    assert decision.reason_code is ReasonCode.INVALID_INPUT

def test_invalid_coordinates(controller, ready):
    assert check_in(controller, latitude='north').reason_code is ReasonCode.INVALID_INPUT
    assert check_in(controller, longitude=181).reason_code is ReasonCode.INVALID_INPUT

def test_outside_hours(controller, clock, ready):
    clock.moment = at(7, 0)
    decision = check_in(controller)

    assert decision.reason_code is ReasonCode.OUTSIDE_HOURS
    assert decision.status_code == 400
    assert decision.state is AdmissionState.CHECK_HOURS

def test_session_disabled(controller, ready):
    controller.gate.set_enabled('session2', False, 'admin@university.edu')

    decision = check_in(controller)

    assert decision.reason_code is ReasonCode.SESSION_DISABLED
    assert decision.status_code == 403
    assert decision.fields['session'] == 'session2'

def test_vpn_flag(controller, ready):
    decision = check_in(controller, vpnSuspected=True)

    assert decision.reason_code is ReasonCode.VPN_DETECTED
    assert decision.status_code == 403

def test_vpn_from_user_agent_header(controller, ready):
    headers = dict(BROWSER_HEADERS, **{'User-Agent': 'Mozilla/5.0 (SecureVPN client)'})
    assert check_in(controller, headers=headers).reason_code is ReasonCode.VPN_DETECTED

def test_vpn_checked_before_private_browsing(controller, ready):
    signal = dict(checkin_payload()['browserSignal'], isPrivate=True)
    decision = check_in(controller, isVPN=True, browserSignal=signal)
    assert decision.reason_code is ReasonCode.VPN_DETECTED

def test_client_private_verdict(controller, ready):
    signal = dict(checkin_payload()['browserSignal'], isPrivate=True)
    decision = check_in(controller, browserSignal=signal)

    assert decision.reason_code is ReasonCode.PRIVATE_BROWSING
    assert decision.status_code == 403
    assert decision.fields['indicators'] == ['client-verdict']

def test_private_browsing_from_headers(controller, ready):
    headers = dict(BROWSER_HEADERS, DNT='1', **{'Cache-Control': 'no-store'})
    decision = check_in(controller, headers=headers)

    assert decision.reason_code is ReasonCode.PRIVATE_BROWSING
    assert decision.fields['confidence'] == 'high'

def test_low_confidence_private_suspicion(app, clock, ready):
    """Test mixed client/server evidence only blocks under the strict policy."""
    headers = dict(BROWSER_HEADERS, DNT='1')
    signal = dict(checkin_payload()['browserSignal'], probes={'localStorageFailed': True})

    lenient = AdmissionController(SessionCalendar(), SessionGate(), clock=clock)
    assert check_in(lenient, headers=headers, browserSignal=signal).accepted

    strict = AdmissionController(SessionCalendar(), SessionGate(),
                                 private_block_confidence=Confidence.LOW, clock=clock)
    decision = check_in(strict, headers=headers, browserSignal=signal,
                        email='other@example.com', deviceFingerprint='fp-device-2')
    assert decision.reason_code is ReasonCode.PRIVATE_BROWSING
    assert decision.fields['confidence'] == 'low'

def test_ip_undetectable(controller, ready):
    decision = check_in(controller, ip=None)
    assert decision.reason_code is ReasonCode.IP_UNDETECTABLE
    assert decision.status_code == 400

def test_ip_not_registered(controller, campus):
    decision = check_in(controller)
    assert decision.reason_code is ReasonCode.IP_NOT_REGISTERED
    assert decision.status_code == 403

def test_ip_not_verified(controller, ready):
    registration = IPRegistration.query.filter_by(ip_address=CLIENT_IP).one()
    registration.is_verified = False
    registration.save()

    decision = check_in(controller)
    assert decision.reason_code is ReasonCode.IP_NOT_VERIFIED
    assert decision.status_code == 403

def test_missing_fingerprint(controller, ready):
    decision = check_in(controller, deviceFingerprint='   ')
    assert decision.reason_code is ReasonCode.MISSING_FINGERPRINT

def test_no_active_locations(controller, registered_ip):
    AttendanceLocation(name='Closed Annex', latitude=CAMPUS[0], longitude=CAMPUS[1],
                       radius_meters=100, is_active=False).save()

    decision = check_in(controller)
    assert decision.reason_code is ReasonCode.NO_ACTIVE_LOCATIONS

def test_out_of_range(controller, ready):
    # About 1.1 km north of campus
    decision = check_in(controller, latitude=CAMPUS[0] + 0.01)

    assert decision.reason_code is ReasonCode.OUT_OF_RANGE
    assert decision.fields['distanceMeters'] == 1112
    assert decision.fields['radiusMeters'] == 100
    assert decision.fields['geofenceName'] == 'Main Campus'
    assert decision.fields['verified'] is False
    assert '1112 meters away' in decision.message

def test_rejections_write_nothing(controller, ready):
    check_in(controller, vpnSuspected=True)
    check_in(controller, latitude=CAMPUS[0] + 0.01)

    assert IdentityLedgerEntry.query.count() == 0
    assert StudentService.find_by_email('amina.benali@example.com') is None

# =================== STORE FAILURES ===================

def test_store_failure_fails_closed(controller, ready, monkeypatch):
    def unavailable(*args, **kwargs):
        raise OperationalError('SELECT', {}, Exception('database is locked'))
    monkeypatch.setattr(AttendanceLocation, 'active', classmethod(unavailable))

    with pytest.raises(DependencyError) as exc_info:
        check_in(controller)
    assert exc_info.value.status_code == 503

def test_student_write_failure_after_ledger(controller, ready, monkeypatch):
    """Test a failed second write leaves the ledger entry and raises an integrity error."""
    def broken(*args, **kwargs):
        raise SQLAlchemyError('write failed')
    monkeypatch.setattr(StudentService, 'append_attendance', staticmethod(broken))

    with pytest.raises(IntegrityViolation) as exc_info:
        check_in(controller)

    assert exc_info.value.status_code == 500
    assert IdentityLedgerEntry.query.count() == 1

# =================== MANUAL ENTRY ===================

def manual_payload(**overrides):
    payload = {
        'name': 'Yacine Haddad',
        'email': 'Yacine.Haddad@example.com',
        'specialty': 'MI',
        'major': 'CS',
        'date': '2026-03-02',
        'session': 'session1'
    }
    payload.update(overrides)
    return payload

def test_manual_entry(controller):
    decision = controller.manual_entry(manual_payload(), 'admin@university.edu')

    assert decision.accepted
    assert decision.fields == {
        'email': 'yacine.haddad@example.com',
        'session': 'session1',
        'date': '2026-03-02',
        'addedByAdmin': True
    }

    [record] = StudentService.find_by_email('yacine.haddad@example.com').records
    assert record.added_by_admin
    assert record.verified
    assert record.device_fingerprint == 'admin-added'
    assert (record.latitude, record.longitude, record.distance) == (0.0, 0.0, 0)
    assert record.timestamp.date() == date(2026, 3, 2)

def test_manual_entry_ignores_gate_and_ledger(controller):
    controller.gate.set_enabled('session1', False, 'admin@university.edu')

    assert controller.manual_entry(manual_payload(), 'admin@university.edu').accepted
    assert controller.manual_entry(manual_payload(), 'admin@university.edu').accepted

    assert IdentityLedgerEntry.query.count() == 0
    assert len(StudentService.find_by_email('yacine.haddad@example.com').records) == 2

def test_manual_entry_accepts_session0(controller):
    assert controller.manual_entry(manual_payload(session='session0'), 'admin').accepted

def test_manual_entry_invalid_session(controller):
    decision = controller.manual_entry(manual_payload(session='session7'), 'admin')

    assert decision.reason_code is ReasonCode.INVALID_INPUT
    assert decision.state is AdmissionState.CHECK_SESSION_VALID
    assert decision.status_code == 400

def test_manual_entry_missing_fields(controller):
    payload = manual_payload()
    del payload['date']

    decision = controller.manual_entry(payload, 'admin')
    assert decision.reason_code is ReasonCode.MISSING_FIELDS
    assert decision.fields['fields'] == ['date']

def test_manual_entry_bad_date(controller):
    decision = controller.manual_entry(manual_payload(date='02/03/2026'), 'admin')
    assert decision.reason_code is ReasonCode.INVALID_INPUT

# =================== REQUEST PARSING ===================

def test_request_accepts_legacy_keys():
    payload = checkin_payload(browserFingerprint={'userAgent': 'x'}, isVPN=True)
    del payload['browserSignal']
    del payload['vpnSuspected']

    request = CheckInRequest.from_payload(payload, CLIENT_IP, {})

    assert request.email == 'amina.benali@example.com'
    assert request.browser_signal == {'userAgent': 'x'}
    assert request.vpn_suspected is True

def test_request_rejects_non_dict():
    with pytest.raises(InputError):
        CheckInRequest.from_payload(['not', 'a', 'dict'], CLIENT_IP, {})

def test_from_config(app):
    controller = AdmissionController.from_config({
        'ATTENDANCE_TIMEZONE': 'Africa/Algiers',
        'SESSION_GATE_FAIL_OPEN': False,
        'PRIVATE_BROWSING_BLOCK_CONFIDENCE': 'low',
        'PRIVATE_STORAGE_QUOTA_BYTES': 5_000_000
    })

    assert controller.private_block_confidence is Confidence.LOW
    assert controller.gate.policy.fail_open is False
    assert controller.storage_quota_threshold == 5_000_000
    assert controller.calendar.timezone is not None

def test_default_clock_is_module_level(app, monkeypatch):
    monkeypatch.setattr(admission_service, 'current_time', lambda: at(8, 5))
    controller = AdmissionController(SessionCalendar(), SessionGate())
    assert controller._now() == at(8, 5)

# =================== MALFORMED FIELDS ===================

def test_non_string_email_is_invalid(controller, ready):
    decision = check_in(controller, email=12345)

    assert decision.reason_code is ReasonCode.INVALID_INPUT
    assert decision.status_code == 400
    assert decision.fields['fields'] == ['email']

def test_non_string_profile_fields_are_invalid(controller, ready):
    decision = check_in(controller, name={'first': 'Amina'}, major=['CS'])

    assert decision.reason_code is ReasonCode.INVALID_INPUT
    assert decision.fields['fields'] == ['name', 'major']

def test_non_dict_browser_probes_are_ignored(controller, ready):
    signal = dict(checkin_payload()['browserSignal'], probes=['storageQuotaLow'])

    assert check_in(controller, browserSignal=signal).accepted

def test_non_string_user_agent_is_tolerated(controller, ready):
    signal = dict(checkin_payload()['browserSignal'], userAgent=42)

    assert check_in(controller, browserSignal=signal).accepted

def test_manual_entry_non_string_session(controller):
    decision = controller.manual_entry(manual_payload(session=['session1']), 'admin')

    assert decision.reason_code is ReasonCode.INVALID_INPUT
    assert decision.status_code == 400
    assert decision.fields['fields'] == ['session']

def test_manual_entry_non_string_email(controller):
    decision = controller.manual_entry(manual_payload(email=7), 'admin')

    assert decision.reason_code is ReasonCode.INVALID_INPUT
    assert StudentService.find_by_email('7') is None

# =================== CONCURRENT FIRST CHECK-IN ===================

def test_concurrent_student_create_appends_to_winner(app, monkeypatch):
    """Test a lost insert race reloads the existing student and appends."""
    first = AttendanceRecord.admin_entry(at(0, 0), 'session1')
    StudentService.append_attendance('race@example.com', 'Racer', 'MI', 'CS', first)

    real_find = StudentService.find_by_email
    calls = []

    def stale_first_read(email, for_update=False):
        calls.append(email)
        if len(calls) == 1:
            return None
        return real_find(email, for_update)
    monkeypatch.setattr(StudentService, 'find_by_email', staticmethod(stale_first_read))

    second = AttendanceRecord.admin_entry(at(0, 0), 'session2')
    student = StudentService.append_attendance('race@example.com', 'Racer B', 'MI', 'SE', second)

    assert len(calls) == 2
    assert Student.query.count() == 1
    assert [r.session for r in student.records] == ['session1', 'session2']
    assert student.name == 'Racer B'
