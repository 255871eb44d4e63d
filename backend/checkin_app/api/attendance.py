# File: backend/checkin_app/api/attendance.py
"""Attendance API endpoints: self-service check-in."""
from flask import Blueprint, request, jsonify, current_app
from checkin_app import limiter
from checkin_app.services.admission_service import AdmissionController, current_time
from checkin_app.services.session_calendar import SessionCalendar, session_label
from checkin_app.services.session_gate import GatePolicy, SessionGate
from checkin_app.utils.helpers import success_response, get_client_ip

attendance_bp = Blueprint('attendance', __name__)

def checkin_rate_limit() -> str:
    return current_app.config.get('CHECKIN_RATE_LIMIT', '10 per minute')

@attendance_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return success_response(message='Attendance service is running')

@attendance_bp.route('/checkin', methods=['POST'])
@limiter.limit(checkin_rate_limit)
def check_in():
    """Mark attendance for the current session after all admission checks."""
    payload = request.get_json(silent=True)
    ip_address = get_client_ip(
        request.headers,
        allow_fallback=current_app.config.get('TRUST_LOCALHOST_FALLBACK', False)
    )
    
    controller = AdmissionController.from_config(current_app.config)
    decision = controller.check_in(payload, ip_address, request.headers)
    
    return jsonify(decision.to_dict()), decision.status_code

@attendance_bp.route('/session', methods=['GET'])
def current_session():
    """Current session, its label and whether the gate is open."""
    calendar = SessionCalendar(current_app.config.get('ATTENDANCE_TIMEZONE'))
    now = current_time()
    session = calendar.session_for(now)
    
    data = {
        'session': session,
        'label': session_label(session) if session else None,
        'within_attendance_hours': session is not None,
        'is_enabled': None
    }
    if session:
        gate = SessionGate(GatePolicy.from_config(current_app.config))
        data['is_enabled'] = gate.is_enabled(session)
    
    return success_response(data=data)
