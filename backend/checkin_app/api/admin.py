# File: backend/checkin_app/api/admin.py
"""Admin API: session gate control, manual attendance and student lookup."""
from flask import Blueprint, request, jsonify, current_app, g
from flask_jwt_extended import jwt_required
from checkin_app.services.admission_service import AdmissionController
from checkin_app.services.session_gate import GatePolicy, SessionGate
from checkin_app.services.student_service import StudentService
from checkin_app.utils.decorators import admin_required
from checkin_app.utils.helpers import success_response, error_response

admin_bp = Blueprint('admin', __name__)

def _gate() -> SessionGate:
    return SessionGate(GatePolicy.from_config(current_app.config))

@admin_bp.route('/sessions', methods=['GET'])
@jwt_required()
@admin_required
def get_sessions():
    """All five session gate states; missing ones are created enabled."""
    return success_response(data={'sessions': _gate().states()})

@admin_bp.route('/sessions', methods=['POST'])
@jwt_required()
@admin_required
def update_session():
    """Enable or disable a session."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    session = data.get('session')
    is_enabled = data.get('isEnabled', data.get('is_enabled'))
    
    if not isinstance(session, str) or not session or not isinstance(is_enabled, bool):
        return error_response("Session and isEnabled fields are required", 400)
    
    control = _gate().set_enabled(session, is_enabled, g.current_admin.email)
    
    return success_response(
        data={'session_control': control.to_dict()},
        message=f"Session {session} {'enabled' if is_enabled else 'disabled'} successfully"
    )

@admin_bp.route('/manual-attendance', methods=['POST'])
@jwt_required()
@admin_required
def manual_attendance():
    """Add attendance on behalf of a student without location checks."""
    controller = AdmissionController.from_config(current_app.config)
    decision = controller.manual_entry(request.get_json(silent=True), g.current_admin.email)
    return jsonify(decision.to_dict()), decision.status_code

@admin_bp.route('/students', methods=['GET'])
@jwt_required()
@admin_required
def list_students():
    """List students with their attendance records."""
    students = StudentService.list_students(
        specialty=request.args.get('specialty'),
        major=request.args.get('major'),
        search=request.args.get('search')
    )
    return success_response(data={
        'students': [s.to_dict() for s in students],
        'total': len(students)
    })
