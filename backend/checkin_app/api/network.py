# File: backend/checkin_app/api/network.py
"""Network presence endpoints: IP registration and private-browsing probe."""
from flask import Blueprint, request, current_app
from checkin_app.services.fraud_service import (
    Confidence, PrivateBrowsingEnsemble, header_probes
)
from checkin_app.services.ip_registry import IPRegistry
from checkin_app.utils.helpers import success_response, error_response, get_client_ip

network_bp = Blueprint('network', __name__)

def _client_ip():
    return get_client_ip(
        request.headers,
        allow_fallback=current_app.config.get('TRUST_LOCALHOST_FALLBACK', False)
    )

@network_bp.route('/ip', methods=['GET'])
def get_ip():
    """Echo the IP and user agent the server sees."""
    return success_response(data={
        'ip': _client_ip() or 'unknown',
        'userAgent': request.headers.get('User-Agent') or 'unknown'
    })

@network_bp.route('/register-ip', methods=['POST'])
def register_ip():
    """Register (or refresh) the caller's IP address."""
    ip = _client_ip()
    if not ip:
        return error_response(
            "Cannot detect IP address. Private browsing may be blocking IP detection.", 400
        )
    
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    user_agent = data.get('userAgent') or request.headers.get('User-Agent')
    
    record, first_visit = IPRegistry.register(ip, user_agent)
    
    return success_response(data={
        'ip': ip,
        'registered': True,
        'firstVisit': first_visit,
        'visitCount': record.visit_count
    })

@network_bp.route('/register-ip', methods=['GET'])
def ip_status():
    """Whether the caller's IP is registered and verified."""
    ip = _client_ip()
    if not ip:
        return error_response("Cannot detect IP address", 400)
    
    return success_response(data=IPRegistry.status(ip))

@network_bp.route('/check-private', methods=['POST'])
def check_private():
    """Report the server-observed private-browsing header probes."""
    probes = header_probes(request.headers, include_automation=True)
    verdict = PrivateBrowsingEnsemble.evaluate(probes)
    
    return success_response(data={
        'isPrivate': bool(verdict.indicators),
        'indicators': verdict.indicators,
        'confidence': (verdict.confidence or Confidence.LOW).value
    })
