"""Helper functions for the application."""
from flask import jsonify
from typing import Any, Mapping, Optional

LOOPBACK_ALIASES = ('::1', '::ffff:127.0.0.1')

def handle_error(error, status_code: int):
    """Handle application errors with consistent format."""
    message = getattr(error, 'description', None) or str(error)
    return jsonify({
        'error': True,
        'message': message,
        'status_code': status_code
    }), status_code

def success_response(data: Any = None, message: str = "Success", status_code: int = 200):
    """Return consistent success response."""
    response = {
        'error': False,
        'message': message
    }
    
    if data is not None:
        response['data'] = data
    
    return jsonify(response), status_code

def error_response(message: str, status_code: int = 400, **extra):
    """Return consistent error response."""
    body = {
        'error': True,
        'message': message,
        'status_code': status_code
    }
    body.update(extra)
    return jsonify(body), status_code

def get_client_ip(headers: Mapping[str, str], allow_fallback: bool = False) -> Optional[str]:
    """Resolve the client IP from proxy headers.

    Order: first hop of X-Forwarded-For, X-Real-IP, CF-Connecting-IP.
    IPv6 loopback forms normalise to 127.0.0.1.
    """
    forwarded = headers.get('X-Forwarded-For')
    ip = None
    if forwarded:
        ip = forwarded.split(',')[0].strip() or None
    ip = ip or headers.get('X-Real-IP') or headers.get('CF-Connecting-IP')
    
    if ip in LOOPBACK_ALIASES:
        ip = '127.0.0.1'
    
    if not ip or ip == 'unknown':
        ip = '127.0.0.1' if allow_fallback else None
    
    return ip
