"""Shared fixtures for the check-in test suite."""
import json
from datetime import datetime

import pytest

from checkin_app import create_app, db
from checkin_app.models.admin import Admin
from checkin_app.models.location import AttendanceLocation
from checkin_app.services.ip_registry import IPRegistry

CAMPUS = (36.7538, 3.0588)
CLIENT_IP = '10.0.0.5'
BROWSER_HEADERS = {
    'Accept-Language': 'en-US,en;q=0.9',
    'User-Agent': 'Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36',
}

def at(hour: int, minute: int = 0, day: int = 2) -> datetime:
    """Wall-clock moment on a fixed test day (2026-03-<day>)."""
    return datetime(2026, 3, day, hour, minute)

def checkin_payload(**overrides) -> dict:
    payload = {
        'name': 'Amina Benali',
        'email': 'Amina.Benali@Example.com ',
        'specialty': 'MI',
        'major': 'CS',
        'latitude': CAMPUS[0],
        'longitude': CAMPUS[1],
        'deviceFingerprint': 'fp-device-1',
        'browserSignal': {
            'isPrivate': False,
            'userAgent': BROWSER_HEADERS['User-Agent'],
            'platform': 'Linux x86_64',
            'language': 'en-US',
            'hardwareConcurrency': 8,
            'deviceMemory': 8
        },
        'vpnSuspected': False
    }
    payload.update(overrides)
    return payload

@pytest.fixture
def app():
    """Create test app."""
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()

@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()

@pytest.fixture
def campus(app):
    """Active 100 m geofence around the campus point."""
    location = AttendanceLocation(
        name='Main Campus',
        latitude=CAMPUS[0],
        longitude=CAMPUS[1],
        radius_meters=100,
        is_active=True
    )
    return location.save()

@pytest.fixture
def registered_ip(app):
    record, _ = IPRegistry.register(CLIENT_IP, BROWSER_HEADERS['User-Agent'])
    return record.ip_address

@pytest.fixture
def admin(app):
    admin = Admin(email='admin@university.edu', name='System Administrator')
    admin.set_password('admin123456')
    return admin.save()

@pytest.fixture
def admin_headers(client, admin):
    response = client.post('/api/auth/login', json={
        'email': 'admin@university.edu',
        'password': 'admin123456'
    })
    assert response.status_code == 200
    token = json.loads(response.data)['data']['access_token']
    return {'Authorization': f'Bearer {token}'}
