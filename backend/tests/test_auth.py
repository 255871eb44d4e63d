"""Test authentication endpoints."""
import json

def test_health_check(client):
    """Test auth health endpoint."""
    response = client.get('/api/auth/health')
    assert response.status_code == 200
    data = json.loads(response.data)
    assert data['message'] == 'Auth service is running'

def test_login_success(client, admin):
    """Test successful login."""
    response = client.post('/api/auth/login',
        json={
            'email': 'Admin@University.edu',
            'password': 'admin123456'
        })

    assert response.status_code == 200
    data = json.loads(response.data)
    assert data['error'] == False
    assert 'access_token' in data['data']
    assert 'refresh_token' in data['data']
    assert 'password_hash' not in data['data']['admin']

def test_login_invalid_credentials(client, admin):
    """Test login with invalid credentials."""
    response = client.post('/api/auth/login',
        json={
            'email': 'admin@university.edu',
            'password': 'wrongpassword'
        })

    assert response.status_code == 401
    data = json.loads(response.data)
    assert data['error'] == True
    assert admin.failed_login_attempts == 1

def test_login_validation(client):
    """Test login validation."""
    response = client.post('/api/auth/login', json={})
    assert response.status_code == 400

    response = client.post('/api/auth/login', json={'email': 'admin@university.edu'})
    assert response.status_code == 400

def test_login_deactivated(client, admin):
    """Test a deactivated admin cannot log in."""
    admin.is_active = False
    admin.save()

    response = client.post('/api/auth/login',
        json={
            'email': 'admin@university.edu',
            'password': 'admin123456'
        })
    assert response.status_code == 401
    assert json.loads(response.data)['message'] == 'Account is deactivated'

def test_me(client, admin_headers):
    """Test current admin profile."""
    response = client.get('/api/auth/me', headers=admin_headers)

    assert response.status_code == 200
    data = json.loads(response.data)
    assert data['data']['email'] == 'admin@university.edu'

def test_me_with_invalid_token(client):
    """Test a malformed token is rejected."""
    response = client.get('/api/auth/me', headers={'Authorization': 'Bearer not-a-token'})
    assert response.status_code == 401
    assert json.loads(response.data)['message'] == 'Invalid token'

def test_login_non_string_fields(client, admin):
    """Test non-text credentials are rejected as bad input."""
    response = client.post('/api/auth/login', json={'email': 12345, 'password': 'admin123456'})
    assert response.status_code == 400

    response = client.post('/api/auth/login', json=['admin@university.edu'])
    assert response.status_code == 400
