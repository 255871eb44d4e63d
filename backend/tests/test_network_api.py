"""Test the network presence endpoints."""
import json

def test_register_ip(client):
    headers = {'X-Forwarded-For': '10.0.0.5', 'User-Agent': 'Mozilla/5.0'}

    response = client.post('/api/network/register-ip', headers=headers, json={})
    assert response.status_code == 200
    data = json.loads(response.data)['data']
    assert data == {'ip': '10.0.0.5', 'registered': True, 'firstVisit': True, 'visitCount': 1}

    response = client.post('/api/network/register-ip', headers=headers, json={})
    data = json.loads(response.data)['data']
    assert data['firstVisit'] is False
    assert data['visitCount'] == 2

def test_register_ip_without_headers(client):
    response = client.post('/api/network/register-ip', json={})

    assert response.status_code == 400
    assert json.loads(response.data)['error'] is True

def test_register_ip_localhost_fallback(app, client):
    app.config['TRUST_LOCALHOST_FALLBACK'] = True

    response = client.post('/api/network/register-ip', json={})

    assert response.status_code == 200
    assert json.loads(response.data)['data']['ip'] == '127.0.0.1'

def test_ip_status(client):
    headers = {'X-Real-IP': '10.0.0.7'}

    data = json.loads(client.get('/api/network/register-ip', headers=headers).data)['data']
    assert data['exists'] is False

    client.post('/api/network/register-ip', headers=headers, json={})
    data = json.loads(client.get('/api/network/register-ip', headers=headers).data)['data']
    assert data == {'ip': '10.0.0.7', 'exists': True, 'isVerified': True, 'visitCount': 1}

def test_get_ip_normalizes_loopback(client):
    response = client.get('/api/network/ip', headers={'X-Forwarded-For': '::1',
                                                      'User-Agent': 'Mozilla/5.0'})

    data = json.loads(response.data)['data']
    assert data == {'ip': '127.0.0.1', 'userAgent': 'Mozilla/5.0'}

def test_check_private_clean_request(client):
    response = client.post('/api/network/check-private', headers={
        'Accept-Language': 'en-US,en;q=0.9',
        'User-Agent': 'Mozilla/5.0 (X11; Linux x86_64)'
    })

    data = json.loads(response.data)['data']
    assert data['isPrivate'] is False
    assert data['indicators'] == []

def test_check_private_flags_headers(client):
    response = client.post('/api/network/check-private', headers={
        'DNT': '1',
        'Cache-Control': 'no-store',
        'User-Agent': 'Mozilla/5.0 HeadlessChrome/120.0'
    })

    data = json.loads(response.data)['data']
    assert data['isPrivate'] is True
    assert set(data['indicators']) == {
        'missing-accept-language', 'dnt-enabled',
        'aggressive-cache-control', 'suspicious-user-agent'
    }
    assert data['confidence'] == 'high'

def test_register_ip_ignores_non_object_body(client):
    response = client.post('/api/network/register-ip', headers={'X-Real-IP': '10.0.0.8'},
                           json=['Mozilla/5.0'])

    assert response.status_code == 200
    assert json.loads(response.data)['data']['firstVisit'] is True
