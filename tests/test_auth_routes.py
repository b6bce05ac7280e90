from datetime import timedelta

from sympto.repositories import user_repository
from sympto.utils.jwt_util import issue_access_token

from conftest import PASSWORD, auth_headers, register


def test_register(client):
    response = register(client, dateOfBirth='1990-01-15')
    assert response.status_code == 201

    body = response.get_json()
    assert body['success'] is True
    user = body['data']['user']
    assert user['email'] == 'jane@example.com'
    assert user['firstName'] == 'Jane'
    assert user['dateOfBirth'] == '1990-01-15'
    assert user['emailVerified'] is False
    assert 'password' not in user and 'passwordHash' not in user
    assert body['data']['tokens']['tokenType'] == 'Bearer'
    assert response.headers['Cache-Control'].startswith('no-store')


def test_register_duplicate_email(client):
    register(client)
    response = register(client, email='JANE@example.com')
    assert response.status_code == 409
    assert response.get_json()['error']['code'] == 'USER_EXISTS'


def test_register_validation(client):
    response = client.post('/api/auth/register', json={
        'email': 'not-an-email', 'password': 'weak', 'firstName': '', 'lastName': 'Doe',
    })
    assert response.status_code == 400
    error = response.get_json()['error']
    assert error['code'] == 'VALIDATION_ERROR'
    assert {'email', 'password', 'firstName'} <= set(error['details'])


def test_register_rejects_young_users(client):
    response = register(client, dateOfBirth='2024-01-01')
    assert response.status_code == 400
    assert 'dateOfBirth' in response.get_json()['error']['details']


def test_login(client):
    register(client)
    response = client.post('/api/auth/login', json={'email': 'Jane@Example.com', 'password': PASSWORD})
    assert response.status_code == 200
    data = response.get_json()['data']
    assert data['user']['lastLogin'] is not None
    assert data['tokens']['accessToken']


def test_login_wrong_password(client):
    register(client)
    response = client.post('/api/auth/login', json={'email': 'jane@example.com', 'password': 'Wr0ngPassword'})
    assert response.status_code == 401
    assert response.get_json()['error']['code'] == 'INVALID_CREDENTIALS'


def test_me_requires_token(client):
    response = client.get('/api/auth/me')
    assert response.status_code == 401
    assert response.get_json()['error']['code'] == 'MISSING_TOKEN'


def test_me_with_garbage_token(client):
    response = client.get('/api/auth/me', headers={'Authorization': 'Bearer nope'})
    assert response.status_code == 401
    assert response.get_json()['error']['code'] == 'INVALID_TOKEN'


def test_me(client, headers):
    response = client.get('/api/auth/me', headers=headers)
    assert response.status_code == 200
    assert response.get_json()['data']['user']['lastName'] == 'Doe'
    assert 'X-Token-Refresh' not in response.headers


def test_expired_access_token(client, app):
    register(client)
    user = user_repository.find_by_email('jane@example.com')
    token = issue_access_token(user, expires_delta=timedelta(seconds=-5))

    response = client.get('/api/auth/me', headers={'Authorization': f'Bearer {token}'})
    assert response.status_code == 401
    assert response.get_json()['error']['code'] == 'TOKEN_EXPIRED'


def test_token_near_expiry_is_refreshed(client, app):
    register(client)
    user = user_repository.find_by_email('jane@example.com')
    token = issue_access_token(user, expires_delta=timedelta(minutes=10))

    response = client.get('/api/auth/me', headers={'Authorization': f'Bearer {token}'})
    assert response.status_code == 200
    assert response.headers['X-Token-Refresh'] == 'true'
    new_token = response.headers['X-New-Access-Token']
    assert new_token != token
    assert response.headers['X-New-Refresh-Token']

    again = client.get('/api/auth/me', headers={'Authorization': f'Bearer {new_token}'})
    assert again.status_code == 200


def test_logout_revokes_token(client, headers):
    response = client.post('/api/auth/logout', headers=headers)
    assert response.status_code == 200

    response = client.get('/api/auth/me', headers=headers)
    assert response.status_code == 401
    assert response.get_json()['error']['code'] == 'TOKEN_REVOKED'


def test_refresh(client):
    tokens = register(client).get_json()['data']['tokens']
    response = client.post('/api/auth/refresh', json={'refreshToken': tokens['refreshToken']})
    assert response.status_code == 200
    assert response.get_json()['data']['tokens']['accessToken']


def test_refresh_rejects_access_token(client):
    tokens = register(client).get_json()['data']['tokens']
    response = client.post('/api/auth/refresh', json={'refreshToken': tokens['accessToken']})
    assert response.status_code == 401
    assert response.get_json()['error']['code'] == 'INVALID_REFRESH_TOKEN'


def test_refresh_token_cannot_access_routes(client):
    tokens = register(client).get_json()['data']['tokens']
    response = client.get('/api/auth/me', headers={'Authorization': f"Bearer {tokens['refreshToken']}"})
    assert response.status_code == 401


def test_verify_email(client):
    register(client)
    token = user_repository.find_by_email('jane@example.com').email_verification_token

    response = client.post('/api/auth/verify-email', json={'token': token})
    assert response.status_code == 200
    assert response.get_json()['data']['user']['emailVerified'] is True

    again = client.post('/api/auth/verify-email', json={'token': token})
    assert again.status_code == 400
    assert again.get_json()['error']['code'] == 'INVALID_TOKEN'


def test_password_reset_flow(client):
    register(client)

    response = client.post('/api/auth/forgot-password', json={'email': 'jane@example.com'})
    assert response.status_code == 200
    unknown = client.post('/api/auth/forgot-password', json={'email': 'nobody@example.com'})
    assert unknown.get_json()['message'] == response.get_json()['message']

    token = user_repository.find_by_email('jane@example.com').password_reset_token
    assert token

    new_password = 'An0therPassword'
    response = client.post('/api/auth/reset-password', json={'token': token, 'password': new_password})
    assert response.status_code == 200

    old = client.post('/api/auth/login', json={'email': 'jane@example.com', 'password': PASSWORD})
    assert old.status_code == 401
    new = client.post('/api/auth/login', json={'email': 'jane@example.com', 'password': new_password})
    assert new.status_code == 200

    reused = client.post('/api/auth/reset-password', json={'token': token, 'password': 'Y3tAnotherOne'})
    assert reused.status_code == 400


def test_change_password(client, headers):
    same = client.post('/api/users/change-password', headers=headers,
                       json={'currentPassword': PASSWORD, 'newPassword': PASSWORD})
    assert same.status_code == 400
    assert same.get_json()['error']['code'] == 'SAME_PASSWORD'

    wrong = client.post('/api/users/change-password', headers=headers,
                        json={'currentPassword': 'Wr0ngPassword', 'newPassword': 'N3wPassword'})
    assert wrong.status_code == 401
    assert wrong.get_json()['error']['code'] == 'INVALID_CURRENT_PASSWORD'

    ok = client.post('/api/users/change-password', headers=headers,
                     json={'currentPassword': PASSWORD, 'newPassword': 'N3wPassword'})
    assert ok.status_code == 200


def test_update_profile(client, headers):
    other = auth_headers(client, email='taken@example.com')
    assert other

    conflict = client.put('/api/users/profile', headers=headers, json={'email': 'taken@example.com'})
    assert conflict.status_code == 409
    assert conflict.get_json()['error']['code'] == 'EMAIL_ALREADY_EXISTS'

    response = client.put('/api/users/profile', headers=headers,
                          json={'firstName': '  Janet ', 'email': 'janet@example.com'})
    assert response.status_code == 200
    user = response.get_json()['data']['user']
    assert user['firstName'] == 'Janet'
    assert user['email'] == 'janet@example.com'
    assert user['emailVerified'] is False


def test_health_endpoints(client, fake_ai):
    assert client.get('/health').get_json()['data']['status'] == 'ok'

    from requests.exceptions import ConnectionError
    fake_ai.get_results = [ConnectionError('down')]
    response = client.get('/api/ai/health')
    assert response.status_code == 200
    assert response.get_json()['data']['aiService']['available'] is False


def test_security_headers(client):
    response = client.get('/health')
    assert response.headers['X-Content-Type-Options'] == 'nosniff'
    assert response.headers['X-Frame-Options'] == 'DENY'


def test_unknown_route_uses_envelope(client):
    response = client.get('/api/does-not-exist')
    assert response.status_code == 404
    assert response.get_json()['error']['code'] == 'NOT_FOUND'


def test_register_emails_plaintext_name(client, monkeypatch):
    sent = []
    monkeypatch.setattr(
        'sympto.api.controllers.auth_controller.send_verification_email',
        lambda email, first_name, token: sent.append((email, first_name, token)) or True,
    )

    response = register(client, dateOfBirth='1990-01-15')
    assert response.status_code == 201
    user = response.get_json()['data']['user']
    assert user['firstName'] == 'Jane'
    assert user['lastName'] == 'Doe'
    assert user['dateOfBirth'] == '1990-01-15'

    assert len(sent) == 1
    email, first_name, token = sent[0]
    assert email == 'jane@example.com'
    assert first_name == 'Jane'
    assert token
