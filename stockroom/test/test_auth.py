from stockroom import db
from stockroom.auth import current_identity


def test_login_page_loads(client):
    assert client.get('/login').status_code == 200


def test_login_and_logout(client, owner):
    response = client.post('/login', data={'username': 'alice', 'password': 'correct-horse-battery'})
    assert response.status_code == 302

    assert client.get('/').status_code == 200

    response = client.get('/logout')
    assert response.status_code == 302
    assert client.get('/').status_code == 302


def test_wrong_password_rejected(client, owner):
    response = client.post('/login', data={'username': 'alice', 'password': 'wrong'})

    assert response.status_code == 401
    assert b'Invalid username or password' in response.data


def test_missing_credentials_rejected(client, owner):
    assert client.post('/login', data={'username': 'alice'}).status_code == 400


def test_disabled_account_rejected(client, owner):
    owner.is_active = False
    db.session.commit()

    response = client.post('/login', data={'username': 'alice', 'password': 'correct-horse-battery'})

    assert response.status_code == 403


def test_login_ignores_external_next(client, owner):
    response = client.post('/login?next=https://example.com/',
                           data={'username': 'alice', 'password': 'correct-horse-battery'})

    assert response.status_code == 302
    assert 'example.com' not in response.headers['Location']


def test_current_identity_without_login(app):
    with app.test_request_context('/'):
        assert current_identity() is None
