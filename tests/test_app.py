import pytest

from config import TestingConfig
from sympto import create_app
from sympto.extensions import db
from sympto.models.user_models import User
from sympto.repositories import user_repository
from sympto.utils.encryption_util import Encryptor, encryptor

from conftest import PASSWORD, FakeSession, register


class RateLimitedConfig(TestingConfig):
    RATELIMIT_ENABLED = True


@pytest.fixture
def limited_client():
    app = create_app(RateLimitedConfig, ai_session=FakeSession())
    with app.app_context():
        db.create_all()
        yield app.test_client()
        db.session.remove()
        db.drop_all()


def test_login_is_rate_limited(limited_client):
    for _ in range(5):
        response = limited_client.post('/api/auth/login', json={'email': 'a@example.com', 'password': 'x'})
        assert response.status_code == 401

    response = limited_client.post('/api/auth/login', json={'email': 'a@example.com', 'password': 'x'})
    assert response.status_code == 429
    assert response.get_json()['error']['code'] == 'RATE_LIMIT_EXCEEDED'


def test_health_is_not_rate_limited(limited_client):
    for _ in range(10):
        assert limited_client.get('/health').status_code == 200


def test_strict_secrets_reject_bad_key(app):
    app.config['STRICT_SECRETS'] = True
    app.config['ENCRYPTION_KEY'] = 'not-a-key'
    with pytest.raises(ValueError):
        Encryptor().init_app(app)


def test_missing_key_generates_one(app):
    app.config['ENCRYPTION_KEY'] = None
    codec = Encryptor()
    codec.init_app(app)
    assert codec.decrypt(codec.encrypt('x')) == 'x'
    app.extensions['encryptor'] = encryptor


def test_generate_keys_command(app):
    result = app.test_cli_runner().invoke(args=['generate-keys'])
    assert result.exit_code == 0
    assert 'ENCRYPTION_KEY=' in result.output


def test_scan_undecryptable(app, client):
    register(client)
    register(client, email='stale@example.com')

    stale = User(email='old@example.com', first_name=Encryptor(key='f' * 64).encrypt('Old'), last_name='Plain')
    stale.set_password(PASSWORD)
    db.session.add(stale)
    db.session.commit()

    runner = app.test_cli_runner()
    result = runner.invoke(args=['scan-undecryptable'])
    assert result.exit_code == 0
    assert 'old@example.com' in result.output
    assert '1 account(s) affected' in result.output

    result = runner.invoke(args=['scan-undecryptable', '--delete'])
    assert 'Deleted 1 account(s)' in result.output
    assert user_repository.find_by_email('old@example.com') is None
    assert user_repository.find_by_email('stale@example.com') is not None
