import pytest

from sympto import create_app
from sympto.extensions import db
from sympto.utils.encryption_util import reset_decrypt_warning

PASSWORD = 'Str0ngPassw0rd'

SAMPLE_PREDICTION = {
    'prediction1': {
        'iron_def': 1, 'b12_def': 0, 'vitd_def': 1, 'calcium_def': 0, 'severity': 2,
        'zinc_def': '0', 'unknown_key': 5,
    },
    'prediction2': {
        'Medication_Brand_Names': 'Ferrous sulfate',
        'Medication_Text': 'Take one tablet daily after food.',
    },
    'prediction3': {
        'Diet_Additions': ['spinach', 'lentils'],
        'nutrientRequirements': 'Iron 18 mg/day',
    },
}

VALID_ASSESSMENT = {
    'fatigue': 2, 'hair_loss': 1, 'acidity': 0, 'dizziness': 1, 'muscle_pain': 2, 'numbness': 0,
    'vegetarian': 1, 'smoking': 0, 'alcohol': 0,
    'iron_food_freq': 1, 'dairy_freq': 2, 'junk_food_freq': 3, 'sunlight_min': 20,
    'hemoglobin': 11.5, 'ferritin': 20, 'vitamin_b12': 250, 'vitamin_d': 25, 'calcium': 9.0,
}


class FakeResponse:
    def __init__(self, status_code=200, payload=None, invalid_json=False):
        self.status_code = status_code
        self._payload = payload
        self._invalid_json = invalid_json

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._invalid_json:
            raise ValueError('No JSON object could be decoded')
        return self._payload


class FakeSession:
    """Stands in for requests.Session. Queued results are consumed in order."""

    def __init__(self):
        self.post_results = []
        self.get_results = []
        self.default_post = FakeResponse(200, SAMPLE_PREDICTION)
        self.default_get = FakeResponse(200, {'status': 'ok'})
        self.post_calls = []
        self.get_calls = []

    def _next(self, queue, default):
        result = queue.pop(0) if queue else default
        if isinstance(result, Exception):
            raise result
        return result

    def post(self, url, json=None, headers=None, timeout=None):
        self.post_calls.append({'url': url, 'json': json, 'headers': headers, 'timeout': timeout})
        return self._next(self.post_results, self.default_post)

    def get(self, url, headers=None, timeout=None):
        self.get_calls.append({'url': url, 'headers': headers, 'timeout': timeout})
        return self._next(self.get_results, self.default_get)


@pytest.fixture
def fake_ai():
    return FakeSession()


@pytest.fixture
def app(fake_ai):
    app = create_app('testing', ai_session=fake_ai)
    # Retries must not slow the suite down
    app.extensions['ai_service']._sleep = lambda seconds: None
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def _reset_decrypt_warning():
    reset_decrypt_warning()
    yield
    reset_decrypt_warning()


def register(client, email='jane@example.com', password=PASSWORD, **extra):
    body = {'email': email, 'password': password, 'firstName': 'Jane', 'lastName': 'Doe'}
    body.update(extra)
    return client.post('/api/auth/register', json=body)


def auth_headers(client, email='jane@example.com', password=PASSWORD):
    response = register(client, email=email, password=password)
    assert response.status_code == 201, response.get_json()
    token = response.get_json()['data']['tokens']['accessToken']
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def headers(client):
    return auth_headers(client)
