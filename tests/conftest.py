"""
Salyte Beacon - Test Configuration and Fixtures
"""
import os
import uuid
import pytest
import mongomock

# Set testing environment
os.environ['NODE_ENV'] = 'test'
os.environ['JWT_SECRET'] = 'test-jwt-secret-for-testing-only'
os.environ.pop('GOOGLE_API_KEY', None)

from salyte_beacon.app import create_app
from salyte_beacon.config.database import db_instance
from salyte_beacon.models.user import User
from salyte_beacon.utils.auth_middleware import create_token

TEST_PASSWORD = 'TestPassword123'


@pytest.fixture
def app(monkeypatch, tmp_path):
    """Application wired to an in-memory MongoDB"""
    monkeypatch.setattr(
        'salyte_beacon.config.database.MongoClient',
        lambda *args, **kwargs: mongomock.MongoClient()
    )
    app = create_app({
        'TESTING': True,
        'ENV_NAME': 'test',
        'GOOGLE_API_KEY': None,
        'SEED_SAMPLE_DATA': False,
        'UPLOAD_FOLDER': str(tmp_path / 'uploads')
    })
    yield app
    db_instance.close()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    """Factory for stored users"""
    def _make_user(role='individual', password=TEST_PASSWORD, **fields):
        user = User(
            email=fields.pop('email', f"user_{uuid.uuid4().hex[:8]}@example.com"),
            first_name=fields.pop('first_name', 'Amina'),
            last_name=fields.pop('last_name', 'Otieno'),
            role=role,
            **fields
        )
        user.set_password(password)
        return user.save()
    return _make_user


@pytest.fixture
def make_headers(app):
    """Authorization headers for a user"""
    def _make_headers(user, **token_options):
        with app.app_context():
            token = create_token(user, **token_options)
        return {'Authorization': f'Bearer {token}'}
    return _make_headers


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def auth_headers(user, make_headers):
    return make_headers(user)


@pytest.fixture
def db(app):
    return db_instance.get_db()


@pytest.fixture
def seeded(app):
    """Sample marketplace, map, readings and reports"""
    db_instance.initialize_sample_data()
