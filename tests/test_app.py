"""
Salyte Beacon - Application Factory Tests
"""
import pytest
import mongomock
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError
from salyte_beacon.app import create_app, load_config
from salyte_beacon.config.database import db_instance, get_database_name


@pytest.fixture
def failing_app(app):
    """App with routes that raise the errors the global handlers map"""

    @app.route('/api/_test/duplicate')
    def duplicate():
        raise DuplicateKeyError('E11000 duplicate key error')

    @app.route('/api/_test/database-down')
    def database_down():
        raise ServerSelectionTimeoutError('No servers available')

    @app.route('/api/_test/crash')
    def crash():
        raise RuntimeError('boom')

    return app


class TestSystemEndpoints:

    def test_health(self, client):
        response = client.get('/api/health')

        assert response.status_code == 200
        data = response.get_json()
        assert data['status'] == 'OK'
        assert data['environment'] == 'test'
        assert 'status' in data['database']

    def test_docs(self, client):
        endpoints = client.get('/api/docs').get_json()['endpoints']

        assert 'POST /api/auth/signup' in endpoints['auth']
        assert set(endpoints) >= {'auth', 'chat', 'sensors', 'map', 'dashboard', 'report'}

    def test_unknown_api_route(self, client):
        response = client.get('/api/articles')

        assert response.status_code == 404
        data = response.get_json()
        assert data['error'] == 'Endpoint not found'
        assert '/api/docs' in data['message']

    def test_method_not_allowed(self, client):
        response = client.put('/api/health')

        assert response.status_code == 405
        assert response.get_json()['error'] == 'Method Not Allowed'

    def test_security_headers(self, client):
        headers = client.get('/api/health').headers

        assert headers['X-Content-Type-Options'] == 'nosniff'
        assert headers['X-Frame-Options'] == 'DENY'
        assert headers['X-XSS-Protection'] == '1; mode=block'
        assert headers['Referrer-Policy'] == 'strict-origin-when-cross-origin'

    def test_cors_for_frontend(self, client, app):
        origin = app.config['FRONTEND_URL']
        response = client.get('/api/health', headers={'Origin': origin})

        assert response.headers['Access-Control-Allow-Origin'] == origin
        assert response.headers['Access-Control-Allow-Credentials'] == 'true'

    def test_datetimes_are_iso_formatted(self, client):
        timestamp = client.get('/api/health').get_json()['timestamp']

        assert 'T' in timestamp


class TestErrorHandlers:

    def test_duplicate_key(self, failing_app):
        response = failing_app.test_client().get('/api/_test/duplicate')

        assert response.status_code == 409
        assert response.get_json()['error'] == 'Duplicate entry'

    def test_database_unavailable(self, failing_app):
        response = failing_app.test_client().get('/api/_test/database-down')

        assert response.status_code == 503

    def test_unexpected_error_hides_details(self, failing_app):
        response = failing_app.test_client().get('/api/_test/crash')

        assert response.status_code == 500
        assert response.get_json() == {'error': 'Internal server error', 'message': 'Something went wrong'}

    def test_unexpected_error_in_development(self, failing_app):
        failing_app.config['ENV_NAME'] = 'development'
        response = failing_app.test_client().get('/api/_test/crash')

        data = response.get_json()
        assert data['message'] == 'boom'
        assert data['details']['traceback']


class TestConfiguration:

    def test_environment_aliases(self, monkeypatch):
        monkeypatch.delenv('NODE_ENV', raising=False)
        monkeypatch.setenv('APP_ENV', 'production')

        assert load_config()['ENV_NAME'] == 'production'

    def test_unknown_environment_falls_back(self, monkeypatch):
        monkeypatch.setenv('NODE_ENV', 'staging')

        assert load_config()['ENV_NAME'] == 'development'

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv('PORT', raising=False)
        monkeypatch.delenv('MAX_CONTENT_LENGTH', raising=False)
        config = load_config()

        assert config['PORT'] == 3000
        assert config['MAX_CONTENT_LENGTH'] == 10 * 1024 * 1024

    def test_database_names(self):
        assert get_database_name('production') == 'salyte_beacon_prod'
        assert get_database_name('test') == 'salyte_beacon_test'
        assert get_database_name('anything') == 'salyte_beacon_dev'

    def test_production_requires_jwt_secret(self, monkeypatch, tmp_path):
        monkeypatch.delenv('JWT_SECRET', raising=False)

        with pytest.raises(RuntimeError):
            create_app({'ENV_NAME': 'production', 'UPLOAD_FOLDER': str(tmp_path)})

    def test_sample_data_seeding(self, monkeypatch, tmp_path):
        monkeypatch.setattr(
            'salyte_beacon.config.database.MongoClient',
            lambda *args, **kwargs: mongomock.MongoClient()
        )

        create_app({'ENV_NAME': 'test', 'SEED_SAMPLE_DATA': True, 'UPLOAD_FOLDER': str(tmp_path)})

        db = db_instance.get_db()
        assert db.sensors.count_documents({}) == 6
        assert db.water_points.count_documents({}) == 3
        assert db.readings.count_documents({}) == 50
        assert db_instance.initialize_sample_data() is False
        db_instance.close()
