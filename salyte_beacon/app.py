# app.py
import os
import logging
import traceback
from datetime import datetime
from bson import ObjectId
from flask import Flask, request, jsonify
from flask.json.provider import DefaultJSONProvider
from flask_login import LoginManager
from flask_cors import CORS
from dotenv import load_dotenv
from jose import JWTError, ExpiredSignatureError
from pymongo.errors import ConnectionFailure, DuplicateKeyError
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from salyte_beacon import __version__
from salyte_beacon.config.database import db_instance
from salyte_beacon.models.user import User
from salyte_beacon.routes.auth import auth_bp
from salyte_beacon.routes.chat import chat_bp
from salyte_beacon.routes.sensors import sensors_bp
from salyte_beacon.routes.map import map_bp
from salyte_beacon.routes.dashboard import dashboard_bp
from salyte_beacon.routes.report import report_bp
from salyte_beacon.utils.auth_middleware import load_user_from_request, unauthorized_response
from salyte_beacon.utils.errors import APIError
from salyte_beacon.utils.rate_limiter import apply_rate_limit_headers

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

ENVIRONMENTS = ('development', 'test', 'production')
DEFAULT_JWT_SECRET = 'salyte-beacon-dev-secret-change-in-production'

SECURITY_HEADERS = {
    'X-Content-Type-Options': 'nosniff',
    'X-Frame-Options': 'DENY',
    'X-XSS-Protection': '1; mode=block',
    'Referrer-Policy': 'strict-origin-when-cross-origin'
}

API_ENDPOINTS = {
    'auth': [
        'POST /api/auth/signup',
        'POST /api/auth/login',
        'POST /api/auth/check-email',
        'POST /api/auth/forgot-password',
        'POST /api/auth/reset-password',
        'GET /api/auth/profile',
        'PUT /api/auth/profile',
        'POST /api/auth/change-password',
        'DELETE /api/auth/account',
        'GET /api/auth/check-auth'
    ],
    'chat': [
        'POST /api/chat',
        'GET /api/chat/history',
        'GET /api/chat/<id>',
        'DELETE /api/chat/<id>'
    ],
    'sensors': [
        'GET /api/sensors',
        'GET /api/sensors/search?q=',
        'GET /api/sensors/<id>',
        'POST /api/sensors',
        'POST /api/sensors/products'
    ],
    'map': [
        'GET /api/map/data',
        'GET /api/map/layers',
        'POST /api/map/report'
    ],
    'dashboard': [
        'GET /api/dashboard',
        'GET /api/dashboard/stats',
        'GET /api/dashboard/trends?days=',
        'POST /api/dashboard/upload'
    ],
    'report': [
        'GET /api/report',
        'POST /api/report',
        'GET /api/report/stats',
        'GET /api/report/<id>',
        'PATCH /api/report/<id>/status'
    ],
    'system': [
        'GET /api/health',
        'GET /api/docs'
    ]
}


class APIJSONProvider(DefaultJSONProvider):
    """ISO 8601 datetimes and string ObjectIds in every JSON response"""

    @staticmethod
    def default(o):
        if isinstance(o, datetime):
            return o.isoformat()
        if isinstance(o, ObjectId):
            return str(o)
        return DefaultJSONProvider.default(o)


def load_config():
    """Configuration from the environment"""
    environment = os.getenv('NODE_ENV') or os.getenv('APP_ENV') or 'development'
    if environment not in ENVIRONMENTS:
        environment = 'development'

    return {
        'ENV_NAME': environment,
        'MONGODB_URI': os.getenv('MONGODB_URI', 'mongodb://localhost:27017'),
        'JWT_SECRET': os.getenv('JWT_SECRET'),
        'PORT': int(os.getenv('PORT', 3000)),
        'FRONTEND_URL': os.getenv('FRONTEND_URL', 'http://localhost:3000'),
        'GOOGLE_API_KEY': os.getenv('GOOGLE_API_KEY'),
        'UPLOAD_FOLDER': os.getenv('UPLOAD_FOLDER', 'uploads'),
        'MAX_CONTENT_LENGTH': int(os.getenv('MAX_CONTENT_LENGTH', 10 * 1024 * 1024)),  # 10MB
        'SEED_SAMPLE_DATA': os.getenv('SEED_SAMPLE_DATA', '').lower() in ('1', 'true', 'yes'),
        'RATELIMIT_ENABLED': True
    }


def configure_logging(environment):
    logging.basicConfig(
        level=logging.DEBUG if environment == 'development' else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )


def error_response(error, message, status_code, details=None):
    body = {'error': error, 'message': message}
    if details:
        body['details'] = details
    return jsonify(body), status_code


def register_error_handlers(app):
    @app.errorhandler(APIError)
    def handle_api_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(DuplicateKeyError)
    def handle_duplicate_key(error):
        logger.info("Duplicate key: %s", error.details)
        return error_response('Duplicate entry', 'A record with this value already exists', 409)

    @app.errorhandler(ConnectionFailure)
    def handle_database_unavailable(error):
        logger.error("Database unavailable: %s", error)
        return error_response('Service unavailable', 'Database connection failed. Please try again later.', 503)

    @app.errorhandler(JWTError)
    def handle_jwt_error(error):
        if isinstance(error, ExpiredSignatureError):
            return error_response('Token expired', 'Please log in again', 401)
        return error_response('Invalid token', 'Token is malformed or invalid', 401)

    @app.errorhandler(RequestEntityTooLarge)
    def file_too_large(error):
        limit_mb = app.config['MAX_CONTENT_LENGTH'] // (1024 * 1024)
        return error_response('File too large', f'Maximum upload size is {limit_mb}MB', 413)

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        if not request.path.startswith('/api'):
            return error
        if error.code == 404:
            return error_response(
                'Endpoint not found',
                f'{request.method} {request.path} does not exist. See /api/docs for available endpoints',
                404
            )
        return error_response(error.name, error.description, error.code)

    @app.errorhandler(Exception)
    def internal_error(error):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        if app.config['ENV_NAME'] == 'development':
            return error_response(
                'Internal server error', str(error), 500,
                details={'traceback': traceback.format_exc().splitlines()}
            )
        return error_response('Internal server error', 'Something went wrong', 500)


def create_app(config=None):
    """Application factory"""
    app = Flask(__name__)
    app.json = APIJSONProvider(app)

    # Configuration
    app.config.update(load_config())
    if config:
        app.config.update(config)

    configure_logging(app.config['ENV_NAME'])

    if not app.config['JWT_SECRET']:
        if app.config['ENV_NAME'] == 'production':
            raise RuntimeError('JWT_SECRET must be set in production')
        logger.warning("JWT_SECRET not set, using the development secret")
        app.config['JWT_SECRET'] = DEFAULT_JWT_SECRET
    app.config.setdefault('SECRET_KEY', app.config['JWT_SECRET'])

    # Ensure upload directory exists
    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

    # Initialize extensions
    CORS(app, origins=[app.config['FRONTEND_URL']], supports_credentials=True)

    # Initialize database
    db_instance.initialize(app)
    if app.config['SEED_SAMPLE_DATA']:
        db_instance.initialize_sample_data()

    # Initialize Flask-Login with bearer tokens instead of sessions
    login_manager = LoginManager()
    login_manager.init_app(app)
    login_manager.request_loader(load_user_from_request)
    login_manager.unauthorized_handler(unauthorized_response)

    @login_manager.user_loader
    def load_user(user_id):
        return User.find_by_id(user_id)

    @app.before_request
    def log_request():
        logger.info("%s %s - IP: %s", request.method, request.path, request.remote_addr)

    @app.after_request
    def add_headers(response):
        response.headers.update(SECURITY_HEADERS)
        return apply_rate_limit_headers(response)

    # Register blueprints
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(chat_bp, url_prefix='/api/chat')
    app.register_blueprint(sensors_bp, url_prefix='/api/sensors')
    app.register_blueprint(map_bp, url_prefix='/api/map')
    app.register_blueprint(dashboard_bp, url_prefix='/api/dashboard')
    app.register_blueprint(report_bp, url_prefix='/api/report')

    @app.route('/api/health')
    def health():
        return jsonify({
            'status': 'OK',
            'timestamp': datetime.utcnow(),
            'environment': app.config['ENV_NAME'],
            'version': __version__,
            'database': db_instance.health_check()
        }), 200

    @app.route('/api/docs')
    def docs():
        return jsonify({
            'name': 'Salyte Beacon API',
            'version': __version__,
            'endpoints': API_ENDPOINTS
        }), 200

    register_error_handlers(app)

    return app


if __name__ == '__main__':
    app = create_app()

    if not app.config['GOOGLE_API_KEY']:
        logger.warning("GOOGLE_API_KEY not set. The chat assistant will answer from its knowledge base.")

    logger.info("Starting Salyte Beacon API on port %s (%s)", app.config['PORT'], app.config['ENV_NAME'])

    app.run(
        host='0.0.0.0',
        port=app.config['PORT'],
        debug=app.config['ENV_NAME'] == 'development'
    )
