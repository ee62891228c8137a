"""
Authentication middleware

Bearer token handling for Flask-Login plus the decorators that guard the
API: role checks, per-resource permissions, subscription quotas, email
verification and JSON body validation.
"""
import logging
from datetime import datetime, timedelta
from functools import wraps
from flask import request, jsonify, current_app, g
from flask_login import current_user
from jose import jwt, JWTError, ExpiredSignatureError
from pymongo.errors import PyMongoError
from salyte_beacon.models.user import User
from salyte_beacon.utils.errors import (
    AuthenticationError, PermissionDeniedError, RateLimitError, ValidationError
)

logger = logging.getLogger(__name__)

ALGORITHM = 'HS256'
ACCESS_TOKEN = 'access'
RESET_TOKEN = 'password-reset'

ACCESS_TOKEN_EXPIRY = timedelta(days=7)
REMEMBER_ME_EXPIRY = timedelta(days=30)
RESET_TOKEN_EXPIRY = timedelta(hours=1)


def create_token(user, token_type=ACCESS_TOKEN, expires_delta=None):
    """Sign a JWT for the user"""
    if expires_delta is None:
        expires_delta = RESET_TOKEN_EXPIRY if token_type == RESET_TOKEN else ACCESS_TOKEN_EXPIRY

    claims = {
        'user_id': user.id,
        'email': user.email,
        'role': user.role,
        'type': token_type,
        'iat': datetime.utcnow(),
        'exp': datetime.utcnow() + expires_delta
    }
    return jwt.encode(claims, current_app.config['JWT_SECRET'], algorithm=ALGORITHM)


def decode_token(token, token_type=ACCESS_TOKEN):
    """Verify a JWT and check it was issued for the expected purpose"""
    payload = jwt.decode(token, current_app.config['JWT_SECRET'], algorithms=[ALGORITHM])
    if payload.get('type') != token_type:
        raise JWTError('Invalid token type')
    return payload


def extract_token(req):
    """Bearer header first, then x-auth-token, then ?token="""
    header = req.headers.get('Authorization', '')
    if header.startswith('Bearer '):
        token = header[len('Bearer '):].strip()
        if token:
            return token

    return req.headers.get('x-auth-token') or req.args.get('token')


def load_user_from_request(req):
    """Flask-Login request loader: resolve the user behind a bearer token"""
    token = extract_token(req)
    if not token:
        g.auth_error = ('Access denied', 'No token provided')
        return None

    try:
        payload = decode_token(token)
    except ExpiredSignatureError:
        g.auth_error = ('Token expired', 'Please log in again')
        return None
    except JWTError:
        g.auth_error = ('Invalid token', 'Token is malformed or invalid')
        return None

    user = User.find_by_id(payload.get('user_id'))
    if not user:
        g.auth_error = ('Invalid token', 'User not found')
        return None

    user.touch()
    g.token_payload = payload
    return user


def unauthorized_response():
    """Flask-Login unauthorized handler returning a JSON 401"""
    error, message = g.get('auth_error', ('Authentication required', 'Please log in to access this resource'))
    return jsonify({'error': error, 'message': message}), 401


def _require_authenticated():
    if not current_user.is_authenticated:
        error, message = g.get('auth_error', ('Authentication required', 'Please log in to access this resource'))
        raise AuthenticationError(message, error=error)


def login_required_api(f):
    """Like flask_login.login_required but reports why the token was refused"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        _require_authenticated()
        return f(*args, **kwargs)
    return decorated_function


def authorize(*roles):
    """Role-based authorization"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            _require_authenticated()
            if current_user.role not in roles:
                raise PermissionDeniedError('Insufficient permissions for this resource')
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def require_permission(resource, action):
    """Permission-based authorization"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            _require_authenticated()
            if not current_user.has_permission(resource, action):
                raise PermissionDeniedError(
                    f"You don't have {action} permission for {resource}",
                    error='Permission denied'
                )
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def check_api_quota(f):
    """Count the request against the caller's subscription quota"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated:
            # Anonymous requests are only rate limited
            return f(*args, **kwargs)

        try:
            current_user.update_api_usage()
        except PyMongoError:
            logger.exception("API quota check failed for user %s", current_user.id)
            return f(*args, **kwargs)

        if current_user.api_usage['quota_exceeded']:
            raise RateLimitError(
                'API usage limit reached. Please upgrade your subscription or try again later.',
                error='Quota exceeded',
                extra={'quota': {
                    'daily': current_user.api_usage['daily_requests'],
                    'monthly': current_user.api_usage['monthly_requests'],
                    'subscription': current_user.subscription['type']
                }}
            )
        return f(*args, **kwargs)
    return decorated_function


def require_email_verification(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        _require_authenticated()
        if not current_user.is_verified:
            raise PermissionDeniedError(
                'Please verify your email address to access this feature',
                error='Email verification required'
            )
        return f(*args, **kwargs)
    return decorated_function


def validate_json_data(required_fields):
    """Reject requests whose JSON body lacks any of the required fields"""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            data = request.get_json(silent=True)
            if not isinstance(data, dict):
                raise ValidationError('Request body must be a JSON object', error='Invalid request')

            missing = []
            for field in required_fields:
                value = data.get(field)
                if value is None or (isinstance(value, str) and not value.strip()):
                    missing.append(field)

            if missing:
                raise ValidationError(
                    f"Missing required fields: {', '.join(missing)}",
                    error='Missing required fields',
                    details={'missing': missing}
                )
            return f(*args, **kwargs)
        return decorated_function
    return decorator
