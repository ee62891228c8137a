import logging
from datetime import datetime
from flask import Blueprint, request, jsonify, current_app
from flask_login import login_required, current_user
from jose import JWTError
from salyte_beacon.models.user import User, is_valid_email, MIN_PASSWORD_LENGTH, ROLES
from salyte_beacon.models.conversation import Conversation
from salyte_beacon.utils.auth_middleware import (
    validate_json_data, create_token, decode_token, RESET_TOKEN, REMEMBER_ME_EXPIRY, RESET_TOKEN_EXPIRY
)
from salyte_beacon.utils.rate_limiter import rate_limit
from salyte_beacon.utils.validators import get_text, get_bool
from salyte_beacon.utils.errors import ConflictError, LockedError

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)

RESET_NOTICE = 'If an account with this email exists, a password reset link has been sent.'
DELETE_CONFIRMATION = 'DELETE_MY_ACCOUNT'
SIGNUP_ROLES = tuple(role for role in ROLES if role != 'admin')
PREFERENCE_FIELDS = ('newsletter', 'email_notifications', 'data_sharing', 'language', 'theme', 'units')
BOOLEAN_PREFERENCES = ('newsletter', 'email_notifications', 'data_sharing')


def weak_password_response(message='Password must be at least 8 characters long'):
    return jsonify({'error': 'Weak password', 'message': message}), 400


@auth_bp.route('/signup', methods=['POST'])
@rate_limit(5, 15)
@validate_json_data(['first_name', 'last_name', 'email', 'password'])
def signup():
    """Register a new user"""
    data = request.get_json()
    email = get_text(data, 'email').lower()
    password = data['password']

    if not is_valid_email(email):
        return jsonify({
            'error': 'Invalid email format',
            'message': 'Please provide a valid email address'
        }), 400

    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        return weak_password_response()

    role = get_text(data, 'role') or 'individual'
    if role not in SIGNUP_ROLES:
        return jsonify({
            'error': 'Invalid role',
            'message': f"Role must be one of: {', '.join(SIGNUP_ROLES)}"
        }), 400

    if User.find_by_email(email):
        raise ConflictError('An account with this email already exists', error='User already exists')

    consent = get_bool(data, 'data_processing_consent')
    user = User(
        email=email,
        first_name=get_text(data, 'first_name'),
        last_name=get_text(data, 'last_name'),
        phone=get_text(data, 'phone') or None,
        role=role,
        location=get_text(data, 'location') or None,
        preferences={'newsletter': get_bool(data, 'newsletter')},
        privacy={
            'data_processing_consent': consent,
            'marketing_consent': get_bool(data, 'marketing_consent'),
            'consent_date': datetime.utcnow() if consent else None
        },
        metadata={
            'registration_source': get_text(data, 'registration_source') or 'web',
            'referral_code': get_text(data, 'referral_code'),
            'utm_source': get_text(data, 'utm_source'),
            'utm_medium': get_text(data, 'utm_medium'),
            'utm_campaign': get_text(data, 'utm_campaign'),
            'ip_address': request.remote_addr,
            'user_agent': request.headers.get('User-Agent')
        }
    )
    user.set_password(password)
    user.save()

    token = create_token(user)
    logger.info("New user registered: %s (%s)", user.email, user.role)

    return jsonify({
        'success': True,
        'message': 'Account created successfully',
        'user': user.to_dict(),
        'token': token
    }), 201


@auth_bp.route('/login', methods=['POST'])
@rate_limit(10, 15)
@validate_json_data(['email', 'password'])
def login():
    """Authenticate user and return token"""
    data = request.get_json()
    email = get_text(data, 'email').lower()
    password = data['password']

    user = User.find_by_email(email)
    if not user:
        return jsonify({
            'error': 'Invalid credentials',
            'message': 'Email or password is incorrect'
        }), 401

    if user.is_locked():
        logger.warning("Login attempt on locked account: %s", email)
        raise LockedError('Too many failed login attempts. Please try again later.')

    if not user.check_password(password):
        user.record_failed_login()
        logger.info("Failed login for %s (%d attempts)", email, user.login_attempts)
        return jsonify({
            'error': 'Invalid credentials',
            'message': 'Email or password is incorrect'
        }), 401

    user.record_successful_login()

    remember_me = get_bool(data, 'remember_me')
    token = create_token(user, expires_delta=REMEMBER_ME_EXPIRY if remember_me else None)
    logger.info("User logged in: %s", user.email)

    return jsonify({
        'success': True,
        'message': 'Login successful',
        'user': user.to_dict(),
        'token': token
    }), 200


@auth_bp.route('/check-email', methods=['POST'])
@validate_json_data(['email'])
def check_email():
    """Check if email is available for registration"""
    email = get_text(request.get_json(), 'email').lower()

    return jsonify({
        'available': User.find_by_email(email) is None,
        'valid': is_valid_email(email),
        'email': email
    }), 200


@auth_bp.route('/forgot-password', methods=['POST'])
@rate_limit(3, 60)
@validate_json_data(['email'])
def forgot_password():
    """Issue a password reset token"""
    email = get_text(request.get_json(), 'email').lower()
    user = User.find_by_email(email)

    # Same answer either way so accounts cannot be enumerated
    if not user:
        return jsonify({'success': True, 'message': RESET_NOTICE}), 200

    token = create_token(user, token_type=RESET_TOKEN)
    user.password_reset_token = token
    user.password_reset_expires = datetime.utcnow() + RESET_TOKEN_EXPIRY
    user.save()

    # Email delivery is out of scope; the link is logged instead
    logger.info("Password reset requested for: %s", email)
    logger.debug("Reset link: %s/reset-password?token=%s", current_app.config['FRONTEND_URL'], token)

    return jsonify({'success': True, 'message': RESET_NOTICE}), 200


@auth_bp.route('/reset-password', methods=['POST'])
@validate_json_data(['token', 'new_password'])
def reset_password():
    """Reset user password with token"""
    data = request.get_json()
    token = data['token']
    new_password = data['new_password']

    if not isinstance(new_password, str) or len(new_password) < MIN_PASSWORD_LENGTH:
        return weak_password_response()

    invalid = jsonify({
        'error': 'Invalid token',
        'message': 'Password reset token is invalid or expired'
    }), 401

    if not isinstance(token, str):
        return invalid

    try:
        payload = decode_token(token, token_type=RESET_TOKEN)
    except JWTError:
        return invalid

    user = User.find_by_id(payload.get('user_id'))
    if not user or user.password_reset_token != token:
        return invalid

    if not user.password_reset_expires or datetime.utcnow() > user.password_reset_expires:
        return jsonify({
            'error': 'Token expired',
            'message': 'Password reset token has expired'
        }), 401

    user.set_password(new_password)
    user.password_reset_token = None
    user.password_reset_expires = None
    user.login_attempts = 0
    user.save()

    logger.info("Password reset successful for user: %s", user.email)
    return jsonify({'success': True, 'message': 'Password has been reset successfully'}), 200


@auth_bp.route('/profile', methods=['GET'])
@login_required
def get_profile():
    """Get user profile"""
    return jsonify({'success': True, 'user': current_user.to_dict()}), 200


@auth_bp.route('/profile', methods=['PUT'])
@login_required
def update_profile():
    """Update user profile"""
    data = request.get_json(silent=True) or {}

    for field in ('first_name', 'last_name'):
        value = get_text(data, field)
        if value:
            setattr(current_user, field, value)

    for field in ('phone', 'location'):
        if field in data:
            setattr(current_user, field, get_text(data, field) or None)

    for field in ('bio', 'organization', 'website'):
        if field in data:
            current_user.profile[field] = get_text(data, field) or None

    preferences = data.get('preferences')
    if isinstance(preferences, dict):
        for key in PREFERENCE_FIELDS:
            if key not in preferences:
                continue
            if key in BOOLEAN_PREFERENCES:
                current_user.preferences[key] = get_bool(preferences, key)
            else:
                current_user.preferences[key] = get_text(preferences, key)

    current_user.save()

    return jsonify({
        'success': True,
        'message': 'Profile updated successfully',
        'user': current_user.to_dict()
    }), 200


@auth_bp.route('/change-password', methods=['POST'])
@login_required
@validate_json_data(['current_password', 'new_password'])
def change_password():
    """Change user password"""
    data = request.get_json()
    new_password = data['new_password']

    if not isinstance(new_password, str) or len(new_password) < MIN_PASSWORD_LENGTH:
        return weak_password_response('New password must be at least 8 characters long')

    if not current_user.check_password(data['current_password']):
        return jsonify({
            'error': 'Invalid password',
            'message': 'Current password is incorrect'
        }), 401

    current_user.set_password(new_password)
    current_user.save()

    logger.info("Password changed for user: %s", current_user.email)
    return jsonify({'success': True, 'message': 'Password changed successfully'}), 200


@auth_bp.route('/account', methods=['DELETE'])
@login_required
def delete_account():
    """Delete user account"""
    data = request.get_json(silent=True) or {}
    password = data.get('password')

    if not password or data.get('confirmation') != DELETE_CONFIRMATION:
        return jsonify({
            'error': 'Invalid confirmation',
            'message': 'Password and confirmation text required'
        }), 400

    if not current_user.check_password(password):
        return jsonify({
            'error': 'Invalid password',
            'message': 'Password is incorrect'
        }), 401

    email = current_user.email
    Conversation.delete_for_user(current_user.id)
    current_user.delete()

    logger.info("Account deleted for user: %s", email)
    return jsonify({'success': True, 'message': 'Account deleted successfully'}), 200


@auth_bp.route('/check-auth', methods=['GET'])
def check_auth():
    """Check if the request carries a valid token"""
    if current_user.is_authenticated:
        return jsonify({
            'authenticated': True,
            'user': current_user.to_dict()
        }), 200
    else:
        return jsonify({'authenticated': False}), 200
