import re
import copy
from datetime import datetime, timedelta
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from bson import ObjectId
from bson.errors import InvalidId
from salyte_beacon.config.database import db_instance
from salyte_beacon.utils.errors import ValidationError

ROLES = ('individual', 'organization', 'researcher', 'government', 'ngo', 'admin')
PERMISSION_ACTIONS = ('read', 'write', 'delete', 'admin')
LANGUAGES = ('en', 'sw', 'fr', 'es')
THEMES = ('light', 'dark', 'auto')
UNITS = ('metric', 'imperial')
SUBSCRIPTION_TYPES = ('free', 'basic', 'premium', 'enterprise')
REGISTRATION_SOURCES = ('web', 'mobile', 'api', 'social', 'referral')

SUBSCRIPTION_QUOTAS = {
    'free': {'daily': 100, 'monthly': 1000},
    'basic': {'daily': 500, 'monthly': 10000},
    'premium': {'daily': 2000, 'monthly': 50000},
    'enterprise': {'daily': float('inf'), 'monthly': float('inf')}
}

MIN_PASSWORD_LENGTH = 8
MAX_LOGIN_ATTEMPTS = 5
LOCK_DURATION = timedelta(minutes=30)

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')
PHONE_PATTERN = re.compile(r'^\+?[1-9]\d{0,15}$')
WEBSITE_PATTERN = re.compile(r'^https?://')

DEFAULT_PROFILE = {
    'is_complete': False,
    'last_updated': None,
    'bio': None,
    'organization': None,
    'website': None
}

DEFAULT_PREFERENCES = {
    'newsletter': False,
    'email_notifications': True,
    'data_sharing': False,
    'language': 'en',
    'theme': 'light',
    'units': 'metric'
}

DEFAULT_ACTIVITY = {
    'last_active': None,
    'total_logins': 0,
    'chat_sessions': 0,
    'reports_submitted': 0,
    'data_points_contributed': 0
}

DEFAULT_SUBSCRIPTION = {
    'type': 'free',
    'start_date': None,
    'end_date': None,
    'auto_renew': False
}

DEFAULT_API_USAGE = {
    'daily_requests': 0,
    'monthly_requests': 0,
    'last_request_date': None,
    'quota_exceeded': False
}

DEFAULT_PRIVACY = {
    'data_processing_consent': False,
    'marketing_consent': False,
    'consent_date': None,
    'data_retention_period': 365
}

DEFAULT_METADATA = {
    'registration_source': 'web',
    'referral_code': None,
    'utm_source': None,
    'utm_medium': None,
    'utm_campaign': None,
    'ip_address': None,
    'user_agent': None
}


def _with_defaults(defaults, values):
    merged = copy.deepcopy(defaults)
    if values:
        merged.update(values)
    return merged


def to_object_id(value):
    """ObjectId for a string id, or None when it is not a valid id"""
    if value is None:
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def is_valid_email(email):
    return bool(email) and bool(EMAIL_PATTERN.match(email))


class User(UserMixin):
    def __init__(self, email, first_name=None, last_name=None, password_hash=None, phone=None,
                 role='individual', is_verified=False, location=None, profile=None, preferences=None,
                 login_attempts=0, last_login_attempt=None, last_login=None,
                 password_reset_token=None, password_reset_expires=None, activity=None,
                 subscription=None, permissions=None, api_usage=None, privacy=None, metadata=None,
                 _id=None, created_at=None, updated_at=None):
        self.id = str(_id) if _id else None
        self.email = email.lower().strip() if email else email
        self.first_name = first_name
        self.last_name = last_name
        self.password_hash = password_hash
        self.phone = phone
        self.role = role or 'individual'
        self.is_verified = is_verified
        self.location = location
        self.profile = _with_defaults(DEFAULT_PROFILE, profile)
        self.preferences = _with_defaults(DEFAULT_PREFERENCES, preferences)
        self.login_attempts = login_attempts or 0
        self.last_login_attempt = last_login_attempt
        self.last_login = last_login
        self.password_reset_token = password_reset_token
        self.password_reset_expires = password_reset_expires
        self.activity = _with_defaults(DEFAULT_ACTIVITY, activity)
        self.subscription = _with_defaults(DEFAULT_SUBSCRIPTION, subscription)
        self.permissions = permissions or []
        self.api_usage = _with_defaults(DEFAULT_API_USAGE, api_usage)
        self.privacy = _with_defaults(DEFAULT_PRIVACY, privacy)
        self.metadata = _with_defaults(DEFAULT_METADATA, metadata)
        self.created_at = created_at or datetime.utcnow()
        self.updated_at = updated_at or self.created_at

        if self.activity['last_active'] is None:
            self.activity['last_active'] = self.created_at
        if self.profile['last_updated'] is None:
            self.profile['last_updated'] = self.created_at

    @property
    def full_name(self):
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def account_age(self):
        """Account age in whole days"""
        if not self.created_at:
            return 0
        return (datetime.utcnow() - self.created_at).days

    @property
    def is_subscription_active(self):
        if self.subscription['type'] == 'free':
            return True
        end_date = self.subscription.get('end_date')
        if not end_date:
            return False
        return datetime.utcnow() < end_date

    def set_password(self, password):
        """Hash and set password"""
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f'Password must be at least {MIN_PASSWORD_LENGTH} characters long',
                error='Weak password'
            )
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Check if password is correct"""
        if not self.password_hash or not isinstance(password, str):
            return False
        return check_password_hash(self.password_hash, password)

    def validate(self):
        """Raise ValidationError listing every invalid field"""
        errors = {}

        for field, label in (('first_name', 'First name'), ('last_name', 'Last name')):
            value = getattr(self, field)
            if not value or not value.strip():
                errors[field] = f'{label} is required'
            elif len(value) > 50:
                errors[field] = f'{label} cannot exceed 50 characters'

        if not self.email:
            errors['email'] = 'Email is required'
        elif not is_valid_email(self.email):
            errors['email'] = 'Please enter a valid email'

        if self.phone and not PHONE_PATTERN.match(self.phone):
            errors['phone'] = 'Please enter a valid phone number'

        if not self.password_hash:
            errors['password'] = 'Password is required'

        if self.role not in ROLES:
            errors['role'] = f"Role must be one of: {', '.join(ROLES)}"

        if self.location and len(self.location) > 100:
            errors['location'] = 'Location cannot exceed 100 characters'

        if self.profile.get('bio') and len(self.profile['bio']) > 500:
            errors['profile.bio'] = 'Bio cannot exceed 500 characters'
        if self.profile.get('organization') and len(self.profile['organization']) > 100:
            errors['profile.organization'] = 'Organization name cannot exceed 100 characters'
        if self.profile.get('website') and not WEBSITE_PATTERN.match(self.profile['website']):
            errors['profile.website'] = 'Please enter a valid URL'

        if self.preferences.get('language') not in LANGUAGES:
            errors['preferences.language'] = f"Language must be one of: {', '.join(LANGUAGES)}"
        if self.preferences.get('theme') not in THEMES:
            errors['preferences.theme'] = f"Theme must be one of: {', '.join(THEMES)}"
        if self.preferences.get('units') not in UNITS:
            errors['preferences.units'] = f"Units must be one of: {', '.join(UNITS)}"

        if self.subscription.get('type') not in SUBSCRIPTION_TYPES:
            errors['subscription.type'] = f"Subscription must be one of: {', '.join(SUBSCRIPTION_TYPES)}"

        if self.metadata.get('registration_source') not in REGISTRATION_SOURCES:
            errors['metadata.registration_source'] = 'Unknown registration source'

        for permission in self.permissions:
            invalid = [a for a in permission.get('actions', []) if a not in PERMISSION_ACTIONS]
            if not permission.get('resource') or invalid:
                errors['permissions'] = 'Permissions need a resource and known actions'
                break

        if errors:
            raise ValidationError('User validation failed', details=errors)

    def _update_profile_completion(self):
        self.profile['is_complete'] = bool(
            self.first_name and
            self.last_name and
            self.email and
            self.phone and
            self.location
        )

    def save(self):
        """Validate and save user to database"""
        self.validate()
        self._update_profile_completion()

        db = db_instance.get_db()
        now = datetime.utcnow()
        if self.id:
            self.profile['last_updated'] = now
        self.updated_at = now

        user_data = {
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'password_hash': self.password_hash,
            'phone': self.phone,
            'role': self.role,
            'is_verified': self.is_verified,
            'location': self.location,
            'profile': self.profile,
            'preferences': self.preferences,
            'login_attempts': self.login_attempts,
            'last_login_attempt': self.last_login_attempt,
            'last_login': self.last_login,
            'password_reset_token': self.password_reset_token,
            'password_reset_expires': self.password_reset_expires,
            'activity': self.activity,
            'subscription': self.subscription,
            'permissions': self.permissions,
            'api_usage': self.api_usage,
            'privacy': self.privacy,
            'metadata': self.metadata,
            'created_at': self.created_at,
            'updated_at': self.updated_at
        }

        if self.id:
            # Update existing user
            db.users.update_one(
                {'_id': ObjectId(self.id)},
                {'$set': user_data}
            )
        else:
            # Create new user
            result = db.users.insert_one(user_data)
            self.id = str(result.inserted_id)

        return self

    def delete(self):
        """Remove the user document"""
        db = db_instance.get_db()
        db.users.delete_one({'_id': ObjectId(self.id)})

    def touch(self):
        """Record activity without re-validating the whole document"""
        now = datetime.utcnow()
        self.activity['last_active'] = now
        db = db_instance.get_db()
        db.users.update_one({'_id': ObjectId(self.id)}, {'$set': {'activity.last_active': now}})

    def increment_activity(self, counter, amount=1):
        """Bump one of the activity counters"""
        self.activity[counter] = self.activity.get(counter, 0) + amount
        db = db_instance.get_db()
        db.users.update_one({'_id': ObjectId(self.id)}, {'$inc': {f'activity.{counter}': amount}})

    # Login lockout

    def is_locked(self, now=None):
        if self.login_attempts < MAX_LOGIN_ATTEMPTS or not self.last_login_attempt:
            return False
        now = now or datetime.utcnow()
        return now < self.last_login_attempt + LOCK_DURATION

    def record_failed_login(self):
        self.login_attempts = (self.login_attempts or 0) + 1
        self.last_login_attempt = datetime.utcnow()
        return self.save()

    def record_successful_login(self):
        now = datetime.utcnow()
        self.login_attempts = 0
        self.last_login = now
        self.activity['total_logins'] = self.activity.get('total_logins', 0) + 1
        self.activity['last_active'] = now
        return self.save()

    # Permissions

    def has_permission(self, resource, action):
        if self.role == 'admin':
            return True

        for permission in self.permissions:
            if permission.get('resource') == resource:
                return action in permission.get('actions', [])
        return False

    def grant_permission(self, resource, actions, granted_by=None):
        """Add or replace the permission entry for a resource"""
        self.permissions = [p for p in self.permissions if p.get('resource') != resource]
        self.permissions.append({
            'resource': resource,
            'actions': list(actions),
            'granted': datetime.utcnow(),
            'granted_by': granted_by
        })
        return self

    # API quota

    def get_quota(self):
        return SUBSCRIPTION_QUOTAS.get(self.subscription.get('type'), SUBSCRIPTION_QUOTAS['free'])

    def update_api_usage(self):
        """Count one API request and re-evaluate the subscription quota"""
        today = datetime.utcnow()
        last = self.api_usage.get('last_request_date')

        if not last or last.date() != today.date():
            self.api_usage['daily_requests'] = 1
        else:
            self.api_usage['daily_requests'] += 1

        if last and (last.year, last.month) != (today.year, today.month):
            self.api_usage['monthly_requests'] = 1
        else:
            self.api_usage['monthly_requests'] += 1

        self.api_usage['last_request_date'] = today
        self.activity['last_active'] = today

        quota = self.get_quota()
        self.api_usage['quota_exceeded'] = (
            self.api_usage['daily_requests'] > quota['daily'] or
            self.api_usage['monthly_requests'] > quota['monthly']
        )

        db = db_instance.get_db()
        db.users.update_one(
            {'_id': ObjectId(self.id)},
            {'$set': {'api_usage': self.api_usage, 'activity.last_active': today}}
        )
        return self

    def reset_monthly_usage(self):
        self.api_usage['monthly_requests'] = 0
        self.api_usage['quota_exceeded'] = False
        return self.save()

    @staticmethod
    def from_document(user_data):
        fields = {key: value for key, value in user_data.items() if key != '_id'}
        return User(_id=user_data['_id'], **fields)

    @staticmethod
    def find_by_email(email):
        """Find user by email"""
        if not email:
            return None
        db = db_instance.get_db()
        user_data = db.users.find_one({'email': email.lower().strip()})
        return User.from_document(user_data) if user_data else None

    @staticmethod
    def find_by_id(user_id):
        """Find user by ID"""
        object_id = to_object_id(user_id)
        if not object_id:
            return None
        db = db_instance.get_db()
        user_data = db.users.find_one({'_id': object_id})
        return User.from_document(user_data) if user_data else None

    @staticmethod
    def get_active_users(days=30):
        cutoff = datetime.utcnow() - timedelta(days=days)
        db = db_instance.get_db()
        cursor = db.users.find({'activity.last_active': {'$gte': cutoff}})
        return [User.from_document(user_data) for user_data in cursor]

    @staticmethod
    def get_user_stats():
        """Totals and rates over the whole user base"""
        db = db_instance.get_db()
        total = db.users.count_documents({})
        if total == 0:
            return {
                'total_users': 0,
                'verified_users': 0,
                'active_users': 0,
                'verification_rate': 0,
                'activity_rate': 0
            }

        verified = db.users.count_documents({'is_verified': True})
        cutoff = datetime.utcnow() - timedelta(days=30)
        active = db.users.count_documents({'activity.last_active': {'$gte': cutoff}})

        return {
            'total_users': total,
            'verified_users': verified,
            'active_users': active,
            'verification_rate': round(verified / total * 100, 2),
            'activity_rate': round(active / total * 100, 2)
        }

    def to_dict(self):
        """Convert user to dictionary, without credentials"""
        return {
            'id': self.id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'full_name': self.full_name,
            'email': self.email,
            'phone': self.phone,
            'role': self.role,
            'is_verified': self.is_verified,
            'location': self.location,
            'profile': self.profile,
            'preferences': self.preferences,
            'last_login': self.last_login,
            'activity': self.activity,
            'subscription': dict(self.subscription, is_active=self.is_subscription_active),
            'permissions': [
                dict(p, granted_by=str(p['granted_by']) if p.get('granted_by') else None)
                for p in self.permissions
            ],
            'api_usage': self.api_usage,
            'account_age': self.account_age,
            'created_at': self.created_at,
            'updated_at': self.updated_at
        }
