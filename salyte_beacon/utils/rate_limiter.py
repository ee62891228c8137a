import math
import threading
import time
from functools import wraps
from flask import request, current_app, g
from flask_login import current_user
from salyte_beacon.utils.errors import RateLimitError


class RateLimiter:
    """Process-local fixed window request counter"""

    def __init__(self):
        self._windows = {}
        self._lock = threading.Lock()

    def hit(self, key, max_requests, window_seconds, now=None):
        """Count one request for key.

        Returns (allowed, count, reset_time) where reset_time is the epoch
        second at which the current window ends. Rejected requests are not
        counted.
        """
        now = now if now is not None else time.time()

        with self._lock:
            # Drop expired windows
            for stale_key in [k for k, w in self._windows.items() if w['reset_time'] <= now]:
                del self._windows[stale_key]

            window = self._windows.get(key)
            if window is None:
                window = {'count': 0, 'reset_time': now + window_seconds}
                self._windows[key] = window

            if window['count'] >= max_requests:
                return False, window['count'], window['reset_time']

            window['count'] += 1
            return True, window['count'], window['reset_time']

    def reset(self):
        with self._lock:
            self._windows.clear()

    def __len__(self):
        return len(self._windows)


def get_limiter():
    return current_app.extensions.setdefault('rate_limiter', RateLimiter())


def client_identity():
    """Authenticated user id, falling back to the client address"""
    if current_user.is_authenticated:
        return f"user:{current_user.id}"
    return f"ip:{request.remote_addr}"


def rate_limit(max_requests, window_minutes, scope=None):
    """Limit a view to max_requests per window_minutes per client"""
    def decorator(f):
        bucket = scope or f.__name__

        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_app.config.get('RATELIMIT_ENABLED', True):
                return f(*args, **kwargs)

            key = f"{bucket}:{client_identity()}"
            allowed, count, reset_time = get_limiter().hit(key, max_requests, window_minutes * 60)

            g.rate_limit = {
                'limit': max_requests,
                'remaining': max(max_requests - count, 0),
                'reset': math.ceil(reset_time),
                'retry_after': None if allowed else max(math.ceil(reset_time - time.time()), 1)
            }

            if not allowed:
                raise RateLimitError(
                    f'Too many requests. Limit: {max_requests} per {window_minutes} minutes',
                    extra={'reset_time': math.ceil(reset_time)}
                )
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def apply_rate_limit_headers(response):
    """after_request hook exposing the limiter state of the current request"""
    info = g.get('rate_limit')
    if info:
        response.headers['X-RateLimit-Limit'] = str(info['limit'])
        response.headers['X-RateLimit-Remaining'] = str(info['remaining'])
        response.headers['X-RateLimit-Reset'] = str(info['reset'])
        if info['retry_after']:
            response.headers['Retry-After'] = str(info['retry_after'])
    return response
