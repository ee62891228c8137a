"""API error types mapped to HTTP responses by the global error handlers."""


class APIError(Exception):
    status_code = 500
    error = 'Internal server error'

    def __init__(self, message, error=None, status_code=None, details=None, extra=None):
        super().__init__(message)
        self.message = message
        if error:
            self.error = error
        if status_code:
            self.status_code = status_code
        self.details = details
        self.extra = extra or {}

    def to_dict(self):
        body = {'error': self.error, 'message': self.message}
        if self.details:
            body['details'] = self.details
        body.update(self.extra)
        return body


class ValidationError(APIError):
    status_code = 400
    error = 'Validation error'


class AuthenticationError(APIError):
    status_code = 401
    error = 'Authentication required'


class PermissionDeniedError(APIError):
    status_code = 403
    error = 'Access forbidden'


class NotFoundError(APIError):
    status_code = 404
    error = 'Not found'


class ConflictError(APIError):
    status_code = 409
    error = 'Conflict'


class LockedError(APIError):
    status_code = 423
    error = 'Account locked'


class RateLimitError(APIError):
    status_code = 429
    error = 'Rate limit exceeded'
