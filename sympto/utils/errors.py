# /sympto/utils/errors.py
"""API error taxonomy. Each error knows its HTTP status and default code."""


class ApiError(Exception):
    status_code = 500
    code = 'INTERNAL_ERROR'
    message = 'Internal server error'

    def __init__(self, message=None, code=None, details=None, status_code=None):
        super().__init__(message or self.message)
        self.message = message or self.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.details = details


class ValidationError(ApiError):
    status_code = 400
    code = 'VALIDATION_ERROR'
    message = 'Validation failed'


class AuthError(ApiError):
    status_code = 401
    code = 'UNAUTHORIZED'
    message = 'Authentication required'


class AuthorizationError(ApiError):
    status_code = 403
    code = 'ACCESS_DENIED'
    message = 'Access denied'


class NotFoundError(ApiError):
    status_code = 404
    code = 'NOT_FOUND'
    message = 'Resource not found'


class ConflictError(ApiError):
    status_code = 409
    code = 'CONFLICT'
    message = 'Resource already exists'


class RateLimitError(ApiError):
    status_code = 429
    code = 'RATE_LIMIT_EXCEEDED'
    message = 'Too many requests, please try again later'


class UpstreamUnavailableError(ApiError):
    status_code = 503
    code = 'AI_SERVICE_UNAVAILABLE'
    message = 'AI service is temporarily unavailable'


class InternalError(ApiError):
    pass


class TokenError(AuthError):
    code = 'INVALID_TOKEN'
    message = 'Invalid token'


class ExpiredTokenError(TokenError):
    code = 'TOKEN_EXPIRED'
    message = 'Token has expired'


class MalformedTokenError(TokenError):
    code = 'MALFORMED_TOKEN'
    message = 'Token is malformed'


class InvalidTokenError(TokenError):
    pass
