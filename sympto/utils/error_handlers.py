# /sympto/utils/error_handlers.py
from flask import current_app
from marshmallow import ValidationError as SchemaValidationError

from sympto.extensions import db, jwt
from sympto.utils.errors import ApiError
from sympto.utils.responses import error_response


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(error):
        if error.status_code >= 500:
            current_app.logger.error(f"{error.code}: {error.message}")
        return error_response(error.code, error.message, error.status_code, error.details)

    @app.errorhandler(SchemaValidationError)
    def handle_schema_error(error):
        return error_response('VALIDATION_ERROR', 'Validation failed', 400, error.messages)

    @app.errorhandler(400)
    def bad_request(error):
        return error_response('BAD_REQUEST', 'Malformed request body', 400)

    @app.errorhandler(404)
    def not_found(error):
        return error_response('NOT_FOUND', 'Resource not found', 404)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return error_response('METHOD_NOT_ALLOWED', 'Method not allowed', 405)

    @app.errorhandler(429)
    def rate_limited(error):
        return error_response(
            'RATE_LIMIT_EXCEEDED', 'Too many requests, please try again later', 429,
            {'limit': str(getattr(error, 'description', ''))}
        )

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        original = getattr(error, 'original_exception', None) or error
        current_app.logger.error(f"Internal server error: {original}")
        current_app.audit_logger.error(f"Internal server error: {original}")
        message = str(original) if current_app.debug else 'Internal server error'
        return error_response('INTERNAL_ERROR', message, 500)


def register_jwt_handlers():
    """Renders Flask-JWT-Extended failures in the API error envelope."""

    @jwt.unauthorized_loader
    def missing_token(reason):
        return error_response('MISSING_TOKEN', 'Access token is required', 401)

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return error_response('TOKEN_EXPIRED', 'Access token has expired', 401)

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return error_response('INVALID_TOKEN', 'Invalid access token', 401)

    @jwt.revoked_token_loader
    def revoked_token(jwt_header, jwt_payload):
        return error_response('TOKEN_REVOKED', 'Token has been revoked', 401)

    @jwt.user_lookup_error_loader
    def user_lookup_failed(jwt_header, jwt_payload):
        return error_response('INVALID_USER', 'User not found or inactive', 401)
