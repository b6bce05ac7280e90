# /sympto/utils/jwt_util.py
"""
Signed access/refresh tokens on top of Flask-JWT-Extended, plus opaque
single-use tokens for email verification and password reset links.
"""
import secrets

import jwt as pyjwt
from flask import current_app
from flask_jwt_extended import create_access_token, create_refresh_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException

from sympto.models.system_models import RevokedToken
from sympto.utils.errors import ExpiredTokenError, InvalidTokenError, MalformedTokenError


def _user_claims(user):
    return {
        'userId': user.id,
        'email': user.email,
        'emailVerified': bool(user.email_verified),
    }


def issue_access_token(user, expires_delta=None):
    kwargs = {'additional_claims': _user_claims(user)}
    if expires_delta is not None:
        kwargs['expires_delta'] = expires_delta
    return create_access_token(identity=str(user.id), **kwargs)


def issue_refresh_token(user, expires_delta=None):
    kwargs = {'additional_claims': _user_claims(user)}
    if expires_delta is not None:
        kwargs['expires_delta'] = expires_delta
    return create_refresh_token(identity=str(user.id), **kwargs)


def issue_token_pair(user):
    """Access and refresh token for ``user`` in the shape API clients expect."""
    expires = current_app.config['JWT_ACCESS_TOKEN_EXPIRES']
    return {
        'accessToken': issue_access_token(user),
        'refreshToken': issue_refresh_token(user),
        'expiresIn': int(expires.total_seconds()),
        'tokenType': 'Bearer',
    }


def verify(token, expected_type=None):
    """
    Decodes and validates a token, checking signature, expiry, issuer and
    audience. Returns the claims.

    Raises ExpiredTokenError, MalformedTokenError or InvalidTokenError.
    """
    if not token or not isinstance(token, str):
        raise MalformedTokenError('Token is missing')

    try:
        claims = decode_token(token)
    except pyjwt.ExpiredSignatureError as e:
        raise ExpiredTokenError('Token has expired') from e
    except pyjwt.DecodeError as e:
        raise MalformedTokenError('Token is malformed') from e
    except (pyjwt.InvalidTokenError, JWTExtendedException) as e:
        raise InvalidTokenError(f'Invalid token: {e}') from e

    if expected_type and claims.get('type') != expected_type:
        raise InvalidTokenError(f'Expected a {expected_type} token')
    if RevokedToken.is_revoked(claims.get('jti')):
        raise InvalidTokenError('Token has been revoked')
    return claims


def generate_secure_token():
    """Opaque random token for email verification and password reset links."""
    return secrets.token_hex(32)
