from datetime import datetime, timezone
from flask import current_app
from flask_jwt_extended import get_current_user, get_jwt

from sympto.api.schemas import (
    ForgotPasswordSchema, LoginSchema, RefreshTokenSchema, RegisterSchema,
    ResetPasswordSchema, TokenSchema, load_json,
)
from sympto.extensions import db
from sympto.models.system_models import RevokedToken
from sympto.models.user_models import User
from sympto.repositories import consent_repository, user_repository
from sympto.utils.email_util import send_password_reset_email, send_verification_email
from sympto.utils.errors import AuthError, ConflictError, ExpiredTokenError, TokenError, ValidationError
from sympto.utils.jwt_util import generate_secure_token, issue_token_pair, verify
from sympto.utils.responses import success_response
from sympto.utils.time_util import utcnow


def register_user():
    """Creates an account, sends the verification email and signs the user in."""
    data = load_json(RegisterSchema())

    if user_repository.email_exists(data['email']):
        raise ConflictError('User with this email already exists', code='USER_EXISTS')

    user = User(
        email=data['email'],
        first_name=data['first_name'],
        last_name=data['last_name'],
        date_of_birth=data.get('date_of_birth'),
        email_verified=False,
        email_verification_token=generate_secure_token(),
        email_verification_expires=utcnow() + current_app.config['EMAIL_VERIFICATION_EXPIRES'],
    )
    user.set_password(data['password'])
    user = user_repository.add(user)
    consent_repository.find_or_create_for_user(user.id)

    # Email delivery never blocks registration
    send_verification_email(user.email, user.first_name, user.email_verification_token)

    return success_response({
        'user': user.to_dict(),
        'tokens': issue_token_pair(user),
    }, message='User registered successfully. Please check your email to verify your account.', status=201)


def login_user():
    data = load_json(LoginSchema())

    user = user_repository.find_by_email(data['email'])
    if not user or not user.is_active or not user.check_password(data['password']):
        raise AuthError('Invalid email or password', code='INVALID_CREDENTIALS')

    user.last_login = utcnow()
    user = user_repository.save(user)

    return success_response({
        'user': user.to_dict(),
        'tokens': issue_token_pair(user),
    }, message='Login successful')


def logout_user():
    claims = get_jwt()
    expires_at = datetime.fromtimestamp(claims['exp'], tz=timezone.utc).replace(tzinfo=None)
    db.session.add(RevokedToken(jti=claims['jti'], expires_at=expires_at))
    db.session.commit()
    return success_response(message='Logged out successfully')


def verify_email():
    data = load_json(TokenSchema())

    user = user_repository.find_by_verification_token(data['token'])
    if not user:
        raise ValidationError('Invalid or expired verification token', code='INVALID_TOKEN')

    user.email_verified = True
    user.email_verification_token = None
    user.email_verification_expires = None
    user = user_repository.save(user)
    current_app.logger.info(f"Email verified for user {user.id}")

    return success_response({'user': user.to_dict()}, message='Email verified successfully')


def forgot_password():
    data = load_json(ForgotPasswordSchema())

    user = user_repository.find_by_email(data['email'])
    if user and user.is_active:
        user.password_reset_token = generate_secure_token()
        user.password_reset_expires = utcnow() + current_app.config['PASSWORD_RESET_EXPIRES']
        user = user_repository.save(user)
        send_password_reset_email(user.email, user.first_name, user.password_reset_token)

    # Same answer whether or not the account exists
    return success_response(message='If an account with that email exists, a password reset link has been sent.')


def reset_password():
    data = load_json(ResetPasswordSchema())

    user = user_repository.find_by_reset_token(data['token'])
    if not user:
        raise ValidationError('Invalid or expired reset token', code='INVALID_TOKEN')

    user.set_password(data['password'])
    user.password_reset_token = None
    user.password_reset_expires = None
    user_repository.save(user)
    current_app.logger.info(f"Password reset for user {user.id}")

    return success_response(message='Password reset successfully')


def refresh_token():
    data = load_json(RefreshTokenSchema())

    try:
        claims = verify(data['refresh_token'], expected_type='refresh')
    except ExpiredTokenError:
        raise AuthError('Refresh token has expired', code='REFRESH_TOKEN_EXPIRED')
    except TokenError:
        raise AuthError('Invalid refresh token', code='INVALID_REFRESH_TOKEN')

    user = user_repository.get(claims['sub'])
    if not user or not user.is_active:
        raise AuthError('Invalid refresh token', code='INVALID_REFRESH_TOKEN')

    return success_response({'tokens': issue_token_pair(user)}, message='Token refreshed successfully')


def get_me():
    return success_response({'user': get_current_user().to_dict()})
