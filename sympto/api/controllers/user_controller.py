from flask import current_app, jsonify
from flask_jwt_extended import get_current_user

from sympto.api.schemas import ChangePasswordSchema, DeleteAccountSchema, ProfileUpdateSchema, load_json
from sympto.repositories import assessment_repository, consent_repository, user_repository
from sympto.utils.email_util import send_verification_email
from sympto.utils.errors import AuthError, ConflictError, ValidationError
from sympto.utils.jwt_util import generate_secure_token
from sympto.utils.responses import success_response
from sympto.utils.time_util import utcnow, isoformat


def get_profile():
    return success_response({'user': get_current_user().to_dict()})


def update_profile():
    """Updates name, date of birth or email. An email change requires re-verification."""
    data = load_json(ProfileUpdateSchema())
    user = get_current_user()

    new_email = data.get('email')
    email_changed = bool(new_email) and new_email != user.email
    if email_changed and user_repository.email_exists(new_email, exclude_id=user.id):
        raise ConflictError('Email address is already in use', code='EMAIL_ALREADY_EXISTS')

    if 'first_name' in data:
        user.first_name = data['first_name']
    if 'last_name' in data:
        user.last_name = data['last_name']
    if 'date_of_birth' in data:
        user.date_of_birth = data['date_of_birth']
    if email_changed:
        user.email = new_email
        user.email_verified = False
        user.email_verification_token = generate_secure_token()
        user.email_verification_expires = utcnow() + current_app.config['EMAIL_VERIFICATION_EXPIRES']

    user = user_repository.save(user)

    if email_changed:
        send_verification_email(user.email, user.first_name, user.email_verification_token)

    return success_response({'user': user.to_dict()}, message='Profile updated successfully')


def export_data():
    """Everything stored about the caller, as a downloadable JSON document."""
    user = get_current_user()
    assessments = assessment_repository.list_all_for_user(user.id)
    consent = consent_repository.find_for_user(user.id)

    export = {
        'user': user.to_dict(),
        'assessments': [a.to_dict() for a in assessments],
        'consent': consent.current_consent() if consent else None,
        'consentHistory': consent.public_history() if consent else [],
        'exportedAt': isoformat(utcnow()),
    }
    response = jsonify({'success': True, 'data': export})
    response.headers['Content-Disposition'] = f'attachment; filename="sympto-data-export-{user.id}.json"'
    return response, 200


def delete_account():
    data = load_json(DeleteAccountSchema())
    user = get_current_user()

    if not user.check_password(data['confirm_password']):
        raise AuthError('Password is incorrect', code='INVALID_PASSWORD')

    user_repository.delete(user)
    return success_response(message='Account and all associated data deleted successfully')


def change_password():
    data = load_json(ChangePasswordSchema())
    user = get_current_user()

    if not user.check_password(data['current_password']):
        raise AuthError('Current password is incorrect', code='INVALID_CURRENT_PASSWORD')
    if data['current_password'] == data['new_password']:
        raise ValidationError('New password must be different from the current password', code='SAME_PASSWORD')

    user.set_password(data['new_password'])
    user_repository.save(user)
    return success_response(message='Password changed successfully')
