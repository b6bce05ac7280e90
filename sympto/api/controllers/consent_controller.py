from flask import request
from flask_jwt_extended import get_current_user

from sympto.api.schemas import ConsentUpdateSchema, load_json
from sympto.repositories import consent_repository
from sympto.utils.responses import success_response


def _client_info():
    return request.remote_addr, request.headers.get('User-Agent')


def get_consent():
    consent = consent_repository.find_or_create_for_user(get_current_user().id)
    return success_response({'consent': consent.current_consent()})


def update_consent():
    preferences = load_json(ConsentUpdateSchema())
    ip_address, user_agent = _client_info()
    consent = consent_repository.update_consent(get_current_user().id, preferences, ip_address, user_agent)
    return success_response({'consent': consent.current_consent()}, message='Consent preferences updated successfully')


def get_consent_history():
    return success_response({'history': consent_repository.get_history(get_current_user().id)})


def withdraw_all_consent():
    """Withdraws every non-essential consent."""
    ip_address, user_agent = _client_info()
    consent = consent_repository.withdraw_all(get_current_user().id, ip_address, user_agent)
    return success_response(
        {'consent': consent.current_consent()},
        message='All non-essential consent has been withdrawn',
    )
