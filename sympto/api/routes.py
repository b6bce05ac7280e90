# /sympto/api/routes.py
from flask import current_app

from . import api_bp
from sympto.extensions import limiter
from sympto.utils.decorators import audit_log, cached, invalidates_cache, login_required, no_cache
from .controllers import (
    ai_controller, assessment_controller, auth_controller, consent_controller, user_controller,
)


def sensitive_limit():
    return current_app.config['RATELIMIT_SENSITIVE']


# --- Authentication Endpoints ---
@api_bp.route('/auth/register', methods=['POST'])
@limiter.limit(sensitive_limit)
@audit_log("USER_REGISTRATION", "users")
@no_cache
def register():
    return auth_controller.register_user()

@api_bp.route('/auth/login', methods=['POST'])
@limiter.limit(sensitive_limit)
@audit_log("USER_LOGIN", "authentication")
@no_cache
def login():
    return auth_controller.login_user()

@api_bp.route('/auth/logout', methods=['POST'])
@login_required()
@audit_log("USER_LOGOUT", "authentication")
@invalidates_cache
def logout():
    return auth_controller.logout_user()

@api_bp.route('/auth/verify-email', methods=['POST'])
@audit_log("EMAIL_VERIFICATION", "users")
def verify_email():
    return auth_controller.verify_email()

@api_bp.route('/auth/forgot-password', methods=['POST'])
@limiter.limit(sensitive_limit)
@audit_log("PASSWORD_RESET_REQUEST", "authentication")
def forgot_password():
    return auth_controller.forgot_password()

@api_bp.route('/auth/reset-password', methods=['POST'])
@limiter.limit(sensitive_limit)
@audit_log("PASSWORD_RESET", "authentication")
def reset_password():
    return auth_controller.reset_password()

@api_bp.route('/auth/refresh', methods=['POST'])
@no_cache
def refresh():
    return auth_controller.refresh_token()

@api_bp.route('/auth/me', methods=['GET'])
@login_required()
@no_cache
def me():
    return auth_controller.get_me()


# --- User Endpoints ---
@api_bp.route('/users/profile', methods=['GET'])
@login_required()
@audit_log("VIEW_OWN_PROFILE", "users")
@no_cache
def get_profile():
    return user_controller.get_profile()

@api_bp.route('/users/profile', methods=['PUT'])
@login_required()
@audit_log("UPDATE_OWN_PROFILE", "users")
@invalidates_cache
def update_profile():
    return user_controller.update_profile()

@api_bp.route('/users/export', methods=['GET'])
@login_required(verify_email=True)
@audit_log("EXPORT_USER_DATA", "users")
@no_cache
def export_user_data():
    return user_controller.export_data()

@api_bp.route('/users/account', methods=['DELETE'])
@login_required(verify_email=True)
@audit_log("DELETE_ACCOUNT", "users")
@invalidates_cache
def delete_account():
    return user_controller.delete_account()

@api_bp.route('/users/change-password', methods=['POST'])
@login_required()
@audit_log("PASSWORD_CHANGE", "authentication")
def change_password():
    return user_controller.change_password()


# --- Assessment Endpoints ---
@api_bp.route('/assessments', methods=['POST'])
@login_required(verify_email=True)
@audit_log("CREATE_ASSESSMENT", "assessments")
@invalidates_cache
def create_assessment():
    return assessment_controller.create_assessment()

@api_bp.route('/assessments', methods=['GET'])
@login_required()
@audit_log("VIEW_ASSESSMENTS", "assessments")
@cached('ASSESSMENT_CACHE_TTL')
def list_assessments():
    return assessment_controller.list_assessments()

@api_bp.route('/assessments', methods=['DELETE'])
@login_required(verify_email=True)
@audit_log("DELETE_ALL_ASSESSMENTS", "assessments")
@invalidates_cache
def delete_all_assessments():
    return assessment_controller.delete_all_assessments()

@api_bp.route('/assessments/ai/health', methods=['GET'])
@login_required()
def assessment_ai_health():
    return assessment_controller.ai_service_status()

@api_bp.route('/assessments/<int:assessment_id>', methods=['GET'])
@login_required()
@audit_log("VIEW_ASSESSMENT", "assessments")
@cached('ASSESSMENT_CACHE_TTL')
def get_assessment(assessment_id):
    return assessment_controller.get_assessment(assessment_id)

@api_bp.route('/assessments/<int:assessment_id>', methods=['DELETE'])
@login_required()
@audit_log("DELETE_ASSESSMENT", "assessments")
@invalidates_cache
def delete_assessment(assessment_id):
    return assessment_controller.delete_assessment(assessment_id)

@api_bp.route('/assessments/<int:assessment_id>/analyze', methods=['POST'])
@login_required()
@audit_log("ANALYZE_ASSESSMENT", "assessments")
@invalidates_cache
def analyze_assessment(assessment_id):
    return assessment_controller.analyze_assessment(assessment_id)


# --- Consent Endpoints ---
@api_bp.route('/consent', methods=['GET'])
@login_required()
@cached('CONSENT_CACHE_TTL')
def get_consent():
    return consent_controller.get_consent()

@api_bp.route('/consent', methods=['PUT'])
@login_required()
@audit_log("UPDATE_CONSENT", "consent")
@invalidates_cache
def update_consent():
    return consent_controller.update_consent()

@api_bp.route('/consent/history', methods=['GET'])
@login_required()
@audit_log("VIEW_CONSENT_HISTORY", "consent")
def consent_history():
    return consent_controller.get_consent_history()

@api_bp.route('/consent/withdraw-all', methods=['POST'])
@login_required()
@audit_log("WITHDRAW_ALL_CONSENT", "consent")
@invalidates_cache
def withdraw_all_consent():
    return consent_controller.withdraw_all_consent()


# --- AI Endpoints ---
@api_bp.route('/ai/health', methods=['GET'])
@limiter.exempt
def ai_health():
    return ai_controller.warm_up()
