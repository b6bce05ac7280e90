import time
from functools import wraps

from flask import current_app, g, make_response, request
from flask_jwt_extended import get_current_user, get_jwt, get_jwt_identity, verify_jwt_in_request

from sympto.utils.cache_util import get_cache, invalidate_user_cache, user_key_prefix
from sympto.utils.errors import AuthError, AuthorizationError


def audit_log(action, resource):
    """Writes an audit trail entry for each call to the wrapped view."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user_id = None
            ip_address = request.remote_addr
            user_agent = request.headers.get('User-Agent')

            try:
                user_id = get_jwt_identity()
            except RuntimeError:
                # No JWT verified for this request (e.g. registration or login)
                pass

            try:
                response = make_response(f(*args, **kwargs))
            except Exception as e:
                status = getattr(e, 'status_code', 500)
                current_app.audit_logger.error(
                    f"Action='{action}', Resource='{resource}', UserID='{user_id}', IP='{ip_address}', "
                    f"UserAgent='{user_agent}', Success='False', Status='{status}', Error='{type(e).__name__}'"
                )
                raise

            success = response.status_code < 400
            current_app.audit_logger.info(
                f"Action='{action}', Resource='{resource}', UserID='{user_id}', IP='{ip_address}', "
                f"UserAgent='{user_agent}', Success='{success}', Status='{response.status_code}'"
            )
            return response
        return decorated_function
    return decorator


def _schedule_token_refresh(user):
    """Issues a fresh pair when the presented access token is close to expiry."""
    from sympto.utils.jwt_util import issue_token_pair

    threshold = current_app.config['JWT_REFRESH_THRESHOLD']
    remaining = get_jwt().get('exp', 0) - time.time()
    if remaining < threshold.total_seconds():
        g.refreshed_tokens = issue_token_pair(user)


def login_required(verify_email=False):
    """
    Requires a valid bearer access token for an active user. With
    ``verify_email`` the account must also have a verified email address
    when REQUIRE_EMAIL_VERIFICATION is on.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            verify_jwt_in_request()
            user = get_current_user()

            if user is None or not user.is_active:
                raise AuthError('User not found or inactive', code='INVALID_USER')

            if (verify_email and current_app.config.get('REQUIRE_EMAIL_VERIFICATION')
                    and not user.email_verified):
                raise AuthorizationError('Email verification required', code='EMAIL_NOT_VERIFIED')

            _schedule_token_refresh(user)
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def cached(ttl_config_key):
    """
    Caches successful GET responses per user for the TTL named by
    ``ttl_config_key``. Must be applied inside ``login_required``.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user_id = get_jwt_identity()
            key = f"{user_key_prefix(user_id)}{request.method}:{request.full_path}"
            store = get_cache()

            hit = store.get(key)
            if hit is not None:
                body, status = hit
                response = current_app.response_class(body, status=status, mimetype='application/json')
                response.headers['X-Cache'] = 'HIT'
                return response

            response = make_response(f(*args, **kwargs))
            if response.status_code == 200:
                store.set(key, (response.get_data(), response.status_code), current_app.config[ttl_config_key])
            response.headers['X-Cache'] = 'MISS'
            return response
        return decorated_function
    return decorator


def invalidates_cache(f):
    """Drops the caller's cached responses after a successful write."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        response = make_response(f(*args, **kwargs))
        if response.status_code < 400:
            user_id = get_jwt_identity()
            if user_id is not None:
                invalidate_user_cache(user_id)
        return response
    return decorated_function


def no_cache(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        response = make_response(f(*args, **kwargs))
        response.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate, private'
        response.headers['Pragma'] = 'no-cache'
        response.headers['Expires'] = '0'
        return response
    return decorated_function
