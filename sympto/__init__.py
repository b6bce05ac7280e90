import os
import time

from flask import Flask, g, request

from config import config
from sympto.extensions import db, bcrypt, migrate, jwt, limiter, cors
from sympto.utils.encryption_util import encryptor
from sympto.utils.cache_util import init_cache
from sympto.utils.error_handlers import register_error_handlers, register_jwt_handlers
from sympto.utils.responses import success_response
from sympto.utils.time_util import utcnow, isoformat
from sympto.services.ai_service import init_ai_service
from sympto.commands import register_commands


def create_app(config_name=None, ai_session=None, cache_store=None):
    """
    Application factory.

    ``config_name`` is a key of ``config.config`` or a config class.
    ``ai_session`` and ``cache_store`` replace the HTTP session used for the
    prediction service and the response cache store.
    """
    if config_name is None:
        config_name = os.environ.get('FLASK_CONFIG', 'default')
    config_class = config[config_name] if isinstance(config_name, str) else config_name

    app = Flask(__name__)
    app.config.from_object(config_class)
    config_class.init_app(app)

    # Initialize extensions
    db.init_app(app)
    bcrypt.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)
    cors.init_app(
        app,
        origins=app.config['ALLOWED_ORIGINS'],
        supports_credentials=True,
        allow_headers=['Content-Type', 'Authorization', 'X-Requested-With'],
        expose_headers=['X-Token-Refresh', 'X-New-Access-Token', 'X-New-Refresh-Token'],
        methods=['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS'],
    )

    # Initialize custom utilities
    encryptor.init_app(app)
    init_cache(app, cache_store)
    init_ai_service(app, session=ai_session)

    from sympto import models  # noqa: F401

    from sympto.api import api_bp
    app.register_blueprint(api_bp, url_prefix='/api')

    # Register error handlers and commands
    register_error_handlers(app)
    register_jwt_handlers()
    register_commands(app)

    @jwt.token_in_blocklist_loader
    def check_if_token_revoked(jwt_header, jwt_payload):
        from sympto.models.system_models import RevokedToken
        return RevokedToken.is_revoked(jwt_payload['jti'])

    @jwt.user_lookup_loader
    def load_user(jwt_header, jwt_payload):
        from sympto.repositories import user_repository
        return user_repository.get(jwt_payload['sub'])

    @app.route('/health')
    @limiter.exempt
    def health():
        return success_response({
            'status': 'ok',
            'service': 'sympto-api',
            'timestamp': isoformat(utcnow()),
        })

    @app.before_request
    def start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def finish_request(response):
        tokens = g.pop('refreshed_tokens', None)
        if tokens:
            response.headers['X-Token-Refresh'] = 'true'
            response.headers['X-New-Access-Token'] = tokens['accessToken']
            response.headers['X-New-Refresh-Token'] = tokens['refreshToken']

        started = g.pop('request_started', None)
        if started is not None:
            elapsed = time.perf_counter() - started
            if elapsed > app.config['SLOW_REQUEST_SECONDS']:
                app.logger.warning(f"Slow request: {request.method} {request.path} took {elapsed:.2f}s")
        return response

    @app.after_request
    def set_security_headers(response):
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-XSS-Protection'] = '1; mode=block'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        response.headers['Content-Security-Policy'] = "default-src 'self'"
        if not app.debug and not app.testing:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        return response

    return app
