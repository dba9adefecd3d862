"""
Flask application entry point for the scavenger-hunt kiosk.
"""
import logging
import os
from flask import Flask, jsonify
from flask_wtf.csrf import CSRFError, CSRFProtect
import config
from services.errors import AuthRequired, KioskError
from services.kiosk import Kiosk
from services.logging_setup import configure_error_monitoring, configure_logging
from services.storage import build_store
from services.wireless import build_access_point, build_dns_responder

logger = logging.getLogger(__name__)

csrf = CSRFProtect()


def create_app(config_object=None, access_point=None, dns=None, restart=None):
    """Create and configure the Flask application.

    Boot order: store -> documents -> version policy -> radio + routes.
    *access_point*, *dns* and *restart* replace the configured collaborators.
    """
    app = Flask(__name__)
    app.config.from_object(config_object or config.get_config())
    config.validate_runtime(app.config)
    configure_logging(bool(app.config.get('STRUCTURED_LOGGING', True)))
    configure_error_monitoring(app.config.get('SENTRY_DSN', ''))

    if app.config['STORAGE_BACKEND'] == 'sql':
        from database import init_db
        init_db(app)

    csrf.init_app(app)

    with app.app_context():
        kiosk = Kiosk(
            store=build_store(app.config),
            access_point=access_point or build_access_point(app.config),
            dns=dns or build_dns_responder(app.config),
            app_config=app.config,
            restart=restart,
        )
        app.extensions['kiosk'] = kiosk
        kiosk.boot()

    # Register blueprints
    from routes.main import main_bp, redirect_to_landing, register_captive_handlers
    from routes.admin import admin_bp
    from routes.player import player_bp

    csrf.exempt(main_bp)
    csrf.exempt(player_bp)
    csrf.exempt(redirect_to_landing)

    app.register_blueprint(main_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(player_bp)
    register_captive_handlers(app)

    @app.errorhandler(KioskError)
    def kiosk_error(error: KioskError):
        if error.status >= 500:
            logger.error('Request failed: %s', error.code)
        response = jsonify(error.to_dict())
        response.status_code = error.status
        if isinstance(error, AuthRequired):
            response.headers['WWW-Authenticate'] = f'Basic realm="{error.realm}"'
        return response

    @app.errorhandler(CSRFError)
    def csrf_error(error):
        return jsonify({'error': 'csrf'}), 400

    return app


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 80))
    app = create_app()
    app.run(host='0.0.0.0', port=port, debug=False, threaded=True)
