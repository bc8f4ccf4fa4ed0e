
import logging

import click
from flask import Flask, jsonify
from werkzeug.middleware.proxy_fix import ProxyFix

from securemeet.auth import auth_bp, claims_response
from securemeet.config import Config
from securemeet.constants import (
    ERROR_INVALID_CREDENTIALS, ERROR_MFA_NOT_CONFIGURED, ERROR_NOTIFICATION_FAILED,
    ROLES, ROLE_USER,
)
from securemeet.db import close_db, init_db
from securemeet.errors import (
    CodeExpired, IntegrityFailure, InvalidCredentials, MFANotConfigured, NotificationDeliveryFailed,
)
from securemeet.helpers.code_helpers import purge_expired_codes
from securemeet.helpers.mail_helpers import create_notifier
from securemeet.login_flow import default_login_policy
from securemeet.mfa import mfa_bp
from securemeet.session_tokens import edge_gate
from securemeet.users import create_user, users_bp


def create_app(config=None, notifier=None, login_policy=None):
    app = Flask(__name__)

    # ProxyFix for NGINX reverse proxy headers
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    # Configuration
    app.config.from_object(config or Config)
    app.logger.setLevel(logging.DEBUG if app.config['DEBUG'] else logging.INFO)

    app.extensions['securemeet_notifier'] = notifier or create_notifier(app.config)
    app.extensions['securemeet_login_policy'] = login_policy or default_login_policy()

    # Register blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(mfa_bp)
    app.register_blueprint(users_bp)

    # Initialize database on app startup
    with app.app_context():
        init_db()

    app.before_request(edge_gate)
    app.teardown_appcontext(close_db)

    register_error_handlers(app)
    register_commands(app)

    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint"""
        return jsonify({'status': 'healthy', 'version': '1.0.0'}), 200

    return app


def register_error_handlers(app):
    @app.errorhandler(InvalidCredentials)
    def invalid_credentials(error):
        if isinstance(error, CodeExpired):
            app.logger.info('Expired verification code submitted')
        return jsonify({'error': ERROR_INVALID_CREDENTIALS}), 401

    @app.errorhandler(NotificationDeliveryFailed)
    def notification_failed(error):
        # The step itself passed; hand out its token so the client can ask for a resend
        if error.claims:
            resp = claims_response(error.claims, ERROR_NOTIFICATION_FAILED, status=503)
            resp.headers['Retry-After'] = '60'
            return resp
        return jsonify({'error': ERROR_NOTIFICATION_FAILED}), 503

    @app.errorhandler(MFANotConfigured)
    def mfa_not_configured(error):
        return jsonify({'error': ERROR_MFA_NOT_CONFIGURED}), 400

    @app.errorhandler(IntegrityFailure)
    def integrity_failure(error):
        app.logger.error('Stored secret failed integrity check: %s', str(error))
        return jsonify({'error': 'Internal server error'}), 500

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(500)
    def internal_error(error):
        return jsonify({'error': 'Internal server error'}), 500


def register_commands(app):
    @app.cli.command('init-db')
    def init_db_command():
        """Create tables if they do not exist."""
        init_db()
        click.echo('Initialized the database.')

    @app.cli.command('create-user')
    @click.argument('email')
    @click.argument('name')
    @click.option('--role', type=click.Choice(ROLES), default=ROLE_USER)
    @click.password_option()
    def create_user_command(email, name, role, password):
        """Provision an account."""
        user_id = create_user(name, email, password, role)
        click.echo(f'Created user {user_id}.')

    @app.cli.command('purge-codes')
    def purge_codes_command():
        """Delete expired verification codes."""
        click.echo(f'Removed {purge_expired_codes()} expired codes.')


if __name__ == '__main__':
    create_app().run(debug=False, host='0.0.0.0', port=8000)
