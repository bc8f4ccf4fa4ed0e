import os

from securemeet import constants


def _to_bool(val, default=False):
    if val is None:
        return default
    return str(val).strip().lower() in {'1', 'true', 'yes', 'on'}


def _to_int(val, default):
    try:
        return int(val) if val is not None else default
    except ValueError:
        return default


def _to_float(val, default):
    try:
        return float(val) if val is not None else default
    except ValueError:
        return default


class Config:
    # ========== CORE ==========
    DEBUG = _to_bool(os.getenv('FLASK_DEBUG'), False)
    TESTING = False
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DATABASE = os.getenv('DATABASE_PATH', os.path.join(os.getcwd(), 'data', 'securemeet.db'))

    # ========== SESSIONS ==========
    SESSION_SECRET_KEY = os.getenv('SESSION_SECRET_KEY')         # falls back to SECRET_KEY
    SESSION_TTL_MINUTES = _to_int(os.getenv('SESSION_TTL_MINUTES'), constants.SESSION_TTL_MINUTES)
    SESSION_COOKIE_SECURE = _to_bool(os.getenv('SESSION_COOKIE_SECURE'), True)

    # ========== SECRETS AT REST ==========
    ENCRYPTION_KEY = os.getenv('ENCRYPTION_KEY')                 # falls back to SECRET_KEY

    # ========== LOGIN FLOW ==========
    VERIFICATION_CODE_TTL_SECONDS = _to_int(
        os.getenv('VERIFICATION_CODE_TTL_SECONDS'), constants.VERIFICATION_CODE_TTL_SECONDS
    )

    # ========== EDGE GATE ==========
    PROTECTED_PATH_PREFIXES = (
        '/dashboard',
        '/meeting-room',
        '/api/meetings',
        '/api/users',
        '/api/signaling',
        '/api/auth/setup-mfa',
        '/api/auth/verify-totp',
        '/api/test-email',
    )
    LOGIN_PATH = '/login'

    # ========== NOTIFICATIONS ==========
    NOTIFIER = os.getenv('NOTIFIER', 'console')                  # 'console' or 'smtp'
    MAIL_SERVER = os.getenv('MAIL_SERVER', 'smtp.gmail.com')
    MAIL_PORT = _to_int(os.getenv('MAIL_PORT'), 587)
    MAIL_USERNAME = os.getenv('MAIL_USERNAME')
    MAIL_PASSWORD = os.getenv('MAIL_PASSWORD')
    MAIL_SENDER = os.getenv('MAIL_SENDER', MAIL_USERNAME or 'no-reply@securemeet.local')
    MAIL_TIMEOUT = _to_int(os.getenv('MAIL_TIMEOUT'), 10)
    MAIL_MAX_ATTEMPTS = _to_int(os.getenv('MAIL_MAX_ATTEMPTS'), constants.MAIL_MAX_ATTEMPTS)
    MAIL_RETRY_DELAY = _to_float(os.getenv('MAIL_RETRY_DELAY'), constants.MAIL_RETRY_DELAY)


class DevelopmentConfig(Config):
    DEBUG = True
    SESSION_COOKIE_SECURE = False


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SESSION_COOKIE_SECURE = False
    MAIL_RETRY_DELAY = 0.0
