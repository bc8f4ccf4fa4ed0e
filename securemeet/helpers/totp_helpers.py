"""TOTP and 2FA related helpers"""
import base64
import hashlib
import io
import secrets

import pyotp
import qrcode
from flask import current_app

from securemeet.constants import (
    TOTP_SECRET_LENGTH, TOTP_DIGITS, TOTP_INTERVAL, TOTP_VALID_WINDOW,
    TOTP_ISSUER, BACKUP_CODE_COUNT,
)
from securemeet.db_queries import MFASettingsQueries, LoginAttemptQueries
from securemeet.errors import MFANotConfigured

FAILURE_INVALID_CODE = 'Invalid TOTP code'
FAILURE_NOT_CONFIGURED = 'MFA not configured'


def generate_totp_secret():
    """Generate a base32 TOTP secret with 160 bits of entropy"""
    return pyotp.random_base32(length=TOTP_SECRET_LENGTH)


def build_provisioning_uri(secret, identity_label, service_label=TOTP_ISSUER):
    """Build the otpauth:// URI for authenticator apps"""
    return pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_INTERVAL).provisioning_uri(
        name=identity_label,
        issuer_name=service_label
    )


def generate_totp_qr(provisioning_uri):
    """Render a provisioning URI as a PNG data URL"""
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=10,
        border=4,
    )
    qr.add_data(provisioning_uri)
    qr.make(fit=True)
    img = qr.make_image(fill_color='black', back_color='white')

    buf = io.BytesIO()
    img.save(buf, format='PNG')
    qr_b64 = base64.b64encode(buf.getvalue()).decode('ascii')
    return f'data:image/png;base64,{qr_b64}'


def verify_totp_code(totp_secret, code, for_time=None):
    """Verify TOTP code against secret within +/- TOTP_VALID_WINDOW steps.

    Malformed input (wrong length, non-digits, bad secret) is just invalid.
    """
    if not totp_secret or code is None:
        return False
    code = str(code).replace(' ', '').replace('-', '')
    if len(code) != TOTP_DIGITS or not (code.isascii() and code.isdigit()):
        return False
    try:
        totp = pyotp.TOTP(totp_secret, digits=TOTP_DIGITS, interval=TOTP_INTERVAL)
        return totp.verify(code, for_time=for_time, valid_window=TOTP_VALID_WINDOW)
    except (TypeError, ValueError):
        # binascii.Error from a corrupt secret is a ValueError
        return False


def provision_totp(user_id, identity_label, service_label=TOTP_ISSUER):
    """Create a new pending secret for user. Returns (secret, uri, qr_data_url).

    Replaces any previous secret and clears the enabled flag, so only one
    pending secret exists per user.
    """
    secret = generate_totp_secret()
    MFASettingsQueries.save_pending_secret(user_id, secret)
    uri = build_provisioning_uri(secret, identity_label, service_label)
    current_app.logger.info('Provisioned TOTP secret for user %s', user_id)
    return secret, uri, generate_totp_qr(uri)


def verify_user_totp(user_id, code, for_time=None):
    """Verify code against the user's stored secret, recording the attempt.

    Raises MFANotConfigured if the user never provisioned a secret.
    """
    settings = MFASettingsQueries.get(user_id)
    if not settings or not settings['totp_secret']:
        LoginAttemptQueries.record(user_id, False, FAILURE_NOT_CONFIGURED)
        current_app.logger.warning('TOTP verification for user %s without MFA setup', user_id)
        raise MFANotConfigured('MFA not set up')

    ok = verify_totp_code(settings['totp_secret'], code, for_time=for_time)
    if ok:
        LoginAttemptQueries.record(user_id, True)
    else:
        LoginAttemptQueries.record(user_id, False, FAILURE_INVALID_CODE)
        current_app.logger.warning('TOTP verification failed for user %s', user_id)
    return ok


def user_has_totp_enabled(user_id):
    flags = MFASettingsQueries.get_flags(user_id)
    return bool(flags and flags['totp_enabled'])


def generate_backup_codes():
    """Return (plain_codes, hashed_codes); plain codes are shown once"""
    plain_codes = []
    hashed_codes = []
    for _ in range(BACKUP_CODE_COUNT):
        code = secrets.token_hex(4).upper()
        formatted = f'{code[:4]}-{code[4:]}'
        plain_codes.append(formatted)
        hashed_codes.append(hash_backup_code(formatted))
    return plain_codes, hashed_codes


def hash_backup_code(code):
    normalized = code.replace('-', '').upper()
    return hashlib.sha256(normalized.encode()).hexdigest()


def enable_totp(user_id):
    """Mark TOTP as enabled. Idempotent.

    Returns freshly generated backup codes on first enablement, otherwise
    an empty list.
    """
    flags = MFASettingsQueries.get_flags(user_id)
    if not flags or not flags['has_secret']:
        raise MFANotConfigured('MFA not set up')
    if flags['totp_enabled']:
        return []
    plain_codes, hashed_codes = generate_backup_codes()
    MFASettingsQueries.enable(user_id, hashed_codes)
    current_app.logger.info('Enabled TOTP for user %s', user_id)
    return plain_codes


def get_mfa_status(user_id):
    flags = MFASettingsQueries.get_flags(user_id) or {}
    return {
        'mfaEnabled': flags.get('totp_enabled', False),
        'mfaPending': flags.get('has_secret', False) and not flags.get('totp_enabled', False),
        'backupCodesRemaining': flags.get('backup_codes_remaining', 0),
    }
