"""Single-use, time-bound login verification codes"""
import secrets
import time

from flask import current_app

from securemeet.constants import CODE_PURPOSES, VERIFICATION_CODE_BYTES
from securemeet.db_queries import VerificationCodeQueries

CODE_VALID = 'valid'
CODE_EXPIRED = 'expired'
CODE_MISSING = 'missing'


def generate_verification_code():
    """Random 6-character hex code (24 bits)"""
    return secrets.token_hex(VERIFICATION_CODE_BYTES)


def normalize_code(code):
    return str(code or '').strip().lower()


def _check_purpose(purpose):
    if purpose not in CODE_PURPOSES:
        raise ValueError(f'Unknown verification code purpose: {purpose}')


def issue_code(user_id, purpose, ttl=None, now=None):
    """Create a code for (user, purpose), replacing any previous one. Returns the code."""
    _check_purpose(purpose)
    if ttl is None:
        ttl = current_app.config['VERIFICATION_CODE_TTL_SECONDS']
    if now is None:
        now = time.time()
    code = generate_verification_code()
    VerificationCodeQueries.upsert(user_id, code, purpose, now + ttl)
    current_app.logger.info('Issued %s verification code for user %s', purpose, user_id)
    return code


def consume_code(user_id, code, purpose, now=None):
    """Atomically check and delete a matching unexpired code.

    Only one of several concurrent callers submitting the same code
    can get True.
    """
    if purpose not in CODE_PURPOSES:
        return False
    code = normalize_code(code)
    if not code:
        return False
    if now is None:
        now = time.time()
    return VerificationCodeQueries.delete_if_valid(user_id, code, purpose, now) == 1


def code_status(user_id, code, purpose, now=None):
    """Classify a code without consuming it: valid, expired or missing"""
    if now is None:
        now = time.time()
    row = VerificationCodeQueries.find(user_id, normalize_code(code), purpose)
    if row is None:
        return CODE_MISSING
    if row['expires_at'] <= now:
        return CODE_EXPIRED
    return CODE_VALID


def purge_expired_codes(now=None):
    """Delete expired codes. Lookups already ignore them; this only reclaims rows."""
    if now is None:
        now = time.time()
    removed = VerificationCodeQueries.delete_expired(now)
    if removed:
        current_app.logger.info('Purged %d expired verification codes', removed)
    return removed
