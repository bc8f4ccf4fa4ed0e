"""Password hashing and verification helpers"""
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from flask import current_app

ph = PasswordHasher()

# Verified when the email is unknown so both failure paths cost the same
_DUMMY_HASH = ph.hash('securemeet-dummy-password')


def hash_password(password):
    """Hash password with Argon2id"""
    return ph.hash(password)


def verify_password(user, password):
    """Verify password against Argon2id hash"""
    if not user:
        try:
            ph.verify(_DUMMY_HASH, password or '')
        except VerificationError:
            pass
        return False
    try:
        return ph.verify(user['password_hash'], password or '')
    except (VerificationError, InvalidHashError) as e:
        current_app.logger.debug('Password verification failed: %s', str(e))
        return False
