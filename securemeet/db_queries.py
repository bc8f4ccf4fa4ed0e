"""
Database query helpers to centralize SQL queries.
Reduces code duplication and makes schema changes easier.
"""

import json

from flask import current_app

from securemeet.db import get_db


def _encryption_key():
    return current_app.config.get('ENCRYPTION_KEY') or current_app.config['SECRET_KEY']


class UserQueries:
    """Queries related to user management"""

    PUBLIC_COLUMNS = 'id, name, email, role, created_at, updated_at'

    @staticmethod
    def get_by_id(user_id):
        """Get user by ID"""
        db = get_db()
        return db.execute('SELECT * FROM users WHERE id = ?', (user_id,)).fetchone()

    @staticmethod
    def get_by_email(email):
        """Get user by email"""
        db = get_db()
        return db.execute('SELECT * FROM users WHERE email = ?', (email,)).fetchone()

    @staticmethod
    def get_all():
        """Get all users without password hashes"""
        db = get_db()
        return db.execute(
            f'SELECT {UserQueries.PUBLIC_COLUMNS} FROM users ORDER BY id'
        ).fetchall()

    @staticmethod
    def email_exists(email, exclude_id=None):
        """Check if email is taken (optionally by someone other than exclude_id)"""
        db = get_db()
        return db.execute(
            'SELECT id FROM users WHERE email = ? AND id != ?',
            (email, exclude_id if exclude_id is not None else -1)
        ).fetchone()

    @staticmethod
    def create_user(name, email, password_hash, role):
        """Create new user, return user ID"""
        db = get_db()
        cur = db.execute(
            'INSERT INTO users (name, email, password_hash, role) VALUES (?, ?, ?, ?)',
            (name, email, password_hash, role)
        )
        db.commit()
        return cur.lastrowid

    @staticmethod
    def update_user(user_id, fields):
        """Update whitelisted profile columns"""
        allowed = {k: v for k, v in fields.items() if k in ('name', 'email', 'password_hash', 'role')}
        if not allowed:
            return
        assignments = ', '.join(f'{column} = ?' for column in allowed)
        db = get_db()
        db.execute(
            f'UPDATE users SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?',
            (*allowed.values(), user_id)
        )
        db.commit()

    @staticmethod
    def delete(user_id):
        """Delete user; dependent rows cascade"""
        db = get_db()
        cur = db.execute('DELETE FROM users WHERE id = ?', (user_id,))
        db.commit()
        return cur.rowcount


class VerificationCodeQueries:
    """Queries related to single-use login verification codes"""

    @staticmethod
    def upsert(user_id, code, purpose, expires_at):
        """Store code, replacing any existing code of the same purpose"""
        db = get_db()
        db.execute(
            '''INSERT INTO verification_codes (user_id, code, purpose, expires_at)
               VALUES (?, ?, ?, ?)
               ON CONFLICT (user_id, purpose)
               DO UPDATE SET code = excluded.code,
                             expires_at = excluded.expires_at,
                             created_at = CURRENT_TIMESTAMP''',
            (user_id, code, purpose, expires_at)
        )
        db.commit()

    @staticmethod
    def delete_if_valid(user_id, code, purpose, now):
        """Delete the code only if it matches and is unexpired. Returns rows deleted."""
        db = get_db()
        cur = db.execute(
            '''DELETE FROM verification_codes
               WHERE user_id = ? AND purpose = ? AND code = ? AND expires_at > ?''',
            (user_id, purpose, code, now)
        )
        db.commit()
        return cur.rowcount

    @staticmethod
    def find(user_id, code, purpose):
        """Get code row regardless of expiry"""
        db = get_db()
        return db.execute(
            'SELECT * FROM verification_codes WHERE user_id = ? AND purpose = ? AND code = ?',
            (user_id, purpose, code)
        ).fetchone()

    @staticmethod
    def delete_expired(now):
        """Remove expired codes. Returns rows deleted."""
        db = get_db()
        cur = db.execute('DELETE FROM verification_codes WHERE expires_at <= ?', (now,))
        db.commit()
        return cur.rowcount


class MFASettingsQueries:
    """Queries related to TOTP settings (secret is encrypted at rest)"""

    @staticmethod
    def get(user_id):
        """Get settings for user with the TOTP secret decrypted"""
        from securemeet.helpers.crypto_helpers import decrypt_data

        db = get_db()
        row = db.execute('SELECT * FROM mfa_settings WHERE user_id = ?', (user_id,)).fetchone()
        if row is None:
            return None
        settings = dict(row)
        if settings['totp_secret']:
            settings['totp_secret'] = decrypt_data(settings['totp_secret'], _encryption_key())
        settings['totp_enabled'] = bool(settings['totp_enabled'])
        settings['backup_codes'] = json.loads(settings['backup_codes'] or '[]')
        return settings

    @staticmethod
    def get_flags(user_id):
        """Get settings state without decrypting the secret"""
        db = get_db()
        row = db.execute(
            "SELECT COALESCE(totp_secret, '') != '' AS has_secret, totp_enabled, backup_codes"
            ' FROM mfa_settings WHERE user_id = ?',
            (user_id,)
        ).fetchone()
        if row is None:
            return None
        return {
            'has_secret': bool(row['has_secret']),
            'totp_enabled': bool(row['totp_enabled']),
            'backup_codes_remaining': len(json.loads(row['backup_codes'] or '[]')),
        }

    @staticmethod
    def save_pending_secret(user_id, totp_secret):
        """Store a new secret (encrypts before storing) and reset the enabled flag"""
        from securemeet.helpers.crypto_helpers import encrypt_data

        encrypted = encrypt_data(totp_secret, _encryption_key())
        db = get_db()
        db.execute(
            '''INSERT INTO mfa_settings (user_id, totp_secret, totp_enabled)
               VALUES (?, ?, 0)
               ON CONFLICT (user_id)
               DO UPDATE SET totp_secret = excluded.totp_secret,
                             totp_enabled = 0,
                             updated_at = CURRENT_TIMESTAMP''',
            (user_id, encrypted)
        )
        db.commit()

    @staticmethod
    def enable(user_id, backup_code_hashes=None):
        """Set the enabled flag; replaces backup codes when hashes are given"""
        db = get_db()
        if backup_code_hashes is None:
            db.execute(
                'UPDATE mfa_settings SET totp_enabled = 1, updated_at = CURRENT_TIMESTAMP WHERE user_id = ?',
                (user_id,)
            )
        else:
            db.execute(
                '''UPDATE mfa_settings
                   SET totp_enabled = 1, backup_codes = ?, updated_at = CURRENT_TIMESTAMP
                   WHERE user_id = ?''',
                (json.dumps(backup_code_hashes), user_id)
            )
        db.commit()


class SecurityQuestionQueries:
    """Queries related to recovery security questions"""

    @staticmethod
    def replace_all(user_id, rows):
        """Delete all questions for user and insert (question, answer_hash, is_active) rows atomically"""
        db = get_db()
        with db:
            db.execute('DELETE FROM security_questions WHERE user_id = ?', (user_id,))
            db.executemany(
                'INSERT INTO security_questions (user_id, question, answer_hash, is_active) VALUES (?, ?, ?, ?)',
                [(user_id, question, answer_hash, 1 if is_active else 0)
                 for question, answer_hash, is_active in rows]
            )

    @staticmethod
    def get_active(user_id):
        """Get the active question for user"""
        db = get_db()
        return db.execute(
            'SELECT * FROM security_questions WHERE user_id = ? AND is_active = 1',
            (user_id,)
        ).fetchone()

    @staticmethod
    def get_all_for_user(user_id):
        """Get questions without answer hashes"""
        db = get_db()
        return db.execute(
            'SELECT id, question, is_active, created_at FROM security_questions WHERE user_id = ? ORDER BY id',
            (user_id,)
        ).fetchall()


class LoginAttemptQueries:
    """Queries related to the verification audit trail"""

    @staticmethod
    def record(user_id, success, failure_reason=None):
        """Append verification attempt"""
        db = get_db()
        db.execute(
            'INSERT INTO login_attempts (user_id, success, failure_reason) VALUES (?, ?, ?)',
            (user_id, 1 if success else 0, failure_reason)
        )
        db.commit()

    @staticmethod
    def get_all_for_user(user_id):
        """Get attempts for user, oldest first"""
        db = get_db()
        return db.execute(
            'SELECT * FROM login_attempts WHERE user_id = ? ORDER BY id',
            (user_id,)
        ).fetchall()
