"""
Session tokens and the edge authorization gate.

Sessions are stateless: the signed token is the only record of how far a
login has progressed.
"""

from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Dict, Optional

import jwt
from flask import current_app, g, jsonify, redirect, request

from securemeet.constants import (
    SESSION_COOKIE_NAME, ROLE_ADMIN, ERROR_UNAUTHORIZED, ERROR_FORBIDDEN,
)
from securemeet.session_keys import ClaimKeys

ALGORITHM = 'HS256'


def _signing_key() -> str:
    return current_app.config.get('SESSION_SECRET_KEY') or current_app.config['SECRET_KEY']


def issue_session_token(claims: Dict[str, Any], now: Optional[datetime] = None) -> str:
    """
    Sign session claims into a token

    Args:
        claims: id, email, name, role, authStep, completedAuth
        now: issue time (defaults to current UTC time)

    Returns:
        JWT string valid for SESSION_TTL_MINUTES
    """
    now = now or datetime.now(timezone.utc)
    payload = dict(claims)
    payload[ClaimKeys.ISSUED_AT] = now
    payload[ClaimKeys.EXPIRES] = now + timedelta(minutes=current_app.config['SESSION_TTL_MINUTES'])
    return jwt.encode(payload, _signing_key(), algorithm=ALGORITHM)


def decode_session_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode and validate a session token

    Returns:
        Claims if the signature is valid and the token unexpired, None otherwise
    """
    if not token:
        return None
    try:
        return jwt.decode(token, _signing_key(), algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def get_request_token() -> Optional[str]:
    """Extract token from Authorization header, falling back to the cookie"""
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        return auth_header[7:]
    return request.cookies.get(SESSION_COOKIE_NAME)


def get_request_claims() -> Optional[Dict[str, Any]]:
    if 'claims' not in g:
        g.claims = decode_session_token(get_request_token())
    return g.claims


def is_fully_authenticated(claims: Optional[Dict[str, Any]]) -> bool:
    return bool(claims and claims.get(ClaimKeys.COMPLETED_AUTH) is True)


def set_session_cookie(response, token: str):
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        max_age=current_app.config['SESSION_TTL_MINUTES'] * 60,
        httponly=True,
        secure=current_app.config.get('SESSION_COOKIE_SECURE', True),
        samesite='Lax',
    )
    return response


def clear_session_cookie(response):
    response.delete_cookie(SESSION_COOKIE_NAME)
    return response


def _is_protected(path: str) -> bool:
    return any(path == prefix or path.startswith(prefix.rstrip('/') + '/')
               for prefix in current_app.config['PROTECTED_PATH_PREFIXES'])


def edge_gate():
    """before_request hook: protected paths need a completed-auth token"""
    path = request.path
    if not _is_protected(path):
        return None

    claims = get_request_claims()
    if is_fully_authenticated(claims):
        return None

    current_app.logger.info('[gate] denied %s %s ip=%s', request.method, path, request.remote_addr)
    if path.startswith('/api/'):
        return jsonify({'error': ERROR_UNAUTHORIZED}), 401
    return redirect(current_app.config['LOGIN_PATH'])


def completed_auth_required(f):
    """Decorator: require a valid token with completedAuth"""
    @wraps(f)
    def decorated(*args, **kwargs):
        claims = get_request_claims()
        if not is_fully_authenticated(claims):
            return jsonify({'error': ERROR_UNAUTHORIZED}), 401
        return f(*args, **kwargs)
    return decorated


def admin_required(f):
    """Decorator: require completed auth and the ADMIN role"""
    @wraps(f)
    def decorated(*args, **kwargs):
        claims = get_request_claims()
        if not is_fully_authenticated(claims):
            return jsonify({'error': ERROR_UNAUTHORIZED}), 401
        if claims.get(ClaimKeys.ROLE) != ROLE_ADMIN:
            return jsonify({'error': ERROR_FORBIDDEN}), 403
        return f(*args, **kwargs)
    return decorated
