
from flask import Blueprint, request, jsonify, current_app

from securemeet.constants import (
    ERROR_INVALID_CREDENTIALS, ERROR_UNAUTHORIZED,
    MSG_CODE_SENT, MSG_LOGIN_SUCCESS, MSG_LOGOUT_SUCCESS,
)
from securemeet.errors import InvalidCredentials
from securemeet.login_flow import normalize_email
from securemeet.session_keys import ClaimKeys
from securemeet.session_tokens import (
    clear_session_cookie, get_request_claims, issue_session_token, set_session_cookie,
)

auth_bp = Blueprint('auth', __name__)


def get_login_policy():
    return current_app.extensions['securemeet_login_policy']


def claims_response(claims, message, status=200):
    token = issue_session_token(claims)
    resp = jsonify({
        'message': message,
        'authStep': claims[ClaimKeys.AUTH_STEP],
        'completedAuth': claims[ClaimKeys.COMPLETED_AUTH],
        'user': {
            'id': claims[ClaimKeys.ID],
            'email': claims[ClaimKeys.EMAIL],
            'name': claims[ClaimKeys.NAME],
            'role': claims.get(ClaimKeys.ROLE),
        },
        'token': token,
    })
    resp.status_code = status
    return set_session_cookie(resp, token)


@auth_bp.route('/api/auth/login', methods=['POST'])
def login():
    """Run the next login step.

    A password starts a new login. Otherwise the step comes from the
    session token issued by the previous step; any authStep sent by the
    client is ignored.
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        raise InvalidCredentials('Invalid credentials')
    password = data.get('password')
    code = data.get('code') or data.get('verificationCode')
    policy = get_login_policy()

    if password:
        step = 1
        email = data.get('email')
    else:
        claims = get_request_claims()
        step = policy.next_step(claims)
        if step == 1:
            # code submitted without a login in progress
            raise InvalidCredentials('Invalid credentials')
        email = claims.get(ClaimKeys.EMAIL)
        if data.get('email') and normalize_email(data.get('email')) != email:
            raise InvalidCredentials('Invalid credentials')

    claims = policy.advance(step, email, password=password, code=code)
    message = MSG_LOGIN_SUCCESS if claims[ClaimKeys.COMPLETED_AUTH] else MSG_CODE_SENT
    return claims_response(claims, message)


@auth_bp.route('/api/auth/resend-code', methods=['POST'])
def resend_code():
    claims = get_request_claims()
    if not claims:
        return jsonify({'error': ERROR_INVALID_CREDENTIALS}), 401
    get_login_policy().resend(claims)
    return jsonify({'message': MSG_CODE_SENT, 'authStep': claims[ClaimKeys.AUTH_STEP]}), 200


@auth_bp.route('/api/auth/session', methods=['GET'])
def current_session():
    claims = get_request_claims()
    if not claims:
        return jsonify({'error': ERROR_UNAUTHORIZED}), 401
    return jsonify({k: v for k, v in claims.items() if k not in (ClaimKeys.ISSUED_AT, ClaimKeys.EXPIRES)}), 200


@auth_bp.route('/api/auth/logout', methods=['POST'])
def logout():
    return clear_session_cookie(jsonify({'message': MSG_LOGOUT_SUCCESS})), 200
