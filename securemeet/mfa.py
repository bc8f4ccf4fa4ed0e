
from flask import Blueprint, request, jsonify, current_app

from securemeet.constants import (
    ERROR_CODE_REQUIRED, ERROR_INVALID_QUESTIONS, ERROR_INVALID_REQUEST, ERROR_INVALID_TOTP,
    MSG_MFA_SETUP, MSG_TOTP_VERIFIED,
)
from securemeet.helpers import question_helpers
from securemeet.helpers.totp_helpers import (
    enable_totp, get_mfa_status, provision_totp, verify_user_totp,
)
from securemeet.session_keys import ClaimKeys
from securemeet.session_tokens import completed_auth_required, get_request_claims

mfa_bp = Blueprint('mfa', __name__)


@mfa_bp.route('/api/auth/setup-mfa', methods=['POST'])
@completed_auth_required
def setup_mfa():
    """Provision a TOTP secret and optionally replace security questions.

    TOTP stays disabled until a code is verified at /api/auth/verify-totp.
    """
    claims = get_request_claims()
    user_id = claims[ClaimKeys.ID]
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({'error': ERROR_INVALID_REQUEST}), 400

    questions = data.get('securityQuestions')
    if isinstance(questions, list):
        try:
            question_helpers.replace_all(user_id, questions)
        except ValueError:
            return jsonify({'error': ERROR_INVALID_QUESTIONS}), 400

    secret, uri, qr_data_url = provision_totp(user_id, claims[ClaimKeys.EMAIL])
    return jsonify({
        'success': True,
        'message': MSG_MFA_SETUP,
        'qrCode': qr_data_url,
        'provisioningUri': uri,
        'secret': secret,
    }), 200


@mfa_bp.route('/api/auth/setup-mfa', methods=['GET'])
@completed_auth_required
def mfa_status():
    user_id = get_request_claims()[ClaimKeys.ID]
    status = get_mfa_status(user_id)
    status['securityQuestions'] = question_helpers.list_questions(user_id)
    return jsonify(status), 200


@mfa_bp.route('/api/auth/verify-totp', methods=['POST'])
@completed_auth_required
def verify_totp():
    user_id = get_request_claims()[ClaimKeys.ID]
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({'error': ERROR_INVALID_REQUEST}), 400
    code = str(data.get('code') or '').strip()
    if not code:
        return jsonify({'error': ERROR_CODE_REQUIRED}), 400

    # MFANotConfigured is answered by the app error handler
    if not verify_user_totp(user_id, code):
        return jsonify({'error': ERROR_INVALID_TOTP}), 400

    backup_codes = enable_totp(user_id)
    resp = {'success': True, 'message': MSG_TOTP_VERIFIED}
    if backup_codes:
        current_app.logger.info('Issued %d backup codes for user %s', len(backup_codes), user_id)
        resp['backupCodes'] = backup_codes
    return jsonify(resp), 200
