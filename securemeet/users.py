
import re

from flask import Blueprint, request, jsonify, current_app

from securemeet.constants import (
    ROLES, ROLE_ADMIN, ROLE_USER,
    ERROR_EMAIL_EXISTS, ERROR_FORBIDDEN, ERROR_INVALID_REQUEST, ERROR_INVALID_ROLE,
    ERROR_MISSING_FIELDS, ERROR_USER_NOT_FOUND, MSG_EMAIL_SERVICE_OK,
)
from securemeet.db_queries import UserQueries
from securemeet.helpers.code_helpers import generate_verification_code
from securemeet.helpers.mail_helpers import send_verification_email
from securemeet.helpers.password_helpers import hash_password
from securemeet.login_flow import normalize_email
from securemeet.sanitize import clean_input
from securemeet.session_keys import ClaimKeys
from securemeet.session_tokens import admin_required, completed_auth_required, get_request_claims

users_bp = Blueprint('users', __name__)

EMAIL_RE = re.compile(r'^\S+@\S+\.\S+$')


def serialize_user(user):
    return {
        'id': user['id'],
        'name': user['name'],
        'email': user['email'],
        'role': user['role'],
        'createdAt': user['created_at'],
        'updatedAt': user['updated_at'],
    }


def create_user(name, email, password, role=ROLE_USER):
    """Provision an account; returns the new user ID"""
    if role not in ROLES:
        raise ValueError(f'Unknown role: {role}')
    return UserQueries.create_user(clean_input(name), normalize_email(email), hash_password(password), role)


def _can_access(claims, user_id):
    return claims.get(ClaimKeys.ROLE) == ROLE_ADMIN or claims.get(ClaimKeys.ID) == user_id


@users_bp.route('/api/users', methods=['GET'])
@admin_required
def list_users():
    return jsonify({'users': [serialize_user(u) for u in UserQueries.get_all()]})


@users_bp.route('/api/users', methods=['POST'])
@admin_required
def add_user():
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({'error': ERROR_INVALID_REQUEST}), 400
    name = data.get('name')
    email = data.get('email')
    password = data.get('password')
    role = data.get('role') or ROLE_USER
    if not all(isinstance(v, str) for v in (name, email, password)):
        return jsonify({'error': ERROR_MISSING_FIELDS}), 400
    name = name.strip()
    email = normalize_email(email)

    if not name or not email or not password or not EMAIL_RE.match(email):
        return jsonify({'error': ERROR_MISSING_FIELDS}), 400
    if role not in ROLES:
        return jsonify({'error': ERROR_INVALID_ROLE}), 400
    if UserQueries.email_exists(email):
        return jsonify({'error': ERROR_EMAIL_EXISTS}), 400

    user_id = create_user(name, email, password, role)
    current_app.logger.info('User %s created by admin %s', user_id, get_request_claims()[ClaimKeys.ID])
    return jsonify({'user': serialize_user(UserQueries.get_by_id(user_id))}), 201


@users_bp.route('/api/users/<int:user_id>', methods=['GET'])
@completed_auth_required
def get_user(user_id):
    if not _can_access(get_request_claims(), user_id):
        return jsonify({'error': ERROR_FORBIDDEN}), 403
    user = UserQueries.get_by_id(user_id)
    if not user:
        return jsonify({'error': ERROR_USER_NOT_FOUND}), 404
    return jsonify({'user': serialize_user(user)})


@users_bp.route('/api/users/<int:user_id>', methods=['PUT'])
@completed_auth_required
def update_user(user_id):
    claims = get_request_claims()
    if not _can_access(claims, user_id):
        return jsonify({'error': ERROR_FORBIDDEN}), 403
    if not UserQueries.get_by_id(user_id):
        return jsonify({'error': ERROR_USER_NOT_FOUND}), 404

    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({'error': ERROR_INVALID_REQUEST}), 400
    for key in ('name', 'email', 'password'):
        if data.get(key) and not isinstance(data[key], str):
            return jsonify({'error': ERROR_INVALID_REQUEST}), 400
    fields = {}
    if data.get('name'):
        fields['name'] = clean_input(data['name'].strip())
    if data.get('email'):
        email = normalize_email(data['email'])
        if UserQueries.email_exists(email, exclude_id=user_id):
            return jsonify({'error': ERROR_EMAIL_EXISTS}), 400
        fields['email'] = email
    if data.get('password'):
        fields['password_hash'] = hash_password(data['password'])
    # Only admins can change roles
    if data.get('role') and claims.get(ClaimKeys.ROLE) == ROLE_ADMIN:
        if data['role'] not in ROLES:
            return jsonify({'error': ERROR_INVALID_ROLE}), 400
        fields['role'] = data['role']

    UserQueries.update_user(user_id, fields)
    return jsonify({'user': serialize_user(UserQueries.get_by_id(user_id))})


@users_bp.route('/api/users/<int:user_id>', methods=['DELETE'])
@admin_required
def delete_user(user_id):
    if not UserQueries.delete(user_id):
        return jsonify({'error': ERROR_USER_NOT_FOUND}), 404
    return jsonify({'success': True})


@users_bp.route('/api/test-email', methods=['POST'])
@admin_required
def test_email():
    """Send a sample step-one message to the admin's own address"""
    to = get_request_claims()[ClaimKeys.EMAIL]
    # NotificationDeliveryFailed propagates to the app error handler
    send_verification_email(to, 1, generate_verification_code())
    return jsonify({'message': MSG_EMAIL_SERVICE_OK}), 200
