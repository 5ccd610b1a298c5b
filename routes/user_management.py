from flask import Blueprint, jsonify
from flask_login import login_required, current_user
from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash

from models.models import db, User, ROLE_EMPLOYEE
from routes.common import deny_response, error_response, json_body
from services.audit_service import log_action
from services.report_service import user_payload
from services.state_guard import can_create_user, can_delete_user, can_edit_user, can_manage_users

user_mgmt_bp = Blueprint('user_mgmt', __name__, url_prefix='/api')


def _clean(value):
    return value.strip() if isinstance(value, str) else ''


def _taken(column, value, exclude_id=None):
    query = User.query.filter(column == value)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return query.first() is not None


@user_mgmt_bp.route('/users', methods=['GET'])
@login_required
def list_users():
    decision = can_manage_users(current_user)
    if not decision:
        return deny_response(decision)
    users = User.query.order_by(User.created_at.desc(), User.id.desc()).all()
    return jsonify([user_payload(u) for u in users])


@user_mgmt_bp.route('/users', methods=['POST'])
@login_required
def create_user():
    data = json_body()
    username = _clean(data.get('username'))
    name = _clean(data.get('name'))
    email = _clean(data.get('email')) or None
    password = data.get('password') if isinstance(data.get('password'), str) else ''
    role = data.get('role') or ROLE_EMPLOYEE

    decision = can_create_user(current_user, role)
    if not decision:
        return deny_response(decision)
    if not username or not name or not password.strip():
        return error_response('Username, name, and password are required')
    if _taken(User.username, username):
        return error_response('Username already exists')
    if email and _taken(User.email, email):
        return error_response('Email already exists')

    user = User(
        username=username,
        name=name,
        email=email,
        password=generate_password_hash(password),
        role=role,
        receives_high_priority_emails=bool(data.get('receivesHighPriorityEmails', False)),
    )
    db.session.add(user)
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        return error_response('Username or email already exists')
    log_action('Create User', f'User {username} ({role}) created')
    db.session.commit()
    return jsonify(user_payload(user)), 201


@user_mgmt_bp.route('/users/<int:user_id>', methods=['PUT'])
@login_required
def update_user(user_id):
    data = json_body()
    user = db.session.get(User, user_id)
    archive = data.get('isArchived')
    role = data.get('role') or (user.role if user else None)

    decision = can_edit_user(current_user, user, role, archive if isinstance(archive, bool) else None)
    if not decision:
        return deny_response(decision)

    username = _clean(data.get('username'))
    name = _clean(data.get('name'))
    email = _clean(data.get('email')) or None
    if not username or not name:
        return error_response('Username and name are required')
    if _taken(User.username, username, exclude_id=user.id):
        return error_response('Username already exists')
    if email and _taken(User.email, email, exclude_id=user.id):
        return error_response('Email already exists')

    user.username = username
    user.name = name
    user.email = email
    user.role = role
    if isinstance(archive, bool):
        user.is_archived = archive
    if isinstance(data.get('receivesHighPriorityEmails'), bool):
        user.receives_high_priority_emails = data['receivesHighPriorityEmails']
    password = data.get('password')
    if isinstance(password, str) and password.strip():
        user.password = generate_password_hash(password)
    log_action('Update User', f'User {user.username} updated (role={user.role}, archived={user.is_archived})')
    db.session.commit()
    return jsonify(user_payload(user))


@user_mgmt_bp.route('/users/<int:user_id>', methods=['DELETE'])
@login_required
def delete_user(user_id):
    user = db.session.get(User, user_id)
    decision = can_delete_user(current_user, user)
    if not decision:
        return deny_response(decision)
    username = user.username
    # Reports and comments keep author_name; their author_id is nulled
    db.session.delete(user)
    log_action('Delete User', f'User {username} deleted')
    db.session.commit()
    return jsonify({'success': True})
