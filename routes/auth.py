import logging

from flask import Blueprint, current_app, jsonify, request
from flask_login import login_user, logout_user, login_required, current_user
from werkzeug.security import check_password_hash

from extensions import limiter
from models.models import db, User
from routes.common import error_response, json_body
from services.audit_service import log_action
from services.report_service import user_payload

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/login', methods=['POST'])
@limiter.limit(lambda: current_app.config['LOGIN_RATE_LIMIT'])
def login():
    data = json_body() or request.form
    username = data.get('username')
    password = data.get('password')
    username = username.strip() if isinstance(username, str) else ''
    password = password if isinstance(password, str) else ''
    if not username or not password:
        return error_response('Username and password are required')
    user = User.query.filter_by(username=username).first()
    # Archived accounts cannot sign in; the message does not say why
    if not user or user.is_archived or not check_password_hash(user.password, password):
        logger.info('Failed login for %s from %s', username, request.remote_addr)
        return error_response('Invalid credentials', 401)
    login_user(user)
    log_action('Login', f'User {user.username} logged in', user=user)
    db.session.commit()
    return jsonify(user_payload(user))


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    log_action('Logout', f'User {current_user.username} logged out')
    db.session.commit()
    logout_user()
    return jsonify({'success': True})


@auth_bp.route('/api/me', methods=['GET'])
@login_required
def me():
    return jsonify(user_payload(current_user))
