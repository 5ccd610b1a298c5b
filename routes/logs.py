from datetime import datetime

from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required, current_user

from models.audit_log import AuditLog
from routes.common import deny_response, error_response
from services.state_guard import can_view_audit_logs

logs_bp = Blueprint('logs', __name__, url_prefix='/api')

DATE_FORMATS = ('%Y-%m-%dT%H:%M', '%Y-%m-%d')


def _parse_when(value, name):
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    raise ValueError(f'{name} must look like YYYY-MM-DD or YYYY-MM-DDTHH:MM')


@logs_bp.route('/audit-logs', methods=['GET'])
@login_required
def audit_logs():
    decision = can_view_audit_logs(current_user)
    if not decision:
        return deny_response(decision)
    page = request.args.get('page', 1, type=int)
    if page < 1:
        return error_response('page must be at least 1')
    per_page = current_app.config['DEFAULT_PAGE_SIZE']
    query = AuditLog.query
    try:
        if request.args.get('fromDate'):
            query = query.filter(AuditLog.timestamp >= _parse_when(request.args['fromDate'], 'fromDate'))
        if request.args.get('toDate'):
            query = query.filter(AuditLog.timestamp <= _parse_when(request.args['toDate'], 'toDate'))
    except ValueError as e:
        return error_response(str(e))
    action = (request.args.get('action') or '').strip()
    if action:
        query = query.filter(AuditLog.action == action)
    rows = (query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
            .offset((page - 1) * per_page).limit(per_page + 1).all())
    return jsonify({
        'logs': [log.to_dict() for log in rows[:per_page]],
        'hasMore': len(rows) > per_page,
        'page': page,
    })
