import logging

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.models import db, Attachment, ReportAcknowledgement, ShiftReport, PRIORITY_HIGH, PRIORITY_NONE
from routes.common import (
    deny_response, error_response, json_body, parse_optional_float, parse_optional_int, parse_room_list,
)
from services.audit_service import log_action
from services.email_service import send_high_priority_alert
from services.export_service import export_report_pdf, export_reports_csv
from services.report_service import (
    list_reports, local_today, posts_on, record_post, report_payload, report_query,
)
from services.state_guard import (
    ReportDraft, can_acknowledge, can_archive_report, can_create_report, can_delete_report,
    can_export_reports, can_resolve, can_view_report,
)
from services.storage_service import is_allowed, remove_stored_file, store_upload, upload_size
from services.visibility import InvalidCriteria, ReportCriteria

logger = logging.getLogger(__name__)

reports_bp = Blueprint('reports', __name__, url_prefix='/api')


def _criteria():
    return ReportCriteria.from_args(
        request.args,
        default_limit=current_app.config['DEFAULT_PAGE_SIZE'],
        max_limit=current_app.config['MAX_PAGE_SIZE'],
    )


@reports_bp.route('/reports', methods=['GET'])
@login_required
def reports():
    try:
        criteria = _criteria()
    except InvalidCriteria as e:
        return error_response(str(e))
    rows, has_more = list_reports(current_user, criteria)
    return jsonify({
        'reports': [report_payload(r, current_user) for r in rows],
        'hasMore': has_more,
        'page': criteria.page,
        'limit': criteria.limit,
    })


@reports_bp.route('/reports/export', methods=['GET'])
@login_required
def export_reports():
    decision = can_export_reports(current_user)
    if not decision:
        return deny_response(decision)
    try:
        criteria = _criteria()
    except InvalidCriteria as e:
        return error_response(str(e))
    rows = report_query(current_user, criteria).all()
    log_action('Export Reports CSV', f'{len(rows)} report(s), args: {request.args.to_dict()}')
    db.session.commit()
    return export_reports_csv(rows)


def _draft_from_request():
    cfg = current_app.config
    form = request.form
    files = [f for f in request.files.getlist('files') if f and f.filename]
    return ReportDraft(
        priority=(form.get('priority') or PRIORITY_NONE).strip().lower(),
        body_text=(form.get('bodyText') or '').strip() or None,
        noted_rooms=parse_room_list(form.get('notedRooms'), 'notedRooms', cfg['MAX_ROOMS_PER_LIST']),
        stayover_rooms=parse_room_list(form.get('stayoverRooms'), 'stayoverRooms', cfg['MAX_ROOMS_PER_LIST']),
        arrivals=parse_optional_int(form.get('arrivals'), 'arrivals', minimum=0),
        departures=parse_optional_int(form.get('departures'), 'departures', minimum=0),
        occupancy_percentage=parse_optional_float(form.get('occupancyPercentage'), 'occupancyPercentage',
                                                  minimum=0, maximum=100),
        files=files,
    )


def _check_files(files):
    cfg = current_app.config
    if len(files) > cfg['MAX_REPORT_FILES']:
        return f"A report can have at most {cfg['MAX_REPORT_FILES']} files"
    for f in files:
        if not is_allowed(f.filename):
            return f'File type not allowed: {f.filename}'
    if sum(upload_size(f) for f in files) > cfg['MAX_REPORT_UPLOAD_BYTES']:
        return f"Total file size exceeds {cfg['MAX_REPORT_UPLOAD_BYTES'] // (1024 * 1024)}MB limit"
    return None


@reports_bp.route('/reports', methods=['POST'])
@login_required
def create_report():
    try:
        draft = _draft_from_request()
    except ValueError as e:
        return error_response(str(e))

    today = local_today()
    daily_limit = current_app.config['DAILY_REPORT_LIMIT']
    decision = can_create_report(current_user, draft, posts_on(current_user.id, today), daily_limit)
    if not decision:
        return deny_response(decision)
    problem = _check_files(draft.files)
    if problem:
        return error_response(problem)

    stored = []
    quota_left = True
    try:
        for f in draft.files:
            stored.append(store_upload(f))
        report = ShiftReport(
            author_id=current_user.id,
            author_name=current_user.name or 'Unknown User',
            priority=draft.priority,
            body_text=draft.body_text,
            arrivals=draft.arrivals,
            departures=draft.departures,
            occupancy_percentage=draft.occupancy_percentage,
        )
        report.set_rooms(draft.noted_rooms, draft.stayover_rooms)
        report.attachments = [
            Attachment(filename=s.filename, original_name=s.original_name, mime_type=s.mime_type,
                       size=s.size, upload_path=s.upload_path)
            for s in stored
        ]
        db.session.add(report)
        quota_left = record_post(current_user.id, today, daily_limit)
        if quota_left:
            db.session.flush()
            log_action('Create Report', f'Report ID: {report.id}, priority: {report.priority}')
            db.session.commit()
    except (SQLAlchemyError, OSError):
        db.session.rollback()
        for s in stored:
            remove_stored_file(s.upload_path)
        logger.exception('Failed to create report for user %s', current_user.id)
        return error_response('Failed to create report', 500)

    if not quota_left:
        # Another request used up the quota after the check above
        db.session.rollback()
        for s in stored:
            remove_stored_file(s.upload_path)
        return error_response(f'Daily limit of {daily_limit} reports reached')

    if report.priority == PRIORITY_HIGH:
        send_high_priority_alert(report)
    return jsonify({'message': 'Report created successfully', 'reportId': report.id}), 201


@reports_bp.route('/reports/<int:report_id>', methods=['GET'])
@login_required
def get_report(report_id):
    report = db.session.get(ShiftReport, report_id)
    decision = can_view_report(current_user, report)
    if not decision:
        return deny_response(decision)
    return jsonify(report_payload(report, current_user))


@reports_bp.route('/reports/<int:report_id>', methods=['PATCH'])
@login_required
def archive_report(report_id):
    report = db.session.get(ShiftReport, report_id)
    decision = can_archive_report(current_user, report)
    if not decision:
        return deny_response(decision)
    is_hidden = json_body().get('isHidden')
    if not isinstance(is_hidden, bool):
        return error_response('isHidden must be a boolean')
    report.is_hidden = is_hidden
    log_action('Archive Report' if is_hidden else 'Unarchive Report', f'Report ID: {report.id}')
    db.session.commit()
    return jsonify({'message': 'Report updated successfully', 'isHidden': report.is_hidden})


@reports_bp.route('/reports/<int:report_id>', methods=['DELETE'])
@login_required
def delete_report(report_id):
    report = db.session.get(ShiftReport, report_id)
    decision = can_delete_report(current_user, report)
    if not decision:
        return deny_response(decision)
    paths = [a.upload_path for a in report.attachments]
    db.session.delete(report)
    log_action('Delete Report', f'Report ID: {report_id}')
    db.session.commit()
    for path in paths:
        remove_stored_file(path)
    return jsonify({'message': 'Report deleted successfully'})


@reports_bp.route('/reports/<int:report_id>/acknowledge', methods=['POST'])
@login_required
def acknowledge_report(report_id):
    report = db.session.get(ShiftReport, report_id)
    existing = None
    if report is not None:
        existing = ReportAcknowledgement.query.filter_by(shift_report_id=report_id, user_id=current_user.id).first()
    decision = can_acknowledge(current_user, report, existing is not None)
    if not decision:
        return deny_response(decision)
    db.session.add(ReportAcknowledgement(shift_report_id=report_id, user_id=current_user.id))
    log_action('Acknowledge Report', f'Report ID: {report_id}')
    try:
        db.session.commit()
    except IntegrityError:
        # A concurrent request got there first
        db.session.rollback()
        return error_response('Report already acknowledged', 409)
    db.session.refresh(report)
    return jsonify(report_payload(report, current_user))


@reports_bp.route('/reports/<int:report_id>/resolve', methods=['POST'])
@login_required
def resolve_report(report_id):
    report = db.session.get(ShiftReport, report_id)
    decision = can_resolve(current_user, report)
    if not decision:
        return deny_response(decision)
    report.is_resolved = True
    log_action('Resolve Report', f'Report ID: {report_id}')
    db.session.commit()
    return jsonify(report_payload(report, current_user))


@reports_bp.route('/reports/<int:report_id>/pdf', methods=['GET'])
@login_required
def report_pdf(report_id):
    decision = can_export_reports(current_user)
    if not decision:
        return deny_response(decision)
    report = db.session.get(ShiftReport, report_id)
    if report is None:
        return error_response('Report not found', 404)
    log_action('Export Report PDF', f'Report ID: {report_id}')
    db.session.commit()
    return export_report_pdf(report)


@reports_bp.route('/daily-post-count', methods=['GET'])
@login_required
def daily_post_count():
    return jsonify({
        'count': posts_on(current_user.id, local_today()),
        'limit': current_app.config['DAILY_REPORT_LIMIT'],
    })
