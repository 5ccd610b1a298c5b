import logging
import os

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models.models import db, Comment, CommentLike, ShiftReport, COMMENT_PUBLIC
from routes.common import deny_response, error_response, json_body
from services.audit_service import log_action
from services.report_service import comment_payload
from services.state_guard import (
    can_create_comment, can_delete_comment, can_hide_comment, can_like, can_view_comment,
)
from services.storage_service import is_allowed, remove_stored_file, store_upload, upload_size

logger = logging.getLogger(__name__)

comments_bp = Blueprint('comments', __name__, url_prefix='/api')


@comments_bp.route('/comments', methods=['POST'])
@login_required
def create_comment():
    cfg = current_app.config
    report_id = request.form.get('shiftReportId', type=int)
    if not report_id:
        return error_response('Missing report ID')
    content = request.form.get('content') or ''
    comment_type = request.form.get('commentType') or COMMENT_PUBLIC
    upload = request.files.get('file')
    if upload is not None and not upload.filename:
        upload = None

    report = db.session.get(ShiftReport, report_id)
    existing_count = Comment.query.filter_by(shift_report_id=report_id, author_id=current_user.id).count()
    decision = can_create_comment(
        current_user, report, content, upload is not None, comment_type, existing_count,
        max_comments=cfg['COMMENT_LIMIT_PER_REPORT'], max_length=cfg['COMMENT_MAX_LENGTH'],
    )
    if not decision:
        return deny_response(decision)

    if upload is not None:
        if not is_allowed(upload.filename):
            return error_response('File type not allowed. Please upload images, PDFs, Office documents, '
                                  'text files, or ZIP files.')
        if upload_size(upload) > cfg['MAX_COMMENT_FILE_BYTES']:
            return error_response(f"File size must be less than {cfg['MAX_COMMENT_FILE_BYTES'] // (1024 * 1024)}MB")

    stored = None
    try:
        if upload is not None:
            stored = store_upload(upload, subfolder='comments')
        comment = Comment(
            shift_report_id=report_id,
            author_id=current_user.id,
            author_name=current_user.name or 'Unknown User',
            content='' if stored else content.strip(),
            comment_type=comment_type,
            file_url=f'/files/{stored.relative_path}' if stored else None,
            original_file_name=stored.original_name if stored else None,
        )
        db.session.add(comment)
        db.session.flush()
        log_action('Create Comment', f'Comment ID: {comment.id} on report {report_id} ({comment_type})')
        db.session.commit()
    except (SQLAlchemyError, OSError):
        db.session.rollback()
        if stored:
            remove_stored_file(stored.upload_path)
        logger.exception('Failed to create comment on report %s', report_id)
        return error_response('Failed to create comment', 500)
    return jsonify(comment_payload(comment)), 201


@comments_bp.route('/comments/<int:comment_id>', methods=['PATCH'])
@login_required
def hide_comment(comment_id):
    comment = db.session.get(Comment, comment_id)
    decision = can_hide_comment(current_user, comment)
    if not decision:
        return deny_response(decision)
    is_hidden = json_body().get('isHidden')
    if not isinstance(is_hidden, bool):
        return error_response('isHidden must be a boolean')
    comment.is_hidden = is_hidden
    log_action('Hide Comment' if is_hidden else 'Unhide Comment', f'Comment ID: {comment_id}')
    db.session.commit()
    return jsonify(comment_payload(comment))


@comments_bp.route('/comments/<int:comment_id>', methods=['DELETE'])
@login_required
def delete_comment(comment_id):
    comment = db.session.get(Comment, comment_id)
    decision = can_delete_comment(current_user, comment)
    if not decision:
        return deny_response(decision)
    path = None
    if comment.file_url:
        path = comment.file_url.split('/files/', 1)[-1]
    db.session.delete(comment)
    log_action('Delete Comment', f'Comment ID: {comment_id}')
    db.session.commit()
    if path:
        remove_stored_file(_upload_path(path))
    return jsonify({'success': True})


def _upload_path(relative_path):
    return os.path.join(current_app.config['UPLOAD_FOLDER'], *relative_path.split('/'))


@comments_bp.route('/comments/<int:comment_id>/like', methods=['POST'])
@login_required
def like_comment(comment_id):
    comment = db.session.get(Comment, comment_id)
    decision = can_like(current_user, comment)
    if not decision:
        return deny_response(decision)
    # Likes are permanent; a repeat like is acknowledged without a new row
    if CommentLike.query.filter_by(comment_id=comment_id, user_id=current_user.id).first():
        return jsonify({'liked': True, 'alreadyLiked': True})
    db.session.add(CommentLike(comment_id=comment_id, user_id=current_user.id))
    log_action('Like Comment', f'Comment ID: {comment_id}')
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'liked': True, 'alreadyLiked': True})
    return jsonify({'liked': True, 'alreadyLiked': False})


@comments_bp.route('/comments/<int:comment_id>/likes', methods=['GET'])
@login_required
def comment_likes(comment_id):
    comment = db.session.get(Comment, comment_id)
    decision = can_view_comment(current_user, comment)
    if not decision:
        return deny_response(decision)
    likes = CommentLike.query.filter_by(comment_id=comment_id).order_by(CommentLike.created_at, CommentLike.id).all()
    liked_by = [like.user.name or like.user.username for like in likes]
    return jsonify({'likedBy': liked_by})
