import logging
from datetime import datetime

import pytz
from flask import current_app
from sqlalchemy import update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from models.models import db, Comment, DailyPostTracker, ReportAcknowledgement, ShiftReport
from services.visibility import paginate, report_conditions, visible_comments

logger = logging.getLogger(__name__)


def local_today():
    """Calendar date in the hotel's timezone; the daily quota rolls over at local midnight."""
    tz = pytz.timezone(current_app.config['TIMEZONE'])
    return datetime.now(pytz.utc).astimezone(tz).date()


def posts_on(user_id, day):
    tracker = DailyPostTracker.query.filter_by(user_id=user_id, date=day).first()
    return tracker.post_count if tracker else 0


_INSERT_BY_DIALECT = {
    'postgresql': postgresql.insert,
    'sqlite': sqlite.insert,
}


def _ensure_tracker(user_id, day):
    """Insert today's tracker row unless it already exists."""
    values = {'user_id': user_id, 'date': day, 'post_count': 0}
    insert = _INSERT_BY_DIALECT.get(db.session.get_bind().dialect.name)
    if insert is not None:
        db.session.execute(
            insert(DailyPostTracker.__table__).values(**values)
            .on_conflict_do_nothing(index_elements=['user_id', 'date'])
        )
        return
    if DailyPostTracker.query.filter_by(user_id=user_id, date=day).first() is not None:
        return
    try:
        with db.session.begin_nested():
            db.session.add(DailyPostTracker(**values))
    except IntegrityError:
        # Created by a concurrent request after the lookup
        logger.debug('Tracker for user %s on %s already exists', user_id, day)


def record_post(user_id, day, limit):
    """Count one report against the user's quota for ``day``.

    The increment is a single conditional UPDATE, so concurrent requests
    cannot push the count past ``limit``. Returns False when the quota is
    already used up.
    """
    _ensure_tracker(user_id, day)
    result = db.session.execute(
        update(DailyPostTracker)
        .where(DailyPostTracker.user_id == user_id,
               DailyPostTracker.date == day,
               DailyPostTracker.post_count < limit)
        .values(post_count=DailyPostTracker.post_count + 1)
    )
    return result.rowcount == 1


def report_query(user, criteria):
    return ShiftReport.query.filter(*report_conditions(user, criteria)) \
        .options(
            selectinload(ShiftReport.rooms),
            selectinload(ShiftReport.attachments),
            selectinload(ShiftReport.comments).selectinload(Comment.likes),
            selectinload(ShiftReport.acknowledgements).selectinload(ReportAcknowledgement.user),
        ) \
        .order_by(ShiftReport.created_at.desc(), ShiftReport.id.desc())


def list_reports(user, criteria):
    return paginate(report_query(user, criteria), criteria)


def _iso(value):
    return value.isoformat() if value else None


def comment_payload(comment):
    return {
        'id': comment.id,
        'shiftReportId': comment.shift_report_id,
        'authorId': comment.author_id,
        'authorName': comment.author_name,
        'content': comment.content,
        'commentType': comment.comment_type,
        'isHidden': comment.is_hidden,
        'fileUrl': comment.file_url,
        'originalFileName': comment.original_file_name,
        'likes': [like.user_id for like in comment.likes],
        'createdAt': _iso(comment.created_at),
        'updatedAt': _iso(comment.updated_at),
    }


def report_payload(report, viewer):
    """Serialize a report with its nested collections redacted for ``viewer``."""
    return {
        'id': report.id,
        'authorId': report.author_id,
        'authorName': report.author_name,
        'author': {'name': report.author.name, 'username': report.author.username} if report.author else None,
        'priority': report.priority,
        'bodyText': report.body_text,
        'notedRooms': report.noted_rooms,
        'stayoverRooms': report.stayover_rooms,
        'arrivals': report.arrivals,
        'departures': report.departures,
        'occupancyPercentage': report.occupancy_percentage,
        'isHidden': report.is_hidden,
        'isResolved': report.is_resolved,
        'createdAt': _iso(report.created_at),
        'attachments': [
            {
                'filename': a.filename,
                'originalName': a.original_name,
                'mimeType': a.mime_type,
                'size': a.size,
                'url': f'/files/{a.filename}',
            }
            for a in report.attachments
        ],
        'comments': [comment_payload(c) for c in visible_comments(viewer, report.comments)],
        'acknowledgements': [
            {
                'userId': ack.user_id,
                'name': ack.user.name,
                'username': ack.user.username,
                'role': ack.user.role,
                'acknowledgedAt': _iso(ack.acknowledged_at),
            }
            for ack in report.acknowledgements
        ],
    }


def user_payload(user):
    return {
        'id': user.id,
        'username': user.username,
        'name': user.name,
        'email': user.email,
        'role': user.role,
        'isArchived': user.is_archived,
        'receivesHighPriorityEmails': user.receives_high_priority_emails,
        'createdAt': _iso(user.created_at),
    }
