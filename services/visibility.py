"""Who sees which reports and comments, and how list filters compose.

Everything here is pure: functions take the requesting user and a
``ReportCriteria`` and return SQLAlchemy expressions (or booleans for
already-loaded rows). Nothing touches the session.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy import and_, false, or_, true

from models.models import (
    Attachment, Comment, ReportRoom, ShiftReport,
    COMMENT_PUBLIC, PRIORITIES, ROLE_EMPLOYEE, ROOM_NOTED, ROOM_STAYOVER,
)

RESOLVED_ALL = 'all'
RESOLVED_ONLY = 'resolved'
UNRESOLVED_ONLY = 'unresolved'
RESOLVED_STATUSES = (RESOLVED_ALL, RESOLVED_ONLY, UNRESOLVED_ONLY)


class InvalidCriteria(ValueError):
    pass


@dataclass(frozen=True)
class ReportCriteria:
    priority: Optional[str] = None
    resolved_status: str = RESOLVED_ALL
    has_attachments: bool = False
    has_comments: bool = False
    has_stayovers: bool = False
    search_text: Optional[str] = None
    author_filter: Optional[int] = None
    noted_room: Optional[int] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    show_archived: bool = False
    hide_unarchived: bool = False
    page: int = 1
    limit: int = 25

    @property
    def offset(self):
        return (self.page - 1) * self.limit

    @classmethod
    def from_args(cls, args, default_limit=25, max_limit=100):
        """Build criteria from string query parameters.

        Flags are true only for the literal string ``"true"``. Malformed
        numbers, dates or enum values raise ``InvalidCriteria``.
        """
        priority = args.get('priority') or None
        if priority == 'all':
            priority = None
        if priority is not None and priority not in PRIORITIES:
            raise InvalidCriteria(f'Invalid priority: {priority}')

        resolved_status = args.get('resolvedStatus') or RESOLVED_ALL
        if resolved_status not in RESOLVED_STATUSES:
            raise InvalidCriteria(f'Invalid resolved status: {resolved_status}')

        author = args.get('employeeFilter') or None
        if author == 'all':
            author = None

        date_from = _parse_date(args.get('dateFrom'), 'dateFrom')
        date_to = _parse_date(args.get('dateTo'), 'dateTo')

        page = _parse_int(args.get('page'), 'page', default=1)
        limit = _parse_int(args.get('limit'), 'limit', default=default_limit)
        if page < 1 or limit < 1:
            raise InvalidCriteria('page and limit must be positive integers')
        if limit > max_limit:
            raise InvalidCriteria(f'limit must not exceed {max_limit}')

        search_text = (args.get('searchText') or '').strip() or None

        return cls(
            priority=priority,
            resolved_status=resolved_status,
            has_attachments=_flag(args, 'hasAttachments'),
            has_comments=_flag(args, 'hasComments'),
            has_stayovers=_flag(args, 'hasStayovers'),
            search_text=search_text,
            author_filter=_parse_int(author, 'employeeFilter'),
            noted_room=_parse_int(args.get('notedRoom') or None, 'notedRoom'),
            date_from=date_from,
            date_to=date_to,
            show_archived=_flag(args, 'showArchived'),
            hide_unarchived=_flag(args, 'hideUnarchived'),
            page=page,
            limit=limit,
        )


def _flag(args, name):
    return args.get(name) == 'true'


def _parse_int(value, name, default=None):
    if value is None or value == '':
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidCriteria(f'{name} must be an integer')


def _parse_date(value, name):
    if not value:
        return None
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except ValueError:
        raise InvalidCriteria(f'{name} must be a date in YYYY-MM-DD format')


def is_employee(user):
    return user.role == ROLE_EMPLOYEE


def comment_condition(user):
    """Row predicate over ``Comment`` for the given requester."""
    if is_employee(user):
        return and_(Comment.comment_type == COMMENT_PUBLIC, Comment.is_hidden.is_(False))
    # Managers and admins see hidden comments too; the flag is returned to the client
    return true()


def comment_visible(user, comment):
    if is_employee(user):
        return comment.comment_type == COMMENT_PUBLIC and not comment.is_hidden
    return True


def visible_comments(user, comments):
    return [c for c in comments if comment_visible(user, c)]


def report_visible(user, report):
    if is_employee(user):
        return not report.is_hidden
    return True


def archive_condition(user, criteria):
    if is_employee(user):
        # Employees never see archived reports, whatever flags they send
        return ShiftReport.is_hidden.is_(False)
    if criteria.show_archived and criteria.hide_unarchived:
        return ShiftReport.is_hidden.is_(True)
    if criteria.show_archived:
        return None
    if criteria.hide_unarchived:
        # "Hide unarchived" without "show archived" leaves nothing to show
        return false()
    return ShiftReport.is_hidden.is_(False)


def report_conditions(user, criteria):
    """Return the list of AND-ed predicates over ``ShiftReport``."""
    conditions = []

    archived = archive_condition(user, criteria)
    if archived is not None:
        conditions.append(archived)

    if criteria.priority:
        conditions.append(ShiftReport.priority == criteria.priority)

    if criteria.resolved_status == RESOLVED_ONLY:
        conditions.append(ShiftReport.is_resolved.is_(True))
    elif criteria.resolved_status == UNRESOLVED_ONLY:
        conditions.append(ShiftReport.is_resolved.is_(False))

    if criteria.author_filter is not None:
        conditions.append(ShiftReport.author_id == criteria.author_filter)

    if criteria.noted_room is not None:
        conditions.append(ShiftReport.rooms.any(and_(
            ReportRoom.kind == ROOM_NOTED,
            ReportRoom.room_number == criteria.noted_room,
        )))

    if criteria.date_from:
        conditions.append(ShiftReport.created_at >= datetime.combine(criteria.date_from, time.min))
    if criteria.date_to:
        # Upper bound is exclusive, one day past dateTo, so the whole end date is included
        conditions.append(ShiftReport.created_at < datetime.combine(criteria.date_to + timedelta(days=1), time.min))

    if criteria.search_text:
        conditions.append(or_(
            ShiftReport.body_text.icontains(criteria.search_text, autoescape=True),
            ShiftReport.attachments.any(Attachment.original_name.icontains(criteria.search_text, autoescape=True)),
        ))

    if criteria.has_attachments:
        conditions.append(ShiftReport.attachments.any())

    if criteria.has_comments:
        conditions.append(ShiftReport.comments.any(comment_condition(user)))

    if criteria.has_stayovers:
        conditions.append(ShiftReport.rooms.any(ReportRoom.kind == ROOM_STAYOVER))

    return conditions


def paginate(query, criteria):
    """Fetch one page plus one extra row to tell whether more pages exist."""
    rows = query.offset(criteria.offset).limit(criteria.limit + 1).all()
    has_more = len(rows) > criteria.limit
    return rows[:criteria.limit], has_more
