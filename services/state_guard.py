"""Permission and state-transition checks for reports, comments and users.

Each ``can_*`` function inspects the acting user and the current state of
the target and returns a ``Decision``. Guards never write; the caller
performs the change and relies on database unique constraints for races.
"""
from models.models import (
    COMMENT_PUBLIC, COMMENT_TYPES, MANAGER_ROLES, PRIORITIES, PRIORITY_NONE,
    ROLE_ADMIN, ROLE_EMPLOYEE, ROLE_MANAGER, ROLES,
)

UNAUTHENTICATED = 'unauthenticated'
FORBIDDEN = 'forbidden'
INVALID = 'invalid'
NOT_FOUND = 'not_found'
CONFLICT = 'conflict'

STATUS_CODES = {
    UNAUTHENTICATED: 401,
    FORBIDDEN: 403,
    INVALID: 400,
    NOT_FOUND: 404,
    CONFLICT: 409,
}


class Decision:
    __slots__ = ('allowed', 'kind', 'reason')

    def __init__(self, allowed, kind=None, reason=None):
        self.allowed = allowed
        self.kind = kind
        self.reason = reason

    def __bool__(self):
        return self.allowed

    @property
    def status_code(self):
        return STATUS_CODES.get(self.kind, 200)

    def __repr__(self):
        if self.allowed:
            return '<Decision allow>'
        return f'<Decision deny {self.kind}: {self.reason}>'


ALLOW = Decision(True)


def deny(kind, reason):
    return Decision(False, kind, reason)


def not_found(what):
    return deny(NOT_FOUND, f'{what} not found')


def _authenticated(actor):
    return actor is not None and getattr(actor, 'is_authenticated', False)


def _is_manager(actor):
    return actor.role in MANAGER_ROLES


def require_authenticated(actor):
    if not _authenticated(actor):
        return deny(UNAUTHENTICATED, 'Unauthorized')
    return ALLOW


def _require_manager(actor, reason='Forbidden'):
    checked = require_authenticated(actor)
    if not checked:
        return checked
    if not _is_manager(actor):
        return deny(FORBIDDEN, reason)
    return ALLOW


def _require_admin(actor, reason='Forbidden'):
    checked = require_authenticated(actor)
    if not checked:
        return checked
    if actor.role != ROLE_ADMIN:
        return deny(FORBIDDEN, reason)
    return ALLOW


# --- Reports ---

class ReportDraft:
    """Fields of a report about to be created, already parsed."""

    def __init__(self, priority=PRIORITY_NONE, body_text=None, noted_rooms=(), stayover_rooms=(),
                 arrivals=None, departures=None, occupancy_percentage=None, files=()):
        self.priority = priority
        self.body_text = body_text
        self.noted_rooms = list(noted_rooms)
        self.stayover_rooms = list(stayover_rooms)
        self.arrivals = arrivals
        self.departures = departures
        self.occupancy_percentage = occupancy_percentage
        self.files = list(files)

    def has_content(self):
        return any((
            self.priority != PRIORITY_NONE,
            bool(self.body_text and self.body_text.strip()),
            bool(self.noted_rooms),
            bool(self.stayover_rooms),
            self.arrivals is not None,
            self.departures is not None,
            self.occupancy_percentage is not None,
            bool(self.files),
        ))


def can_create_report(actor, draft, posts_today, daily_limit=25):
    checked = require_authenticated(actor)
    if not checked:
        return checked
    if posts_today >= daily_limit:
        return deny(INVALID, f'Daily limit of {daily_limit} reports reached')
    if draft.priority not in PRIORITIES:
        return deny(INVALID, 'Invalid priority')
    if not draft.has_content():
        return deny(INVALID, 'Report must include at least one field')
    return ALLOW


def can_view_report(actor, report):
    checked = require_authenticated(actor)
    if not checked:
        return checked
    # Archived reports do not exist as far as employees are concerned
    if report is None or (actor.role == ROLE_EMPLOYEE and report.is_hidden):
        return not_found('Report')
    return ALLOW


def can_acknowledge(actor, report, already_acknowledged):
    checked = can_view_report(actor, report)
    if not checked:
        return checked
    if actor.role != ROLE_EMPLOYEE:
        return deny(FORBIDDEN, 'Only employees acknowledge reports')
    if already_acknowledged:
        return deny(CONFLICT, 'Report already acknowledged')
    return ALLOW


def can_resolve(actor, report):
    checked = _require_manager(actor)
    if not checked:
        return checked
    if report is None:
        return not_found('Report')
    if report.is_resolved:
        return deny(CONFLICT, 'Report already resolved')
    return ALLOW


def can_archive_report(actor, report):
    checked = _require_manager(actor)
    if not checked:
        return checked
    if report is None:
        return not_found('Report')
    return ALLOW


def can_delete_report(actor, report):
    checked = _require_admin(actor, 'Only admins can delete reports')
    if not checked:
        return checked
    if report is None:
        return not_found('Report')
    return ALLOW


def can_export_reports(actor):
    return _require_manager(actor)


# --- Comments ---

def can_view_comment(actor, comment):
    checked = require_authenticated(actor)
    if not checked:
        return checked
    if comment is None:
        return not_found('Comment')
    if actor.role == ROLE_EMPLOYEE and (comment.comment_type != COMMENT_PUBLIC or comment.is_hidden
                                        or comment.report.is_hidden):
        return not_found('Comment')
    return ALLOW


def can_create_comment(actor, report, content, has_file, comment_type, existing_count,
                       max_comments=30, max_length=400):
    checked = _require_manager(actor)
    if not checked:
        return checked
    if report is None:
        return not_found('Report')
    if comment_type not in COMMENT_TYPES:
        return deny(INVALID, 'Invalid comment type')
    has_text = bool(content and content.strip())
    if not has_text and not has_file:
        return deny(INVALID, 'Either text or file is required')
    if has_text and has_file:
        return deny(INVALID, 'A comment can hold text or a file, not both')
    if has_text and len(content.strip()) > max_length:
        return deny(INVALID, f'Comment must not exceed {max_length} characters')
    if existing_count >= max_comments:
        return deny(INVALID, f'You have reached the maximum number of comments ({max_comments}) for this report')
    return ALLOW


def can_like(actor, comment):
    """Liking twice is allowed and reported as already liked by the caller."""
    checked = can_view_comment(actor, comment)
    if not checked:
        return checked
    if comment.author_id == actor.id:
        return deny(FORBIDDEN, 'Cannot like your own comment')
    return ALLOW


def can_hide_comment(actor, comment):
    checked = _require_manager(actor)
    if not checked:
        return checked
    if comment is None:
        return not_found('Comment')
    if comment.comment_type != COMMENT_PUBLIC:
        return deny(INVALID, 'Only public comments can be hidden')
    if comment.author_id != actor.id:
        return deny(FORBIDDEN, 'You can only hide your own comments')
    return ALLOW


def can_delete_comment(actor, comment):
    checked = _require_admin(actor, 'Only admins can delete comments')
    if not checked:
        return checked
    if comment is None:
        return not_found('Comment')
    return ALLOW


# --- Users ---

def can_manage_users(actor):
    return _require_manager(actor)


def can_create_user(actor, role):
    checked = _require_manager(actor)
    if not checked:
        return checked
    if role not in ROLES:
        return deny(INVALID, 'Invalid role')
    if actor.role == ROLE_MANAGER and role == ROLE_ADMIN:
        return deny(FORBIDDEN, 'Managers cannot create admin accounts')
    return ALLOW


def can_edit_user(actor, target, new_role, archive=None):
    checked = _require_manager(actor)
    if not checked:
        return checked
    if target is None:
        return not_found('User')
    if new_role not in ROLES:
        return deny(INVALID, 'Invalid role')
    if actor.role == ROLE_MANAGER and target.role == ROLE_ADMIN:
        return deny(FORBIDDEN, 'Managers cannot edit admin accounts')
    if actor.role == ROLE_MANAGER and new_role == ROLE_ADMIN:
        return deny(FORBIDDEN, 'Managers cannot promote users to admin')
    if target.id == actor.id and new_role != target.role:
        return deny(INVALID, 'You cannot change your own role')
    if target.id == actor.id and archive is True:
        return deny(INVALID, 'You cannot archive your own account')
    return ALLOW


def can_delete_user(actor, target):
    checked = _require_admin(actor, 'Only admins can delete users')
    if not checked:
        return checked
    if target is None:
        return not_found('User')
    if not target.is_archived:
        return deny(INVALID, 'Only archived users can be deleted. Please archive the user first.')
    if target.id == actor.id:
        return deny(INVALID, 'You cannot delete your own account')
    return ALLOW


def can_view_audit_logs(actor):
    return _require_admin(actor, 'Only admins can view audit logs')
