from flask import request
from flask_login import current_user

from models.audit_log import AuditLog
from models.models import db


def log_action(action, details=None, user=None):
    """Queue an audit entry for ``user`` (default: the current user).

    The entry joins the caller's transaction; nothing is committed here.
    """
    actor = user if user is not None else current_user
    known = getattr(actor, 'is_authenticated', False)
    entry = AuditLog(
        user_id=actor.id if known else None,
        username=actor.username if known else None,
        action=action,
        details=details or f'{request.method} {request.path}',
    )
    db.session.add(entry)
    return entry
