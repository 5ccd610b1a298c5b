import logging

from flask import current_app
from flask_mail import Message
from markupsafe import escape

from extensions import mail
from models.models import User

logger = logging.getLogger(__name__)


def high_priority_recipients():
    users = User.query.filter(
        User.receives_high_priority_emails.is_(True),
        User.is_archived.is_(False),
        User.email.isnot(None),
    ).all()
    return [u.email for u in users if u.email and u.email.strip()]


def send_high_priority_alert(report):
    """Email subscribed staff about a high priority report.

    Best effort: any failure is logged and reported as False so report
    creation is never rolled back because of mail.
    """
    try:
        if not current_app.config.get('MAIL_USERNAME') and not current_app.config.get('MAIL_SUPPRESS_SEND'):
            logger.warning('Email is not configured; high priority alert for report %s not sent', report.id)
            return False
        recipients = high_priority_recipients()
        if not recipients:
            logger.warning('No users are configured to receive high priority emails')
            return False

        report_url = f"{current_app.config['APP_URL'].rstrip('/')}/dashboard?reportId={report.id}"
        created = report.created_at.strftime('%Y-%m-%d %H:%M')
        subject = f"High Priority Shift Report - {report.author_name}"
        details = ''
        if report.body_text:
            details = f"""
            <p><strong>Report Details:</strong></p>
            <p style="background-color:white; padding:15px; border-left:4px solid #dc2626;">{escape(report.body_text)}</p>
            """
        html = f"""
        <h2 style="background-color:#dc2626; color:white; padding:20px;">High Priority Shift Report</h2>
        <p><strong>Reported by:</strong> {escape(report.author_name)}</p>
        <p><strong>Date &amp; Time:</strong> {created}</p>
        {details}
        <p><a href="{escape(report_url)}">View Report Details</a></p>
        <p style="color:#6b7280;">This is an automated notification from the Hotel Shift Log. Please do not reply.</p>
        """
        msg = Message(subject, recipients=recipients)
        msg.body = (
            f"High priority report from {report.author_name} at {created}.\n\n"
            f"{report.body_text or ''}\n\n{report_url}"
        )
        msg.html = html
        logger.debug('Sending high priority alert for report %s to %s', report.id, recipients)
        mail.send(msg)
        logger.info('High priority alert for report %s sent to %d recipient(s)', report.id, len(recipients))
        return True
    except Exception:
        logger.exception('Failed to send high priority alert for report %s', report.id)
        return False
