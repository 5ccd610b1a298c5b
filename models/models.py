from datetime import datetime

from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin

db = SQLAlchemy()

ROLE_EMPLOYEE = 'employee'
ROLE_MANAGER = 'manager'
ROLE_ADMIN = 'admin'
ROLES = (ROLE_EMPLOYEE, ROLE_MANAGER, ROLE_ADMIN)
MANAGER_ROLES = (ROLE_MANAGER, ROLE_ADMIN)

PRIORITY_NONE = 'none'
PRIORITY_LOW = 'low'
PRIORITY_MEDIUM = 'medium'
PRIORITY_HIGH = 'high'
PRIORITIES = (PRIORITY_NONE, PRIORITY_LOW, PRIORITY_MEDIUM, PRIORITY_HIGH)

COMMENT_PUBLIC = 'public'
COMMENT_MANAGER_NOTE = 'manager_note'
COMMENT_TYPES = (COMMENT_PUBLIC, COMMENT_MANAGER_NOTE)

ROOM_NOTED = 'noted'
ROOM_STAYOVER = 'stayover'


class User(db.Model, UserMixin):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False)
    name = db.Column(db.String(128), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=True)
    password = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(16), nullable=False, default=ROLE_EMPLOYEE)  # 'employee', 'manager', 'admin'
    is_archived = db.Column(db.Boolean, default=False, nullable=False)
    receives_high_priority_emails = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Authored reports and comments survive the account: author_id is nulled, author_name kept
    reports = db.relationship('ShiftReport', backref='author', lazy=True)
    comments = db.relationship('Comment', backref='author', lazy=True)
    likes = db.relationship('CommentLike', backref='user', lazy=True, cascade='all, delete-orphan')
    acknowledgements = db.relationship('ReportAcknowledgement', backref='user', lazy=True, cascade='all, delete-orphan')
    post_trackers = db.relationship('DailyPostTracker', backref='user', lazy=True, cascade='all, delete-orphan')

    @property
    def is_active(self):
        return not self.is_archived

    def __repr__(self):
        return f"<User {self.username} ({self.role})>"


class ShiftReport(db.Model):
    __tablename__ = 'shift_reports'

    id = db.Column(db.Integer, primary_key=True)
    author_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True)
    author_name = db.Column(db.String(128), nullable=False)
    priority = db.Column(db.String(16), nullable=False, default=PRIORITY_NONE)  # 'none', 'low', 'medium', 'high'
    body_text = db.Column(db.Text, nullable=True)
    arrivals = db.Column(db.Integer, nullable=True)
    departures = db.Column(db.Integer, nullable=True)
    occupancy_percentage = db.Column(db.Float, nullable=True)
    is_hidden = db.Column(db.Boolean, default=False, nullable=False)
    is_resolved = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    rooms = db.relationship('ReportRoom', backref='report', lazy=True, cascade='all, delete-orphan',
                            order_by='ReportRoom.position')
    attachments = db.relationship('Attachment', backref='report', lazy=True, cascade='all, delete-orphan',
                                  order_by='Attachment.id')
    comments = db.relationship('Comment', backref='report', lazy=True, cascade='all, delete-orphan',
                               order_by='[Comment.created_at, Comment.id]')
    acknowledgements = db.relationship('ReportAcknowledgement', backref='report', lazy=True,
                                       cascade='all, delete-orphan',
                                       order_by='[ReportAcknowledgement.acknowledged_at, ReportAcknowledgement.id]')

    @property
    def noted_rooms(self):
        return [r.room_number for r in self.rooms if r.kind == ROOM_NOTED]

    @property
    def stayover_rooms(self):
        return [r.room_number for r in self.rooms if r.kind == ROOM_STAYOVER]

    def set_rooms(self, noted, stayover):
        self.rooms = [ReportRoom(kind=ROOM_NOTED, position=i, room_number=n) for i, n in enumerate(noted)] + \
            [ReportRoom(kind=ROOM_STAYOVER, position=i, room_number=n) for i, n in enumerate(stayover)]

    def __repr__(self):
        return f"<ShiftReport {self.id} by {self.author_name}>"


# Noted and stayover room lists, one row per room in entry order
class ReportRoom(db.Model):
    __tablename__ = 'report_rooms'

    id = db.Column(db.Integer, primary_key=True)
    shift_report_id = db.Column(db.Integer, db.ForeignKey('shift_reports.id', ondelete='CASCADE'), nullable=False, index=True)
    kind = db.Column(db.String(16), nullable=False)  # 'noted', 'stayover'
    position = db.Column(db.Integer, nullable=False, default=0)
    room_number = db.Column(db.Integer, nullable=False)


class Attachment(db.Model):
    __tablename__ = 'attachments'

    id = db.Column(db.Integer, primary_key=True)
    shift_report_id = db.Column(db.Integer, db.ForeignKey('shift_reports.id', ondelete='CASCADE'), nullable=False, index=True)
    filename = db.Column(db.String(255), nullable=False)
    original_name = db.Column(db.String(255), nullable=False)
    mime_type = db.Column(db.String(128), nullable=False)
    size = db.Column(db.Integer, nullable=False)
    upload_path = db.Column(db.String(512), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


class Comment(db.Model):
    __tablename__ = 'comments'

    id = db.Column(db.Integer, primary_key=True)
    shift_report_id = db.Column(db.Integer, db.ForeignKey('shift_reports.id', ondelete='CASCADE'), nullable=False, index=True)
    author_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True)
    author_name = db.Column(db.String(128), nullable=False)
    content = db.Column(db.String(400), nullable=False, default='')
    comment_type = db.Column(db.String(16), nullable=False, default=COMMENT_PUBLIC)  # 'public', 'manager_note'
    is_hidden = db.Column(db.Boolean, default=False, nullable=False)
    file_url = db.Column(db.String(512), nullable=True)
    original_file_name = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    likes = db.relationship('CommentLike', backref='comment', lazy=True, cascade='all, delete-orphan')


# Likes are permanent: there is no unlike
class CommentLike(db.Model):
    __tablename__ = 'comment_likes'
    __table_args__ = (db.UniqueConstraint('comment_id', 'user_id', name='uq_comment_like'),)

    id = db.Column(db.Integer, primary_key=True)
    comment_id = db.Column(db.Integer, db.ForeignKey('comments.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


class ReportAcknowledgement(db.Model):
    __tablename__ = 'report_acknowledgements'
    __table_args__ = (db.UniqueConstraint('shift_report_id', 'user_id', name='uq_report_acknowledgement'),)

    id = db.Column(db.Integer, primary_key=True)
    shift_report_id = db.Column(db.Integer, db.ForeignKey('shift_reports.id', ondelete='CASCADE'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    acknowledged_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


class DailyPostTracker(db.Model):
    __tablename__ = 'daily_post_trackers'
    __table_args__ = (db.UniqueConstraint('user_id', 'date', name='uq_daily_post_tracker'),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    date = db.Column(db.Date, nullable=False)
    post_count = db.Column(db.Integer, nullable=False, default=0)
