"""
Create shift log schema: users, shift reports with rooms, attachments,
comments, likes, acknowledgements, daily post trackers and audit logs

Revision ID: 0001
Revises:
"""
from alembic import op
import sqlalchemy as sa

revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False, unique=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=120), nullable=True, unique=True),
        sa.Column('password', sa.String(length=256), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='employee'),
        sa.Column('is_archived', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('receives_high_priority_emails', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'shift_reports',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('author_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('author_name', sa.String(length=128), nullable=False),
        sa.Column('priority', sa.String(length=16), nullable=False, server_default='none'),
        sa.Column('body_text', sa.Text(), nullable=True),
        sa.Column('arrivals', sa.Integer(), nullable=True),
        sa.Column('departures', sa.Integer(), nullable=True),
        sa.Column('occupancy_percentage', sa.Float(), nullable=True),
        sa.Column('is_hidden', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_resolved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_shift_reports_author_id', 'shift_reports', ['author_id'])
    op.create_index('ix_shift_reports_created_at', 'shift_reports', ['created_at'])

    op.create_table(
        'report_rooms',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('shift_report_id', sa.Integer(), sa.ForeignKey('shift_reports.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('room_number', sa.Integer(), nullable=False),
    )
    op.create_index('ix_report_rooms_shift_report_id', 'report_rooms', ['shift_report_id'])

    op.create_table(
        'attachments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('shift_report_id', sa.Integer(), sa.ForeignKey('shift_reports.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('filename', sa.String(length=255), nullable=False),
        sa.Column('original_name', sa.String(length=255), nullable=False),
        sa.Column('mime_type', sa.String(length=128), nullable=False),
        sa.Column('size', sa.Integer(), nullable=False),
        sa.Column('upload_path', sa.String(length=512), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_attachments_shift_report_id', 'attachments', ['shift_report_id'])

    op.create_table(
        'comments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('shift_report_id', sa.Integer(), sa.ForeignKey('shift_reports.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('author_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('author_name', sa.String(length=128), nullable=False),
        sa.Column('content', sa.String(length=400), nullable=False, server_default=''),
        sa.Column('comment_type', sa.String(length=16), nullable=False, server_default='public'),
        sa.Column('is_hidden', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('file_url', sa.String(length=512), nullable=True),
        sa.Column('original_file_name', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_comments_shift_report_id', 'comments', ['shift_report_id'])
    op.create_index('ix_comments_author_id', 'comments', ['author_id'])

    op.create_table(
        'comment_likes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('comment_id', sa.Integer(), sa.ForeignKey('comments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('comment_id', 'user_id', name='uq_comment_like'),
    )

    op.create_table(
        'report_acknowledgements',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('shift_report_id', sa.Integer(), sa.ForeignKey('shift_reports.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('acknowledged_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('shift_report_id', 'user_id', name='uq_report_acknowledgement'),
    )

    op.create_table(
        'daily_post_trackers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('post_count', sa.Integer(), nullable=False, server_default='0'),
        sa.UniqueConstraint('user_id', 'date', name='uq_daily_post_tracker'),
    )

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('username', sa.String(length=64), nullable=True),
        sa.Column('action', sa.String(length=128), nullable=False),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_audit_logs_timestamp', 'audit_logs', ['timestamp'])


def downgrade():
    op.drop_table('audit_logs')
    op.drop_table('daily_post_trackers')
    op.drop_table('report_acknowledgements')
    op.drop_table('comment_likes')
    op.drop_table('comments')
    op.drop_table('attachments')
    op.drop_table('report_rooms')
    op.drop_table('shift_reports')
    op.drop_table('users')
