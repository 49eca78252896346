"""initial schema

Creates users, chats, issues, attachments, status_changes, comments and
broadcasts. Issue status is stored as its display label.

Revision ID: initial_schema
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'initial_schema'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

STATUS_LABELS = ('Новая', 'В обработке', 'Завершено', 'Отклонено')


def _status() -> sa.Enum:
    return sa.Enum(*STATUS_LABELS, name='issue_status', native_enum=False, length=32)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('tg_user_id', sa.BigInteger(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=True),
        sa.Column('first_name', sa.String(length=255), nullable=True),
        sa.Column('last_name', sa.String(length=255), nullable=True),
        sa.Column('is_admin', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_users_tg_user_id', 'users', ['tg_user_id'], unique=True)

    op.create_table(
        'chats',
        sa.Column('chat_id', sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'issues',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('chat_id', sa.BigInteger(), sa.ForeignKey('chats.chat_id'), nullable=False),
        sa.Column('text', sa.Text(), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('status', _status(), nullable=False),
        sa.Column('district', sa.String(length=120), nullable=True),
        sa.Column('category', sa.String(length=120), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('(latitude IS NULL) = (longitude IS NULL)', name='ck_issues_coordinates_pair'),
    )
    op.create_index('ix_issues_user_id', 'issues', ['user_id'])
    op.create_index('ix_issues_status', 'issues', ['status'])
    op.create_index('ix_issues_district', 'issues', ['district'])
    op.create_index('ix_issues_category', 'issues', ['category'])
    op.create_index('ix_issues_created_at', 'issues', ['created_at'])
    op.create_index('ix_issues_user_created', 'issues', ['user_id', 'created_at'])

    op.create_table(
        'attachments',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('issue_id', sa.Integer(), sa.ForeignKey('issues.id'), nullable=False),
        sa.Column('file_id', sa.String(length=255), nullable=False),
        sa.Column('file_type', sa.String(length=100), nullable=False),
        sa.Column('local_path', sa.String(length=500), server_default='', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_attachments_issue_id', 'attachments', ['issue_id'])

    op.create_table(
        'status_changes',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('issue_id', sa.Integer(), sa.ForeignKey('issues.id'), nullable=False),
        sa.Column('old_status', _status(), nullable=True),
        sa.Column('new_status', _status(), nullable=False),
        sa.Column('changed_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_status_changes_issue_id', 'status_changes', ['issue_id'])
    op.create_index('ix_status_changes_created_at', 'status_changes', ['created_at'])

    op.create_table(
        'comments',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('issue_id', sa.Integer(), sa.ForeignKey('issues.id'), nullable=False),
        sa.Column('admin_user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_comments_issue_id', 'comments', ['issue_id'])

    op.create_table(
        'broadcasts',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('sent_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('broadcasts')
    op.drop_table('comments')
    op.drop_table('status_changes')
    op.drop_table('attachments')
    op.drop_table('issues')
    op.drop_table('chats')
    op.drop_table('users')
