"""initial schema

Creates users, projects and memberships, requests with votes, comments,
watchers, activity and attachments, the roadmap board, feature flags,
push subscriptions and the per-project form builder tables.

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

user_role = sa.Enum('super_admin', 'admin', 'employee', name='userrole')
project_role = sa.Enum('member', 'admin', name='projectrole')
request_status = sa.Enum(
    'pending', 'backlog', 'in_progress', 'completed', 'rejected', 'duplicate', 'archived', name='requeststatus'
)
vote_type = sa.Enum('upvote', 'like', name='votetype')
roadmap_column = sa.Enum('backlog', 'in_progress', 'released', name='roadmapcolumn')
field_type = sa.Enum(
    'text', 'textarea', 'select', 'multi_select', 'number', 'date', 'checkbox', 'rating', 'url', 'user_picker',
    name='fieldtype',
)


def _created_at(index: bool = False):
    return sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, index=index)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False, unique=True, index=True),
        sa.Column('hashed_password', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False, index=True),
        sa.Column('role', user_role, nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default='true', nullable=False),
        sa.Column('is_verified', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('must_change_password', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('profile_picture', sa.String(), nullable=True),
        sa.Column('theme_preference', sa.String(length=10), server_default='system', nullable=False),
        sa.Column('auto_watch_on_comment', sa.Boolean(), server_default='true', nullable=False),
        sa.Column('auto_watch_on_vote', sa.Boolean(), server_default='false', nullable=False),
        _created_at(),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        sa.Column('email_verify_code', sa.String(length=8), nullable=True),
        sa.Column('email_verify_expires_at', sa.DateTime(), nullable=True),
        sa.Column('password_change_code', sa.String(length=8), nullable=True),
        sa.Column('password_change_expires_at', sa.DateTime(), nullable=True),
        sa.Column('pending_password_hash', sa.String(length=255), nullable=True),
    )

    op.create_table(
        'projects',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('slug', sa.String(length=80), nullable=False, unique=True, index=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('icon', sa.String(length=50), nullable=True),
        sa.Column('logo_url', sa.String(length=500), nullable=True),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'project_members',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('role', project_role, nullable=False),
        sa.Column('joined_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('project_id', 'user_id', name='uq_project_member'),
    )

    op.create_table(
        'requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('title', sa.String(length=200), nullable=False, index=True),
        sa.Column('category', sa.String(length=60), nullable=False, index=True),
        sa.Column('priority', sa.String(length=30), nullable=False, index=True),
        sa.Column('status', request_status, nullable=False, index=True),
        sa.Column('team', sa.String(length=60), nullable=False),
        sa.Column('region', sa.String(length=60), nullable=False),
        sa.Column('business_problem', sa.Text(), nullable=True),
        sa.Column('problem_size', sa.Text(), nullable=True),
        sa.Column('business_expectations', sa.Text(), nullable=True),
        sa.Column('expected_impact', sa.Text(), nullable=True),
        sa.Column('merged_into_id', sa.Integer(), sa.ForeignKey('requests.id', ondelete='SET NULL'), nullable=True),
        sa.Column('posted_by_admin_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('on_behalf_of_user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('on_behalf_of_name', sa.String(length=120), nullable=True),
        _created_at(index=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'admin_read_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('request_id', sa.Integer(), sa.ForeignKey('requests.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('admin_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('read_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('request_id', 'admin_id', name='uq_admin_read'),
    )

    op.create_table(
        'request_watchers',
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('request_id', sa.Integer(), sa.ForeignKey('requests.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('auto_subscribed', sa.Boolean(), nullable=False),
        _created_at(),
    )

    op.create_table(
        'votes',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('request_id', sa.Integer(), sa.ForeignKey('requests.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('type', vote_type, nullable=False),
        _created_at(),
        sa.UniqueConstraint('request_id', 'user_id', 'type', name='uq_vote_per_type'),
    )

    op.create_table(
        'comments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('request_id', sa.Integer(), sa.ForeignKey('requests.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        _created_at(index=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'comment_mentions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('comment_id', sa.Integer(), sa.ForeignKey('comments.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.UniqueConstraint('comment_id', 'user_id', name='uq_comment_mention'),
    )

    op.create_table(
        'activity_log',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('request_id', sa.Integer(), sa.ForeignKey('requests.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('old_value', sa.Text(), nullable=True),
        sa.Column('new_value', sa.Text(), nullable=True),
        _created_at(index=True),
    )

    op.create_table(
        'attachments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('request_id', sa.Integer(), sa.ForeignKey('requests.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('filename', sa.String(length=255), nullable=False),
        sa.Column('url', sa.String(), nullable=False),
        sa.Column('content_type', sa.String(length=100), nullable=False),
        sa.Column('size', sa.Integer(), nullable=False),
        _created_at(),
    )

    op.create_table(
        'roadmap_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('request_id', sa.Integer(), sa.ForeignKey('requests.id', ondelete='SET NULL'), nullable=True, unique=True),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=60), nullable=True),
        sa.Column('priority', sa.String(length=30), nullable=True),
        sa.Column('team', sa.String(length=60), nullable=True),
        sa.Column('region', sa.String(length=60), nullable=True),
        sa.Column('column_status', roadmap_column, nullable=False, index=True),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('is_discovery', sa.Boolean(), nullable=False),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'feature_flags',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=True),
        sa.Column('name', sa.String(length=80), nullable=False, index=True),
        sa.Column('enabled', sa.Boolean(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('name', 'project_id', name='uq_flag_per_project'),
    )

    op.create_table(
        'push_subscriptions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('endpoint', sa.String(length=500), nullable=False, unique=True),
        sa.Column('p256dh', sa.String(length=200), nullable=False),
        sa.Column('auth', sa.String(length=100), nullable=False),
    )

    op.create_table(
        'project_form_config',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, unique=True),
        *[
            sa.Column(name, sa.Boolean(), nullable=False)
            for name in ('show_team', 'show_region', 'show_business_problem', 'show_problem_size',
                         'show_business_expectations', 'show_expected_impact')
        ],
        *[
            sa.Column(name, sa.JSON(), nullable=True)
            for name in ('custom_categories', 'custom_priorities', 'custom_teams', 'custom_regions',
                         'custom_statuses', 'field_order', 'card_fields', 'analytics_fields', 'field_overrides')
        ],
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'project_custom_fields',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('name', sa.String(length=60), nullable=False),
        sa.Column('label', sa.String(length=120), nullable=False),
        sa.Column('field_type', field_type, nullable=False),
        sa.Column('options', sa.JSON(), nullable=True),
        sa.Column('validation', sa.JSON(), nullable=True),
        sa.Column('is_required', sa.Boolean(), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.Column('visibility', sa.String(length=20), nullable=False),
        sa.Column('show_on_card', sa.Boolean(), nullable=False),
        sa.Column('icon', sa.String(length=50), nullable=True),
        sa.Column('color', sa.String(length=30), nullable=True),
        sa.Column('is_enabled', sa.Boolean(), nullable=False),
        _created_at(),
        sa.UniqueConstraint('project_id', 'name', name='uq_custom_field_name'),
    )

    op.create_table(
        'request_custom_field_values',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('request_id', sa.Integer(), sa.ForeignKey('requests.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('field_id', sa.Integer(), sa.ForeignKey('project_custom_fields.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('value_text', sa.Text(), nullable=True),
        sa.Column('value_number', sa.Float(), nullable=True),
        sa.Column('value_boolean', sa.Boolean(), nullable=True),
        sa.Column('value_date', sa.Date(), nullable=True),
        sa.Column('value_json', sa.JSON(), nullable=True),
        sa.UniqueConstraint('request_id', 'field_id', name='uq_request_field_value'),
    )


def downgrade() -> None:
    """Downgrade schema."""
    for table in (
        'request_custom_field_values', 'project_custom_fields', 'project_form_config', 'push_subscriptions',
        'feature_flags', 'roadmap_items', 'attachments', 'activity_log', 'comment_mentions', 'comments',
        'votes', 'request_watchers', 'admin_read_requests', 'requests', 'project_members', 'projects', 'users',
    ):
        op.drop_table(table)
    bind = op.get_bind()
    for enum in (field_type, roadmap_column, vote_type, request_status, project_role, user_role):
        enum.drop(bind, checkfirst=True)
