"""Baseline migration - workspaces, access control, leads, webhooks, activity

Revision ID: 0001_baseline
Revises: 
Create Date: 2026-10-19

Creates:
- users, workspaces
- roles, workspace_members
- leads
- webhook_endpoints, webhook_logs
- activities
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql')


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # ==========================================================================
    # users
    # ==========================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('token_version', sa.Integer(), server_default=sa.text('1'), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )

    # ==========================================================================
    # workspaces
    # ==========================================================================
    op.create_table(
        'workspaces',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('default_lead_status', sa.String(50), server_default=sa.text("'new'"), nullable=False),
        sa.Column('owner_user_id', sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['owner_user_id'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug'),
    )

    # ==========================================================================
    # roles
    # ==========================================================================
    op.create_table(
        'roles',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('workspace_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('permissions', JSON_TYPE, nullable=False),
        sa.Column('is_default', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('is_system', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['workspace_id'], ['workspaces.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('workspace_id', 'name', name='uq_roles_workspace_name'),
    )
    op.create_index('idx_roles_workspace_id', 'roles', ['workspace_id'])

    # ==========================================================================
    # workspace_members
    # ==========================================================================
    op.create_table(
        'workspace_members',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('workspace_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('role_id', sa.Uuid(), nullable=True),
        sa.Column('status', sa.String(20), server_default=sa.text("'pending'"), nullable=False),
        sa.Column('invited_by', sa.Uuid(), nullable=True),
        sa.Column('joined_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['workspace_id'], ['workspaces.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['role_id'], ['roles.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['invited_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('workspace_id', 'user_id', name='uq_workspace_members_workspace_user'),
    )
    op.create_index('idx_workspace_members_user_id', 'workspace_members', ['user_id'])

    # ==========================================================================
    # leads
    # ==========================================================================
    op.create_table(
        'leads',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('workspace_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(320), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('company', sa.String(255), nullable=True),
        sa.Column('source', sa.String(100), nullable=False),
        sa.Column('value', sa.Numeric(12, 2), server_default=sa.text('0'), nullable=False),
        sa.Column('status', sa.String(50), server_default=sa.text("'new'"), nullable=False),
        sa.Column('assigned_to', sa.Uuid(), nullable=True),
        sa.Column('tags', JSON_TYPE, nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('custom_fields', JSON_TYPE, nullable=False),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['workspace_id'], ['workspaces.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['assigned_to'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_leads_workspace_status', 'leads', ['workspace_id', 'status'])
    op.create_index('idx_leads_workspace_created', 'leads', ['workspace_id', 'created_at'])

    # ==========================================================================
    # webhook_endpoints
    # ==========================================================================
    op.create_table(
        'webhook_endpoints',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('workspace_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('url', sa.String(500), nullable=False),
        sa.Column('token', sa.String(64), nullable=False),
        sa.Column('secret', sa.String(128), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('events', JSON_TYPE, nullable=False),
        sa.Column('webhook_type', sa.String(50), server_default=sa.text("'custom'"), nullable=False),
        sa.Column('transformation_rules', JSON_TYPE, nullable=True),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        sa.Column('total_requests', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('successful_requests', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('failed_requests', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('last_triggered_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['workspace_id'], ['workspaces.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['created_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('url'),
        sa.UniqueConstraint('token'),
    )
    op.create_index('idx_webhook_endpoints_workspace_id', 'webhook_endpoints', ['workspace_id'])

    # ==========================================================================
    # webhook_logs
    # ==========================================================================
    op.create_table(
        'webhook_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('webhook_endpoint_id', sa.Uuid(), nullable=False),
        sa.Column('workspace_id', sa.Uuid(), nullable=False),
        sa.Column('request_id', sa.String(255), nullable=True),
        sa.Column('event_type', sa.String(50), nullable=True),
        sa.Column('payload', JSON_TYPE, nullable=True),
        sa.Column('response_status', sa.Integer(), nullable=False),
        sa.Column('response_body', JSON_TYPE, nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('lead_id', sa.Uuid(), nullable=True),
        sa.Column('method', sa.String(10), nullable=True),
        sa.Column('url', sa.String(1000), nullable=True),
        sa.Column('headers', JSON_TYPE, nullable=True),
        sa.Column('user_agent', sa.String(500), nullable=True),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('processing_time_ms', sa.Integer(), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['webhook_endpoint_id'], ['webhook_endpoints.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['workspace_id'], ['workspaces.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['lead_id'], ['leads.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_webhook_logs_endpoint_processed', 'webhook_logs', ['webhook_endpoint_id', 'processed_at'])
    op.create_index('idx_webhook_logs_workspace_id', 'webhook_logs', ['workspace_id'])

    # ==========================================================================
    # activities
    # ==========================================================================
    op.create_table(
        'activities',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('workspace_id', sa.Uuid(), nullable=False),
        sa.Column('performed_by', sa.Uuid(), nullable=True),
        sa.Column('activity_type', sa.String(50), nullable=False),
        sa.Column('activity_sub_type', sa.String(100), nullable=True),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Uuid(), nullable=True),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('metadata', JSON_TYPE, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['workspace_id'], ['workspaces.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['performed_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_activities_workspace_created', 'activities', ['workspace_id', 'created_at'])
    op.create_index('idx_activities_entity', 'activities', ['entity_type', 'entity_id'])


def downgrade() -> None:
    op.drop_table('activities')
    op.drop_table('webhook_logs')
    op.drop_table('webhook_endpoints')
    op.drop_table('leads')
    op.drop_table('workspace_members')
    op.drop_table('roles')
    op.drop_table('workspaces')
    op.drop_table('users')
