"""create_gate_tables

Revision ID: 3f9a1c2d7e41
Revises:
Create Date: 2026-03-01 10:00:12.118204

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3f9a1c2d7e41'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        'tenants',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('subdomain', sa.String(63), nullable=False, unique=True),
        sa.Column('logo_url', sa.TEXT(), nullable=True),
        sa.Column('primary_color', sa.String(7), nullable=True),
        sa.Column('app_name', sa.String(255), nullable=True),
        sa.Column('is_active', sa.BOOLEAN(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('email_verified', sa.BOOLEAN(), nullable=False, server_default=sa.false()),
        sa.Column('google_id', sa.String(255), nullable=True),
        sa.Column('first_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('role', sa.String(50), nullable=False, server_default='viewer'),
        sa.Column('is_super_admin', sa.BOOLEAN(), nullable=False, server_default=sa.false()),
        sa.Column('is_accountant', sa.BOOLEAN(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.Column('last_login_at', sa.TIMESTAMP(timezone=True), nullable=True),
    )
    op.create_index('idx_users_email', 'users', ['email'])

    op.create_table(
        'user_tenant_access',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(50), nullable=False),
        sa.Column('can_edit', sa.BOOLEAN(), nullable=False, server_default=sa.false()),
        sa.Column('invited_by', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'tenant_id', name='user_tenant_unique'),
    )

    op.create_table(
        'sessions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=True),
        sa.Column('token', sa.String(255), nullable=False, unique=True),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('user_agent', sa.TEXT(), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('idx_sessions_user', 'sessions', ['user_id'])

    op.create_table(
        'rate_limit_usage',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('action_type', sa.String(50), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        'idx_rate_limit_usage_window',
        'rate_limit_usage',
        ['tenant_id', 'action_type', 'created_at'],
    )

    op.create_table(
        'invites',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('tenant_id', sa.String(36), sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(50), nullable=True),
        sa.Column('first_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('accepted_at', sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('idx_invites_email_status', 'invites', ['email', 'status'])


def downgrade() -> None:
    op.drop_index('idx_invites_email_status', table_name='invites')
    op.drop_table('invites')
    op.drop_index('idx_rate_limit_usage_window', table_name='rate_limit_usage')
    op.drop_table('rate_limit_usage')
    op.drop_index('idx_sessions_user', table_name='sessions')
    op.drop_table('sessions')
    op.drop_table('user_tenant_access')
    op.drop_index('idx_users_email', table_name='users')
    op.drop_table('users')
    op.drop_table('tenants')
