"""Create workspaces table.

Revision ID: 001_create_workspaces
Revises:
Create Date: 2026-10-17

- One workspace per user (unique user_id)
- One workspace per VNC host port (unique vnc_port, NULL while unallocated)
- Partial index for the provisioning sweeper
"""

from alembic import op
import sqlalchemy as sa


revision = '001_create_workspaces'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'workspaces',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='PROVISIONING'),
        sa.Column('container_id', sa.String(), nullable=True),
        sa.Column('vnc_port', sa.Integer(), nullable=True),
        sa.Column('desktop_url', sa.String(255), nullable=True),
        sa.Column('error_message', sa.String(), nullable=True),
        sa.Column('cpu_usage', sa.Float(), nullable=True),
        sa.Column('memory_usage', sa.Float(), nullable=True),
        sa.Column('disk_usage', sa.Float(), nullable=True),
        sa.Column('network_in', sa.Float(), nullable=True),
        sa.Column('network_out', sa.Float(), nullable=True),
        sa.Column('last_accessed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('vnc_port', name='uq_workspaces_vnc_port'),
    )

    op.create_index('ix_workspaces_user_id', 'workspaces', ['user_id'], unique=True)

    # Sweeper: stuck provisioning lookup
    op.create_index(
        'idx_workspaces_provisioning',
        'workspaces',
        ['status', 'updated_at'],
        postgresql_where="status = 'PROVISIONING'"
    )


def downgrade() -> None:
    op.drop_index('idx_workspaces_provisioning', table_name='workspaces')
    op.drop_index('ix_workspaces_user_id', table_name='workspaces')
    op.drop_table('workspaces')
