"""Initial schema - create all tables

Revision ID: 001
Revises:
Create Date: 2026-01-01 00:00:00
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB

revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:

    # ── projects ───────────────────────────────────────────────────────────
    op.create_table(
        'projects',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('source_url', sa.String(2048), nullable=True),
        sa.Column('header_mode', sa.Boolean, nullable=False, server_default='true'),
        sa.Column('sheet_data', JSONB, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_index('ix_projects_updated_at', 'projects', ['updated_at'])

    # ── charts ─────────────────────────────────────────────────────────────
    op.create_table(
        'charts',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('project_id', UUID(as_uuid=True),
                  sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('include_insights', sa.Boolean, nullable=False, server_default='false'),
        sa.Column('chart_config', JSONB, nullable=False),
        sa.Column('dashboard_layout', JSONB, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_index('ix_charts_project_id', 'charts', ['project_id'])
    op.create_index('ix_charts_created_at', 'charts', ['created_at'])

    # ── global_dashboard_items ─────────────────────────────────────────────
    op.create_table(
        'global_dashboard_items',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('project_id', UUID(as_uuid=True),
                  sa.ForeignKey('projects.id', ondelete='CASCADE'), nullable=False),
        sa.Column('chart_id', UUID(as_uuid=True),
                  sa.ForeignKey('charts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('layout', JSONB, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('NOW()')),
    )
    op.create_index('ix_global_dashboard_items_project_id', 'global_dashboard_items', ['project_id'])
    op.create_index('ix_global_dashboard_items_chart_id', 'global_dashboard_items', ['chart_id'])
    op.create_index('ix_global_dashboard_items_created_at', 'global_dashboard_items', ['created_at'])


def downgrade() -> None:
    op.drop_table('global_dashboard_items')
    op.drop_table('charts')
    op.drop_table('projects')
