"""create preview_sessions table

Revision ID: 5e7c2a9d4b10
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '5e7c2a9d4b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'preview_sessions',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('session_id', sa.Text(), nullable=False),
        sa.Column('tier', sa.Text(), nullable=False),
        sa.Column('template_id', sa.Text(), nullable=True),
        sa.Column('selected_features', postgresql.ARRAY(sa.Text()), server_default=sa.text("'{}'"), nullable=False),
        sa.Column('schema_name', sa.Text(), nullable=True),
        sa.Column('schema_status', sa.Text(), server_default=sa.text("'NONE'"), nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('page_views', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('duration', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('last_accessed_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_id'),
        schema='public'
    )
    # Hard-TTL pass
    op.create_index('ix_preview_sessions_expires_at', 'preview_sessions', ['expires_at'], schema='public')
    # Idle pass
    op.create_index('ix_preview_sessions_last_accessed_at', 'preview_sessions', ['last_accessed_at'], schema='public')
    # Stuck-provisioning pass
    op.create_index(
        'ix_preview_sessions_status_created_at',
        'preview_sessions',
        ['schema_status', 'created_at'],
        schema='public'
    )


def downgrade() -> None:
    op.drop_index('ix_preview_sessions_status_created_at', table_name='preview_sessions', schema='public')
    op.drop_index('ix_preview_sessions_last_accessed_at', table_name='preview_sessions', schema='public')
    op.drop_index('ix_preview_sessions_expires_at', table_name='preview_sessions', schema='public')
    op.drop_table('preview_sessions', schema='public')
