# studio/models/preview_session_table.py
# Control-plane table: one row per visitor preview session

from sqlalchemy import Table, Column, Text, Integer, TIMESTAMP, Index, text
from sqlalchemy.dialects.postgresql import ARRAY

from studio.db.base import metadata


preview_sessions = Table(
    'preview_sessions',
    metadata,
    Column('id', Text, primary_key=True),  # registry-owned opaque id
    Column('session_id', Text, nullable=False, unique=True),  # public token
    Column('tier', Text, nullable=False),
    Column('template_id', Text, nullable=True),
    Column('selected_features', ARRAY(Text), nullable=False, server_default=text("'{}'")),
    Column('schema_name', Text, nullable=True),
    Column('schema_status', Text, nullable=False, server_default=text("'NONE'")),
    Column('last_error', Text, nullable=True),
    Column('page_views', Integer, nullable=False, server_default=text('0')),
    Column('duration', Integer, nullable=False, server_default=text('0')),  # seconds
    Column('created_at', TIMESTAMP(timezone=True), nullable=False),
    Column('last_accessed_at', TIMESTAMP(timezone=True), nullable=False),
    Column('expires_at', TIMESTAMP(timezone=True), nullable=False),
    Index('ix_preview_sessions_expires_at', 'expires_at'),
    Index('ix_preview_sessions_last_accessed_at', 'last_accessed_at'),
    Index('ix_preview_sessions_status_created_at', 'schema_status', 'created_at'),
    schema='public',
)
