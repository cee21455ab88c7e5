"""add_search_index_cursor_table

Revision ID: 3f2a9c7d41b8
Revises:
Create Date: 2026-10-19 10:12:03.118204

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3f2a9c7d41b8'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # One row per search index or named re-index job
    op.create_table(
        'search_index_cursor',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('key', sa.String(length=200), nullable=False),
        sa.Column('index_name', sa.String(length=200), nullable=False),
        sa.Column('last_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('pull_step', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('range_start_id', sa.BigInteger(), nullable=True),
        sa.Column('range_end_id', sa.BigInteger(), nullable=True),
        sa.Column('range_started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('modified_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('key', name='uq_search_index_cursor_key')
    )


def downgrade():
    op.drop_table('search_index_cursor')
