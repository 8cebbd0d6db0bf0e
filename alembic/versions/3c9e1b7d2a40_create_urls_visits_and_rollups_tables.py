"""create short urls, visits and analytics rollups tables

Revision ID: 3c9e1b7d2a40
Revises:
Create Date: 2026-10-17 09:12:41.208133

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c9e1b7d2a40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # short_urls table (populated by the link service)
    op.create_table(
        'short_urls',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('short_code', sa.String(length=32), nullable=False),
        sa.Column('original_url', sa.Text(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_short_urls_id'), 'short_urls', ['id'], unique=False)
    op.create_index(op.f('ix_short_urls_short_code'), 'short_urls', ['short_code'], unique=True)
    op.create_index(op.f('ix_short_urls_created_by'), 'short_urls', ['created_by'], unique=False)

    # visits table
    op.create_table(
        'visits',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('url_id', sa.Integer(), nullable=False),
        sa.Column('ip_address', sa.String(length=64), nullable=False),
        sa.Column('user_agent', sa.Text(), nullable=False),
        sa.Column('referer', sa.String(length=255), nullable=False),
        sa.Column('country', sa.String(length=64), nullable=True),
        sa.Column('region', sa.String(length=128), nullable=True),
        sa.Column('city', sa.String(length=128), nullable=True),
        sa.Column('timezone', sa.String(length=64), nullable=True),
        sa.Column('device_type', sa.String(length=16), nullable=False),
        sa.Column('device_brand', sa.String(length=64), nullable=True),
        sa.Column('os_name', sa.String(length=64), nullable=True),
        sa.Column('os_version', sa.String(length=32), nullable=True),
        sa.Column('browser_name', sa.String(length=64), nullable=False),
        sa.Column('browser_version', sa.String(length=32), nullable=True),
        sa.Column('browser_engine', sa.String(length=32), nullable=True),
        sa.Column('visitor_id', sa.String(length=64), nullable=True),
        sa.Column('session_id', sa.String(length=64), nullable=False),
        sa.Column('is_unique_visitor', sa.Boolean(), nullable=False),
        sa.Column('visited_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('hour', sa.SmallInteger(), nullable=False),
        sa.Column('day_of_week', sa.SmallInteger(), nullable=False),
        sa.Column('day_of_month', sa.SmallInteger(), nullable=False),
        sa.Column('month', sa.SmallInteger(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['url_id'], ['short_urls.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_visits_visited_at', 'visits', ['visited_at'], unique=False)
    op.create_index('ix_visits_url_visited_at', 'visits', ['url_id', 'visited_at'], unique=False)
    op.create_index('ix_visits_country_visited_at', 'visits', ['country', 'visited_at'], unique=False)
    op.create_index(
        'ix_visits_device_type_visited_at', 'visits', ['device_type', 'visited_at'], unique=False
    )
    op.create_index('ix_visits_browser_visited_at', 'visits', ['browser_name', 'visited_at'], unique=False)
    op.create_index('ix_visits_hour_day_of_week', 'visits', ['hour', 'day_of_week'], unique=False)
    op.create_index(
        'ix_visits_url_visitor_visited_at', 'visits', ['url_id', 'visitor_id', 'visited_at'], unique=False
    )
    op.create_index(
        'ix_visits_url_session_visited_at', 'visits', ['url_id', 'session_id', 'visited_at'], unique=False
    )

    # analytics_rollups table (one row per scope per day)
    op.create_table(
        'analytics_rollups',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('scope_key', sa.String(length=32), nullable=False),
        sa.Column('url_id', sa.Integer(), nullable=True),
        sa.Column('period', sa.String(length=16), nullable=False),
        sa.Column('date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('total_visits', sa.Integer(), nullable=False),
        sa.Column('unique_visits', sa.Integer(), nullable=False),
        sa.Column('countries', sa.JSON(), nullable=False),
        sa.Column('devices', sa.JSON(), nullable=False),
        sa.Column('browsers', sa.JSON(), nullable=False),
        sa.Column('hourly_breakdown', sa.JSON(), nullable=False),
        sa.Column('referrers', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['url_id'], ['short_urls.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('scope_key', 'period', 'date', name='uq_rollup_scope_period_date'),
    )
    op.create_index(op.f('ix_analytics_rollups_url_id'), 'analytics_rollups', ['url_id'], unique=False)
    op.create_index(op.f('ix_analytics_rollups_date'), 'analytics_rollups', ['date'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_analytics_rollups_date'), table_name='analytics_rollups')
    op.drop_index(op.f('ix_analytics_rollups_url_id'), table_name='analytics_rollups')
    op.drop_table('analytics_rollups')

    op.drop_index('ix_visits_url_session_visited_at', table_name='visits')
    op.drop_index('ix_visits_url_visitor_visited_at', table_name='visits')
    op.drop_index('ix_visits_hour_day_of_week', table_name='visits')
    op.drop_index('ix_visits_browser_visited_at', table_name='visits')
    op.drop_index('ix_visits_device_type_visited_at', table_name='visits')
    op.drop_index('ix_visits_country_visited_at', table_name='visits')
    op.drop_index('ix_visits_url_visited_at', table_name='visits')
    op.drop_index('ix_visits_visited_at', table_name='visits')
    op.drop_table('visits')

    op.drop_index(op.f('ix_short_urls_created_by'), table_name='short_urls')
    op.drop_index(op.f('ix_short_urls_short_code'), table_name='short_urls')
    op.drop_index(op.f('ix_short_urls_id'), table_name='short_urls')
    op.drop_table('short_urls')
