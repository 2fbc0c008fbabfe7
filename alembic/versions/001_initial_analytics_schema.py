"""Create tracking tables: page_views, events, sessions, heatmap_points, heatmap_pages

Revision ID: initial_analytics_schema
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa


revision = 'initial_analytics_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'page_views',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.String(64), nullable=False),
        sa.Column('session_id', sa.String(255), nullable=False),
        sa.Column('visitor_id', sa.String(255), nullable=True),
        sa.Column('page_url', sa.Text(), nullable=False),
        sa.Column('page_title', sa.Text(), nullable=True),
        sa.Column('referrer', sa.Text(), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('device_type', sa.String(20), nullable=True),
        sa.Column('browser', sa.String(50), nullable=True),
        sa.Column('os', sa.String(50), nullable=True),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_page_views_id', 'page_views', ['id'], unique=False)
    op.create_index('ix_page_views_project_id', 'page_views', ['project_id'], unique=False)
    op.create_index('ix_page_views_session_id', 'page_views', ['session_id'], unique=False)
    op.create_index('ix_page_views_timestamp', 'page_views', ['timestamp'], unique=False)
    # Window queries filter by project then time
    op.create_index('ix_page_views_project_timestamp', 'page_views', ['project_id', 'timestamp'], unique=False)

    op.create_table(
        'events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.String(64), nullable=False),
        sa.Column('session_id', sa.String(255), nullable=False),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('event_data', sa.JSON(), nullable=True),
        sa.Column('page_url', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_events_id', 'events', ['id'], unique=False)
    op.create_index('ix_events_project_id', 'events', ['project_id'], unique=False)
    op.create_index('ix_events_session_id', 'events', ['session_id'], unique=False)
    op.create_index('ix_events_event_type', 'events', ['event_type'], unique=False)
    op.create_index('ix_events_timestamp', 'events', ['timestamp'], unique=False)
    op.create_index(
        'ix_events_project_type_timestamp',
        'events',
        ['project_id', 'event_type', 'timestamp'],
        unique=False,
    )

    op.create_table(
        'sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.String(64), nullable=False),
        sa.Column('session_id', sa.String(255), nullable=False),
        sa.Column('visitor_id', sa.String(255), nullable=True),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=True),
        sa.Column('page_views', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('events', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('device_type', sa.String(20), nullable=True),
        sa.Column('browser', sa.String(50), nullable=True),
        sa.Column('os', sa.String(50), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('project_id', 'session_id', name='uq_sessions_project_session'),
    )
    op.create_index('ix_sessions_id', 'sessions', ['id'], unique=False)
    op.create_index('ix_sessions_project_id', 'sessions', ['project_id'], unique=False)
    op.create_index('ix_sessions_project_start', 'sessions', ['project_id', 'start_time'], unique=False)

    op.create_table(
        'heatmap_points',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.String(64), nullable=False),
        sa.Column('page_url', sa.Text(), nullable=False),
        sa.Column('page_title', sa.Text(), nullable=True),
        sa.Column('heatmap_type', sa.String(10), nullable=False, server_default='click'),
        sa.Column('x', sa.Integer(), nullable=False),
        sa.Column('y', sa.Integer(), nullable=False),
        sa.Column('count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('element_selector', sa.Text(), nullable=True),
        sa.Column('element_text', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        # Upsert target for count increments
        sa.UniqueConstraint(
            'project_id', 'page_url', 'x', 'y', 'heatmap_type',
            name='uq_heatmap_points_key',
        ),
    )
    op.create_index('ix_heatmap_points_id', 'heatmap_points', ['id'], unique=False)
    op.create_index('ix_heatmap_points_project_id', 'heatmap_points', ['project_id'], unique=False)
    op.create_index('ix_heatmap_points_timestamp', 'heatmap_points', ['timestamp'], unique=False)
    op.create_index(
        'ix_heatmap_points_project_page_type',
        'heatmap_points',
        ['project_id', 'page_url', 'heatmap_type'],
        unique=False,
    )

    op.create_table(
        'heatmap_pages',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.String(64), nullable=False),
        sa.Column('page_url', sa.Text(), nullable=False),
        sa.Column('page_title', sa.Text(), nullable=True),
        sa.Column('total_clicks', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_scrolls', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_moves', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_activity', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('project_id', 'page_url', name='uq_heatmap_pages_project_page'),
    )
    op.create_index('ix_heatmap_pages_id', 'heatmap_pages', ['id'], unique=False)
    op.create_index('ix_heatmap_pages_project_id', 'heatmap_pages', ['project_id'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_heatmap_pages_project_id', table_name='heatmap_pages')
    op.drop_index('ix_heatmap_pages_id', table_name='heatmap_pages')
    op.drop_table('heatmap_pages')

    op.drop_index('ix_heatmap_points_project_page_type', table_name='heatmap_points')
    op.drop_index('ix_heatmap_points_timestamp', table_name='heatmap_points')
    op.drop_index('ix_heatmap_points_project_id', table_name='heatmap_points')
    op.drop_index('ix_heatmap_points_id', table_name='heatmap_points')
    op.drop_table('heatmap_points')

    op.drop_index('ix_sessions_project_start', table_name='sessions')
    op.drop_index('ix_sessions_project_id', table_name='sessions')
    op.drop_index('ix_sessions_id', table_name='sessions')
    op.drop_table('sessions')

    op.drop_index('ix_events_project_type_timestamp', table_name='events')
    op.drop_index('ix_events_timestamp', table_name='events')
    op.drop_index('ix_events_event_type', table_name='events')
    op.drop_index('ix_events_session_id', table_name='events')
    op.drop_index('ix_events_project_id', table_name='events')
    op.drop_index('ix_events_id', table_name='events')
    op.drop_table('events')

    op.drop_index('ix_page_views_project_timestamp', table_name='page_views')
    op.drop_index('ix_page_views_timestamp', table_name='page_views')
    op.drop_index('ix_page_views_session_id', table_name='page_views')
    op.drop_index('ix_page_views_project_id', table_name='page_views')
    op.drop_index('ix_page_views_id', table_name='page_views')
    op.drop_table('page_views')
