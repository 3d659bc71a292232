"""Create merit engine tables

Revision ID: a1c2e3f4b5d6
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1c2e3f4b5d6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create seasons, ledger, streak, league, compliance and quest tables."""
    # Seasons
    op.create_table(
        'seasons',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('reset_points', sa.Boolean(), nullable=False),
        sa.Column('maintain_leagues', sa.Boolean(), nullable=False),
        sa.Column('activated_at', sa.DateTime(), nullable=True),
        sa.Column('closed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('end_date >= start_date', name='ck_seasons_dates'),
        sa.PrimaryKeyConstraint('id')
    )
    # At most one active season
    op.create_index(
        'uq_seasons_single_active', 'seasons', ['status'],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )

    # Merit ledger
    op.create_table(
        'merit_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('event_type', sa.String(64), nullable=False),
        sa.Column('base_points', sa.Integer(), nullable=False),
        sa.Column('multiplier', sa.Float(), nullable=False),
        sa.Column('awarded_points', sa.Integer(), nullable=False),
        sa.Column('season_id', sa.Integer(), nullable=False),
        sa.Column('source_key', sa.String(255), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['season_id'], ['seasons.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('source_key', name='uq_merit_events_source_key')
    )
    op.create_index('ix_merit_events_user_type_created', 'merit_events', ['user_id', 'event_type', 'created_at'])
    op.create_index('ix_merit_events_user_created', 'merit_events', ['user_id', 'created_at'])
    op.create_index('ix_merit_events_season', 'merit_events', ['season_id'])

    # Streaks
    op.create_table(
        'user_streaks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('current_streak_days', sa.Integer(), nullable=False),
        sa.Column('best_streak_days', sa.Integer(), nullable=False),
        sa.Column('shelters_available', sa.Integer(), nullable=False),
        sa.Column('last_scored_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('current_streak_days >= 0', name='ck_user_streaks_current_nonneg'),
        sa.CheckConstraint('best_streak_days >= current_streak_days', name='ck_user_streaks_best_ge_current'),
        sa.CheckConstraint('shelters_available >= 0', name='ck_user_streaks_shelters_nonneg'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )

    # League memberships
    op.create_table(
        'league_memberships',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('season_id', sa.Integer(), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('league', sa.String(20), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('next_league', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['season_id'], ['seasons.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'season_id', name='uq_league_memberships_user_season')
    )
    op.create_index('ix_league_memberships_season_role', 'league_memberships', ['season_id', 'role'])
    op.create_index('ix_league_memberships_season_points', 'league_memberships', ['season_id', 'points'])

    # League change audit
    op.create_table(
        'league_change_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('season_id', sa.Integer(), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('from_league', sa.String(20), nullable=False),
        sa.Column('to_league', sa.String(20), nullable=False),
        sa.Column('change_type', sa.String(20), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('cohort_size', sa.Integer(), nullable=False),
        sa.Column('cohort_rank', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['season_id'], ['seasons.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'season_id', name='uq_league_change_logs_user_season')
    )

    # Compliance projection
    op.create_table(
        'compliance_statuses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('kyc_completed', sa.Boolean(), nullable=False),
        sa.Column('compliance_clean', sa.Boolean(), nullable=False),
        sa.Column('credentials_current', sa.Boolean(), nullable=False),
        sa.Column('deposit_on_file', sa.Boolean(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )

    # Quests
    op.create_table(
        'daily_quests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('quest_code', sa.String(64), nullable=False),
        sa.Column('assigned_date', sa.Date(), nullable=False),
        sa.Column('target_count', sa.Integer(), nullable=False),
        sa.Column('current_count', sa.Integer(), nullable=False),
        sa.Column('bonus_points', sa.Integer(), nullable=False),
        sa.Column('completed', sa.Boolean(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'quest_code', 'assigned_date', name='uq_daily_quests_user_code_date')
    )

    op.create_table(
        'weekly_missions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('season_id', sa.Integer(), nullable=False),
        sa.Column('mission_code', sa.String(64), nullable=False),
        sa.Column('target_count', sa.Integer(), nullable=False),
        sa.Column('current_count', sa.Integer(), nullable=False),
        sa.Column('bonus_points', sa.Integer(), nullable=False),
        sa.Column('completed', sa.Boolean(), nullable=False),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['season_id'], ['seasons.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'season_id', 'mission_code', name='uq_weekly_missions_user_season_code')
    )


def downgrade():
    """Drop all merit engine tables."""
    op.drop_table('weekly_missions')
    op.drop_table('daily_quests')
    op.drop_table('compliance_statuses')
    op.drop_table('league_change_logs')
    op.drop_index('ix_league_memberships_season_points', table_name='league_memberships')
    op.drop_index('ix_league_memberships_season_role', table_name='league_memberships')
    op.drop_table('league_memberships')
    op.drop_table('user_streaks')
    op.drop_index('ix_merit_events_season', table_name='merit_events')
    op.drop_index('ix_merit_events_user_created', table_name='merit_events')
    op.drop_index('ix_merit_events_user_type_created', table_name='merit_events')
    op.drop_table('merit_events')
    op.drop_index('uq_seasons_single_active', table_name='seasons')
    op.drop_table('seasons')
