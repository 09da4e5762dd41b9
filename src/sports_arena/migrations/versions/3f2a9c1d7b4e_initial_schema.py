"""Initial schema for users, competitions, participations, teams and notifications

Revision ID: 3f2a9c1d7b4e
Revises:
Create Date: 2026-10-17 09:12:44.108215

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '3f2a9c1d7b4e'
down_revision = None
branch_labels = None
depends_on = None

ACTIVE_PARTICIPATION = sa.text("status != 'rejected'")


def upgrade() -> None:
    """Upgrade database schema."""

    # Create users table
    op.create_table('users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('phone_number', sa.String(length=32), nullable=True),
        sa.Column('country_code', sa.String(length=8), nullable=True),
        sa.Column('date_of_birth', sa.DateTime(timezone=True), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('commune', sa.String(length=100), nullable=True),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('photo_url', sa.String(length=512), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('competition_category', sa.String(length=20), nullable=True),
        sa.Column('is_verified', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('phone_number', 'country_code', name='uq_users_phone_country')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    # Create competitions table
    op.create_table('competitions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('join_code', sa.String(length=16), nullable=False),
        sa.Column('organizer_id', sa.String(length=36), nullable=False),
        sa.Column('category', sa.String(length=20), nullable=False),
        sa.Column('venue', sa.String(length=255), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('max_participants', sa.Integer(), nullable=True),
        sa.Column('is_public', sa.Boolean(), nullable=False),
        sa.Column('rules', sa.JSON(), nullable=True),
        sa.Column('registration_deadline', sa.DateTime(timezone=True), nullable=True),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['organizer_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_competitions_name'), 'competitions', ['name'], unique=False)
    op.create_index(op.f('ix_competitions_join_code'), 'competitions', ['join_code'], unique=True)
    op.create_index(op.f('ix_competitions_organizer_id'), 'competitions', ['organizer_id'], unique=False)
    op.create_index(op.f('ix_competitions_status'), 'competitions', ['status'], unique=False)

    # Create status_transitions table
    op.create_table('status_transitions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('competition_id', sa.String(length=36), nullable=False),
        sa.Column('old_status', sa.String(length=20), nullable=False),
        sa.Column('new_status', sa.String(length=20), nullable=False),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('triggered_by', sa.String(length=36), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['competition_id'], ['competitions.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_status_transitions_competition_id'), 'status_transitions', ['competition_id'], unique=False)
    op.create_index('idx_transition_competition_time', 'status_transitions', ['competition_id', 'timestamp'], unique=False)

    # Create participations table
    op.create_table('participations',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('competition_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('team_data', sa.JSON(), nullable=True),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('response_message', sa.Text(), nullable=True),
        sa.Column('reviewed_by', sa.String(length=36), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['competition_id'], ['competitions.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_participations_competition_id'), 'participations', ['competition_id'], unique=False)
    op.create_index(op.f('ix_participations_user_id'), 'participations', ['user_id'], unique=False)
    op.create_index('idx_participation_competition_status', 'participations', ['competition_id', 'status'], unique=False)
    op.create_index(
        'uq_participations_active', 'participations', ['competition_id', 'user_id'],
        unique=True,
        postgresql_where=ACTIVE_PARTICIPATION,
        sqlite_where=ACTIVE_PARTICIPATION,
    )

    # Create teams table
    op.create_table('teams',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('competition_id', sa.String(length=36), nullable=False),
        sa.Column('captain_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('logo_url', sa.String(length=512), nullable=True),
        sa.Column('colors', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['captain_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['competition_id'], ['competitions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('competition_id', 'captain_id', name='uq_teams_competition_captain')
    )
    op.create_index(op.f('ix_teams_competition_id'), 'teams', ['competition_id'], unique=False)
    op.create_index(op.f('ix_teams_captain_id'), 'teams', ['captain_id'], unique=False)

    # Create players table
    op.create_table('players',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('team_id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('age', sa.Integer(), nullable=True),
        sa.Column('position', sa.String(length=50), nullable=True),
        sa.Column('number', sa.Integer(), nullable=True),
        sa.Column('photo_url', sa.String(length=512), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['team_id'], ['teams.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_players_team_id'), 'players', ['team_id'], unique=False)

    # Create notifications table
    op.create_table('notifications',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('type', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_notifications_user_id'), 'notifications', ['user_id'], unique=False)
    op.create_index('idx_notification_user_read', 'notifications', ['user_id', 'is_read'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""

    op.drop_index('idx_notification_user_read', table_name='notifications')
    op.drop_index(op.f('ix_notifications_user_id'), table_name='notifications')
    op.drop_table('notifications')

    op.drop_index(op.f('ix_players_team_id'), table_name='players')
    op.drop_table('players')

    op.drop_index(op.f('ix_teams_captain_id'), table_name='teams')
    op.drop_index(op.f('ix_teams_competition_id'), table_name='teams')
    op.drop_table('teams')

    op.drop_index('uq_participations_active', table_name='participations')
    op.drop_index('idx_participation_competition_status', table_name='participations')
    op.drop_index(op.f('ix_participations_user_id'), table_name='participations')
    op.drop_index(op.f('ix_participations_competition_id'), table_name='participations')
    op.drop_table('participations')

    op.drop_index('idx_transition_competition_time', table_name='status_transitions')
    op.drop_index(op.f('ix_status_transitions_competition_id'), table_name='status_transitions')
    op.drop_table('status_transitions')

    op.drop_index(op.f('ix_competitions_status'), table_name='competitions')
    op.drop_index(op.f('ix_competitions_organizer_id'), table_name='competitions')
    op.drop_index(op.f('ix_competitions_join_code'), table_name='competitions')
    op.drop_index(op.f('ix_competitions_name'), table_name='competitions')
    op.drop_table('competitions')

    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')
