"""create sessions, session_scores, games and game_players

Revision ID: 5b7c1d9e2f30
Revises:
Create Date: 2026-10-18 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5b7c1d9e2f30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa.inspect(bind).get_table_names())

    if 'sessions' not in existing_tables:
        op.create_table(
            'sessions',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('room_code', sa.String(length=4), nullable=False),
            sa.Column('total_rounds', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index('ix_sessions_room_code', 'sessions', ['room_code'])

    if 'session_scores' not in existing_tables:
        op.create_table(
            'session_scores',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('session_id', sa.Integer(), sa.ForeignKey('sessions.id', ondelete='CASCADE'), nullable=False),
            sa.Column('player_id', sa.String(length=64), nullable=False),
            sa.Column('player_name', sa.String(length=30), nullable=False),
            sa.Column('score', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('rounds_won', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('rounds_played', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('impostor_count', sa.Integer(), nullable=False, server_default='0'),
            sa.UniqueConstraint('session_id', 'player_id', name='uq_session_scores_session_player'),
        )
        op.create_index('ix_session_scores_player_id', 'session_scores', ['player_id'])

    if 'games' not in existing_tables:
        op.create_table(
            'games',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('code', sa.String(length=4), nullable=False),
            sa.Column('mode', sa.String(length=10), nullable=False),
            sa.Column('host_id', sa.String(length=64), nullable=True),
            sa.Column('secret_word', sa.String(length=100), nullable=True),
            sa.Column('word_category', sa.String(length=50), nullable=True),
            sa.Column('impostor_id', sa.String(length=64), nullable=True),
            sa.Column('settings', sa.JSON(), nullable=False),
            sa.Column('winning_team', sa.String(length=20), nullable=True),
            sa.Column('rounds_played', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index('ix_games_ended_at', 'games', ['ended_at'])

    if 'game_players' not in existing_tables:
        op.create_table(
            'game_players',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('game_id', sa.Integer(), sa.ForeignKey('games.id', ondelete='CASCADE'), nullable=False),
            sa.Column('player_id', sa.String(length=64), nullable=False),
            sa.Column('player_name', sa.String(length=30), nullable=False),
            sa.Column('avatar', sa.String(length=10), nullable=False),
            sa.Column('color', sa.String(length=7), nullable=False),
            sa.Column('was_impostor', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('was_eliminated', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('eliminated_round', sa.Integer(), nullable=True),
            sa.Column('final_clues', sa.JSON(), nullable=True),
            sa.Column('voted_correctly', sa.Boolean(), nullable=True),
            sa.UniqueConstraint('game_id', 'player_id', name='uq_game_players_game_player'),
        )
        op.create_index('ix_game_players_player_id', 'game_players', ['player_id'])


def downgrade():
    op.drop_index('ix_game_players_player_id', table_name='game_players')
    op.drop_table('game_players')
    op.drop_index('ix_games_ended_at', table_name='games')
    op.drop_table('games')
    op.drop_index('ix_session_scores_player_id', table_name='session_scores')
    op.drop_table('session_scores')
    op.drop_index('ix_sessions_room_code', table_name='sessions')
    op.drop_table('sessions')
