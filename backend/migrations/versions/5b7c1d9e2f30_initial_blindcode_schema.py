"""initial schema: users, games, assets, players, entries, snapshots, votes, vote tokens

Revision ID: 5b7c1d9e2f30
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5b7c1d9e2f30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('provider_id', sa.String(length=64), nullable=False),
        sa.Column('username', sa.String(length=128), nullable=False),
        sa.Column('name', sa.String(length=256), nullable=True),
        sa.Column('avatar_url', sa.Text(), nullable=True),
        sa.Column('email', sa.String(length=256), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_user_provider_id', 'user', ['provider_id'], unique=True)

    op.create_table(
        'game',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('creator_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=256), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('short_code', sa.String(length=16), nullable=False),
        sa.Column('reference_image_url', sa.Text(), nullable=False),
        sa.Column('hex_colors', sa.Text(), nullable=False),
        sa.Column('requirements', sa.Text(), nullable=True),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('started_at', sa.BigInteger(), nullable=True),
        sa.Column('ended_at', sa.BigInteger(), nullable=True),
        sa.ForeignKeyConstraint(['creator_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_game_creator_id', 'game', ['creator_id'])
    op.create_index('ix_game_short_code', 'game', ['short_code'], unique=True)
    op.create_index('ix_game_status', 'game', ['status'])

    op.create_table(
        'asset',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column('short_code', sa.String(length=16), nullable=False),
        sa.Column('name', sa.String(length=256), nullable=False),
        sa.Column('url', sa.Text(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.ForeignKeyConstraint(['game_id'], ['game.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_asset_game_id', 'asset', ['game_id'])
    op.create_index('ix_asset_short_code', 'asset', ['short_code'], unique=True)

    op.create_table(
        'player',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('handle', sa.String(length=64), nullable=False),
        sa.Column('joined_at', sa.BigInteger(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('secret', sa.String(length=64), nullable=False),
        sa.ForeignKeyConstraint(['game_id'], ['game.id']),
        sa.ForeignKeyConstraint(['user_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'game_id', name='uq_player_user_game'),
    )
    op.create_index('ix_player_game_id', 'player', ['game_id'])

    op.create_table(
        'entry',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column('player_id', sa.Integer(), nullable=False),
        sa.Column('html', sa.Text(), nullable=False),
        sa.Column('is_submitted', sa.Boolean(), nullable=False),
        sa.Column('submitted_at', sa.BigInteger(), nullable=True),
        sa.Column('total_score', sa.Integer(), nullable=False),
        sa.Column('max_streak', sa.Integer(), nullable=False),
        sa.Column('total_keystrokes', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['game_id'], ['game.id']),
        sa.ForeignKeyConstraint(['player_id'], ['player.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_entry_game_id', 'entry', ['game_id'])
    op.create_index('ix_entry_player_id', 'entry', ['player_id'], unique=True)

    op.create_table(
        'progress_snapshot',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('entry_id', sa.Integer(), nullable=False),
        sa.Column('html', sa.Text(), nullable=False),
        sa.Column('streak', sa.Integer(), nullable=False),
        sa.Column('power_mode', sa.Boolean(), nullable=False),
        sa.Column('keystroke_count', sa.Integer(), nullable=False),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.ForeignKeyConstraint(['entry_id'], ['entry.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_progress_snapshot_entry_id', 'progress_snapshot', ['entry_id'])

    op.create_table(
        'vote',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column('entry_id', sa.Integer(), nullable=False),
        sa.Column('judge_id', sa.Integer(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('is_winner', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['game_id'], ['game.id']),
        sa.ForeignKeyConstraint(['entry_id'], ['entry.id']),
        sa.ForeignKeyConstraint(['judge_id'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('judge_id', 'game_id', 'entry_id', name='uq_vote_judge_game_entry'),
    )
    op.create_index('ix_vote_game_id', 'vote', ['game_id'])
    op.create_index('ix_vote_entry_id', 'vote', ['entry_id'])
    op.create_index('ix_vote_judge_game', 'vote', ['judge_id', 'game_id'])

    op.create_table(
        'vote_token',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('game_id', sa.Integer(), nullable=False),
        sa.Column('token', sa.String(length=64), nullable=False),
        sa.Column('label', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.Column('used_by', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['game_id'], ['game.id']),
        sa.ForeignKeyConstraint(['used_by'], ['user.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_vote_token_game_id', 'vote_token', ['game_id'])
    op.create_index('ix_vote_token_token', 'vote_token', ['token'], unique=True)


def downgrade():
    # Children first
    for table in ('vote_token', 'vote', 'progress_snapshot', 'entry', 'player', 'asset', 'game', 'user'):
        op.drop_table(table)
