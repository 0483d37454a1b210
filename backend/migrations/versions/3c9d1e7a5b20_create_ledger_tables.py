"""create user, match, prediction and ledger_entry tables

Revision ID: 3c9d1e7a5b20
Revises:
Create Date: 2026-10-17 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c9d1e7a5b20'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.String(length=64), primary_key=True),
        sa.Column('display_name', sa.String(length=128), nullable=False),
        sa.Column('avatar_ref', sa.String(length=256), nullable=True),
        sa.Column('points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        'match',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('player1', sa.String(length=128), nullable=False),
        sa.Column('player2', sa.String(length=128), nullable=False),
        sa.Column('format', sa.String(length=16), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='upcoming'),
        sa.Column('result', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_match_start_time', 'match', ['start_time'])
    op.create_table(
        'prediction',
        sa.Column('match_id', sa.Integer(), sa.ForeignKey('match.id'), nullable=False),
        sa.Column('user_id', sa.String(length=64), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('bet_value', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('match_id', 'user_id'),
    )
    op.create_index('ix_prediction_user_id', 'prediction', ['user_id'])
    op.create_table(
        'ledger_entry',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('match_id', sa.Integer(), sa.ForeignKey('match.id'), nullable=False),
        sa.Column('action', sa.String(length=16), nullable=False),
        sa.Column('outcome', sa.String(length=64), nullable=False),
        sa.Column('delta', sa.Integer(), nullable=False),
        sa.Column('awarded', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('actor_id', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_ledger_entry_match_id', 'ledger_entry', ['match_id'])


def downgrade():
    op.drop_index('ix_ledger_entry_match_id', table_name='ledger_entry')
    op.drop_table('ledger_entry')
    op.drop_index('ix_prediction_user_id', table_name='prediction')
    op.drop_table('prediction')
    op.drop_index('ix_match_start_time', table_name='match')
    op.drop_table('match')
    op.drop_table('user')
