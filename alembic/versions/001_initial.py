"""Initial migration

Revision ID: 001_initial
Revises: 
Create Date: 2026-10-17 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Pending submissions table
    op.create_table(
        'pending_submissions',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('raw_url', sa.Text(), nullable=False),
        sa.Column('canonical_url', sa.Text(), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('weight', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('verification_token', sa.String(length=128), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('weight >= 1 AND weight <= 50', name='ck_pending_weight_range')
    )
    op.create_index('ix_pending_submissions_created_at', 'pending_submissions', ['created_at'])

    # Migration intents table
    op.create_table(
        'migration_intents',
        sa.Column('submission_id', sa.String(length=32), nullable=False),
        sa.Column('canonical_url', sa.Text(), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('weight', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('submission_id')
    )

    # Aggregate counts table
    op.create_table(
        'aggregate_counts',
        sa.Column('canonical_url', sa.Text(), nullable=False),
        sa.Column('total_snaps', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('canonical_url')
    )

    # User history tables
    op.create_table(
        'user_histories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )

    op.create_table(
        'user_history_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('history_id', sa.Integer(), nullable=False),
        sa.Column('submission_id', sa.String(length=32), nullable=False),
        sa.Column('canonical_url', sa.Text(), nullable=False),
        sa.Column('weight', sa.Integer(), nullable=False),
        sa.Column('migrated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['history_id'], ['user_histories.id']),
        sa.UniqueConstraint('submission_id')
    )
    op.create_index('ix_user_history_entries_history_id', 'user_history_entries', ['history_id'])
    op.create_index('ix_user_history_entries_canonical_url', 'user_history_entries', ['canonical_url'])


def downgrade() -> None:
    op.drop_index('ix_user_history_entries_canonical_url', table_name='user_history_entries')
    op.drop_index('ix_user_history_entries_history_id', table_name='user_history_entries')
    op.drop_table('user_history_entries')
    op.drop_table('user_histories')
    op.drop_table('aggregate_counts')
    op.drop_table('migration_intents')
    op.drop_index('ix_pending_submissions_created_at', table_name='pending_submissions')
    op.drop_table('pending_submissions')
