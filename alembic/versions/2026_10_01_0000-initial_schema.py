"""initial schema

Revision ID: 2026_10_01_0000
Revises:
Create Date: 2026-10-01 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY, UUID


# revision identifiers, used by Alembic.
revision: str = '2026_10_01_0000'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create initial database schema."""

    # ========================================================================
    # Create users table
    # ========================================================================
    op.create_table(
        'users',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('google_id', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('picture_url', sa.Text(), nullable=True),
        sa.Column('credits', sa.BigInteger(), nullable=False, server_default='10'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        # Constraints
        sa.CheckConstraint('credits >= 0', name='ck_users_credits_non_negative'),
        sa.UniqueConstraint('google_id', name='uq_users_google_id'),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )
    op.create_index('idx_users_created_at', 'users', ['created_at'])

    # ========================================================================
    # Create generations table
    # ========================================================================
    op.create_table(
        'generations',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('prompt', sa.Text(), nullable=False),
        sa.Column('original_prompt', sa.Text(), nullable=True),
        sa.Column('image_url', sa.Text(), nullable=False),
        sa.Column('provider_prompt_id', sa.String(64), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='processing'),
        sa.Column('aspect_ratio', sa.String(10), nullable=False, server_default='2:3'),
        sa.Column('model_ref', sa.String(64), nullable=False, server_default='demo'),
        sa.Column('model_name', sa.String(100), nullable=False, server_default='Demo'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),

        sa.CheckConstraint("status IN ('processing', 'completed', 'failed')", name='ck_generation_status'),
    )
    op.create_index('idx_generations_user_created', 'generations', ['user_id', 'created_at'])
    op.create_index(
        'idx_generations_provider_prompt_id',
        'generations',
        ['provider_prompt_id'],
        postgresql_where=sa.text('provider_prompt_id IS NOT NULL'),
    )
    op.create_index('idx_generations_status', 'generations', ['status'])

    # ========================================================================
    # Create trained_models table
    # ========================================================================
    op.create_table(
        'trained_models',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('subject_class', sa.String(10), nullable=False, server_default='person'),
        sa.Column('training_images', ARRAY(sa.Text()), nullable=False, server_default='{}'),
        sa.Column('thumbnail_url', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='processing'),
        sa.Column('provider_tune_id', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),

        sa.CheckConstraint("status IN ('processing', 'ready', 'failed')", name='ck_trained_model_status'),
        sa.CheckConstraint("subject_class IN ('man', 'woman', 'person')", name='ck_trained_model_subject_class'),
    )
    op.create_index('idx_trained_models_user_created', 'trained_models', ['user_id', 'created_at'])

    # ========================================================================
    # Create payment_requests table
    # ========================================================================
    op.create_table(
        'payment_requests',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('crystals', sa.Integer(), nullable=False),
        sa.Column('payer_phone', sa.String(32), nullable=False),
        sa.Column('payer_name', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('paid_marked_by', sa.String(10), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('admin_note', sa.Text(), nullable=True),

        sa.CheckConstraint('amount > 0', name='ck_payment_amount_positive'),
        sa.CheckConstraint('crystals > 0', name='ck_payment_crystals_positive'),
        sa.CheckConstraint(
            "status IN ('pending', 'paid', 'confirmed', 'rejected')",
            name='ck_payment_status',
        ),
        sa.CheckConstraint(
            "paid_marked_by IS NULL OR paid_marked_by IN ('user', 'admin')",
            name='ck_payment_paid_marked_by',
        ),
    )
    op.create_index('idx_payment_requests_status_created', 'payment_requests', ['status', 'created_at'])
    op.create_index('idx_payment_requests_user_id', 'payment_requests', ['user_id'])

    # ========================================================================
    # Create credit_transactions table (append-only)
    # ========================================================================
    op.create_table(
        'credit_transactions',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('transaction_type', sa.String(20), nullable=False),
        sa.Column('delta', sa.BigInteger(), nullable=False),
        sa.Column('balance_before', sa.BigInteger(), nullable=False),
        sa.Column('balance_after', sa.BigInteger(), nullable=False),
        sa.Column('description', sa.String(255), nullable=False),
        sa.Column('reference_id', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),

        sa.CheckConstraint('delta <> 0', name='ck_credit_tx_delta_non_zero'),
        sa.CheckConstraint('balance_after = balance_before + delta', name='ck_credit_tx_balance_consistency'),
        sa.CheckConstraint('balance_after >= 0', name='ck_credit_tx_balance_non_negative'),
    )
    op.create_index('idx_credit_transactions_user_created', 'credit_transactions', ['user_id', 'created_at'])
    op.create_index(
        'idx_credit_transactions_reference_id',
        'credit_transactions',
        ['reference_id'],
        postgresql_where=sa.text('reference_id IS NOT NULL'),
    )

    # ========================================================================
    # Create app_settings table
    # ========================================================================
    op.create_table(
        'app_settings',
        sa.Column('key', sa.String(100), primary_key=True),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('NOW()')),
    )

    op.execute("INSERT INTO app_settings (key, value) VALUES ('payments_enabled', 'true')")


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('app_settings')
    op.drop_table('credit_transactions')
    op.drop_table('payment_requests')
    op.drop_table('trained_models')
    op.drop_table('generations')
    op.drop_table('users')
