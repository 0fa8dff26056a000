"""add user_security and unlock_requests

Revision ID: b7c8d9e0f1a2
Revises: a1b2c3d4e5f6
Create Date: 2026-09-08 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b7c8d9e0f1a2'
down_revision = 'a1b2c3d4e5f6'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user_security',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('failed_login_count', sa.Integer(), nullable=False),
        sa.Column('account_locked', sa.Boolean(), nullable=False),
        sa.Column('locked_at', sa.DateTime(), nullable=True),
        sa.Column('locked_by', sa.String(length=64), nullable=True),
        sa.Column('locked_reason', sa.String(length=500), nullable=True),
        sa.Column('unlocked_at', sa.DateTime(), nullable=True),
        sa.Column('unlocked_by', sa.String(length=64), nullable=True),
        sa.Column('unlock_reason', sa.String(length=500), nullable=True),
        sa.Column('unlock_token', sa.String(length=128), nullable=True),
        sa.Column('unlock_token_expires', sa.DateTime(), nullable=True),
        sa.Column('last_login_attempt', sa.DateTime(), nullable=True),
        sa.Column('last_successful_login', sa.DateTime(), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('lock_email_sent', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            'failed_login_count >= 0 AND failed_login_count <= 10',
            name='ck_user_security_failed_login_count_range'
        ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('user_security', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_user_security_user_id'), ['user_id'], unique=True)
        batch_op.create_index(batch_op.f('ix_user_security_account_locked'), ['account_locked'], unique=False)
        batch_op.create_index(batch_op.f('ix_user_security_locked_at'), ['locked_at'], unique=False)

    op.create_table(
        'unlock_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('security_id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=True),
        sa.Column('reason', sa.String(length=1000), nullable=False),
        sa.Column('submitted_at', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('admin_notes', sa.String(length=500), nullable=True),
        sa.Column('reviewed_by', sa.String(length=64), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'needs_more_info')",
            name='ck_unlock_requests_status'
        ),
        sa.ForeignKeyConstraint(['security_id'], ['user_security.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('unlock_requests', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_unlock_requests_security_id'), ['security_id'], unique=True)


def downgrade():
    with op.batch_alter_table('unlock_requests', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_unlock_requests_security_id'))
    op.drop_table('unlock_requests')

    with op.batch_alter_table('user_security', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_user_security_locked_at'))
        batch_op.drop_index(batch_op.f('ix_user_security_account_locked'))
        batch_op.drop_index(batch_op.f('ix_user_security_user_id'))
    op.drop_table('user_security')
