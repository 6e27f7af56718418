"""create waitlist entries

Revision ID: 20261018_waitlist
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa

from app.core.types import GUID, StringList

# revision identifiers, used by Alembic.
revision = '20261018_waitlist'
down_revision = None
branch_labels = None
depends_on = None

waitlist_status = sa.Enum('pending', 'approved', 'rejected', name='waitlist_status')


def upgrade() -> None:
    op.create_table(
        'waitlist_entries',
        sa.Column('id', GUID(), primary_key=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('wallet_address', sa.String(length=42), nullable=True),
        sa.Column('roles', StringList(), nullable=False),
        sa.Column('note', sa.String(length=500), nullable=True),
        sa.Column('x_handle', sa.String(length=15), nullable=True),
        sa.Column('email_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('verification_token', sa.String(length=64), nullable=True),
        sa.Column('consumed_token_digest', sa.String(length=64), nullable=True),
        sa.Column('posted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('post_url', sa.String(length=255), nullable=True),
        sa.Column('status', waitlist_status, nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('email', name='uq_waitlist_entries_email'),
        sa.UniqueConstraint('wallet_address', name='uq_waitlist_entries_wallet_address'),
        sa.UniqueConstraint('verification_token', name='uq_waitlist_entries_verification_token'),
        sa.UniqueConstraint('post_url', name='uq_waitlist_entries_post_url'),
    )
    op.create_index('ix_waitlist_entries_x_handle', 'waitlist_entries', ['x_handle'])
    op.create_index('ix_waitlist_entries_consumed_token_digest', 'waitlist_entries', ['consumed_token_digest'])
    op.create_index('ix_waitlist_entries_status_created', 'waitlist_entries', ['status', 'created_at'])
    op.create_index('ix_waitlist_entries_verified_status', 'waitlist_entries', ['email_verified', 'status'])


def downgrade() -> None:
    op.drop_index('ix_waitlist_entries_verified_status', table_name='waitlist_entries')
    op.drop_index('ix_waitlist_entries_status_created', table_name='waitlist_entries')
    op.drop_index('ix_waitlist_entries_consumed_token_digest', table_name='waitlist_entries')
    op.drop_index('ix_waitlist_entries_x_handle', table_name='waitlist_entries')
    op.drop_table('waitlist_entries')
    waitlist_status.drop(op.get_bind(), checkfirst=True)
