"""initial schema

Revision ID: 3f1a9c2e7b40
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1a9c2e7b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'app_users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('firebase_uid', sa.String(128), nullable=False),
        sa.Column('email', sa.String(), nullable=False, unique=True),
        sa.Column('display_name', sa.String(), nullable=False),
        sa.Column('avatar_url', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_app_users_firebase_uid', 'app_users', ['firebase_uid'], unique=True)

    op.create_table(
        'friends',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('app_users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_friends_user_id', 'friends', ['user_id'])

    op.create_table(
        'receipts',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('app_users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('tax', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('tax_type', sa.Enum('amount', 'percentage', name='taxtype'), nullable=False,
                  server_default='amount'),
        sa.Column('tips', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('tips_included_in_total', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('version', sa.Integer(), nullable=True, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_receipts_user_id', 'receipts', ['user_id'])

    op.create_table(
        'friend_receipts',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('friend_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('friends.id', ondelete='CASCADE'), nullable=False),
        sa.Column('receipt_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('receipts.id', ondelete='CASCADE'), nullable=False),
        sa.UniqueConstraint('friend_id', 'receipt_id'),
    )
    op.create_index('ix_friend_receipts_friend_id', 'friend_receipts', ['friend_id'])
    op.create_index('ix_friend_receipts_receipt_id', 'friend_receipts', ['receipt_id'])

    op.create_table(
        'items',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('receipt_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('receipts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('position', sa.Integer(), nullable=True, server_default='0'),
    )
    op.create_index('ix_items_receipt_id', 'items', ['receipt_id'])

    op.create_table(
        'item_assignments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('item_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('items.id', ondelete='CASCADE'), nullable=False),
        sa.Column('receipt_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('receipts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('unit_label', sa.String(32), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('position', sa.Integer(), nullable=True, server_default='0'),
    )
    op.create_index('ix_item_assignments_item_id', 'item_assignments', ['item_id'])
    op.create_index('ix_item_assignments_receipt_id', 'item_assignments', ['receipt_id'])

    op.create_table(
        'friend_assignments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('friend_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('friends.id', ondelete='CASCADE'), nullable=False),
        sa.Column('item_assignment_id', postgresql.UUID(as_uuid=True),
                  sa.ForeignKey('item_assignments.id', ondelete='CASCADE'), nullable=False),
        sa.UniqueConstraint('friend_id', 'item_assignment_id'),
    )
    op.create_index('ix_friend_assignments_friend_id', 'friend_assignments', ['friend_id'])
    op.create_index('ix_friend_assignments_item_assignment_id', 'friend_assignments', ['item_assignment_id'])


def downgrade() -> None:
    op.drop_table('friend_assignments')
    op.drop_table('item_assignments')
    op.drop_table('items')
    op.drop_table('friend_receipts')
    op.drop_table('receipts')
    op.drop_table('friends')
    op.drop_table('app_users')
    sa.Enum(name='taxtype').drop(op.get_bind(), checkfirst=True)
