"""Slot holds

Revision ID: 002
Revises: 001
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'slot_holds',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('hold_token', postgresql.UUID(as_uuid=True), nullable=False, unique=True),
        sa.Column('booking_date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('party_size', sa.Integer(), nullable=False),
        sa.Column('table_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tables.id'), nullable=False),
        sa.Column('join_group_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('join_groups.id')),
        sa.Column('locked_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('released_at', sa.DateTime()),
        sa.Column('reason', sa.String(50), nullable=False),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
        sa.CheckConstraint('party_size > 0', name='ck_slot_holds_party_size'),
        sa.CheckConstraint('duration_minutes > 0', name='ck_slot_holds_duration'),
    )
    op.create_index('ix_slot_holds_booking_date', 'slot_holds', ['booking_date'])
    op.create_index('ix_slot_holds_expires_at', 'slot_holds', ['expires_at'])


def downgrade() -> None:
    op.drop_index('ix_slot_holds_expires_at', table_name='slot_holds')
    op.drop_index('ix_slot_holds_booking_date', table_name='slot_holds')
    op.drop_table('slot_holds')
