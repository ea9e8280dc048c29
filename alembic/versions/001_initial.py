"""Initial migration

Revision ID: 001
Revises: 
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


table_status = sa.Enum('ACTIVE', 'DELETED', name='tablestatus')
priority_item_type = sa.Enum('TABLE', 'JOIN_GROUP', name='priorityitemtype')
booking_status = sa.Enum(
    'PENDING', 'CONFIRMED', 'SEATED', 'FINISHED', 'CANCELLED', 'NO_SHOW', name='bookingstatus',
)
booking_source = sa.Enum('BOOKING', 'WALK_IN', name='bookingsource')


def upgrade() -> None:
    # Create tables table
    op.create_table(
        'tables',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('label', sa.String(50), nullable=False),
        sa.Column('seat_count', sa.Integer(), nullable=False),
        sa.Column('section_id', sa.String(50)),
        sa.Column('priority_rank', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('online_bookable', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('status', table_status, nullable=False, server_default='ACTIVE'),
        sa.Column('deleted_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create join_groups table
    op.create_table(
        'join_groups',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('member_table_ids', sa.JSON(), nullable=False),
        sa.Column('min_party_size', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('max_party_size', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )

    # Create booking_priorities table
    op.create_table(
        'booking_priorities',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('party_size', sa.Integer(), nullable=False),
        sa.Column('item_type', priority_item_type, nullable=False),
        sa.Column('item_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('priority_rank', sa.Integer(), nullable=False),
        sa.UniqueConstraint('party_size', 'item_type', 'item_id', name='uq_priority_item'),
    )
    op.create_index('ix_booking_priorities_party_size', 'booking_priorities', ['party_size'])

    # Create guests table
    op.create_table(
        'guests',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255)),
        sa.Column('phone', sa.String(30)),
        sa.Column('visit_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )
    op.create_index('ix_guests_email', 'guests', ['email'])
    op.create_index('ix_guests_phone', 'guests', ['phone'])

    # Create bookings table
    op.create_table(
        'bookings',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('guest_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('guests.id')),
        sa.Column('guest_name', sa.String(255)),
        sa.Column('party_size', sa.Integer(), nullable=False),
        sa.Column('booking_date', sa.Date(), nullable=False),
        sa.Column('booking_time', sa.Time(), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('table_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tables.id')),
        sa.Column('join_group_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('join_groups.id')),
        sa.Column('is_unallocated', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('status', booking_status, nullable=False, server_default='PENDING'),
        sa.Column('source', booking_source, nullable=False, server_default='BOOKING'),
        sa.Column('finished_at', sa.DateTime()),
        sa.Column('notes', sa.Text()),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
        sa.CheckConstraint(
            '(is_unallocated AND table_id IS NULL) OR (NOT is_unallocated AND table_id IS NOT NULL)',
            name='ck_bookings_unallocated_table',
        ),
        sa.CheckConstraint('party_size > 0', name='ck_bookings_party_size'),
        sa.CheckConstraint('duration_minutes > 0', name='ck_bookings_duration'),
    )
    op.create_index('ix_bookings_booking_date', 'bookings', ['booking_date'])
    op.create_index('ix_bookings_unallocated', 'bookings', ['booking_date', 'booking_time'],
                    postgresql_where=sa.text('is_unallocated'))

    # Create blocks table
    op.create_table(
        'blocks',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('block_date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('table_ids', sa.JSON()),
        sa.Column('reason', sa.String(255)),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )
    op.create_index('ix_blocks_block_date', 'blocks', ['block_date'])

    # Create allocation_ledgers table
    op.create_table(
        'allocation_ledgers',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('table_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tables.id'), nullable=False),
        sa.Column('ledger_date', sa.Date(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('last_booking_id', postgresql.UUID(as_uuid=True)),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
        sa.UniqueConstraint('table_id', 'ledger_date', name='uq_ledger_table_date'),
    )

    # Create audit_logs table
    op.create_table(
        'audit_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('actor_type', sa.String(50)),
        sa.Column('actor_name', sa.String(255)),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('resource_type', sa.String(50)),
        sa.Column('resource_id', postgresql.UUID(as_uuid=True)),
        sa.Column('data_json', sa.JSON()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('allocation_ledgers')
    op.drop_table('blocks')
    op.drop_index('ix_bookings_unallocated', table_name='bookings')
    op.drop_table('bookings')
    op.drop_table('guests')
    op.drop_table('booking_priorities')
    op.drop_table('join_groups')
    op.drop_table('tables')
    booking_source.drop(op.get_bind(), checkfirst=True)
    booking_status.drop(op.get_bind(), checkfirst=True)
    priority_item_type.drop(op.get_bind(), checkfirst=True)
    table_status.drop(op.get_bind(), checkfirst=True)
