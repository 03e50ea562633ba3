"""Initial database schema

Revision ID: 0001
Revises:
Create Date: 2025-06-01 12:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema."""
    # Create rate_plans table
    op.create_table('rate_plans',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('resort_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('room_type_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('total_rooms', sa.Integer(), nullable=False),
        sa.Column('max_occupancy', sa.Integer(), nullable=False),
        sa.Column('refundable', sa.Boolean(), nullable=False),
        sa.Column('breakfast_included', sa.Boolean(), nullable=False),
        sa.Column('deposit_required', sa.Boolean(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('total_rooms >= 0', name='ck_rate_plan_total_rooms_non_negative'),
        sa.CheckConstraint('max_occupancy > 0', name='ck_rate_plan_max_occupancy_positive'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_rate_plans_resort_id'), 'rate_plans', ['resort_id'], unique=False)
    op.create_index(op.f('ix_rate_plans_room_type_id'), 'rate_plans', ['room_type_id'], unique=False)
    op.create_index(op.f('ix_rate_plans_active'), 'rate_plans', ['active'], unique=False)

    # Create seasonal_rates table
    op.create_table('seasonal_rates',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('rate_plan_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('nightly_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('min_stay', sa.Integer(), nullable=False),
        sa.Column('max_stay', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('end_date >= start_date', name='ck_seasonal_rate_range_ordered'),
        sa.CheckConstraint('nightly_price >= 0', name='ck_seasonal_rate_price_non_negative'),
        sa.CheckConstraint('min_stay >= 1', name='ck_seasonal_rate_min_stay_positive'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_seasonal_rates_rate_plan_id'), 'seasonal_rates', ['rate_plan_id'], unique=False)

    # Create inventory_records table
    op.create_table('inventory_records',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('rate_plan_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('total_rooms', sa.Integer(), nullable=False),
        sa.Column('available_rooms', sa.Integer(), nullable=False),
        sa.Column('reserved_rooms', sa.Integer(), nullable=False),
        sa.Column('booked_rooms', sa.Integer(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('total_rooms >= 0', name='ck_inventory_total_non_negative'),
        sa.CheckConstraint('available_rooms >= 0', name='ck_inventory_available_non_negative'),
        sa.CheckConstraint('reserved_rooms >= 0', name='ck_inventory_reserved_non_negative'),
        sa.CheckConstraint('booked_rooms >= 0', name='ck_inventory_booked_non_negative'),
        sa.CheckConstraint(
            'available_rooms + reserved_rooms + booked_rooms = total_rooms',
            name='ck_inventory_counts_sum_to_total'
        ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('rate_plan_id', 'date', name='uq_inventory_rate_plan_date')
    )
    op.create_index(op.f('ix_inventory_records_rate_plan_id'), 'inventory_records', ['rate_plan_id'], unique=False)

    # Create promotions table
    op.create_table('promotions',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('discount_type', sa.String(length=20), nullable=False),
        sa.Column('discount_value', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('applies_to', sa.String(length=20), nullable=False),
        sa.Column('valid_from', sa.DateTime(), nullable=False),
        sa.Column('valid_until', sa.DateTime(), nullable=False),
        sa.Column('valid_days', sa.JSON(), nullable=False),
        sa.Column('blackout_dates', sa.JSON(), nullable=False),
        sa.Column('min_nights', sa.Integer(), nullable=False),
        sa.Column('min_booking_amount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('max_discount_amount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('max_uses', sa.Integer(), nullable=True),
        sa.Column('max_uses_per_customer', sa.Integer(), nullable=True),
        sa.Column('current_uses', sa.Integer(), nullable=False),
        sa.Column('applicable_resorts', sa.JSON(), nullable=False),
        sa.Column('applicable_room_types', sa.JSON(), nullable=False),
        sa.Column('applicable_rate_plans', sa.JSON(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('discount_value >= 0', name='ck_promotion_discount_non_negative'),
        sa.CheckConstraint('current_uses >= 0', name='ck_promotion_current_uses_non_negative'),
        sa.CheckConstraint('valid_until >= valid_from', name='ck_promotion_window_ordered'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code')
    )
    op.create_index(op.f('ix_promotions_code'), 'promotions', ['code'], unique=False)

    # Create bookings table
    op.create_table('bookings',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('reference', sa.String(length=16), nullable=False),
        sa.Column('guest_ref', sa.String(length=128), nullable=False),
        sa.Column('rate_plan_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('check_in', sa.Date(), nullable=False),
        sa.Column('check_out', sa.Date(), nullable=False),
        sa.Column('nights', sa.Integer(), nullable=False),
        sa.Column('adults', sa.Integer(), nullable=False),
        sa.Column('children', sa.Integer(), nullable=False),
        sa.Column('rooms', sa.Integer(), nullable=False),
        sa.Column('base_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('subtotal', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('taxes', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('fees', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('promotion_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('promotion_code', sa.String(length=64), nullable=True),
        sa.Column('price_breakdown', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('refund_due', sa.Boolean(), nullable=False),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('confirmed_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('expired_at', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.CheckConstraint('check_out > check_in', name='ck_booking_stay_ordered'),
        sa.CheckConstraint('rooms > 0', name='ck_booking_rooms_positive'),
        sa.CheckConstraint('adults > 0', name='ck_booking_adults_positive'),
        sa.CheckConstraint('children >= 0', name='ck_booking_children_non_negative'),
        sa.CheckConstraint('length(guest_ref) > 0', name='ck_booking_guest_ref_not_empty'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reference')
    )
    op.create_index(op.f('ix_bookings_reference'), 'bookings', ['reference'], unique=False)
    op.create_index(op.f('ix_bookings_guest_ref'), 'bookings', ['guest_ref'], unique=False)
    op.create_index(op.f('ix_bookings_rate_plan_id'), 'bookings', ['rate_plan_id'], unique=False)
    op.create_index(op.f('ix_bookings_status'), 'bookings', ['status'], unique=False)
    op.create_index(op.f('ix_bookings_created_at'), 'bookings', ['created_at'], unique=False)
    # The reservation sweeper scans pending bookings oldest first
    op.create_index(
        'ix_bookings_pending_created_at', 'bookings', ['created_at'],
        unique=False, postgresql_where=sa.text("status = 'pending'")
    )

    # Create inventory_allocations table
    op.create_table('inventory_allocations',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('booking_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('rate_plan_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('rooms', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('rooms > 0', name='ck_allocation_rooms_positive'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_id', 'date', name='uq_allocation_booking_date')
    )
    op.create_index(op.f('ix_inventory_allocations_booking_id'), 'inventory_allocations', ['booking_id'], unique=False)
    op.create_index(op.f('ix_inventory_allocations_status'), 'inventory_allocations', ['status'], unique=False)

    # Create promotion_redemptions table
    op.create_table('promotion_redemptions',
        sa.Column('id', postgresql.UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('promotion_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('booking_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('guest_ref', sa.String(length=128), nullable=False),
        sa.Column('discount_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('redeemed_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_id')
    )
    op.create_index(op.f('ix_promotion_redemptions_promotion_id'), 'promotion_redemptions', ['promotion_id'], unique=False)
    op.create_index(op.f('ix_promotion_redemptions_guest_ref'), 'promotion_redemptions', ['guest_ref'], unique=False)

    # Create audit_entries table
    op.create_table('audit_entries',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('actor', sa.String(length=255), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('subject_type', sa.String(length=64), nullable=False),
        sa.Column('subject_id', sa.String(length=128), nullable=False),
        sa.Column('before_state', sa.String(length=64), nullable=True),
        sa.Column('after_state', sa.String(length=64), nullable=True),
        sa.Column('details', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_audit_entries_action'), 'audit_entries', ['action'], unique=False)
    op.create_index(op.f('ix_audit_entries_created_at'), 'audit_entries', ['created_at'], unique=False)
    op.create_index('ix_audit_entries_subject', 'audit_entries', ['subject_type', 'subject_id'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('audit_entries')
    op.drop_table('promotion_redemptions')
    op.drop_table('inventory_allocations')
    op.drop_index('ix_bookings_pending_created_at', table_name='bookings')
    op.drop_table('bookings')
    op.drop_table('promotions')
    op.drop_table('inventory_records')
    op.drop_table('seasonal_rates')
    op.drop_table('rate_plans')
