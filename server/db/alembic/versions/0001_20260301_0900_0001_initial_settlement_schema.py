"""Initial settlement schema

Revision ID: 0001
Revises:
Create Date: 2026-03-01 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema."""
    # Create collections table
    op.create_table('collections',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('length(slug) > 0', name='ck_collection_slug_not_empty'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_collections_slug'), 'collections', ['slug'], unique=True)

    # Create units table
    op.create_table('units',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('collection_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('length(name) > 0', name='ck_unit_name_not_empty'),
        sa.ForeignKeyConstraint(['collection_id'], ['collections.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('collection_id', 'name', name='uq_unit_collection_name')
    )
    op.create_index(op.f('ix_units_collection_id'), 'units', ['collection_id'], unique=False)

    # Create pricing_tiers table
    op.create_table('pricing_tiers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('collection_id', sa.Integer(), nullable=False),
        sa.Column('percentage', sa.Integer(), nullable=False),
        sa.Column('prices', sa.JSON(), nullable=False),
        sa.Column('display_label', sa.String(length=64), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('effective_from', sa.DateTime(), nullable=False),
        sa.Column('effective_until', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('percentage > 0', name='ck_pricing_tier_percentage_positive'),
        sa.CheckConstraint('percentage <= 10000', name='ck_pricing_tier_percentage_max'),
        sa.ForeignKeyConstraint(['collection_id'], ['collections.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('collection_id', 'percentage', 'effective_from', name='uq_pricing_tier_collection_percentage')
    )
    op.create_index(op.f('ix_pricing_tiers_collection_id'), 'pricing_tiers', ['collection_id'], unique=False)

    # Create users table
    op.create_table('users',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    # Create affiliate_links table
    op.create_table('affiliate_links',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('code', sa.String(length=64), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_affiliate_links_code'), 'affiliate_links', ['code'], unique=True)

    # Create investor_profiles table
    op.create_table('investor_profiles',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('total_invested_minor', sa.BigInteger(), nullable=False),
        sa.Column('total_purchases', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id')
    )

    # Create payment_records table
    op.create_table('payment_records',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('provider', sa.String(length=20), nullable=False),
        sa.Column('external_id', sa.String(length=255), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('payer_email', sa.String(length=320), nullable=True),
        sa.Column('amount_minor', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(length=10), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('purpose', sa.String(length=20), nullable=False),
        sa.Column('collection_id', sa.Integer(), nullable=True),
        sa.Column('pricing_tier_id', sa.Integer(), nullable=True),
        sa.Column('percentage_to_buy', sa.Integer(), nullable=True),
        sa.Column('booking_id', sa.Integer(), nullable=True),
        sa.Column('affiliate_link_id', sa.Integer(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('processed_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('amount_minor >= 0', name='ck_payment_amount_non_negative'),
        sa.CheckConstraint('length(external_id) > 0', name='ck_payment_external_id_not_empty'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['collection_id'], ['collections.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['pricing_tier_id'], ['pricing_tiers.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['affiliate_link_id'], ['affiliate_links.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_payment_records_external_id'), 'payment_records', ['external_id'], unique=True)
    op.create_index(op.f('ix_payment_records_user_id'), 'payment_records', ['user_id'], unique=False)
    op.create_index(op.f('ix_payment_records_purpose'), 'payment_records', ['purpose'], unique=False)
    op.create_index(op.f('ix_payment_records_booking_id'), 'payment_records', ['booking_id'], unique=False)

    # Create ownership_records table
    op.create_table('ownership_records',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('pricing_tier_id', sa.Integer(), nullable=True),
        sa.Column('percentage_owned', sa.Integer(), nullable=False),
        sa.Column('purchase_amount_minor', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(length=10), nullable=False),
        sa.Column('payment_id', sa.Integer(), nullable=True),
        sa.Column('affiliate_link_id', sa.Integer(), nullable=True),
        sa.Column('recorded_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('percentage_owned > 0', name='ck_ownership_percentage_positive'),
        sa.CheckConstraint('percentage_owned <= 10000', name='ck_ownership_percentage_max'),
        sa.CheckConstraint('purchase_amount_minor >= 0', name='ck_ownership_amount_non_negative'),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['pricing_tier_id'], ['pricing_tiers.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['payment_id'], ['payment_records.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['affiliate_link_id'], ['affiliate_links.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('payment_id')
    )
    op.create_index(op.f('ix_ownership_records_unit_id'), 'ownership_records', ['unit_id'], unique=False)
    op.create_index(op.f('ix_ownership_records_user_id'), 'ownership_records', ['user_id'], unique=False)

    # Create bookings table
    op.create_table('bookings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('collection_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=True),
        sa.Column('guest_name', sa.String(length=255), nullable=False),
        sa.Column('guest_email', sa.String(length=320), nullable=False),
        sa.Column('guest_phone', sa.String(length=64), nullable=True),
        sa.Column('number_of_guests', sa.Integer(), nullable=False),
        sa.Column('units_required', sa.Integer(), nullable=False),
        sa.Column('check_in', sa.Date(), nullable=False),
        sa.Column('check_out', sa.Date(), nullable=False),
        sa.Column('total_price_minor', sa.BigInteger(), nullable=False),
        sa.Column('currency', sa.String(length=10), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('payment_id', sa.Integer(), nullable=True),
        sa.Column('confirmed_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint('check_out > check_in', name='ck_booking_dates_ordered'),
        sa.CheckConstraint('number_of_guests > 0', name='ck_booking_guests_positive'),
        sa.CheckConstraint('units_required > 0', name='ck_booking_units_required_positive'),
        sa.CheckConstraint('total_price_minor >= 0', name='ck_booking_price_non_negative'),
        sa.ForeignKeyConstraint(['collection_id'], ['collections.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['payment_id'], ['payment_records.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('payment_id')
    )
    op.create_index(op.f('ix_bookings_collection_id'), 'bookings', ['collection_id'], unique=False)
    op.create_index(op.f('ix_bookings_user_id'), 'bookings', ['user_id'], unique=False)
    op.create_index(op.f('ix_bookings_guest_email'), 'bookings', ['guest_email'], unique=False)
    op.create_index(op.f('ix_bookings_check_in'), 'bookings', ['check_in'], unique=False)
    op.create_index(op.f('ix_bookings_check_out'), 'bookings', ['check_out'], unique=False)
    op.create_index(op.f('ix_bookings_status'), 'bookings', ['status'], unique=False)

    # Create booking_units table
    op.create_table('booking_units',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('booking_id', sa.Integer(), nullable=False),
        sa.Column('unit_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['unit_id'], ['units.id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_id', 'unit_id', name='uq_booking_unit')
    )
    op.create_index(op.f('ix_booking_units_booking_id'), 'booking_units', ['booking_id'], unique=False)
    op.create_index(op.f('ix_booking_units_unit_id'), 'booking_units', ['unit_id'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('booking_units')
    op.drop_table('bookings')
    op.drop_table('ownership_records')
    op.drop_table('payment_records')
    op.drop_table('investor_profiles')
    op.drop_table('affiliate_links')
    op.drop_table('users')
    op.drop_table('pricing_tiers')
    op.drop_table('units')
    op.drop_table('collections')
