"""Carry-on: trips ledger, shopper requests, bag items, matches, traveler profiles

Revision ID: carryon_001
Revises:
Create Date: 2026-10-19
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = 'carryon_001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- trips: itinerary + capacity ledger ---
    op.create_table('trips',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('traveler_id', sa.UUID(), nullable=False),
        sa.Column('origin_country', sa.String(length=2), nullable=False),
        sa.Column('destination_country', sa.String(length=2), nullable=False),
        sa.Column('departure_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('departure_tz', sa.String(length=64), nullable=False),
        sa.Column('arrival_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('arrival_tz', sa.String(length=64), nullable=False),
        sa.Column('arrival_date', sa.Date(), nullable=False),
        sa.Column('carry_on_capacity_kg', sa.Numeric(precision=7, scale=2), nullable=False),
        sa.Column('checked_capacity_kg', sa.Numeric(precision=7, scale=2), nullable=False),
        sa.Column('available_carry_on_kg', sa.Numeric(precision=7, scale=2), nullable=False),
        sa.Column('available_checked_kg', sa.Numeric(precision=7, scale=2), nullable=False),
        sa.Column('can_carry_fragile', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('can_handle_special_delivery', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('special_delivery_categories', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='[]'),
        sa.Column('ticket_photo_url', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('activated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('airborne_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('arrived_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('available_carry_on_kg >= 0 AND available_carry_on_kg <= carry_on_capacity_kg', name='ck_trips_carry_on_available'),
        sa.CheckConstraint('available_checked_kg >= 0 AND available_checked_kg <= checked_capacity_kg', name='ck_trips_checked_available'),
        sa.CheckConstraint('departure_at < arrival_at', name='ck_trips_departure_before_arrival'),
    )
    op.create_index('ix_trips_route_arrival', 'trips', ['origin_country', 'destination_country', 'arrival_date'])
    op.create_index('ix_trips_traveler_status', 'trips', ['traveler_id', 'status'])

    # --- shopper_requests ---
    op.create_table('shopper_requests',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('shopper_id', sa.UUID(), nullable=False),
        sa.Column('from_country', sa.String(length=2), nullable=False),
        sa.Column('destination_country', sa.String(length=2), nullable=False),
        sa.Column('delivery_window_start', sa.Date(), nullable=False),
        sa.Column('delivery_window_end', sa.Date(), nullable=False),
        sa.Column('pickup', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('carry_on', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('total_weight_kg', sa.Numeric(precision=7, scale=2), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='draft'),
        sa.Column('listing_mode', sa.String(length=20), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('fulfilled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('delivery_window_start <= delivery_window_end', name='ck_shopper_requests_window'),
    )
    op.create_index('ix_shopper_requests_shopper_status', 'shopper_requests', ['shopper_id', 'status'])

    # --- bag_items ---
    op.create_table('bag_items',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('request_id', sa.UUID(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('link', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('weight_kg', sa.Numeric(precision=7, scale=2), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('is_fragile', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('requires_special_delivery', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('special_delivery_category', sa.String(length=50), nullable=True),
        sa.Column('photos', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='[]'),
        sa.ForeignKeyConstraint(['request_id'], ['shopper_requests.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_bag_items_request', 'bag_items', ['request_id', 'position'])

    # --- matches ---
    op.create_table('matches',
        sa.Column('id', sa.UUID(), nullable=False, server_default=sa.text('gen_random_uuid()')),
        sa.Column('request_id', sa.UUID(), nullable=False),
        sa.Column('trip_id', sa.UUID(), nullable=False),
        sa.Column('shopper_id', sa.UUID(), nullable=False),
        sa.Column('traveler_id', sa.UUID(), nullable=False),
        sa.Column('match_score', sa.Integer(), nullable=False),
        sa.Column('capacity_fit', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='{}'),
        sa.Column('rationale', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='[]'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('reserved_bucket', sa.String(length=20), nullable=False),
        sa.Column('reserved_kg', sa.Numeric(precision=7, scale=2), nullable=False),
        sa.Column('released_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('responded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['request_id'], ['shopper_requests.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['trip_id'], ['trips.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('match_score >= 0 AND match_score <= 100', name='ck_matches_score_range'),
    )
    # At most one live match per (request, trip)
    op.create_index(
        'uq_matches_live_pair', 'matches', ['request_id', 'trip_id'],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'accepted')"),
    )
    op.create_index('ix_matches_status_expires', 'matches', ['status', 'expires_at'])
    op.create_index('ix_matches_trip_status', 'matches', ['trip_id', 'status'])

    # --- traveler_profiles (maintained by the profile system) ---
    op.create_table('traveler_profiles',
        sa.Column('traveler_id', sa.UUID(), nullable=False),
        sa.Column('rating', sa.Numeric(precision=2, scale=1), nullable=True),
        sa.Column('rating_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('traveler_id'),
    )


def downgrade() -> None:
    op.drop_table('traveler_profiles')
    op.drop_index('ix_matches_trip_status', table_name='matches')
    op.drop_index('ix_matches_status_expires', table_name='matches')
    op.drop_index('uq_matches_live_pair', table_name='matches')
    op.drop_table('matches')
    op.drop_index('ix_bag_items_request', table_name='bag_items')
    op.drop_table('bag_items')
    op.drop_index('ix_shopper_requests_shopper_status', table_name='shopper_requests')
    op.drop_table('shopper_requests')
    op.drop_index('ix_trips_traveler_status', table_name='trips')
    op.drop_index('ix_trips_route_arrival', table_name='trips')
    op.drop_table('trips')
