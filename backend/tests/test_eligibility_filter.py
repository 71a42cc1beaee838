"""
Unit tests for the eligibility filter's hard rules.

Trips are unsaved ORM instances; the filter never touches the database.
"""
from datetime import timedelta
from decimal import Decimal

import pytest

from app.services.eligibility_filter import (
    filter_candidates,
    first_failure,
    make_context,
    required_lead_days,
)
from app.services.request_normalizer import normalize_request
from tests.factories import NOW, build_trip, make_item, make_payload


@pytest.fixture
def six_kg_query():
    return normalize_request(make_payload(items=[make_item(weight_kg="6")]))


class TestCapacityRule:
    """available kg in the required bucket must cover the total weight"""

    def test_trip_with_room_is_eligible(self, six_kg_query):
        # Given: a 10kg checked trip and a 6kg checked request
        trip = build_trip(checked_kg="10")

        # When
        result = filter_candidates([trip], six_kg_query, NOW)

        # Then: eligible, with the capacity snapshot attached
        assert len(result.eligible) == 1
        fit = result.eligible[0].capacity_fit
        assert fit.bucket == "checked"
        assert fit.available_checked_kg >= Decimal("6")
        assert fit.fits_checked is True
        assert fit.trip_version == 1

    def test_exact_fit_is_eligible(self, six_kg_query):
        trip = build_trip(checked_kg="10", available_checked_kg="6")
        assert first_failure(trip, six_kg_query, make_context(NOW)) is None

    def test_insufficient_checked_capacity_rejected(self, six_kg_query):
        trip = build_trip(checked_kg="10", available_checked_kg="5.99")

        rejection = first_failure(trip, six_kg_query, make_context(NOW))

        assert rejection.rule == "capacity"
        assert rejection.trip_id == str(trip.id)

    def test_carry_on_request_ignores_checked_capacity(self):
        query = normalize_request(make_payload(carry_on=True, items=[make_item(weight_kg="6")]))
        trip = build_trip(carry_on_kg="5", checked_kg="23")

        rejection = first_failure(trip, query, make_context(NOW))

        assert rejection.rule == "capacity"

    def test_every_eligible_candidate_has_room(self, six_kg_query):
        trips = [
            build_trip(checked_kg="10", available_checked_kg=str(kg))
            for kg in ("0", "2", "5.5", "6", "6.5", "10")
        ]

        result = filter_candidates(trips, six_kg_query, NOW)

        assert len(result.eligible) == 3
        assert len(result.rejected) == 3
        for candidate in result.eligible:
            assert candidate.trip.available_kg("checked") >= six_kg_query.total_weight_kg


class TestStatusRule:
    def test_pending_trip_is_not_bookable(self, six_kg_query):
        rejection = first_failure(build_trip(status="pending"), six_kg_query, make_context(NOW))
        assert rejection.rule == "status"

    def test_status_checked_before_capacity(self, six_kg_query):
        trip = build_trip(status="pending", available_checked_kg="0")
        assert first_failure(trip, six_kg_query, make_context(NOW)).rule == "status"


class TestCapabilityRules:
    def test_fragile_item_excludes_trip_that_cannot_carry_fragile(self):
        # Given: one fragile item, traveler cannot carry fragile goods
        query = normalize_request(make_payload(items=[make_item(is_fragile=True)]))
        trip = build_trip(can_carry_fragile=False)

        # When
        result = filter_candidates([trip], query, NOW)

        # Then: excluded entirely
        assert result.eligible == []
        assert result.rejected[0].rule == "fragile"

    def test_fragile_item_accepted_by_capable_traveler(self):
        query = normalize_request(make_payload(items=[make_item(is_fragile=True)]))
        assert first_failure(build_trip(can_carry_fragile=True), query, make_context(NOW)) is None

    def test_special_delivery_requires_capability(self):
        query = normalize_request(make_payload(items=[make_item(requires_special_delivery=True)]))

        rejection = first_failure(build_trip(), query, make_context(NOW))

        assert rejection.rule == "special_delivery"

    def test_special_categories_must_be_declared(self):
        query = normalize_request(make_payload(items=[
            make_item(special_delivery_category="medication"),
            make_item(special_delivery_category="perishables", weight_kg="1"),
        ]))
        trip = build_trip(can_handle_special_delivery=True, special_delivery_categories=["medication"])

        rejection = first_failure(trip, query, make_context(NOW))

        assert rejection.rule == "special_delivery"
        assert "perishables" in rejection.reason

    def test_special_categories_subset_is_eligible(self):
        query = normalize_request(make_payload(items=[make_item(special_delivery_category="medication")]))
        trip = build_trip(
            can_handle_special_delivery=True,
            special_delivery_categories=["Medication", "perishables"],
        )

        assert first_failure(trip, query, make_context(NOW)) is None


class TestLeadTimeRule:
    def test_trip_departing_too_soon_is_rejected(self, six_kg_query):
        trip = build_trip(departure_at=NOW + timedelta(days=3))

        rejection = first_failure(trip, six_kg_query, make_context(NOW))

        assert rejection.rule == "lead_time"

    def test_rule_can_be_switched_off(self, six_kg_query):
        trip = build_trip(departure_at=NOW + timedelta(days=3))
        ctx = make_context(NOW, enforce_lead_time=False)
        assert first_failure(trip, six_kg_query, ctx) is None

    def test_base_lead_time_for_simple_order(self, six_kg_query):
        assert required_lead_days(six_kg_query, 5) == 5

    def test_complex_orders_need_extra_days(self):
        # high value (> 500), more than 3 items, special delivery: +1 day each
        items = [make_item(price="200", weight_kg="1") for _ in range(3)]
        items.append(make_item(price="10", weight_kg="1", requires_special_delivery=True))
        query = normalize_request(make_payload(items=items))

        assert required_lead_days(query, 5) == 8

    def test_exactly_at_required_lead_time_passes(self, six_kg_query):
        trip = build_trip(departure_at=NOW + timedelta(days=5))
        assert first_failure(trip, six_kg_query, make_context(NOW)) is None
