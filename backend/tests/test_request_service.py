"""
Shopper request service tests: drafting, listing, cancellation and fulfilment.
"""
from decimal import Decimal

import pytest

from app.errors import AuthorizationError, InvalidStateTransition, ValidationError
from app.services.booking_coordinator import booking_coordinator
from app.services.capacity_ledger import capacity_ledger
from app.services.request_service import shopper_request_service
from tests.factories import NOW, add_request, add_trip, make_item, make_payload, make_principal

pytestmark = pytest.mark.asyncio


class TestCreateRequest:
    async def test_draft_keeps_items_in_order(self, db, shopper):
        payload = make_payload(
            from_country="united kingdom",
            items=[
                make_item(product_name="Headphones", weight_kg="0.5", quantity=2, currency="gbp"),
                make_item(product_name="Blender", weight_kg="3"),
            ],
        )

        request = await shopper_request_service.create_request(db, shopper, payload)

        assert request.status == "draft"
        assert request.from_country == "GB"
        assert request.total_weight_kg == Decimal("4")
        assert [i.product_name for i in request.bag_items] == ["Headphones", "Blender"]
        assert request.bag_items[0].currency == "GBP"

    async def test_invalid_payload_is_not_stored(self, db, shopper):
        payload = make_payload(items=[make_item(weight_kg="0")])

        with pytest.raises(ValidationError) as exc:
            await shopper_request_service.create_request(db, shopper, payload)

        assert exc.value.field == "bag_items[0].weight_kg"

    async def test_travelers_cannot_create_requests(self, db, traveler):
        with pytest.raises(AuthorizationError):
            await shopper_request_service.create_request(db, traveler, make_payload())


class TestPublish:
    async def test_publish_draft(self, db, shopper):
        request = await shopper_request_service.create_request(db, shopper, make_payload())

        listed = await shopper_request_service.publish(db, shopper, request.id, now=NOW)

        assert listed.status == "published"
        assert listed.listing_mode == "published"
        assert listed.published_at is not None

    async def test_publish_to_marketplace(self, db, shopper):
        request = await shopper_request_service.create_request(db, shopper, make_payload())

        listed = await shopper_request_service.publish(db, shopper, request.id, mode="marketplace", now=NOW)

        assert listed.status == "marketplace"

    async def test_unknown_mode(self, db, shopper):
        request = await shopper_request_service.create_request(db, shopper, make_payload())

        with pytest.raises(ValidationError) as exc:
            await shopper_request_service.publish(db, shopper, request.id, mode="auction")
        assert exc.value.field == "mode"

    async def test_cannot_publish_twice(self, db, shopper):
        request = await add_request(db, shopper_id=shopper.subject_id)

        with pytest.raises(InvalidStateTransition):
            await shopper_request_service.publish(db, shopper, request.id, now=NOW)

    async def test_other_shopper_cannot_publish(self, db, shopper):
        request = await shopper_request_service.create_request(db, shopper, make_payload())

        with pytest.raises(AuthorizationError):
            await shopper_request_service.publish(db, make_principal("shopper"), request.id, now=NOW)


class TestCancel:
    async def test_cancel_matched_request_releases_capacity(self, db, shopper):
        trip = await add_trip(db, checked_kg="10")
        request = await add_request(db, shopper_id=shopper.subject_id)
        match = await booking_coordinator.book(db, shopper, request.id, trip.id, now=NOW)

        cancelled = await shopper_request_service.cancel(db, shopper, request.id, reason="Bought locally", now=NOW)

        # The request stays cancelled rather than going back on its listing
        assert cancelled.status == "cancelled"
        assert cancelled.cancellation_reason == "Bought locally"
        assert (await booking_coordinator.get_match(db, shopper, match.id)).status == "cancelled"
        assert (await capacity_ledger.load(db, trip.id)).available_checked_kg == Decimal("10")

    async def test_cancel_draft(self, db, shopper):
        request = await shopper_request_service.create_request(db, shopper, make_payload())

        cancelled = await shopper_request_service.cancel(db, shopper, request.id, now=NOW)

        assert cancelled.status == "cancelled"


class TestFulfil:
    async def test_fulfil_after_acceptance(self, db, shopper, traveler):
        trip = await add_trip(db, traveler_id=traveler.subject_id)
        request = await add_request(db, shopper_id=shopper.subject_id)
        match = await booking_coordinator.book(db, shopper, request.id, trip.id, now=NOW)
        await booking_coordinator.respond(db, traveler, match.id, "accept", now=NOW)

        fulfilled = await shopper_request_service.fulfil(db, shopper, request.id, now=NOW)

        assert fulfilled.status == "fulfilled"
        assert fulfilled.fulfilled_at is not None
        # Weight stays with the traveler once delivered
        assert (await capacity_ledger.load(db, trip.id)).available_checked_kg == Decimal("4")

    async def test_fulfil_needs_accepted_match(self, db, shopper):
        trip = await add_trip(db)
        request = await add_request(db, shopper_id=shopper.subject_id)
        await booking_coordinator.book(db, shopper, request.id, trip.id, now=NOW)

        with pytest.raises(InvalidStateTransition):
            await shopper_request_service.fulfil(db, shopper, request.id, now=NOW)

    async def test_fulfilled_request_cannot_be_cancelled(self, db, shopper, traveler):
        trip = await add_trip(db, traveler_id=traveler.subject_id)
        request = await add_request(db, shopper_id=shopper.subject_id)
        match = await booking_coordinator.book(db, shopper, request.id, trip.id, now=NOW)
        await booking_coordinator.respond(db, traveler, match.id, "accept", now=NOW)
        await shopper_request_service.fulfil(db, shopper, request.id, now=NOW)

        with pytest.raises(InvalidStateTransition):
            await shopper_request_service.cancel(db, shopper, request.id, now=NOW)


class TestRankedMatches:
    async def test_ranking_for_stored_request(self, db, shopper):
        trip = await add_trip(db)
        request = await add_request(db, shopper_id=shopper.subject_id)

        ranked = await shopper_request_service.ranked_matches(db, shopper, request.id, now=NOW)

        assert [m.trip.id for m in ranked] == [trip.id]

    async def test_other_shoppers_cannot_see_ranking(self, db, shopper):
        request = await add_request(db, shopper_id=shopper.subject_id)

        with pytest.raises(AuthorizationError):
            await shopper_request_service.ranked_matches(db, make_principal("shopper"), request.id, now=NOW)
