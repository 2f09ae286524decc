"""Tests for starting and finalizing checkout."""

import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from visitgate.errors import ConflictError, ConflictReason, NotFoundError, ValidationError
from visitgate.models.checkout_request import CheckoutRequest
from visitgate.models.event import Event
from visitgate.models.visit import Visit
from visitgate.services.checkout_service import (
    VISITOR_NOT_FOUND,
    finalize_checkout,
    list_checkout_requests,
    resolve_open_visit,
    start_checkout,
)


class TestStartCheckout:
    async def test_start_sets_clock(self, db_session: AsyncSession, clock, make_walk_in):
        visit = await make_walk_in()
        request = await start_checkout(db_session, clock, "Dr. Jane Doe", visit.code)

        assert request.status == "requested"
        assert request.visit_id == visit.id
        assert request.host_key == "dr_jane_doe"

        refreshed = await db_session.get(Visit, visit.id)
        assert refreshed.status == "HOST_CHECKOUT_STARTED"
        assert refreshed.checkout_requested_by == "Dr. Jane Doe"
        assert refreshed.checkout_requested_at is not None

        events = await db_session.execute(select(Event.type).where(Event.visit_id == visit.id))
        assert set(events.scalars().all()) == {"CHECKED_IN", "HOST_CHECKOUT_STARTED"}

    async def test_code_is_normalized(self, db_session: AsyncSession, clock, make_walk_in):
        visit = await make_walk_in()
        request = await start_checkout(db_session, clock, "Dr. Jane Doe", f"  {visit.code.lower()} ")
        assert request.visit_id == visit.id

    async def test_second_request_rejected_and_timestamp_kept(self, db_session: AsyncSession, clock, make_walk_in):
        visit = await make_walk_in()
        first = await start_checkout(db_session, clock, "Dr. Jane Doe", visit.code)
        started_at = first.requested_at

        clock.advance(minutes=5)
        with pytest.raises(ConflictError) as exc_info:
            await start_checkout(db_session, clock, "Prof. Smith", visit.code)
        assert exc_info.value.conflict_reason is ConflictReason.ALREADY_REQUESTED

        result = await db_session.execute(
            select(Visit.checkout_requested_at, Visit.checkout_requested_by).where(Visit.id == visit.id)
        )
        requested_at, requested_by = result.one()
        assert requested_at.replace(tzinfo=None) == started_at.replace(tzinfo=None)
        assert requested_by == "Dr. Jane Doe"

        count = await db_session.execute(select(CheckoutRequest).where(CheckoutRequest.visit_id == visit.id))
        assert len(count.scalars().all()) == 1

    async def test_unknown_code(self, db_session: AsyncSession, clock):
        with pytest.raises(NotFoundError) as exc_info:
            await start_checkout(db_session, clock, "Dr. Jane Doe", "ZZZZZZZ")
        assert exc_info.value.reason == VISITOR_NOT_FOUND

    async def test_closed_visit_not_found(self, db_session: AsyncSession, clock, make_walk_in):
        visit = await make_walk_in()
        await finalize_checkout(db_session, clock, visit.id)
        with pytest.raises(NotFoundError):
            await start_checkout(db_session, clock, "Dr. Jane Doe", visit.code)

    @pytest.mark.parametrize(("host", "code"), [("J", "ABCDEFG"), ("Dr. Jane Doe", "  ")])
    async def test_validation(self, db_session: AsyncSession, clock, host, code):
        with pytest.raises(ValidationError):
            await start_checkout(db_session, clock, host, code)


class TestFinalizeCheckout:
    async def test_finalize_closes_visit(self, db_session: AsyncSession, clock, make_walk_in):
        visit = await make_walk_in()
        await start_checkout(db_session, clock, "Dr. Jane Doe", visit.code)
        clock.advance(minutes=4)

        closed = await finalize_checkout(db_session, clock, visit.id)
        assert closed.status == "EXIT_CONFIRMED"
        assert closed.checked_out_at is not None
        assert not closed.is_open

        request = await db_session.execute(
            select(CheckoutRequest.status, CheckoutRequest.finalized_at).where(CheckoutRequest.visit_id == visit.id)
        )
        status, finalized_at = request.one()
        assert status == "finalized"
        assert finalized_at is not None

        event = await db_session.execute(
            select(Event).where(Event.visit_id == visit.id, Event.type == "EXIT_CONFIRMED")
        )
        assert event.scalar_one().meta == {"previous_status": "HOST_CHECKOUT_STARTED"}

    async def test_finalize_without_checkout_request(self, db_session: AsyncSession, clock, make_walk_in):
        """Security can wave a visitor out even if the host never started checkout."""
        visit = await make_walk_in()
        closed = await finalize_checkout(db_session, clock, visit.id)
        assert closed.status == "EXIT_CONFIRMED"

    async def test_finalize_twice_not_found(self, db_session: AsyncSession, clock, make_walk_in):
        visit = await make_walk_in()
        await finalize_checkout(db_session, clock, visit.id)
        with pytest.raises(NotFoundError):
            await finalize_checkout(db_session, clock, visit.id)

    async def test_finalize_unknown(self, db_session: AsyncSession, clock):
        with pytest.raises(NotFoundError):
            await finalize_checkout(db_session, clock, uuid.uuid4())


class TestResolveOpenVisit:
    async def test_by_code_and_by_id_number(self, db_session: AsyncSession, make_walk_in):
        visit = await make_walk_in(id_number="ID-3003")
        assert (await resolve_open_visit(db_session, code=visit.code.lower())).id == visit.id
        assert (await resolve_open_visit(db_session, id_number=" ID-3003 ")).id == visit.id

    async def test_requires_a_key(self, db_session: AsyncSession):
        with pytest.raises(ValidationError):
            await resolve_open_visit(db_session)

    async def test_nothing_open(self, db_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await resolve_open_visit(db_session, id_number="ID-0000")


class TestListCheckoutRequests:
    async def test_oldest_first(self, db_session: AsyncSession, clock, make_walk_in):
        a = await make_walk_in(id_number="ID-0001")
        b = await make_walk_in(id_number="ID-0002")
        await start_checkout(db_session, clock, "Dr. Jane Doe", b.code)
        clock.advance(minutes=1)
        await start_checkout(db_session, clock, "Dr. Jane Doe", a.code)

        requests = await list_checkout_requests(db_session)
        assert [r.visit_id for r in requests] == [b.id, a.id]

        await finalize_checkout(db_session, clock, b.id)
        assert [r.visit_id for r in await list_checkout_requests(db_session)] == [a.id]
        assert [r.visit_id for r in await list_checkout_requests(db_session, status="finalized")] == [b.id]
