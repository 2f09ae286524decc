"""Tests for gate check-in, walk-ins and the one-open-visit-per-identity guard."""

import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from visitgate.errors import ConflictError, ConflictReason, NotFoundError, ValidationError
from visitgate.models.event import Event
from visitgate.models.invite import Invite
from visitgate.models.visit import Visit
from visitgate.services.checkin_service import check_in_by_code, get_visit, list_visits, register_walk_in
from visitgate.services.checkout_service import finalize_checkout
from visitgate.services.invite_service import cancel_invite


async def _open_visits(db_session: AsyncSession, id_number: str) -> list[Visit]:
    result = await db_session.execute(
        select(Visit).where(Visit.id_number == id_number, Visit.checked_out_at.is_(None))
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# check_in_by_code
# ---------------------------------------------------------------------------


class TestCheckInByCode:
    async def test_check_in_opens_visit(self, db_session: AsyncSession, clock, make_invite):
        invite = await make_invite(visitor_id_number="ID-1001")
        visit = await check_in_by_code(db_session, clock, invite.code)

        assert visit.code == invite.code
        assert visit.kind == "invite"
        assert visit.invite_id == invite.id
        assert visit.id_number == "ID-1001"
        assert visit.status == "CHECKED_IN"
        assert visit.decision == "approved"
        assert visit.checked_out_at is None

        refreshed = await db_session.get(Invite, invite.id)
        assert refreshed.status == "checked-in"
        assert refreshed.checked_in_at is not None

    async def test_check_in_records_event(self, db_session: AsyncSession, clock, make_invite):
        invite = await make_invite()
        visit = await check_in_by_code(db_session, clock, invite.code)
        detail = await get_visit(db_session, visit.id)
        assert [e.type for e in detail.events] == ["CHECKED_IN"]

    async def test_code_is_normalized(self, db_session: AsyncSession, clock, make_invite):
        invite = await make_invite()
        typed = " " + " ".join(invite.code.lower()) + " "
        visit = await check_in_by_code(db_session, clock, typed)
        assert visit.code == invite.code

    async def test_empty_code(self, db_session: AsyncSession, clock):
        with pytest.raises(ValidationError):
            await check_in_by_code(db_session, clock, "   ")

    async def test_unknown_code(self, db_session: AsyncSession, clock):
        with pytest.raises(NotFoundError):
            await check_in_by_code(db_session, clock, "ZZZZZZZ")

    async def test_second_check_in_rejected(self, db_session: AsyncSession, clock, make_invite):
        """Checking the same code in twice fails and leaves exactly one visit."""
        invite = await make_invite()
        first = await check_in_by_code(db_session, clock, invite.code)
        with pytest.raises(ConflictError) as exc_info:
            await check_in_by_code(db_session, clock, invite.code)
        assert exc_info.value.conflict_reason is ConflictReason.ALREADY_CHECKED_IN

        result = await db_session.execute(select(Visit.id).where(Visit.invite_id == invite.id))
        assert result.scalars().all() == [first.id]
        assert [v.id for v in await _open_visits(db_session, invite.visitor_id_number)] == [first.id]

    async def test_cancelled_invite_rejected(self, db_session: AsyncSession, clock, make_invite):
        invite = await make_invite()
        await cancel_invite(db_session, clock, invite.id, invite.host_name)
        with pytest.raises(ConflictError) as exc_info:
            await check_in_by_code(db_session, clock, invite.code)
        assert exc_info.value.conflict_reason is ConflictReason.ALREADY_CANCELLED

    async def test_wrong_day(self, db_session: AsyncSession, clock, make_invite):
        invite = await make_invite()
        clock.advance(days=1)
        with pytest.raises(ConflictError) as exc_info:
            await check_in_by_code(db_session, clock, invite.code)
        assert exc_info.value.conflict_reason is ConflictReason.WRONG_DAY

    async def test_wrong_day_wins_over_cancelled(self, db_session: AsyncSession, clock, make_invite):
        """A stale, cancelled invite reports the day mismatch first."""
        invite = await make_invite()
        await cancel_invite(db_session, clock, invite.id, invite.host_name)
        clock.advance(days=1)
        with pytest.raises(ConflictError) as exc_info:
            await check_in_by_code(db_session, clock, invite.code)
        assert exc_info.value.conflict_reason is ConflictReason.WRONG_DAY

    async def test_state_conflict_wins_over_identity(self, db_session: AsyncSession, clock, make_invite, make_walk_in):
        invite = await make_invite(visitor_id_number="ID-1001")
        await cancel_invite(db_session, clock, invite.id, invite.host_name)
        await make_walk_in(id_number="ID-1001")
        with pytest.raises(ConflictError) as exc_info:
            await check_in_by_code(db_session, clock, invite.code)
        assert exc_info.value.conflict_reason is ConflictReason.ALREADY_CANCELLED


# ---------------------------------------------------------------------------
# Identity guard across invite and walk-in paths
# ---------------------------------------------------------------------------


class TestIdentityGuard:
    async def test_invite_rejected_while_walk_in_open(self, db_session: AsyncSession, clock, make_invite, make_walk_in):
        """A visitor already on campus as a walk-in cannot also check in by invite."""
        await make_walk_in(id_number="ID-7777")
        invite = await make_invite(visitor_id_number="ID-7777")

        with pytest.raises(ConflictError) as exc_info:
            await check_in_by_code(db_session, clock, invite.code)
        assert exc_info.value.conflict_reason is ConflictReason.DUPLICATE_ACTIVE_IDENTITY

        assert len(await _open_visits(db_session, "ID-7777")) == 1
        pending = await db_session.execute(select(Invite.status).where(Invite.id == invite.id))
        assert pending.scalar_one() == "pending"

    async def test_walk_in_rejected_while_invite_visit_open(self, db_session: AsyncSession, clock, make_invite):
        invite = await make_invite(visitor_id_number="ID-7777")
        await check_in_by_code(db_session, clock, invite.code)
        with pytest.raises(ConflictError) as exc_info:
            await register_walk_in(db_session, clock, id_number="ID-7777", full_name="Alex", destination="Lab")
        assert exc_info.value.conflict_reason is ConflictReason.DUPLICATE_ACTIVE_IDENTITY

    async def test_identity_free_again_after_exit(self, db_session: AsyncSession, clock, make_invite, make_walk_in):
        walk_in = await make_walk_in(id_number="ID-7777")
        invite = await make_invite(visitor_id_number="ID-7777")
        await finalize_checkout(db_session, clock, walk_in.id)

        visit = await check_in_by_code(db_session, clock, invite.code)
        assert visit.is_open
        assert [v.id for v in await _open_visits(db_session, "ID-7777")] == [visit.id]

    async def test_duplicate_email_rejected(self, make_walk_in):
        await make_walk_in(id_number="ID-0001", email="Sam@Example.com")
        with pytest.raises(ConflictError) as exc_info:
            await make_walk_in(id_number="ID-0002", email="  sam@example.COM")
        assert exc_info.value.conflict_reason is ConflictReason.DUPLICATE_ACTIVE_IDENTITY


# ---------------------------------------------------------------------------
# register_walk_in
# ---------------------------------------------------------------------------


class TestRegisterWalkIn:
    async def test_walk_in_success(self, db_session: AsyncSession, make_walk_in):
        visit = await make_walk_in(email="Sam@Example.com")
        assert visit.kind == "walkin"
        assert visit.decision == "approved"
        assert visit.status == "CHECKED_IN"
        assert visit.email == "sam@example.com"
        assert visit.invite_id is None
        assert len(visit.code) == 7

        events = await db_session.execute(select(Event.type).where(Event.visit_id == visit.id))
        assert events.scalars().all() == ["CHECKED_IN"]

    @pytest.mark.parametrize(
        ("kwargs", "reason"),
        [
            ({"id_number": "12"}, "id_number"),
            ({"full_name": "S"}, "full_name"),
            ({"destination": "  "}, "destination"),
        ],
    )
    async def test_validation(self, make_walk_in, kwargs, reason):
        with pytest.raises(ValidationError) as exc_info:
            await make_walk_in(**kwargs)
        assert exc_info.value.reason == reason

    async def test_walk_in_code_differs_from_live_invite_codes(self, make_invite, make_walk_in):
        invite = await make_invite()
        visit = await make_walk_in()
        assert visit.code != invite.code


class TestVisitViews:
    async def test_list_active_and_search(self, db_session: AsyncSession, clock, make_walk_in):
        first = await make_walk_in(id_number="ID-0001", full_name="Sam Walker")
        await make_walk_in(id_number="ID-0002", full_name="Robin Hill")
        await finalize_checkout(db_session, clock, first.id)

        active = await list_visits(db_session)
        assert [v.id_number for v in active] == ["ID-0002"]

        closed = await list_visits(db_session, scope="checked_out")
        assert [v.id for v in closed] == [first.id]

        found = await list_visits(db_session, scope="all", search="walk")
        assert [v.id for v in found] == [first.id]

    async def test_get_visit_not_found(self, db_session: AsyncSession):
        with pytest.raises(NotFoundError):
            await get_visit(db_session, uuid.uuid4())
