"""
Tests for settling completed orders to the managing agent.
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from fixers.errors import InvalidStateError, NotFoundError
from fixers.models import AgentCommission, CommissionType, OrderStatus, VetStatus
from fixers.services.notifier import NotificationEvent
from fixers.services.settlement import settle_completed_order
from factories import days_from_now, make_agent, make_fixer, make_order, make_relationship


async def _managed_order(db, vet_status=VetStatus.APPROVED, **order_kwargs):
    agent = await make_agent(db, commission_percentage=Decimal("5"), total_fixers_managed=12)
    fixer = await make_fixer(db)
    await make_relationship(db, agent, fixer, vet_status=vet_status)
    order = await make_order(db, fixer, **order_kwargs)
    return agent, fixer, order


class TestSettleCompletedOrder:
    @pytest.mark.asyncio
    async def test_commission_and_first_order_bonus(self, db_session, notifier):
        agent, _, order = await _managed_order(db_session)

        result = await settle_completed_order(db_session, order.id, notifier=notifier)

        assert result.agent_id == agent.id
        assert result.already_settled is False
        assert result.commission.amount == Decimal("500.00")
        assert result.bonus.amount == Decimal("75.00")
        assert result.bonus.type == CommissionType.FIXER_BONUS

        await db_session.refresh(agent)
        assert agent.wallet_balance == Decimal("575")
        assert agent.wallet_balance == agent.total_earned - agent.total_withdrawn
        assert notifier.events() == [
            NotificationEvent.COMMISSION_EARNED,
            NotificationEvent.BONUS_PAID,
        ]

    @pytest.mark.asyncio
    async def test_settling_twice_pays_nothing_new(self, db_session):
        agent, _, order = await _managed_order(db_session)
        first = await settle_completed_order(db_session, order.id)

        again = await settle_completed_order(db_session, order.id)

        assert again.already_settled is True
        assert again.commission.id == first.commission.id
        assert again.bonus is None

        await db_session.refresh(agent)
        assert agent.wallet_balance == Decimal("575")
        count = await db_session.scalar(select(func.count(AgentCommission.id)))
        assert count == 2

    @pytest.mark.asyncio
    async def test_bonus_only_for_first_order(self, db_session):
        agent, fixer, first_order = await _managed_order(db_session)
        await settle_completed_order(db_session, first_order.id)

        second_order = await make_order(db_session, fixer, total_amount=Decimal("2000"))
        result = await settle_completed_order(db_session, second_order.id)

        assert result.commission.amount == Decimal("100.00")
        assert result.bonus is None
        await db_session.refresh(agent)
        assert agent.wallet_balance == Decimal("675")

    @pytest.mark.asyncio
    async def test_unvetted_fixer(self, db_session):
        agent, _, order = await _managed_order(db_session, vet_status=VetStatus.PENDING)

        with pytest.raises(InvalidStateError):
            await settle_completed_order(db_session, order.id)

        await db_session.refresh(agent)
        assert agent.wallet_balance == Decimal("0")

    @pytest.mark.asyncio
    async def test_fixer_without_agent(self, db_session):
        fixer = await make_fixer(db_session)
        order = await make_order(db_session, fixer)

        result = await settle_completed_order(db_session, order.id)

        assert result.agent_id is None
        assert result.commission is None
        assert result.bonus is None

    @pytest.mark.asyncio
    async def test_order_must_be_completed(self, db_session):
        _, _, order = await _managed_order(db_session, status=OrderStatus.PAID)

        with pytest.raises(InvalidStateError):
            await settle_completed_order(db_session, order.id)

    @pytest.mark.asyncio
    async def test_unknown_order(self, db_session):
        with pytest.raises(NotFoundError):
            await settle_completed_order(db_session, 999)

    @pytest.mark.asyncio
    async def test_zero_percent_agent_still_gets_bonus(self, db_session):
        agent = await make_agent(db_session, commission_percentage=Decimal("0"), total_fixers_managed=1)
        fixer = await make_fixer(db_session)
        await make_relationship(db_session, agent, fixer, vet_status=VetStatus.APPROVED)
        order = await make_order(db_session, fixer)

        result = await settle_completed_order(db_session, order.id)

        assert result.commission is None
        assert result.bonus.amount == Decimal("50.00")

    @pytest.mark.asyncio
    async def test_pays_the_approved_agent_of_a_shared_fixer(self, db_session):
        fixer = await make_fixer(db_session)
        pending_agent = await make_agent(db_session, commission_percentage=Decimal("5"))
        approved_agent = await make_agent(
            db_session, commission_percentage=Decimal("5"), total_fixers_managed=1
        )
        await make_relationship(
            db_session, pending_agent, fixer, registered_at=days_from_now(-30)
        )
        await make_relationship(
            db_session,
            approved_agent,
            fixer,
            vet_status=VetStatus.APPROVED,
            registered_at=days_from_now(-1),
        )
        order = await make_order(db_session, fixer)

        result = await settle_completed_order(db_session, order.id)

        assert result.agent_id == approved_agent.id
        assert result.commission.amount == Decimal("500.00")
        await db_session.refresh(approved_agent)
        await db_session.refresh(pending_agent)
        assert approved_agent.wallet_balance == Decimal("550")
        assert pending_agent.wallet_balance == Decimal("0")

    @pytest.mark.asyncio
    async def test_oldest_approved_agent_wins(self, db_session):
        fixer = await make_fixer(db_session)
        first = await make_agent(db_session, total_fixers_managed=1)
        second = await make_agent(db_session, total_fixers_managed=1)
        await make_relationship(
            db_session, second, fixer, vet_status=VetStatus.APPROVED, registered_at=days_from_now(-2)
        )
        await make_relationship(
            db_session, first, fixer, vet_status=VetStatus.APPROVED, registered_at=days_from_now(-10)
        )
        order = await make_order(db_session, fixer)

        result = await settle_completed_order(db_session, order.id)

        assert result.agent_id == first.id
