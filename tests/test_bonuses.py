"""
Tests for the fixer registration bonus.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from fixers.errors import NotFoundError
from fixers.models import AgentCommission, CommissionType, VetStatus
from fixers.services.bonuses import (
    get_fixer_bonus_amount,
    pay_fixer_bonus,
    should_pay_fixer_bonus,
)
from fixers.services.notifier import NotificationEvent
from factories import make_agent, make_fixer, make_order, make_relationship


async def _setup(db, total_fixers_managed=12, **agent_kwargs):
    agent = await make_agent(db, total_fixers_managed=total_fixers_managed, **agent_kwargs)
    fixer = await make_fixer(db)
    relationship = await make_relationship(db, agent, fixer, vet_status=VetStatus.APPROVED)
    order = await make_order(db, fixer)
    return agent, relationship, order


# ── Tier table ───────────────────────────────────────────


class TestBonusTiers:
    @pytest.mark.parametrize(
        "total, expected",
        [
            (-1, "0.00"),
            (0, "0.00"),
            (1, "50.00"),
            (10, "50.00"),
            (11, "75.00"),
            (12, "75.00"),
            (25, "75.00"),
            (26, "100.00"),
            (50, "100.00"),
            (51, "150.00"),
            (500, "150.00"),
        ],
    )
    def test_amount_by_fixers_managed(self, total, expected):
        assert get_fixer_bonus_amount(total) == Decimal(expected)


# ── pay_fixer_bonus ──────────────────────────────────────


class TestPayFixerBonus:
    @pytest.mark.asyncio
    async def test_pays_tier_amount_once(self, db_session, notifier):
        agent, relationship, order = await _setup(db_session)

        commission = await pay_fixer_bonus(db_session, relationship.id, order.id, notifier=notifier)

        assert commission.type == CommissionType.FIXER_BONUS
        assert commission.amount == Decimal("75.00")
        assert commission.is_paid is True
        assert commission.agent_fixer_id == relationship.id

        await db_session.refresh(agent)
        await db_session.refresh(relationship)
        assert agent.wallet_balance == Decimal("75")
        assert agent.total_earned == Decimal("75")
        assert relationship.bonus_paid is True
        assert relationship.bonus_amount == Decimal("75")
        assert relationship.first_order_id == order.id
        assert notifier.events() == [NotificationEvent.BONUS_PAID]

    @pytest.mark.asyncio
    async def test_second_payment_is_a_no_op(self, db_session, notifier):
        agent, relationship, order = await _setup(db_session)
        await pay_fixer_bonus(db_session, relationship.id, order.id)

        again = await pay_fixer_bonus(db_session, relationship.id, order.id, notifier=notifier)

        assert again is None
        await db_session.refresh(agent)
        assert agent.wallet_balance == Decimal("75")
        assert notifier.sent == []

        rows = await db_session.execute(
            select(AgentCommission).where(AgentCommission.type == CommissionType.FIXER_BONUS)
        )
        assert len(rows.scalars().all()) == 1

    @pytest.mark.asyncio
    async def test_disabled_bonus(self, db_session):
        agent, relationship, order = await _setup(db_session, fixer_bonus_enabled=False)

        assert await pay_fixer_bonus(db_session, relationship.id, order.id) is None

        await db_session.refresh(relationship)
        assert relationship.bonus_paid is False

    @pytest.mark.asyncio
    async def test_no_tier_below_first_fixer(self, db_session):
        agent, relationship, order = await _setup(db_session, total_fixers_managed=0)
        assert await pay_fixer_bonus(db_session, relationship.id, order.id) is None

    @pytest.mark.asyncio
    async def test_unknown_relationship(self, db_session):
        with pytest.raises(NotFoundError):
            await pay_fixer_bonus(db_session, 999, 1)


# ── should_pay_fixer_bonus ───────────────────────────────


class TestShouldPayFixerBonus:
    @pytest.mark.asyncio
    async def test_unpaid_relationship(self, db_session):
        _, relationship, order = await _setup(db_session)
        assert await should_pay_fixer_bonus(db_session, order.id, relationship.id) is True

    @pytest.mark.asyncio
    async def test_after_payment(self, db_session):
        _, relationship, order = await _setup(db_session)
        await pay_fixer_bonus(db_session, relationship.id, order.id)
        assert await should_pay_fixer_bonus(db_session, order.id, relationship.id) is False

    @pytest.mark.asyncio
    async def test_different_first_order(self, db_session):
        _, relationship, order = await _setup(db_session)
        relationship.first_order_id = order.id
        await db_session.commit()

        fixer_order = await make_order(db_session, await make_fixer(db_session))
        assert await should_pay_fixer_bonus(db_session, fixer_order.id, relationship.id) is False
        assert await should_pay_fixer_bonus(db_session, order.id, relationship.id) is True

    @pytest.mark.asyncio
    async def test_unknown_relationship(self, db_session):
        assert await should_pay_fixer_bonus(db_session, 1, 999) is False
