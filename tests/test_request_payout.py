"""Tests for payout requests: threshold, balance checks and FIFO allocation."""

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from db.extensions import db
from models.commission import Commission
from models.payout import Payout, PayoutCommission
from models.status import CommissionStatus, PayoutStatus
from services.exceptions import (
    BelowMinimumThreshold,
    InsufficientBalance,
    InvalidAmount,
    NotFound,
    StoreFailure,
)
from services.payout_service import PayoutService
from services.settings import LedgerSettings


def _links(payout):
    return {
        link.commission_id: link.allocated_amount
        for link in PayoutCommission.query.filter_by(payout_id=payout.id).all()
    }


def test_fifo_allocation_links_oldest_commissions_first(app, agent, fifo_commissions):
    c20, c30, c40 = fifo_commissions
    payout = PayoutService().request_payout(agent.id, Decimal('45'))

    assert payout.status == PayoutStatus.PENDING
    assert payout.amount == Decimal('45.00')
    assert _links(payout) == {c20.id: Decimal('20.00'), c30.id: Decimal('25.00')}
    assert PayoutService().compute_available_balance(agent.id) == Decimal('45.00')


def test_fifo_ignores_amount_order(app, agent, make_commission):
    late_small = make_commission(agent, '10', minutes=30)
    early_big = make_commission(agent, '60', minutes=5)

    payout = PayoutService().request_payout(agent.id, '55')

    assert _links(payout) == {early_big.id: Decimal('55.00')}
    assert late_small.id not in _links(payout)


def test_balance_drops_by_exactly_the_requested_amount(app, agent, fifo_commissions):
    service = PayoutService()
    before = service.compute_available_balance(agent.id)
    service.request_payout(agent.id, '62.50')

    assert service.compute_available_balance(agent.id) == before - Decimal('62.50')


def test_threshold_boundary(app, agent, fifo_commissions):
    service = PayoutService()
    with pytest.raises(BelowMinimumThreshold) as exc:
        service.request_payout(agent.id, Decimal('49.99'))
    assert exc.value.threshold == Decimal('50')
    assert Payout.query.count() == 0

    payout = service.request_payout(agent.id, Decimal('50.00'))
    assert payout.amount == Decimal('50.00')


def test_threshold_comes_from_injected_settings(app, agent, fifo_commissions):
    service = PayoutService(settings=LedgerSettings(minimum_payout_threshold=Decimal('10')))
    payout = service.request_payout(agent.id, '15')
    assert payout.amount == Decimal('15.00')


def test_insufficient_balance_writes_nothing(app, agent, fifo_commissions):
    with pytest.raises(InsufficientBalance) as exc:
        PayoutService().request_payout(agent.id, '90.01')

    assert exc.value.available == Decimal('90.00')
    assert exc.value.requested == Decimal('90.01')
    assert Payout.query.count() == 0
    assert PayoutCommission.query.count() == 0


def test_second_request_only_gets_what_is_left(app, agent, fifo_commissions):
    service = PayoutService()
    service.request_payout(agent.id, '60')

    with pytest.raises(InsufficientBalance):
        service.request_payout(agent.id, '50')


def test_concurrent_pending_payouts_split_a_commission(app, agent, fifo_commissions):
    c20, c30, c40 = fifo_commissions
    service = PayoutService()
    first = service.request_payout(agent.id, '45')
    second = service.request_payout(agent.id, '45')

    # The 30 was only partly used by the first payout; the second picks up its last 5
    assert _links(second) == {c30.id: Decimal('5.00'), c40.id: Decimal('40.00')}
    assert sum(_links(first).values()) + sum(_links(second).values()) == Decimal('90.00')
    assert service.compute_available_balance(agent.id) == Decimal('0.00')


def test_blocked_and_paid_commissions_are_not_allocated(app, agent, make_commission):
    make_commission(agent, '100', status=CommissionStatus.BLOCKED)
    make_commission(agent, '30', status=CommissionStatus.PAID)
    pending = make_commission(agent, '60', status=CommissionStatus.PENDING)

    payout = PayoutService().request_payout(agent.id, '80')

    # Balance counts the PAID 30 but only the PENDING 60 can back the request
    assert _links(payout) == {pending.id: Decimal('60.00')}


@pytest.mark.parametrize("amount", [None, "", "abc", "NaN", "Infinity", "0", "-50", "50.001", True])
def test_invalid_amounts(app, agent, fifo_commissions, amount):
    with pytest.raises(InvalidAmount):
        PayoutService().request_payout(agent.id, amount)


def test_float_amounts_are_read_as_written(app, agent, fifo_commissions):
    payout = PayoutService().request_payout(agent.id, 50.1)
    assert payout.amount == Decimal('50.10')


def test_unknown_agent(app):
    with pytest.raises(NotFound):
        PayoutService().request_payout('00000000-0000-0000-0000-000000000000', '60')


def test_store_error_rolls_back_and_raises_store_failure(app, agent, fifo_commissions, monkeypatch):
    service = PayoutService()

    def boom(payout):
        raise OperationalError("INSERT", {}, Exception("connection lost"))

    monkeypatch.setattr(service, "_allocate", boom)
    with pytest.raises(StoreFailure):
        service.request_payout(agent.id, '60')

    assert Payout.query.count() == 0
    assert service.compute_available_balance(agent.id) == Decimal('90.00')


def test_request_holds_the_agent_lock(app, agent, fifo_commissions, lock_enabled):
    client = lock_enabled()

    payout = PayoutService().request_payout(agent.id, '60')

    assert client.names == [f'payout_lock:{agent.id}']
    assert client.held_lock.released
    assert payout.status == PayoutStatus.PENDING


def test_lock_key_is_the_same_for_any_spelling_of_the_agent_id(app, agent, fifo_commissions, lock_enabled):
    client = lock_enabled()
    service = PayoutService(settings=LedgerSettings(minimum_payout_threshold=Decimal('10')))

    service.request_payout(str(agent.id).upper(), '50')
    service.request_payout(agent.id, '40')

    assert client.names == [f'payout_lock:{agent.id}'] * 2


def test_busy_lock_writes_no_payout(app, agent, fifo_commissions, lock_enabled):
    client = lock_enabled(acquired=False)

    with pytest.raises(StoreFailure):
        PayoutService().request_payout(agent.id, '60')

    assert client.names == [f'payout_lock:{agent.id}']
    assert Payout.query.count() == 0
    assert PayoutCommission.query.count() == 0


def test_conservation_over_request_sequence(app, agent, make_commission):
    for amount in ('12.34', '56.78', '90.12', '33.33'):
        make_commission(agent, amount)
    service = PayoutService()
    for amount in ('50', '60.01', '51.11'):
        service.request_payout(agent.id, amount)

    allocated = {}
    for link in PayoutCommission.query.all():
        allocated[link.commission_id] = allocated.get(link.commission_id, Decimal('0')) + link.allocated_amount
    for commission_id, total in allocated.items():
        commission = db.session.get(Commission, commission_id)
        assert total <= commission.amount
    assert sum(allocated.values()) == Decimal('161.12')
    assert service.compute_available_balance(agent.id) == Decimal('31.45')
