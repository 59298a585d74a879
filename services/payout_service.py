"""
Commission ledger and payout allocator.

An agent's withdrawable balance is what they earned minus what processed
payouts already took minus what pending payouts have reserved. A payout
request is backed by concrete commission records, consumed oldest first, and
each link records how much of the commission it applied so the same value is
never claimed twice. Every mutating operation runs as one transaction.
"""

import logging
from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError

from db.extensions import db
from models.commission import Commission
from models.payout import Payout, PayoutCommission
from models.status import CommissionStatus, PayoutStatus, UserRole
from models.user import User
from services.settings import LedgerSettings
from services.exceptions import (
    BelowMinimumThreshold,
    InsufficientBalance,
    InvalidAmount,
    InvalidStatus,
    LedgerError,
    NotFound,
    StoreFailure,
)
from services.locks import agent_payout_lock
from services.payout_notification import PayoutNotificationService
from services.utils import as_uuid, parse_amount, quantize_money

logger = logging.getLogger(__name__)


class PayoutService:

    def __init__(self, settings=None, session=None):
        self.settings = settings or LedgerSettings.from_config(current_app.config)
        self.session = session or db.session

    # ------------------------------------------------------------------
    # Balance
    # ------------------------------------------------------------------

    def compute_available_balance(self, agent_id):
        """Return the agent's withdrawable balance as a non-negative Decimal."""
        try:
            agent = self._get_agent(agent_id)
            return self._available_balance(agent.id)
        except SQLAlchemyError as e:
            self._store_failure(e, f"computing balance for agent {agent_id}")

    def _available_balance(self, agent_id):
        total_earned = self._sum(
            select(func.sum(Commission.amount)).where(
                Commission.user_id == agent_id,
                Commission.status.in_(CommissionStatus.earning()),
            )
        )
        # Processed payouts count at their own amount, however many commissions back them
        used_by_processed = self._sum(
            select(func.sum(Payout.amount)).where(
                Payout.user_id == agent_id,
                Payout.status.in_(PayoutStatus.processed()),
            )
        )
        pending_allocated_value = self._sum(
            select(func.sum(Commission.amount))
            .select_from(PayoutCommission)
            .join(Payout, Payout.id == PayoutCommission.payout_id)
            .join(Commission, Commission.id == PayoutCommission.commission_id)
            .where(
                Payout.user_id == agent_id,
                Payout.status == PayoutStatus.PENDING,
                Commission.status.in_(CommissionStatus.earning()),
            )
        )
        pending_requested_total = self._sum(
            select(func.sum(Payout.amount)).where(
                Payout.user_id == agent_id,
                Payout.status == PayoutStatus.PENDING,
            )
        )

        effective_pending_usage = min(pending_allocated_value, pending_requested_total)
        available = total_earned - used_by_processed - effective_pending_usage
        return max(Decimal('0.00'), available)

    def _sum(self, stmt):
        return quantize_money(self.session.execute(stmt).scalar())

    # ------------------------------------------------------------------
    # Payout requests
    # ------------------------------------------------------------------

    def request_payout(self, agent_id, amount):
        """
        Create a PENDING payout for ``amount`` and link the commissions that
        back it. Raises BelowMinimumThreshold, InsufficientBalance, NotFound,
        InvalidAmount or StoreFailure; nothing is written on failure.
        """
        amount = parse_amount(amount)
        if amount <= 0:
            raise InvalidAmount("Valid amount is required")

        threshold = self.settings.minimum_payout_threshold
        if amount < threshold:
            raise BelowMinimumThreshold(amount, threshold)

        agent_id = as_uuid(agent_id, "Agent not found")
        with agent_payout_lock(agent_id):
            try:
                agent = self._get_agent(agent_id, lock=True)

                # Re-validated under the lock so concurrent requests can't both pass
                available = self._available_balance(agent.id)
                if amount > available:
                    raise InsufficientBalance(amount, available)

                payout = Payout(user_id=agent.id, amount=amount, status=PayoutStatus.PENDING)
                self.session.add(payout)
                self.session.flush()

                remaining = self._allocate(payout)
                self.session.commit()
            except LedgerError:
                self.session.rollback()
                raise
            except SQLAlchemyError as e:
                self.session.rollback()
                self._store_failure(e, f"requesting payout of {amount} for agent {agent_id}")

        if remaining > 0:
            logger.warning(
                f"⚠️  Payout {payout.id} for agent {agent_id} is short {remaining}: "
                f"commissions exhausted, resolve manually"
            )
        logger.info(f"✅ Payout {payout.id} requested by agent {agent_id} for {amount}")
        return payout

    def _allocate(self, payout):
        """
        Link candidate commissions oldest first. Returns the uncovered amount.

        A commission is a candidate while it is APPROVED or PENDING, or while
        it is PAID through a processed payout that left part of it unused.
        Only the part not already held by another active payout is applied.
        """
        backing_processed = (
            select(PayoutCommission.commission_id)
            .join(Payout, Payout.id == PayoutCommission.payout_id)
            .where(Payout.status.in_(PayoutStatus.processed()))
        )
        candidates = self.session.execute(
            select(Commission)
            .where(
                Commission.user_id == payout.user_id,
                Commission.status.in_(CommissionStatus.earning()),
                or_(
                    Commission.status.in_(CommissionStatus.allocatable()),
                    Commission.id.in_(backing_processed),
                ),
            )
            .order_by(Commission.created_at.asc(), Commission.id.asc())
        ).scalars().all()

        reserved = dict(self.session.execute(
            select(PayoutCommission.commission_id, func.sum(PayoutCommission.allocated_amount))
            .join(Payout, Payout.id == PayoutCommission.payout_id)
            .where(
                Payout.user_id == payout.user_id,
                Payout.status.in_(PayoutStatus.active()),
                Payout.id != payout.id,
            )
            .group_by(PayoutCommission.commission_id)
        ).all())

        remaining = quantize_money(payout.amount)
        for commission in candidates:
            if remaining <= 0:
                break
            remainder = quantize_money(commission.amount) - quantize_money(reserved.get(commission.id))
            if remainder <= 0:
                continue

            applied = min(remainder, remaining)
            self.session.add(PayoutCommission(
                payout_id=payout.id,
                commission_id=commission.id,
                allocated_amount=applied,
            ))
            remaining -= applied
            logger.debug(f"Linked commission {commission.id} ({applied}) to payout {payout.id}")

        self.session.flush()
        return max(Decimal('0.00'), remaining)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve_payout(self, payout_id, new_status, transaction_id=None):
        """Move a payout to APPROVED, PAID or REJECTED and reconcile its commissions."""
        target = PayoutStatus.parse(new_status)
        if target is None or target == PayoutStatus.PENDING:
            raise InvalidStatus(f"Invalid payout status: {new_status}")

        payout_id = as_uuid(payout_id, "Payout not found")
        try:
            payout = self.session.execute(
                select(Payout).where(Payout.id == payout_id).with_for_update()
            ).scalar_one_or_none()
            if payout is None:
                raise NotFound("Payout not found")
            self._get_agent(payout.user_id, lock=True)

            previous = payout.status
            if not previous.can_transition_to(target):
                raise InvalidStatus(
                    f"Cannot move payout from {previous.value} to {target.value}"
                )

            commission_ids = self.session.execute(
                select(PayoutCommission.commission_id).where(PayoutCommission.payout_id == payout.id)
            ).scalars().all()

            now = datetime.utcnow()
            payout.status = target
            if transaction_id is not None:
                payout.transaction_id = transaction_id
            if target == PayoutStatus.APPROVED:
                payout.approved_at = now
            elif target == PayoutStatus.PAID:
                payout.paid_at = now
                if payout.approved_at is None:
                    payout.approved_at = now

            if target in PayoutStatus.processed():
                self._set_commission_status(commission_ids, CommissionStatus.PAID)
            else:
                if previous in PayoutStatus.processed():
                    self._release_commissions(payout.id, commission_ids)
                self.session.query(PayoutCommission).filter(
                    PayoutCommission.payout_id == payout.id
                ).delete(synchronize_session=False)

            self.session.commit()
        except LedgerError:
            self.session.rollback()
            raise
        except SQLAlchemyError as e:
            self.session.rollback()
            self._store_failure(e, f"resolving payout {payout_id} to {target.value}")

        logger.info(
            f"✅ Payout {payout.id} moved {previous.value} -> {target.value} "
            f"({len(commission_ids)} commissions)"
        )
        if current_app.config.get('PAYOUT_NOTIFICATIONS_ENABLED', True):
            PayoutNotificationService.send_payout_status_email(payout)
        return payout

    def _set_commission_status(self, commission_ids, status):
        if not commission_ids:
            return
        self.session.query(Commission).filter(
            Commission.id.in_(commission_ids)
        ).update({Commission.status: status}, synchronize_session='fetch')

    def _release_commissions(self, payout_id, commission_ids):
        """Return commissions to APPROVED unless another processed payout still uses them."""
        if not commission_ids:
            return
        still_backing = (
            select(PayoutCommission.commission_id)
            .join(Payout, Payout.id == PayoutCommission.payout_id)
            .where(
                Payout.status.in_(PayoutStatus.processed()),
                Payout.id != payout_id,
            )
        )
        self.session.query(Commission).filter(
            Commission.id.in_(commission_ids),
            Commission.id.not_in(still_backing),
        ).update({Commission.status: CommissionStatus.APPROVED}, synchronize_session='fetch')

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_payout(self, payout_id):
        payout = self.session.get(Payout, as_uuid(payout_id, "Payout not found"))
        if payout is None:
            raise NotFound("Payout not found")
        return payout

    def list_payouts(self, agent_id=None, status=None):
        stmt = select(Payout).order_by(Payout.created_at.desc())
        if agent_id is not None:
            stmt = stmt.where(Payout.user_id == self._get_agent(agent_id).id)
        if status is not None:
            parsed = PayoutStatus.parse(status)
            if parsed is None:
                raise InvalidStatus(f"Invalid payout status: {status}")
            stmt = stmt.where(Payout.status == parsed)
        return self.session.execute(stmt).scalars().all()

    def payout_commissions(self, payout_id):
        payout = self.get_payout(payout_id)
        return self.session.execute(
            select(PayoutCommission).where(PayoutCommission.payout_id == payout.id)
        ).scalars().all()

    # ------------------------------------------------------------------

    def _get_agent(self, agent_id, lock=False):
        agent_id = as_uuid(agent_id, "Agent not found")
        stmt = select(User).where(User.id == agent_id, User.role == UserRole.AGENT)
        if lock:
            stmt = stmt.with_for_update()
        agent = self.session.execute(stmt).scalar_one_or_none()
        if agent is None:
            raise NotFound("Agent not found")
        return agent

    def _store_failure(self, error, action):
        logger.error(f"❌ Store failure while {action}: {str(error)}", exc_info=True)
        raise StoreFailure() from error
