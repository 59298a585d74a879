import logging
from decimal import Decimal

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from db.extensions import db
from models.commission import Commission
from models.order import Order
from models.status import CommissionStatus, UserRole
from models.user import User
from services.settings import LedgerSettings
from services.exceptions import InvalidAmount, LedgerError, NotFound, StoreFailure
from services.utils import as_uuid, parse_amount, quantize_money

logger = logging.getLogger(__name__)


class CommissionService:

    def __init__(self, settings=None, session=None):
        self.settings = settings or LedgerSettings.from_config(current_app.config)
        self.session = session or db.session

    def record_order_commission(self, order_id, rate=None):
        """
        Create the PENDING commission for a referred order.
        ``rate`` is a percentage; defaults to the configured commission rate.
        Returns None for orders without a referral agent.
        """
        rate = self.settings.default_commission_rate if rate is None else parse_amount(rate, 'rate')
        if rate < 0:
            raise InvalidAmount("rate must not be negative")

        order_id = as_uuid(order_id, "Order not found")
        try:
            order = self.session.get(Order, order_id)
            if order is None:
                raise NotFound("Order not found")
            if order.agent_id is None:
                logger.debug(f"Order {order_id} has no referral agent, no commission recorded")
                return None

            existing = self.session.execute(
                select(Commission).where(Commission.order_id == order.id)
            ).scalar_one_or_none()
            if existing is not None:
                return existing

            amount = quantize_money(Decimal(order.total_price) * Decimal(rate) / Decimal(100))
            commission = Commission(
                order_id=order.id,
                user_id=order.agent_id,
                amount=amount,
                status=CommissionStatus.PENDING,
            )
            self.session.add(commission)
            self.session.commit()
        except LedgerError:
            self.session.rollback()
            raise
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"❌ Store failure recording commission for order {order_id}: {str(e)}", exc_info=True)
            raise StoreFailure() from e

        logger.info(f"✅ Commission {commission.id} of {amount} recorded for agent {order.agent_id}")
        return commission

    def list_commissions(self, agent_id):
        agent_id = as_uuid(agent_id, "Agent not found")
        agent = self.session.execute(
            select(User).where(User.id == agent_id, User.role == UserRole.AGENT)
        ).scalar_one_or_none()
        if agent is None:
            raise NotFound("Agent not found")
        return self.session.execute(
            select(Commission)
            .where(Commission.user_id == agent.id)
            .order_by(Commission.created_at.asc(), Commission.id.asc())
        ).scalars().all()
