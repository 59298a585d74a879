from datetime import datetime
from sqlalchemy import Uuid
import uuid
from db.extensions import db
from models.status import PayoutStatus


class Payout(db.Model):
    __tablename__ = "payouts"
    __table_args__ = (
        db.Index('ix_payouts_status_created_at', 'status', 'created_at'),
    )
    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = db.Column(Uuid, db.ForeignKey('users.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    status = db.Column(db.Enum(PayoutStatus, name='payout_status_enum'), default=PayoutStatus.PENDING, nullable=False)
    transaction_id = db.Column(db.String(255), nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)
    paid_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    agent = db.relationship("User", back_populates="payouts")
    commission_links = db.relationship("PayoutCommission", back_populates="payout")

    def to_dict(self):
        return {
            'id': str(self.id),
            'user_id': str(self.user_id),
            'amount': str(self.amount),
            'status': self.status.value,
            'transaction_id': self.transaction_id,
            'approved_at': self.approved_at.isoformat() if self.approved_at else None,
            'paid_at': self.paid_at.isoformat() if self.paid_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Payout {self.id} amount={self.amount} status={self.status.value}>"


class PayoutCommission(db.Model):
    __tablename__ = "payout_commissions"
    __table_args__ = (
        db.UniqueConstraint('payout_id', 'commission_id', name='uq_payout_commission'),
    )
    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    payout_id = db.Column(Uuid, db.ForeignKey('payouts.id'), nullable=False, index=True)
    commission_id = db.Column(Uuid, db.ForeignKey('commissions.id'), nullable=False, index=True)
    allocated_amount = db.Column(db.Numeric(12, 2), nullable=False)  # portion of the commission applied
    payout = db.relationship("Payout", back_populates="commission_links")
    commission = db.relationship("Commission", back_populates="payout_links")

    def to_dict(self):
        return {
            'id': str(self.id),
            'payout_id': str(self.payout_id),
            'commission_id': str(self.commission_id),
            'allocated_amount': str(self.allocated_amount),
        }
