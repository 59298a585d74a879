from datetime import datetime
from sqlalchemy import Uuid
import uuid
from db.extensions import db
from models.status import CommissionStatus


class Commission(db.Model):
    __tablename__ = "commissions"
    __table_args__ = (
        db.Index('ix_commissions_status_created_at', 'status', 'created_at'),
    )
    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = db.Column(Uuid, db.ForeignKey('orders.id'), nullable=False)
    user_id = db.Column(Uuid, db.ForeignKey('users.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    status = db.Column(db.Enum(CommissionStatus, name='commission_status_enum'), default=CommissionStatus.PENDING, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    order = db.relationship("Order", back_populates="commission")
    agent = db.relationship("User", back_populates="commissions")
    payout_links = db.relationship("PayoutCommission", back_populates="commission")

    def to_dict(self):
        return {
            'id': str(self.id),
            'order_id': str(self.order_id),
            'user_id': str(self.user_id),
            'amount': str(self.amount),
            'status': self.status.value,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Commission {self.id} amount={self.amount} status={self.status.value}>"
