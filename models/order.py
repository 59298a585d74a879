from datetime import datetime
from sqlalchemy import Uuid
import uuid
from db.extensions import db
from models.status import OrderStatus


class Order(db.Model):
    __tablename__ = "orders"
    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    agent_id = db.Column(Uuid, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)
    status = db.Column(db.Enum(OrderStatus, name='order_status_enum'), default=OrderStatus.PENDING, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    commission = db.relationship('Commission', uselist=False, back_populates='order')
