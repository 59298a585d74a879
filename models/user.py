from datetime import datetime
from sqlalchemy import Uuid
import uuid
from db.extensions import db
from models.status import UserRole


class User(db.Model):
    __tablename__ = "users"
    id = db.Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = db.Column(db.String(255), nullable=False, unique=True)
    role = db.Column(db.Enum(UserRole, name='user_role_enum'), nullable=False, default=UserRole.AGENT)
    first_name = db.Column(db.String(100))
    last_name = db.Column(db.String(100))
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    commissions = db.relationship("Commission", back_populates="agent")
    payouts = db.relationship("Payout", back_populates="agent")

    @property
    def display_name(self):
        name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return name or self.email

    def __repr__(self):
        return f"<User {self.email} role={self.role.value if self.role else None}>"
