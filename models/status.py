import enum


class UserRole(str, enum.Enum):
    ADMIN = 'ADMIN'
    AGENT = 'AGENT'


class OrderStatus(str, enum.Enum):
    PENDING = 'PENDING'
    CONFIRMED = 'CONFIRMED'
    SHIPPED = 'SHIPPED'
    DELIVERED = 'DELIVERED'
    CANCELLED = 'CANCELLED'


class CommissionStatus(str, enum.Enum):
    PENDING = 'PENDING'
    APPROVED = 'APPROVED'
    PAID = 'PAID'
    BLOCKED = 'BLOCKED'

    @classmethod
    def earning(cls):
        """Statuses that count toward an agent's earned total."""
        return (cls.PENDING, cls.APPROVED, cls.PAID)

    @classmethod
    def allocatable(cls):
        """Statuses a commission may have to back a new payout."""
        return (cls.APPROVED, cls.PENDING)


class PayoutStatus(str, enum.Enum):
    PENDING = 'PENDING'
    APPROVED = 'APPROVED'
    PAID = 'PAID'
    REJECTED = 'REJECTED'

    @classmethod
    def processed(cls):
        return (cls.APPROVED, cls.PAID)

    @classmethod
    def active(cls):
        return (cls.PENDING, cls.APPROVED, cls.PAID)

    @classmethod
    def parse(cls, value):
        """Return the member for ``value`` (member or case-insensitive name), else None."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().upper())
        except ValueError:
            return None

    def can_transition_to(self, target):
        return target in PAYOUT_TRANSITIONS[self]


# REJECTED is terminal; PAID may only be reversed.
PAYOUT_TRANSITIONS = {
    PayoutStatus.PENDING: frozenset({PayoutStatus.APPROVED, PayoutStatus.REJECTED}),
    PayoutStatus.APPROVED: frozenset({PayoutStatus.PAID, PayoutStatus.REJECTED}),
    PayoutStatus.PAID: frozenset({PayoutStatus.REJECTED}),
    PayoutStatus.REJECTED: frozenset(),
}
