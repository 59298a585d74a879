from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class LedgerSettings:
    """Settings injected into the payout allocator.

    minimum_payout_threshold: smallest amount an agent may withdraw.
    default_commission_rate: percentage applied to a referred order's total
    when no explicit rate is given.
    """

    minimum_payout_threshold: Decimal = Decimal('50')
    default_commission_rate: Decimal = Decimal('10')

    @classmethod
    def from_config(cls, config):
        return cls(
            minimum_payout_threshold=Decimal(str(config.get('MINIMUM_PAYOUT_THRESHOLD', '50'))),
            default_commission_rate=Decimal(str(config.get('DEFAULT_COMMISSION_RATE', '10'))),
        )
