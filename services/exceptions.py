class LedgerError(Exception):
    """Base class for commission ledger errors the caller can react to."""

    status_code = 400
    code = 'ledger_error'

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'success': False, 'error': self.code, 'message': self.message}


class NotFound(LedgerError):
    status_code = 404
    code = 'not_found'


class InvalidAmount(LedgerError):
    code = 'invalid_amount'


class InvalidStatus(LedgerError):
    code = 'invalid_status'


class BelowMinimumThreshold(LedgerError):
    code = 'below_minimum_threshold'

    def __init__(self, amount, threshold):
        super().__init__(
            f"Minimum payout amount is {threshold}. Please request at least {threshold} for payout."
        )
        self.amount = amount
        self.threshold = threshold


class InsufficientBalance(LedgerError):
    code = 'insufficient_balance'

    def __init__(self, requested, available):
        super().__init__(
            f"Requested amount {requested} exceeds available commission balance {available}"
        )
        self.requested = requested
        self.available = available


class StoreFailure(LedgerError):
    """The store was unreachable or the transaction aborted. Safe to retry."""

    status_code = 503
    code = 'store_failure'

    def __init__(self, message='Ledger store unavailable. Please try again.'):
        super().__init__(message)
