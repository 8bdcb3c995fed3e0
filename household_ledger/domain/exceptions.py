"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Input rejected before any store call"""

    pass


class InvalidAmountError(ValidationError):
    """Monetary amount is negative, zero where not allowed, or malformed"""

    pass


class InvalidPaymentMethodError(ValidationError):
    """Transaction references both a bank account and a credit card"""

    pass


class InvalidCardConfigurationError(ValidationError):
    """Credit card closing/due day, limit or digits are out of range"""

    pass


class InvalidSplitError(ValidationError):
    """Split rules for a shared transaction are inconsistent"""

    pass


class InvalidBillStateError(ValidationError):
    """Requested bill status transition is not allowed"""

    pass


class NotFoundError(DomainException):
    """A required record is absent"""

    entity = "Record"

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"{self.entity} not found: {record_id}")


class AccountNotFoundError(NotFoundError):
    entity = "Account"


class CreditCardNotFoundError(NotFoundError):
    entity = "Credit card"


class TransactionNotFoundError(NotFoundError):
    entity = "Transaction"


class BillNotFoundError(NotFoundError):
    entity = "Bill"


class StoreError(DomainException):
    """The underlying store failed; the original cause is chained"""

    pass


class ConcurrentModificationError(DomainException):
    """A versioned record changed between read and write"""

    pass
