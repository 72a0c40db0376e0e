"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


# Validation: rejected before any mutation


class ValidationError(DomainException):
    """Input is malformed or violates a business rule"""

    pass


class InvalidLoanTermsError(ValidationError):
    """Principal, rate or tenure cannot produce a schedule"""

    pass


class InvalidPaymentError(ValidationError):
    """Payment amount is not positive"""

    pass


class InvalidLoanStateError(ValidationError):
    """Loan is in a status that does not permit the operation"""

    pass


class InvalidMarginCallTransitionError(ValidationError):
    """Margin call can only leave the PENDING state once"""

    pass


# Missing records: operation aborted, nothing mutated


class NotFoundError(DomainException):
    """Referenced entity does not exist"""

    pass


class LoanNotFoundError(NotFoundError):
    pass


class CollateralNotFoundError(NotFoundError):
    pass


class MarginCallNotFoundError(NotFoundError):
    pass


class TransientStoreError(DomainException):
    """Persistence failed mid-operation; the aggregate transaction was rolled back"""

    pass


# Product policy problems: batch sweeps skip the loan


class PolicyError(DomainException):
    """Loan product policy cannot be applied"""

    pass


class PolicyMissingError(PolicyError):
    """Loan has no product or the product lacks LTV thresholds"""

    pass


class InvalidPolicyError(PolicyError):
    """Thresholds are not ordered max LTV < margin call < liquidation"""

    pass


class PriceUnavailableError(NotFoundError):
    """Price feed has no NAV for a position"""

    pass
