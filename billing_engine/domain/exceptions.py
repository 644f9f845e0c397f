"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Request or plan parameters are malformed (e.g. non-positive amount)"""

    pass


class NoPendingDuesError(DomainException):
    """Payment has no outstanding obligation to be applied to"""

    pass


class ConcurrencyConflictError(DomainException):
    """Stored obligation changed since it was read; caller must retry"""

    pass


class StoreError(DomainException):
    """Underlying persistence failure"""

    pass


class CustomerNotFoundError(DomainException):
    """Referenced customer does not exist"""

    pass
