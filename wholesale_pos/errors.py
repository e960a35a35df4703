# wholesale_pos/errors.py
from __future__ import annotations


# ----------------------------
# Domain errors (friendly)
# ----------------------------
class DomainError(Exception):
    """Domain-level error the controller/UI can surface (toast/snackbar)."""


class ValidationError(DomainError):
    """Rejected before any write happened; fix the input and retry."""


class InsufficientStockError(ValidationError):
    """Requested base units exceed the product's on-hand stock."""

    def __init__(self, message: str, *, product_id: int | None = None,
                 available: float | None = None, requested: float | None = None):
        super().__init__(message)
        self.product_id = product_id
        self.available = available
        self.requested = requested


class EmptyCartError(ValidationError):
    """Commit attempted with no cart lines."""


class CreditRequiresCustomerError(ValidationError):
    """An unpaid balance was left on a sale to the anonymous cash customer."""


class OverpaymentRejectedError(ValidationError):
    """Amount paid exceeds the sale total."""


class InvalidPaymentAmountError(ValidationError):
    """Amount is zero/negative or larger than the outstanding balance."""


class NoReturnedProductsError(ValidationError):
    """A goods repayment was attempted without any returned products."""


class InvalidQuantityError(ValidationError):
    """Quantity is missing, zero or negative."""


class UnknownSaleModeError(ValidationError):
    """The product has no sale mode with the requested name."""


class NoSaleModesError(ValidationError):
    """A product must carry at least one sale mode."""


class NotFoundError(ValidationError):
    """Referenced product/customer/lender/borrowing does not exist."""


class LenderMismatchError(ValidationError):
    """The borrowing instance belongs to a different lender."""


class PartialCommitError(DomainError):
    """
    A multi-step write failed after its transaction started.

    `rolled_back` is True when the rollback succeeded, i.e. nothing was applied.
    When it is False the caller must tell the user the operation MAY have been
    partially applied and ask them to check inventory/balances.
    """

    def __init__(self, message: str, *, original: BaseException | None = None,
                 rolled_back: bool = True):
        super().__init__(message)
        self.original = original
        self.rolled_back = rolled_back


class DocumentGenerationError(DomainError):
    """Invoice/statement rendering failed after a successful commit (non-fatal)."""

    def __init__(self, message: str, *, original: BaseException | None = None):
        super().__init__(message)
        self.original = original


class AuthenticationError(DomainError):
    """No valid session, or the login attempt was rejected."""


__all__ = [
    "DomainError",
    "ValidationError",
    "InsufficientStockError",
    "EmptyCartError",
    "CreditRequiresCustomerError",
    "OverpaymentRejectedError",
    "InvalidPaymentAmountError",
    "NoReturnedProductsError",
    "InvalidQuantityError",
    "UnknownSaleModeError",
    "NoSaleModesError",
    "NotFoundError",
    "LenderMismatchError",
    "PartialCommitError",
    "DocumentGenerationError",
    "AuthenticationError",
]
