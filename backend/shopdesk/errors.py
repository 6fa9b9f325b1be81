# Overview: Error taxonomy for the sales and credit engine.

"""
Engine errors.

Three families, each handled differently by callers:
- ValidationError: caller-fixable input problem, raised before any write.
- BusinessRuleError: the request is well formed but the current state refuses it.
- InfrastructureError: storage failure; the operation rolled back as a unit and
  may be retried as a whole.
"""


class EngineError(Exception):
    """Base class for all engine errors."""
    code = "ENGINE_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details}


class ValidationError(EngineError):
    """400-level input problem."""
    code = "VALIDATION_ERROR"


class BusinessRuleError(EngineError):
    """409-level business rule refusal."""
    code = "BUSINESS_RULE"


class NotFoundError(BusinessRuleError):
    """Referenced entity does not exist."""
    code = "NOT_FOUND"


class InfrastructureError(EngineError):
    code = "INFRASTRUCTURE"


# Validation

class EmptyCart(ValidationError):
    code = "EMPTY_CART"


class InvalidQuantity(ValidationError):
    code = "INVALID_QUANTITY"


class InvalidPrice(ValidationError):
    code = "INVALID_PRICE"


class InvalidAmount(ValidationError):
    code = "INVALID_AMOUNT"


class SaleTooLarge(ValidationError):
    """Sale total or item count beyond what a sale can store."""
    code = "SALE_TOO_LARGE"


# Business rules

class ProductNotFound(NotFoundError):
    code = "PRODUCT_NOT_FOUND"


class SaleNotFound(NotFoundError):
    code = "SALE_NOT_FOUND"


class PaymentNotFound(NotFoundError):
    code = "PAYMENT_NOT_FOUND"


class InsufficientStock(BusinessRuleError):
    code = "INSUFFICIENT_STOCK"


class NotOnCredit(BusinessRuleError):
    code = "NOT_ON_CREDIT"


class SaleAlreadyPaid(BusinessRuleError):
    code = "SALE_ALREADY_PAID"


class PaymentExceedsBalance(BusinessRuleError):
    code = "PAYMENT_EXCEEDS_BALANCE"


class PaymentAlreadyRecorded(BusinessRuleError):
    """A migrated payment key was already imported."""
    code = "PAYMENT_ALREADY_RECORDED"


# Infrastructure

class TransactionAborted(InfrastructureError):
    """Unit of work failed at the storage layer and was fully rolled back."""
    code = "TRANSACTION_ABORTED"
