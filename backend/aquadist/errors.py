# Overview: Typed business errors raised by the service layer and mapped to JSON responses.

from __future__ import annotations


class LedgerError(Exception):
    """Base class for rejected ledger operations. Nothing was changed when one is raised."""

    code = "LEDGER_ERROR"
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details}


class NotFoundError(LedgerError):
    """Customer, supplier, product, order, purchase or import is unknown."""

    code = "NOT_FOUND"
    status_code = 404


class ValidationError(LedgerError, ValueError):
    """400-level input problem (malformed payload shape or values)."""

    code = "VALIDATION_ERROR"


class InsufficientStockError(LedgerError):
    code = "INSUFFICIENT_STOCK"


class InvalidPriceError(LedgerError):
    code = "INVALID_PRICE"


class ReturnExceedsOutstandingError(LedgerError):
    code = "RETURN_EXCEEDS_OUTSTANDING"


class InvalidTransitionError(LedgerError):
    code = "INVALID_TRANSITION"
    status_code = 409


class ImportInUseError(LedgerError):
    """Reversing the import would drive stock negative (the units were already sold)."""

    code = "IMPORT_IN_USE"
    status_code = 409


class ConcurrencyConflictError(LedgerError):
    """Retries ran out while concurrent writers kept invalidating our reads."""

    code = "CONCURRENCY_CONFLICT"
    status_code = 409


class AccountInUseError(LedgerError):
    """The customer or supplier still has ledger history or an open balance."""

    code = "ACCOUNT_IN_USE"
    status_code = 409
