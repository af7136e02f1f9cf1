"""
Error taxonomy for the sale/return engine.

Every error carries a human message plus a structured ``details`` dict so
routes can render a user-facing response without parsing strings. All of
them abort the unit of work they are raised in; none are retried inside
the core except the infrastructure ones, which the caller may retry.
"""

from __future__ import annotations


class LedgerPosError(Exception):
    """Base class for domain errors."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "type": type(self).__name__,
            "details": self.details,
        }


class ValidationError(LedgerPosError):
    """400-level input problem."""


# =============================================================================
# INVENTORY
# =============================================================================

class InsufficientStockError(LedgerPosError):
    def __init__(self, *, product_id: int, batch_id: int, requested: int, available: int):
        super().__init__(
            f"Insufficient stock in batch {batch_id}: requested {requested}, available {available}",
            details={
                "product_id": product_id,
                "batch_id": batch_id,
                "requested": requested,
                "available": available,
                "shortfall": max(0, requested - available),
            },
        )
        self.product_id = product_id
        self.batch_id = batch_id
        self.requested = requested
        self.available = available


class ProductNotFoundError(LedgerPosError):
    status_code = 404

    def __init__(self, product_id: int):
        super().__init__(f"Product {product_id} not found", details={"product_id": product_id})
        self.product_id = product_id


class BatchNotFoundError(LedgerPosError):
    status_code = 404

    def __init__(self, *, product_id: int, batch_id: int):
        super().__init__(
            f"Batch {batch_id} not found for product {product_id}",
            details={"product_id": product_id, "batch_id": batch_id},
        )


class DuplicateSerialError(LedgerPosError):
    def __init__(self, serial_number: str, reason: str = "duplicated in request"):
        super().__init__(
            f"Serial number {serial_number} {reason}",
            details={"serial_number": serial_number, "reason": reason},
        )
        self.serial_number = serial_number


class SerialCountMismatchError(LedgerPosError):
    def __init__(self, *, product_id: int, expected: int, given: int):
        super().__init__(
            f"Product {product_id} is serialized: expected {expected} serial numbers, got {given}",
            details={"product_id": product_id, "expected": expected, "given": given},
        )


# =============================================================================
# LEDGER
# =============================================================================

class UnbalancedEntryError(LedgerPosError):
    def __init__(self, *, debit_amount: int, credit_amount: int):
        super().__init__(
            "Debit and credit amounts must match for double-entry",
            details={"debit_amount": debit_amount, "credit_amount": credit_amount},
        )
        self.debit_amount = debit_amount
        self.credit_amount = credit_amount


class InvalidEntryError(LedgerPosError):
    """Ledger fact is malformed (negative amount, unknown account, same account both sides)."""


# =============================================================================
# SALES / RETURNS
# =============================================================================

class InvalidTotalsError(LedgerPosError):
    def __init__(self, *, field: str, expected: int, given: int):
        super().__init__(
            f"{field} does not reconcile: expected {expected}, given {given}",
            details={"field": field, "expected": expected, "given": given},
        )
        self.expected = expected
        self.given = given


class OriginalTransactionNotFoundError(LedgerPosError):
    status_code = 404

    def __init__(self, original_transaction_id):
        super().__init__(
            f"Original transaction {original_transaction_id} not found",
            details={"original_transaction_id": original_transaction_id},
        )


class InvalidReturnStateError(LedgerPosError):
    def __init__(self, serial_number: str, status: str | None = None):
        super().__init__(
            f"Serial number {serial_number} is not in Sold state",
            details={"serial_number": serial_number, "status": status},
        )
        self.serial_number = serial_number


class InvalidReturnQuantityError(LedgerPosError):
    def __init__(self, *, product_id: int, batch_id: int, requested: int, returnable: int):
        super().__init__(
            f"Cannot return {requested} units of product {product_id} (batch {batch_id}); "
            f"returnable: {returnable}",
            details={
                "product_id": product_id,
                "batch_id": batch_id,
                "requested": requested,
                "returnable": returnable,
            },
        )


# =============================================================================
# ACCOUNT DIRECTORY
# =============================================================================

class EntityNotFoundError(LedgerPosError):
    status_code = 404

    def __init__(self, entity_id: int):
        super().__init__(f"Entity {entity_id} not found", details={"entity_id": entity_id})


class AccountNotFoundError(LedgerPosError):
    status_code = 404

    def __init__(self, account_id: int):
        super().__init__(f"Account {account_id} not found", details={"account_id": account_id})


class ReferentialIntegrityError(LedgerPosError):
    status_code = 409


# =============================================================================
# INFRASTRUCTURE
# =============================================================================

class RetryableError(LedgerPosError):
    """Storage-level failure; no partial state persisted, the caller may retry the request."""

    status_code = 503

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["retryable"] = True
        return body


class StorageUnavailableError(RetryableError):
    pass


class UnitOfWorkTimeoutError(RetryableError):
    pass
