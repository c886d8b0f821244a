"""
Wallet Error Taxonomy

Every failure the ledger can report is a WalletError subclass carrying
its data as attributes, so callers branch on type and fields instead of
parsing messages.
"""

from decimal import Decimal
from typing import Any, Dict, Optional


class WalletError(Exception):
    """Base class for wallet ledger errors."""

    code = "wallet_error"

    def to_dict(self) -> Dict[str, Any]:
        """Structured payload for API responses and logs"""
        return {"type": self.code, "message": str(self)}


class AccountNotFound(WalletError):
    """Raised when the requested account does not exist."""

    code = "account_not_found"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.code, "message": str(self), "account_id": self.account_id}


class InsufficientBalance(WalletError):
    """Raised when a charge exceeds the current balance."""

    code = "insufficient_balance"

    def __init__(self, account_id: str, current_balance: Decimal, requested_amount: Decimal):
        self.account_id = account_id
        self.current_balance = current_balance
        self.requested_amount = requested_amount
        super().__init__("Insufficient balance")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.code,
            "message": str(self),
            "account_id": self.account_id,
            "current_balance": self.current_balance,
            "requested_amount": self.requested_amount,
        }


class DuplicateReference(WalletError):
    """Raised when a transaction reference has already been used."""

    code = "duplicate_reference"

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Reference {reference!r} has already been used")

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.code, "message": str(self), "reference": self.reference}


class InvalidAmount(WalletError, ValueError):
    """Raised when an amount is not a positive value at two decimal places."""

    code = "invalid_amount"

    def __init__(self, message: str, amount: Any = None):
        self.amount = amount
        super().__init__(message)


class InvalidReference(WalletError, ValueError):
    """Raised when a transaction reference is empty or too long."""

    code = "invalid_reference"


class InvalidTransactionKind(WalletError, ValueError):
    """Raised for a transaction kind other than top-up or charge."""

    code = "invalid_transaction_kind"


class InvalidPagination(WalletError, ValueError):
    """Raised for a page number or page size out of range."""

    code = "invalid_pagination"


class StoreUnavailable(WalletError):
    """
    Transient storage failure.

    The operation had no effect and can be retried as a whole.
    """

    code = "store_unavailable"


class LockTimeout(StoreUnavailable):
    """Raised when an account lock is not acquired within the store's lock timeout."""

    code = "lock_timeout"

    def __init__(self, account_id: Optional[str], timeout: Optional[float]):
        self.account_id = account_id
        self.timeout = timeout
        target = f"account {account_id}" if account_id else "the ledger"
        super().__init__(f"Timed out after {timeout}s waiting for a lock on {target}")
