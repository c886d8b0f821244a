"""
Transaction Processing Module

Applies top-ups and charges to wallet balances. Each operation locks the
account, validates it, appends a transaction record and writes the new
balance as one atomic unit on the ledger store. Nothing is visible to
other callers until the unit commits, and any failure rolls it back.
"""

from dataclasses import replace
from typing import Any, Dict, List, Optional, Union

from .config import WalletConfig, get_config
from .errors import (
    AccountNotFound, InsufficientBalance, InvalidPagination, InvalidReference,
    WalletError
)
from .logging_config import get_logger, log_action
from .models import (
    Account, PaginationInfo, TransactionKind, TransactionPage, TransactionResult, utc_now
)
from .money import AmountLike, ZERO, normalize_amount, to_decimal
from .storage import LedgerStore

MAX_REFERENCE_LENGTH = 255


class TransactionProcessor:
    """
    Processes wallet transactions against a ledger store
    """

    def __init__(self, store: LedgerStore, config: Optional[WalletConfig] = None):
        self.store = store
        self.config = config or get_config()
        self.max_amount = to_decimal(self.config.max_transaction_amount)
        self.logger = get_logger("wallet_ledger.processor")

    def process(
        self,
        account_id: str,
        amount: AmountLike,
        reference: str,
        kind: Union[TransactionKind, str],
        description: Optional[str] = None
    ) -> TransactionResult:
        """
        Apply one balance-changing operation

        Args:
            account_id: Account to update
            amount: Positive amount, rounded half-up to two places
            reference: Caller-supplied unique reference
            kind: TransactionKind or its value ("top_up", "charge")
            description: Optional description; defaults from the kind

        Returns:
            TransactionResult with the updated account and the new record

        Raises:
            InvalidAmount, InvalidReference, InvalidTransactionKind: Bad input
            AccountNotFound: Unknown account
            InsufficientBalance: Charge larger than the current balance
            DuplicateReference: Reference already used
            StoreUnavailable: Transient storage failure, safe to retry
        """
        kind = TransactionKind.parse(kind)
        amount = normalize_amount(amount, self.max_amount)
        reference = self._validate_reference(reference)
        description = description or kind.default_description

        try:
            with self.store.atomic():
                account = self.store.lock_account(account_id)

                if kind is TransactionKind.CHARGE and account.balance < amount:
                    raise InsufficientBalance(account_id, account.balance, amount)

                record = self.store.create_transaction(
                    account_id, kind, amount, reference, description
                )
                new_balance = kind.apply(account.balance, amount)
                self.store.update_balance(account_id, new_balance)
        except WalletError as e:
            log_action(
                self.logger, "warning", f"Transaction rejected: {e.code}",
                account_id=account_id, action=f"process_{kind.value}",
                resource=f"account:{account_id}",
                extra={"reference": reference, "amount": str(amount), "error": e.to_dict()}
            )
            raise
        except Exception:
            log_action(
                self.logger, "error", "Transaction failed unexpectedly",
                account_id=account_id, action=f"process_{kind.value}",
                resource=f"account:{account_id}",
                extra={"reference": reference, "amount": str(amount)},
                exc_info=True
            )
            raise

        account = replace(account, balance=new_balance, updated_at=utc_now())

        if self.config.enable_audit_logging:
            log_action(
                self.logger, "info", kind.success_message,
                account_id=account_id, action=f"process_{kind.value}",
                resource=f"transaction:{record.id}",
                extra={
                    "transaction_id": record.id,
                    "kind": kind.value,
                    "amount": str(amount),
                    "reference": reference,
                    "new_balance": str(new_balance)
                }
            )

        return TransactionResult(account=account, record=record, message=kind.success_message)

    def top_up(self, account_id: str, amount: AmountLike, reference: str,
               description: Optional[str] = None) -> TransactionResult:
        """Convenience method for top-ups"""
        return self.process(account_id, amount, reference, TransactionKind.TOP_UP, description)

    def charge(self, account_id: str, amount: AmountLike, reference: str,
               description: Optional[str] = None) -> TransactionResult:
        """Convenience method for charges"""
        return self.process(account_id, amount, reference, TransactionKind.CHARGE, description)

    def get_balance(self, account_id: str) -> Account:
        """Get the committed state of an account"""
        account = self.store.get_account(account_id)
        if account is None:
            raise AccountNotFound(account_id)
        return account

    def list_transactions(self, account_id: str, page: int = 1,
                          page_size: Optional[int] = None) -> TransactionPage:
        """
        Get one page of an account's transactions, newest first

        Args:
            account_id: Account ID
            page: 1-based page number
            page_size: Records per page, defaults to config.default_page_size

        Returns:
            TransactionPage with the records and pagination info
        """
        if page_size is None:
            page_size = self.config.default_page_size
        if page < 1:
            raise InvalidPagination(f"Page must be at least 1, got {page}")
        if not 1 <= page_size <= self.config.max_page_size:
            raise InvalidPagination(
                f"Page size must be between 1 and {self.config.max_page_size}, got {page_size}"
            )

        account = self.get_balance(account_id)
        total = self.store.count_transactions(account_id)
        records = self.store.list_transactions(
            account_id, limit=page_size, offset=(page - 1) * page_size
        )
        last_page = max(1, -(-total // page_size))

        return TransactionPage(
            account=account,
            records=records,
            pagination=PaginationInfo(
                current_page=page,
                per_page=page_size,
                total=total,
                last_page=last_page
            )
        )

    def reconcile(self, account_id: str) -> Dict[str, Any]:
        """
        Replay an account's transactions against its balance

        The account is locked while replaying, so the balance and the
        records are read from the same committed state.

        Returns:
            Dictionary with reconciliation results
        """
        with self.store.atomic():
            account = self.store.lock_account(account_id)
            count = self.store.count_transactions(account_id)
            records = self.store.list_transactions(account_id, limit=max(count, 1))

        running = ZERO
        negative_prefixes: List[Dict[str, Any]] = []
        for record in reversed(records):
            running += record.signed_amount
            if running < ZERO:
                negative_prefixes.append({
                    'transaction_id': record.id,
                    'reference': record.reference,
                    'running_balance': running
                })

        result = {
            'account_id': account_id,
            'valid': running == account.balance and not negative_prefixes,
            'balance': account.balance,
            'ledger_total': running,
            'transaction_count': len(records),
            'negative_prefixes': negative_prefixes
        }

        if not result['valid']:
            log_action(
                self.logger, "error", "Ledger does not reconcile with balance",
                account_id=account_id, action="reconcile",
                resource=f"account:{account_id}",
                extra={
                    'balance': str(account.balance),
                    'ledger_total': str(running),
                    'negative_prefixes': len(negative_prefixes)
                }
            )
        return result

    @staticmethod
    def _validate_reference(reference: Any) -> str:
        if not isinstance(reference, str) or not reference.strip():
            raise InvalidReference("Reference is required")
        if len(reference) > MAX_REFERENCE_LENGTH:
            raise InvalidReference(f"Reference cannot exceed {MAX_REFERENCE_LENGTH} characters")
        return reference
