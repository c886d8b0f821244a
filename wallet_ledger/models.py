"""
Wallet Domain Models

Accounts, transaction records and the result objects returned by the
transaction processor. All monetary values are Decimal at two places.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import InvalidTransactionKind
from .money import ZERO


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TransactionKind(Enum):
    """Balance-changing operations"""
    TOP_UP = "top_up"
    CHARGE = "charge"

    @classmethod
    def parse(cls, value: Any) -> 'TransactionKind':
        """Accept a TransactionKind or its string value"""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidTransactionKind(f"Unknown transaction kind: {value!r}")

    @property
    def sign(self) -> int:
        return 1 if self is TransactionKind.TOP_UP else -1

    @property
    def default_description(self) -> str:
        # top_up -> "Top-up transaction"
        return f"{self.value.replace('_', '-').capitalize()} transaction"

    @property
    def success_message(self) -> str:
        return "Top-up successful" if self is TransactionKind.TOP_UP else "Charge successful"

    def apply(self, balance: Decimal, amount: Decimal) -> Decimal:
        """Balance after applying this operation"""
        return balance + amount if self is TransactionKind.TOP_UP else balance - amount


@dataclass
class Account:
    """
    Wallet account. The balance is owned by the ledger; name and email
    are profile data supplied at provisioning time.
    """
    id: str
    balance: Decimal = ZERO
    name: Optional[str] = None
    email: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage and serialization"""
        result = asdict(self)
        result['balance'] = str(self.balance)
        result['created_at'] = self.created_at.isoformat()
        result['updated_at'] = self.updated_at.isoformat()
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Account':
        return cls(
            id=str(data['id']),
            balance=Decimal(str(data['balance'])),
            name=data.get('name'),
            email=data.get('email'),
            created_at=_parse_datetime(data['created_at']),
            updated_at=_parse_datetime(data['updated_at']),
        )


@dataclass(frozen=True)
class TransactionRecord:
    """Immutable audit entry of one balance change"""
    id: int
    account_id: str
    kind: TransactionKind
    amount: Decimal
    reference: str
    description: Optional[str]
    created_at: datetime

    @property
    def signed_amount(self) -> Decimal:
        return self.amount * self.kind.sign

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'account_id': self.account_id,
            'kind': self.kind.value,
            'amount': str(self.amount),
            'reference': self.reference,
            'description': self.description,
            'created_at': self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TransactionRecord':
        return cls(
            id=int(data['id']),
            account_id=str(data['account_id']),
            kind=TransactionKind(data['kind']),
            amount=Decimal(str(data['amount'])),
            reference=data['reference'],
            description=data.get('description'),
            created_at=_parse_datetime(data['created_at']),
        )


@dataclass(frozen=True)
class TransactionResult:
    """Outcome of a committed top-up or charge"""
    account: Account
    record: TransactionRecord
    message: str


@dataclass(frozen=True)
class PaginationInfo:
    current_page: int
    per_page: int
    total: int
    last_page: int


@dataclass(frozen=True)
class TransactionPage:
    """One page of an account's transaction history, newest first"""
    account: Account
    records: List[TransactionRecord]
    pagination: PaginationInfo


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
