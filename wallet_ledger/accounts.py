"""
Account Provisioning Module

Creates wallet accounts with a zero balance. Everything after creation
goes through the transaction processor.
"""

from typing import Optional
import uuid

from .logging_config import get_logger, log_action
from .models import Account, utc_now
from .money import ZERO
from .storage import LedgerStore


class AccountProvisioner:
    """Opens new wallet accounts on a ledger store"""

    def __init__(self, store: LedgerStore):
        self.store = store
        self.logger = get_logger("wallet_ledger.accounts")

    def create_account(self, name: Optional[str] = None, email: Optional[str] = None) -> Account:
        """
        Create an account with a zero balance

        Args:
            name: Optional display name
            email: Optional contact email

        Returns:
            The created Account
        """
        now = utc_now()
        account = Account(
            id=str(uuid.uuid4()),
            balance=ZERO,
            name=name,
            email=email,
            created_at=now,
            updated_at=now
        )
        self.store.create_account(account)

        log_action(
            self.logger, "info", "Account created",
            account_id=account.id, action="create_account",
            resource=f"account:{account.id}"
        )
        return account
