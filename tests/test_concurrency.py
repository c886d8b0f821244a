"""
Concurrency tests for the transaction processor

Threads hammer the same account through the processor; the final
balance must match what a serial execution of the successful operations
would produce, and charges may never overdraw.
"""

import pytest
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from pathlib import Path

from wallet_ledger.accounts import AccountProvisioner
from wallet_ledger.config import WalletConfig
from wallet_ledger.errors import DuplicateReference, InsufficientBalance, LockTimeout
from wallet_ledger.processor import TransactionProcessor
from wallet_ledger.storage import InMemoryLedgerStore, SQLiteLedgerStore


@pytest.fixture(params=["memory", "sqlite"])
def store(request):
    if request.param == "memory":
        backend = InMemoryLedgerStore(lock_timeout=30.0)
        yield backend
        backend.close()
    else:
        with tempfile.TemporaryDirectory() as temp_dir:
            backend = SQLiteLedgerStore(Path(temp_dir) / "ledger.db", lock_timeout=30.0)
            yield backend
            backend.close()


@pytest.fixture
def processor(store):
    return TransactionProcessor(store, WalletConfig())


@pytest.fixture
def account(store):
    return AccountProvisioner(store).create_account()


class TestConcurrentOperations:
    """Test operations racing on one account"""

    def test_concurrent_top_ups(self, processor, account):
        """Fifty parallel top-ups all land"""
        def top_up(i):
            return processor.top_up(account.id, "2.50", f"TOP-{i}")

        with ThreadPoolExecutor(max_workers=10) as executor:
            results = list(executor.map(top_up, range(50)))

        assert len(results) == 50
        assert processor.get_balance(account.id).balance == Decimal("125.00")
        assert processor.list_transactions(account.id).pagination.total == 50
        assert len({result.record.id for result in results}) == 50
        assert processor.reconcile(account.id)['valid'] is True

    def test_concurrent_charges_never_overdraw(self, processor, account):
        """Thirty charges of 10.00 against 100.00: exactly ten succeed"""
        processor.top_up(account.id, "100.00", "FUND")

        def charge(i):
            try:
                processor.charge(account.id, "10.00", f"CHG-{i}")
                return True
            except InsufficientBalance:
                return False

        with ThreadPoolExecutor(max_workers=10) as executor:
            outcomes = list(executor.map(charge, range(30)))

        assert outcomes.count(True) == 10
        assert processor.get_balance(account.id).balance == Decimal("0.00")
        assert processor.list_transactions(account.id).pagination.total == 11
        assert processor.reconcile(account.id)['valid'] is True

    def test_mixed_operations(self, processor, account):
        """Interleaved top-ups and charges keep balance and ledger in step"""
        processor.top_up(account.id, "20.00", "FUND")

        def operate(i):
            try:
                if i % 2:
                    processor.top_up(account.id, "3.00", f"MIX-{i}")
                else:
                    processor.charge(account.id, "4.00", f"MIX-{i}")
            except InsufficientBalance:
                pass

        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(operate, range(40)))

        report = processor.reconcile(account.id)
        assert report['valid'] is True
        assert report['balance'] >= Decimal("0.00")

    def test_same_reference_race(self, processor, account):
        """Only one of many parallel uses of a reference succeeds"""
        barrier = threading.Barrier(8)

        def top_up(_):
            barrier.wait()
            try:
                processor.top_up(account.id, "1.00", "SAME-REF")
                return True
            except DuplicateReference:
                return False

        with ThreadPoolExecutor(max_workers=8) as executor:
            outcomes = list(executor.map(top_up, range(8)))

        assert outcomes.count(True) == 1
        assert processor.get_balance(account.id).balance == Decimal("1.00")
        assert processor.list_transactions(account.id).pagination.total == 1


@pytest.fixture(params=["memory", "sqlite"])
def short_timeout_store(request):
    """Stores that give up on a held account lock after 0.2s"""
    if request.param == "memory":
        backend = InMemoryLedgerStore(lock_timeout=0.2)
        yield backend
        backend.close()
    else:
        with tempfile.TemporaryDirectory() as temp_dir:
            backend = SQLiteLedgerStore(Path(temp_dir) / "ledger.db", lock_timeout=0.2)
            yield backend
            backend.close()


class TestLocking:
    """Test per-account locking"""

    @pytest.fixture(autouse=True)
    def setup_accounts(self, short_timeout_store):
        self.store = short_timeout_store
        self.processor = TransactionProcessor(self.store, WalletConfig())
        provisioner = AccountProvisioner(self.store)
        self.first = provisioner.create_account()
        self.second = provisioner.create_account()

    def _hold_lock(self, account_id, locked, release):
        with self.store.atomic():
            self.store.lock_account(account_id)
            locked.set()
            release.wait(5)

    def _start_holder(self, account_id):
        locked = threading.Event()
        release = threading.Event()
        holder = threading.Thread(target=self._hold_lock, args=(account_id, locked, release))
        holder.start()
        assert locked.wait(5)
        return holder, release

    def test_other_account_not_blocked(self):
        """A held lock on one account does not delay another"""
        holder, release = self._start_holder(self.first.id)
        try:
            result = self.processor.top_up(self.second.id, "5.00", "OTHER")
            assert result.account.balance == Decimal("5.00")

            result = self.processor.charge(self.second.id, "2.00", "OTHER-CHARGE")
            assert result.account.balance == Decimal("3.00")

            # Reads of the locked account still see its committed state
            assert self.processor.get_balance(self.first.id).balance == Decimal("0.00")
        finally:
            release.set()
            holder.join(5)

    def test_lock_timeout_has_no_effect(self):
        """A timed-out operation leaves no record, balance or reference behind"""
        holder, release = self._start_holder(self.first.id)
        try:
            with pytest.raises(LockTimeout) as exc_info:
                self.processor.top_up(self.first.id, "5.00", "WAITER")
            assert exc_info.value.account_id == self.first.id
        finally:
            release.set()
            holder.join(5)

        assert self.processor.get_balance(self.first.id).balance == Decimal("0.00")
        assert self.processor.list_transactions(self.first.id).pagination.total == 0

        # The reference was never claimed
        result = self.processor.top_up(self.first.id, "5.00", "WAITER")
        assert result.account.balance == Decimal("5.00")

    def test_waiter_proceeds_after_release(self):
        """A unit waiting on an account lock runs once the holder finishes"""
        self.store.lock_timeout = 5.0
        holder, release = self._start_holder(self.first.id)
        outcome = []

        def waiter():
            outcome.append(self.processor.top_up(self.first.id, "7.00", "QUEUED"))

        worker = threading.Thread(target=waiter)
        worker.start()
        release.set()
        holder.join(5)
        worker.join(5)

        assert len(outcome) == 1
        assert self.processor.get_balance(self.first.id).balance == Decimal("7.00")
