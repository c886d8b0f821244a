"""
Ledger Storage Module

Provides the abstract ledger store and implementations for in-memory
(testing), SQLite (single-node persistence) and PostgreSQL (production).

All writes happen inside an atomic unit opened with ``atomic()`` or
``run_atomic()``. A unit either commits every write or none, and an
account locked with ``lock_account`` stays locked until its unit ends.
All monetary values are stored as Decimal strings or NUMERIC columns.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar, Union
import os
import sqlite3
import tempfile
import threading

from .errors import AccountNotFound, DuplicateReference, LockTimeout, StoreUnavailable
from .models import Account, TransactionKind, TransactionRecord, utc_now
from .money import ZERO

T = TypeVar('T')

ACCOUNTS_TABLE = "wallet_accounts"
TRANSACTIONS_TABLE = "wallet_transactions"


def _check_balance(new_balance: Decimal) -> None:
    if new_balance < ZERO:
        raise ValueError(f"Balance cannot be negative: {new_balance}")


class LedgerStore(ABC):
    """Abstract interface for ledger storage backends"""

    def __init__(self, lock_timeout: Optional[float] = None):
        self.lock_timeout = lock_timeout
        self._local = threading.local()

    # Atomic units

    @property
    def in_unit(self) -> bool:
        """True while the calling thread is inside an atomic unit"""
        return getattr(self._local, 'depth', 0) > 0

    def _require_unit(self, operation: str) -> None:
        if not self.in_unit:
            raise RuntimeError(f"{operation} must be called inside atomic()")

    @abstractmethod
    def begin_transaction(self) -> None:
        """Start a unit of work"""

    @abstractmethod
    def commit(self) -> None:
        """Make the current unit's writes visible and release its locks"""

    @abstractmethod
    def rollback(self) -> None:
        """Discard the current unit's writes and release its locks"""

    @contextmanager
    def atomic(self):
        """
        Context manager for atomic units.

        Nested blocks join the enclosing unit. Any exception, including
        KeyboardInterrupt, rolls the whole unit back before propagating.
        """
        if self.in_unit:
            yield
            return

        self.begin_transaction()
        self._local.depth = 1
        try:
            yield
            self.commit()
        except BaseException:
            self.rollback()
            raise
        finally:
            self._local.depth = 0

    def run_atomic(self, fn: Callable[[], T]) -> T:
        """Run fn inside an atomic unit and return its result"""
        with self.atomic():
            return fn()

    # Unit operations

    @abstractmethod
    def lock_account(self, account_id: str) -> Account:
        """
        Acquire exclusive access to an account for the rest of the unit.

        Raises:
            AccountNotFound: If the account does not exist
            LockTimeout: If the lock is not granted within lock_timeout
        """

    @abstractmethod
    def create_transaction(
        self,
        account_id: str,
        kind: TransactionKind,
        amount: Decimal,
        reference: str,
        description: Optional[str]
    ) -> TransactionRecord:
        """
        Append a transaction record.

        Raises:
            DuplicateReference: If the reference is already taken, by a
                committed record or one pending in another unit
        """

    @abstractmethod
    def update_balance(self, account_id: str, new_balance: Decimal) -> None:
        """Persist the balance of an account locked in the current unit"""

    # Reads and provisioning

    @abstractmethod
    def create_account(self, account: Account) -> Account:
        """Persist a new account"""

    @abstractmethod
    def get_account(self, account_id: str) -> Optional[Account]:
        """Load the committed state of an account"""

    @abstractmethod
    def list_transactions(self, account_id: str, limit: int, offset: int = 0) -> List[TransactionRecord]:
        """Committed records of an account, newest first"""

    @abstractmethod
    def count_transactions(self, account_id: str) -> int:
        """Number of committed records of an account"""

    def close(self) -> None:
        """Close storage connection (default no-op)"""
        pass


@dataclass
class _UnitState:
    """Writes and locks held by one in-memory unit"""
    locks: List[threading.Lock] = field(default_factory=list)
    accounts: Dict[str, Account] = field(default_factory=dict)
    records: List[TransactionRecord] = field(default_factory=list)
    references: List[str] = field(default_factory=list)


class InMemoryLedgerStore(LedgerStore):
    """
    In-memory ledger for tests and single-process use.

    Each account has its own mutex, held by the unit that locked it.
    Pending writes stay in the unit until commit. References are reserved
    under the store mutex when a record is created so two units can never
    both claim the same one.
    """

    def __init__(self, lock_timeout: Optional[float] = None):
        super().__init__(lock_timeout)
        self._lock = threading.RLock()
        self._accounts: Dict[str, Account] = {}
        self._transactions: Dict[str, List[TransactionRecord]] = {}
        self._references: set = set()
        self._account_locks: Dict[str, threading.Lock] = {}
        self._next_transaction_id = 1

    def _unit(self) -> _UnitState:
        return self._local.unit

    def begin_transaction(self) -> None:
        self._local.unit = _UnitState()

    def commit(self) -> None:
        unit = self._unit()
        now = utc_now()
        with self._lock:
            for account_id, account in unit.accounts.items():
                current = self._accounts[account_id]
                if account.balance != current.balance:
                    self._accounts[account_id] = replace(account, updated_at=now)
            for record in unit.records:
                self._transactions.setdefault(record.account_id, []).append(record)
        self._end_unit(unit)

    def rollback(self) -> None:
        unit = getattr(self._local, 'unit', None)
        if unit is None:
            return
        with self._lock:
            self._references.difference_update(unit.references)
        self._end_unit(unit)

    def _end_unit(self, unit: _UnitState) -> None:
        self._local.unit = None
        for lock in reversed(unit.locks):
            lock.release()

    def lock_account(self, account_id: str) -> Account:
        self._require_unit("lock_account")
        unit = self._unit()
        if account_id in unit.accounts:
            return replace(unit.accounts[account_id])

        with self._lock:
            if account_id not in self._accounts:
                raise AccountNotFound(account_id)
            account_lock = self._account_locks.setdefault(account_id, threading.Lock())

        timeout = -1 if self.lock_timeout is None else self.lock_timeout
        if not account_lock.acquire(timeout=timeout):
            raise LockTimeout(account_id, self.lock_timeout)
        unit.locks.append(account_lock)

        with self._lock:
            account = replace(self._accounts[account_id])
        unit.accounts[account_id] = account
        return replace(account)

    def create_transaction(self, account_id, kind, amount, reference, description):
        self._require_unit("create_transaction")
        unit = self._unit()
        with self._lock:
            if account_id not in self._accounts:
                raise AccountNotFound(account_id)
            if reference in self._references:
                raise DuplicateReference(reference)
            self._references.add(reference)
            unit.references.append(reference)
            transaction_id = self._next_transaction_id
            self._next_transaction_id += 1

        record = TransactionRecord(
            id=transaction_id,
            account_id=account_id,
            kind=kind,
            amount=amount,
            reference=reference,
            description=description,
            created_at=utc_now()
        )
        unit.records.append(record)
        return record

    def update_balance(self, account_id: str, new_balance: Decimal) -> None:
        self._require_unit("update_balance")
        unit = self._unit()
        if account_id not in unit.accounts:
            raise RuntimeError(f"Account {account_id} must be locked before updating its balance")
        _check_balance(new_balance)
        unit.accounts[account_id].balance = new_balance

    def create_account(self, account: Account) -> Account:
        with self._lock:
            if account.id in self._accounts:
                raise ValueError(f"Account {account.id} already exists")
            self._accounts[account.id] = replace(account)
        return account

    def get_account(self, account_id: str) -> Optional[Account]:
        with self._lock:
            account = self._accounts.get(account_id)
            return replace(account) if account else None

    def list_transactions(self, account_id: str, limit: int, offset: int = 0) -> List[TransactionRecord]:
        with self._lock:
            records = list(self._transactions.get(account_id, []))
        records.sort(key=lambda r: (r.created_at, r.id), reverse=True)
        return records[offset:offset + limit]

    def count_transactions(self, account_id: str) -> int:
        with self._lock:
            return len(self._transactions.get(account_id, []))


SQLITE_SCHEMA = f"""
    CREATE TABLE IF NOT EXISTS {ACCOUNTS_TABLE} (
        id TEXT PRIMARY KEY,
        name TEXT,
        email TEXT,
        balance TEXT NOT NULL,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
    CREATE TABLE IF NOT EXISTS {TRANSACTIONS_TABLE} (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        account_id TEXT NOT NULL REFERENCES {ACCOUNTS_TABLE}(id),
        kind TEXT NOT NULL CHECK (kind IN ('top_up', 'charge')),
        amount TEXT NOT NULL,
        reference TEXT NOT NULL UNIQUE,
        description TEXT,
        created_at TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS idx_{TRANSACTIONS_TABLE}_account_created
        ON {TRANSACTIONS_TABLE}(account_id, created_at);
"""


DEFAULT_BUSY_TIMEOUT = 30.0


@dataclass
class _SQLiteUnit:
    """Connection and account locks held by one SQLite unit"""
    connection: sqlite3.Connection
    locks: Dict[str, threading.Lock] = field(default_factory=dict)
    writing: bool = False


class SQLiteLedgerStore(LedgerStore):
    """
    SQLite ledger for single-node persistence.

    Accounts are locked with per-account mutexes, as in the in-memory
    store, so a unit only ever waits for units on the same account. Each
    unit runs on its own connection and takes SQLite's write reservation
    at its first write, holding it until commit; WAL mode keeps readers
    running alongside the writer. The account mutexes live in this
    process, so one database file is served by one store instance.

    An in-memory database is backed by a private temporary file, removed
    on close, so that the per-unit connections share it.
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:", lock_timeout: Optional[float] = None):
        super().__init__(lock_timeout)
        self.db_path = str(db_path)
        self._temporary = self.db_path == ":memory:"
        if self._temporary:
            fd, self._database = tempfile.mkstemp(prefix="wallet-ledger-", suffix=".db")
            os.close(fd)
        else:
            self._database = self.db_path
        self._busy_timeout = DEFAULT_BUSY_TIMEOUT if lock_timeout is None else lock_timeout

        self._lock = threading.RLock()
        self._locks_guard = threading.Lock()
        self._account_locks: Dict[str, threading.Lock] = {}

        self._connection = self._connect()
        with self._lock:
            self._connection.execute("PRAGMA journal_mode = WAL")
            self._connection.executescript(SQLITE_SCHEMA)

    def _connect(self) -> sqlite3.Connection:
        # Autocommit mode; units issue BEGIN IMMEDIATE / COMMIT themselves
        connection = sqlite3.connect(
            self._database,
            timeout=self._busy_timeout,
            check_same_thread=False,
            isolation_level=None
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA synchronous = NORMAL")
        connection.execute("PRAGMA foreign_keys = ON")
        return connection

    def _unit(self) -> _SQLiteUnit:
        return self._local.unit

    def begin_transaction(self) -> None:
        try:
            connection = self._connect()
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Could not open SQLite connection: {e}") from e
        self._local.unit = _SQLiteUnit(connection)

    def _start_writing(self, unit: _SQLiteUnit) -> None:
        if unit.writing:
            return
        try:
            unit.connection.execute("BEGIN IMMEDIATE")
        except sqlite3.OperationalError as e:
            if "locked" in str(e):
                raise LockTimeout(None, self._busy_timeout) from e
            raise StoreUnavailable(f"Could not start SQLite transaction: {e}") from e
        unit.writing = True

    def commit(self) -> None:
        unit = self._unit()
        if unit.writing:
            try:
                unit.connection.execute("COMMIT")
            except sqlite3.Error as e:
                # The unit stays open until atomic() rolls back
                raise StoreUnavailable(f"Could not commit SQLite transaction: {e}") from e
        self._end_unit(unit)

    def rollback(self) -> None:
        unit = getattr(self._local, 'unit', None)
        if unit is None:
            return
        try:
            if unit.connection.in_transaction:
                unit.connection.execute("ROLLBACK")
        finally:
            self._end_unit(unit)

    def _end_unit(self, unit: _SQLiteUnit) -> None:
        self._local.unit = None
        try:
            unit.connection.close()
        finally:
            for lock in unit.locks.values():
                lock.release()

    def lock_account(self, account_id: str) -> Account:
        self._require_unit("lock_account")
        unit = self._unit()

        if account_id not in unit.locks:
            if self.get_account(account_id) is None:
                raise AccountNotFound(account_id)
            with self._locks_guard:
                account_lock = self._account_locks.setdefault(account_id, threading.Lock())

            timeout = -1 if self.lock_timeout is None else self.lock_timeout
            if not account_lock.acquire(timeout=timeout):
                raise LockTimeout(account_id, self.lock_timeout)
            unit.locks[account_id] = account_lock

        # Read after locking: only the lock holder changes this balance
        row = self._execute(
            f"SELECT * FROM {ACCOUNTS_TABLE} WHERE id = ?", (account_id,),
            connection=unit.connection
        ).fetchone()
        if row is None:
            raise AccountNotFound(account_id)
        return Account.from_dict(dict(row))

    def create_transaction(self, account_id, kind, amount, reference, description):
        self._require_unit("create_transaction")
        unit = self._unit()
        self._start_writing(unit)
        created_at = utc_now()
        try:
            cursor = unit.connection.execute(f"""
                INSERT INTO {TRANSACTIONS_TABLE}
                    (account_id, kind, amount, reference, description, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (account_id, kind.value, str(amount), reference, description, created_at.isoformat(timespec="microseconds")))
        except sqlite3.IntegrityError as e:
            if "UNIQUE" in str(e):
                raise DuplicateReference(reference) from e
            raise AccountNotFound(account_id) from e
        except sqlite3.Error as e:
            raise StoreUnavailable(f"SQLite insert failed: {e}") from e

        return TransactionRecord(
            id=cursor.lastrowid,
            account_id=account_id,
            kind=kind,
            amount=amount,
            reference=reference,
            description=description,
            created_at=created_at
        )

    def update_balance(self, account_id: str, new_balance: Decimal) -> None:
        self._require_unit("update_balance")
        unit = self._unit()
        if account_id not in unit.locks:
            raise RuntimeError(f"Account {account_id} must be locked before updating its balance")
        _check_balance(new_balance)
        self._start_writing(unit)
        cursor = self._execute(f"""
            UPDATE {ACCOUNTS_TABLE} SET balance = ?, updated_at = ? WHERE id = ?
        """, (str(new_balance), utc_now().isoformat(timespec="microseconds"), account_id),
            connection=unit.connection)
        if cursor.rowcount == 0:
            raise AccountNotFound(account_id)

    def create_account(self, account: Account) -> Account:
        data = account.to_dict()
        with self._lock:
            try:
                self._connection.execute(f"""
                    INSERT INTO {ACCOUNTS_TABLE} (id, name, email, balance, created_at, updated_at)
                    VALUES (:id, :name, :email, :balance, :created_at, :updated_at)
                """, data)
            except sqlite3.IntegrityError as e:
                raise ValueError(f"Account {account.id} already exists") from e
            except sqlite3.Error as e:
                raise StoreUnavailable(f"SQLite insert failed: {e}") from e
        return account

    def get_account(self, account_id: str) -> Optional[Account]:
        with self._lock:
            row = self._execute(
                f"SELECT * FROM {ACCOUNTS_TABLE} WHERE id = ?", (account_id,)
            ).fetchone()
        return Account.from_dict(dict(row)) if row else None

    def list_transactions(self, account_id: str, limit: int, offset: int = 0) -> List[TransactionRecord]:
        with self._lock:
            rows = self._execute(f"""
                SELECT * FROM {TRANSACTIONS_TABLE}
                WHERE account_id = ?
                ORDER BY created_at DESC, id DESC
                LIMIT ? OFFSET ?
            """, (account_id, limit, offset)).fetchall()
        return [TransactionRecord.from_dict(dict(row)) for row in rows]

    def count_transactions(self, account_id: str) -> int:
        with self._lock:
            row = self._execute(
                f"SELECT COUNT(*) AS count FROM {TRANSACTIONS_TABLE} WHERE account_id = ?",
                (account_id,)
            ).fetchone()
        return row['count']

    def close(self) -> None:
        """Close SQLite connection and drop a temporary database"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None
            if self._temporary:
                for suffix in ("", "-wal", "-shm"):
                    try:
                        os.remove(self._database + suffix)
                    except FileNotFoundError:
                        pass
                self._temporary = False

    def _execute(self, sql: str, params: Any = (),
                 connection: Optional[sqlite3.Connection] = None) -> sqlite3.Cursor:
        try:
            return (connection or self._connection).execute(sql, params)
        except sqlite3.Error as e:
            raise StoreUnavailable(f"SQLite query failed: {e}") from e


POSTGRES_SCHEMA = f"""
    CREATE TABLE IF NOT EXISTS {ACCOUNTS_TABLE} (
        id TEXT PRIMARY KEY,
        name TEXT,
        email TEXT,
        balance NUMERIC(14, 2) NOT NULL DEFAULT 0 CHECK (balance >= 0),
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    );
    CREATE TABLE IF NOT EXISTS {TRANSACTIONS_TABLE} (
        id BIGSERIAL PRIMARY KEY,
        account_id TEXT NOT NULL REFERENCES {ACCOUNTS_TABLE}(id),
        kind TEXT NOT NULL CHECK (kind IN ('top_up', 'charge')),
        amount NUMERIC(14, 2) NOT NULL CHECK (amount > 0),
        reference TEXT NOT NULL UNIQUE,
        description TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp()
    );
    CREATE INDEX IF NOT EXISTS idx_{TRANSACTIONS_TABLE}_account_created
        ON {TRANSACTIONS_TABLE}(account_id, created_at);
"""


class PostgreSQLLedgerStore(LedgerStore):
    """
    PostgreSQL ledger with row-level locking.

    Each unit borrows a pooled connection for its lifetime and runs its
    reads on it too. lock_account uses SELECT ... FOR UPDATE, so only
    units on the same account wait on each other, and the reference
    column carries a unique index. When every pooled connection is in
    use, callers queue for one for up to lock_timeout.
    """

    def __init__(self, connection_string: str, lock_timeout: Optional[float] = None,
                 min_connections: int = 1, max_connections: int = 10):
        super().__init__(lock_timeout)
        try:
            import psycopg2
            import psycopg2.errors
            import psycopg2.extras
            import psycopg2.pool
            self.psycopg2 = psycopg2
        except ImportError:
            raise ImportError("psycopg2 is required for PostgreSQL storage. Install with: pip install psycopg2-binary")

        self.connection_string = connection_string
        # ThreadedConnectionPool raises instead of waiting when exhausted
        self._slots = threading.BoundedSemaphore(max_connections)
        try:
            self._pool = psycopg2.pool.ThreadedConnectionPool(
                min_connections, max_connections, connection_string,
                cursor_factory=psycopg2.extras.RealDictCursor
            )
        except psycopg2.OperationalError as e:
            raise StoreUnavailable(f"Could not connect to PostgreSQL: {e}") from e
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            with conn.cursor() as cursor:
                cursor.execute(POSTGRES_SCHEMA)
            conn.commit()

    def _checkout(self):
        if not self._slots.acquire(timeout=self.lock_timeout):
            raise LockTimeout(None, self.lock_timeout)
        try:
            return self._pool.getconn()
        except self.psycopg2.Error as e:
            self._slots.release()
            raise StoreUnavailable(f"No PostgreSQL connection available: {e}") from e

    def _checkin(self, conn, rollback: bool = False) -> None:
        try:
            if rollback and not conn.closed:
                try:
                    conn.rollback()
                except self.psycopg2.Error:
                    conn.close()
        finally:
            # Broken connections are discarded instead of returned to the pool
            self._pool.putconn(conn, close=bool(conn.closed))
            self._slots.release()

    @contextmanager
    def _connection(self):
        """Borrow a connection outside any unit"""
        conn = self._checkout()
        try:
            yield conn
        except (self.psycopg2.OperationalError, self.psycopg2.InterfaceError) as e:
            self._checkin(conn, rollback=True)
            raise StoreUnavailable(f"PostgreSQL query failed: {e}") from e
        except BaseException:
            self._checkin(conn, rollback=True)
            raise
        else:
            self._checkin(conn)

    def _unit_connection(self):
        return self._local.connection

    def begin_transaction(self) -> None:
        conn = self._checkout()
        conn.autocommit = False
        self._local.connection = conn
        if self.lock_timeout is not None:
            try:
                with conn.cursor() as cursor:
                    cursor.execute("SET LOCAL lock_timeout = %s", (f"{int(self.lock_timeout * 1000)}ms",))
            except self.psycopg2.Error as e:
                self._release_unit_connection(rollback=True)
                raise StoreUnavailable(f"Could not start PostgreSQL transaction: {e}") from e

    def commit(self) -> None:
        conn = self._unit_connection()
        try:
            conn.commit()
        except self.psycopg2.Error as e:
            raise StoreUnavailable(f"Could not commit PostgreSQL transaction: {e}") from e
        self._release_unit_connection()

    def rollback(self) -> None:
        if getattr(self._local, 'connection', None) is not None:
            self._release_unit_connection(rollback=True)

    def _release_unit_connection(self, rollback: bool = False) -> None:
        conn = self._local.connection
        self._local.connection = None
        self._checkin(conn, rollback=rollback)

    def _execute(self, sql: str, params: Any = None, account_id: Optional[str] = None):
        pg = self.psycopg2
        cursor = None
        try:
            cursor = self._unit_connection().cursor()
            cursor.execute(sql, params)
        except pg.Error as e:
            if cursor is not None:
                cursor.close()
            if isinstance(e, pg.errors.LockNotAvailable):
                raise LockTimeout(account_id, self.lock_timeout) from e
            if isinstance(e, (pg.OperationalError, pg.InterfaceError)):
                raise StoreUnavailable(f"PostgreSQL query failed: {e}") from e
            raise
        return cursor

    def _query(self, sql: str, params: Any, many: bool = False):
        """Run a read on the unit's connection, or a borrowed one outside units"""
        if self.in_unit:
            with self._execute(sql, params) as cursor:
                return cursor.fetchall() if many else cursor.fetchone()

        with self._connection() as conn:
            with conn.cursor() as cursor:
                cursor.execute(sql, params)
                result = cursor.fetchall() if many else cursor.fetchone()
            conn.rollback()
        return result

    def lock_account(self, account_id: str) -> Account:
        self._require_unit("lock_account")
        cursor = self._execute(f"""
            SELECT * FROM {ACCOUNTS_TABLE} WHERE id = %s FOR UPDATE
        """, (account_id,), account_id=account_id)
        with cursor:
            row = cursor.fetchone()
        if row is None:
            raise AccountNotFound(account_id)
        return Account.from_dict(dict(row))

    def create_transaction(self, account_id, kind, amount, reference, description):
        self._require_unit("create_transaction")
        errors = self.psycopg2.errors
        try:
            cursor = self._execute(f"""
                INSERT INTO {TRANSACTIONS_TABLE} (account_id, kind, amount, reference, description)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING id, created_at
            """, (account_id, kind.value, amount, reference, description))
        except errors.UniqueViolation as e:
            raise DuplicateReference(reference) from e
        except errors.ForeignKeyViolation as e:
            raise AccountNotFound(account_id) from e
        with cursor:
            row = cursor.fetchone()

        return TransactionRecord(
            id=row['id'],
            account_id=account_id,
            kind=kind,
            amount=amount,
            reference=reference,
            description=description,
            created_at=row['created_at']
        )

    def update_balance(self, account_id: str, new_balance: Decimal) -> None:
        self._require_unit("update_balance")
        _check_balance(new_balance)
        cursor = self._execute(f"""
            UPDATE {ACCOUNTS_TABLE} SET balance = %s, updated_at = NOW() WHERE id = %s
        """, (new_balance, account_id))
        with cursor:
            if cursor.rowcount == 0:
                raise AccountNotFound(account_id)

    def create_account(self, account: Account) -> Account:
        with self._connection() as conn:
            with conn.cursor() as cursor:
                try:
                    cursor.execute(f"""
                        INSERT INTO {ACCOUNTS_TABLE} (id, name, email, balance, created_at, updated_at)
                        VALUES (%s, %s, %s, %s, %s, %s)
                    """, (account.id, account.name, account.email, account.balance,
                          account.created_at, account.updated_at))
                except self.psycopg2.errors.UniqueViolation as e:
                    conn.rollback()
                    raise ValueError(f"Account {account.id} already exists") from e
            conn.commit()
        return account

    def get_account(self, account_id: str) -> Optional[Account]:
        row = self._query(f"SELECT * FROM {ACCOUNTS_TABLE} WHERE id = %s", (account_id,))
        return Account.from_dict(dict(row)) if row else None

    def list_transactions(self, account_id: str, limit: int, offset: int = 0) -> List[TransactionRecord]:
        rows = self._query(f"""
            SELECT * FROM {TRANSACTIONS_TABLE}
            WHERE account_id = %s
            ORDER BY created_at DESC, id DESC
            LIMIT %s OFFSET %s
        """, (account_id, limit, offset), many=True)
        return [TransactionRecord.from_dict(dict(row)) for row in rows]

    def count_transactions(self, account_id: str) -> int:
        row = self._query(
            f"SELECT COUNT(*) AS count FROM {TRANSACTIONS_TABLE} WHERE account_id = %s",
            (account_id,)
        )
        return row['count']

    def close(self) -> None:
        """Close all pooled PostgreSQL connections"""
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None


def create_store(url: str, lock_timeout: Optional[float] = None,
                 min_connections: int = 1, max_connections: int = 10) -> LedgerStore:
    """
    Build a ledger store from a URL.

    Supported forms: ``memory://``, ``sqlite://`` (in-memory SQLite),
    ``sqlite:///relative/or/absolute/path.db`` and ``postgresql://...``.
    Connection pool sizes only apply to PostgreSQL.
    """
    if url.startswith("memory://"):
        return InMemoryLedgerStore(lock_timeout=lock_timeout)
    if url.startswith("sqlite://"):
        path = url[len("sqlite://"):]
        if path.startswith("/"):
            path = path[1:]
        return SQLiteLedgerStore(path or ":memory:", lock_timeout=lock_timeout)
    if url.startswith(("postgresql://", "postgres://")):
        return PostgreSQLLedgerStore(
            url, lock_timeout=lock_timeout,
            min_connections=min_connections, max_connections=max_connections
        )
    raise ValueError(f"Unsupported database URL: {url}")
