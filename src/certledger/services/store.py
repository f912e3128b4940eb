# certledger/services/store.py

from __future__ import annotations

import io
import logging
import sqlite3
import threading
import uuid
import weakref
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, ContextManager, Iterator, List, Optional, Sequence, Tuple, Union

from certledger.constants import DEFAULT_BUSY_TIMEOUT, MEMORY_DATABASE, SCHEMA_VERSION
from certledger.services.store_errors import StoreConstraintError, StoreError

log = logging.getLogger(__name__)

Row = Tuple[Any, ...]
Params = Sequence[Any]


class StoreSession(ABC):
    """
    Statement executor bound to one open transaction.

    Every statement issued through a session commits or rolls back together.
    """
    @abstractmethod
    def execute(self, sql: str, params: Params = ()) -> int:
        """
        Execute a write statement.

        Returns:
            int: The number of rows matched by the statement
        """

    @abstractmethod
    def fetch_one(self, sql: str, params: Params = ()) -> Optional[Row]:
        """ Return the first row of a query, or None """

    @abstractmethod
    def fetch_all(self, sql: str, params: Params = ()) -> List[Row]:
        """ Return every row of a query """


class LedgerStore(ABC):
    """
    Abstract base class for ledger storage backends.

    Implementations own connection handling and must raise StoreError (or
    StoreConstraintError for constraint violations) rather than backend
    specific exceptions.
    """
    @abstractmethod
    def transaction(self) -> ContextManager[StoreSession]:
        """
        Open a transaction. Leaving the block normally commits; leaving it
        with an exception rolls back and re-raises.
        """

    @abstractmethod
    def fetch_one(self, sql: str, params: Params = ()) -> Optional[Row]:
        """ Run a single read query outside an explicit transaction """

    @abstractmethod
    def fetch_all(self, sql: str, params: Params = ()) -> List[Row]:
        """ Run a read query outside an explicit transaction """

    def close(self) -> None:
        """ Release backend resources """


def _translate(error: sqlite3.Error) -> StoreError:
    """ Map a sqlite3 exception onto the store error hierarchy """
    message = str(error)

    if isinstance(error, sqlite3.IntegrityError):
        constraint = None
        if message.startswith("UNIQUE constraint failed:"):
            constraint = message.split(":", 1)[1].strip()
        return StoreConstraintError(message, constraint=constraint)

    return StoreError(message)


def _release_connection(lock: threading.Lock, connections: List[sqlite3.Connection],
                        conn: sqlite3.Connection) -> None:
    with lock:
        if conn not in connections:
            # already closed by SQLiteStore.close()
            return
        connections.remove(conn)
    conn.close()
    log.debug("Released SQLite connection")


class SQLiteSession(StoreSession):
    """ A StoreSession over a sqlite3 connection inside BEGIN ... COMMIT """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def _run(self, sql: str, params: Params) -> sqlite3.Cursor:
        try:
            return self.conn.execute(sql, tuple(params))
        except sqlite3.Error as sqlite_error:
            raise _translate(sqlite_error) from sqlite_error

    def execute(self, sql: str, params: Params = ()) -> int:
        return self._run(sql, params).rowcount

    def fetch_one(self, sql: str, params: Params = ()) -> Optional[Row]:
        return self._run(sql, params).fetchone()

    def fetch_all(self, sql: str, params: Params = ()) -> List[Row]:
        return self._run(sql, params).fetchall()


class SQLiteStore(LedgerStore):
    """
    SQLite backend for the certificate ledger.

    Each thread gets its own connection, so concurrent writers are serialized
    by SQLite's own locking (BEGIN IMMEDIATE plus a busy timeout) and by the
    UNIQUE constraint on certs.serial. Connections run in autocommit mode and
    transactions are opened explicitly. A thread's connection is closed when
    that thread's Thread object is collected, or earlier through release().

    A path of ':memory:' creates a private in-memory database shared by all
    of this store's connections. It lives until close() is called.

    Schema versions:
    - v1: devices and certs tables, certs.serial UNIQUE
    """

    _schema: str = """
        CREATE TABLE IF NOT EXISTS devices (
            id TEXT PRIMARY KEY,
            registered INTEGER NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS certs (
            id TEXT NOT NULL REFERENCES devices (id),
            name TEXT,
            serial TEXT NOT NULL UNIQUE,
            keyid BLOB,
            expiry TEXT,
            cert BLOB,
            valid INTEGER NOT NULL DEFAULT 1
        );

        CREATE INDEX IF NOT EXISTS idx_certs_id ON certs (id);
    """

    def __init__(self, path: str = MEMORY_DATABASE, timeout: float = DEFAULT_BUSY_TIMEOUT,
                 create_schema: bool = True) -> None:
        """
        Construct a SQLite ledger store.

        Args:
            path (str): Database file, or ':memory:'
            timeout (float): Seconds to wait on a locked database
            create_schema (bool): Create missing tables on open
        """
        self.path = path
        self.timeout = timeout
        self.in_memory = path == MEMORY_DATABASE
        self._local = threading.local()
        self._lock = threading.Lock()
        self._connections: List[sqlite3.Connection] = []
        self._anchor: Optional[sqlite3.Connection] = None

        if self.in_memory:
            self._target = f"file:certledger-{uuid.uuid4().hex}?mode=memory&cache=shared"
            # Not tied to any thread; keeps the shared in-memory database alive
            self._anchor = self._open()
            self._connections.append(self._anchor)
        else:
            self._target = path

        if create_schema:
            self.create_schema()

    @classmethod
    def from_dump(cls, data: Union[str, bytes]) -> "SQLiteStore":
        """
        Build an in-memory store from a previous export_database() dump

        Args:
            data (str | bytes): SQL text, or the UTF-8 bytes export_database() returns
        """
        if isinstance(data, bytes):
            data = data.decode('utf-8')

        store = cls(create_schema=False)
        conn = store._connection()
        try:
            # iterdump() may emit certs before the devices it references
            conn.execute("PRAGMA foreign_keys = OFF")
            conn.executescript(data)
            conn.execute("PRAGMA foreign_keys = ON")
        except sqlite3.Error as sqlite_error:
            store.close()
            raise _translate(sqlite_error) from sqlite_error

        store.create_schema()
        return store

    # --------------------------
    # Connections
    # --------------------------

    def _open(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(
                self._target,
                timeout=self.timeout,
                isolation_level=None,
                check_same_thread=False,
                uri=self.in_memory,
            )
            conn.execute("PRAGMA foreign_keys = ON")
            if not self.in_memory:
                conn.execute("PRAGMA journal_mode = WAL")
        except sqlite3.Error as sqlite_error:
            raise _translate(sqlite_error) from sqlite_error

        log.debug("Opened SQLite connection to %s", self.path)
        return conn

    def _connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            return conn

        conn = self._open()
        with self._lock:
            self._connections.append(conn)

        # Closed once the owning thread object is gone, or on release()
        self._local.finalizer = weakref.finalize(
            threading.current_thread(), _release_connection,
            self._lock, self._connections, conn,
        )
        self._local.conn = conn
        return conn

    @property
    def open_connections(self) -> int:
        """ Number of connections this store currently holds open """
        with self._lock:
            return len(self._connections)

    def release(self) -> None:
        """
        Close the calling thread's connection, if it has one.

        Worker threads may call this before they exit. The store stays usable;
        the next call from the same thread opens a fresh connection.
        """
        finalizer = getattr(self._local, "finalizer", None)
        if finalizer is not None:
            finalizer()
        self._local.conn = None
        self._local.finalizer = None

    def close(self) -> None:
        """
        Close every connection opened by this store.

        Meant for shutdown: connections still in use by other threads are
        closed too.
        """
        with self._lock:
            connections = list(self._connections)
            self._connections.clear()

        for conn in connections:
            conn.close()

        self._anchor = None
        self._local = threading.local()

    # --------------------------
    # Schema
    # --------------------------

    def create_schema(self) -> None:
        """ Create the ledger tables if they are missing """
        conn = self._connection()
        try:
            conn.executescript(self._schema)
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        except sqlite3.Error as sqlite_error:
            raise _translate(sqlite_error) from sqlite_error

    @property
    def schema_version(self) -> int:
        row = self.fetch_one("PRAGMA user_version")
        return int(row[0]) if row else 0

    # --------------------------
    # Transactions / queries
    # --------------------------

    @contextmanager
    def transaction(self) -> Iterator[StoreSession]:
        conn = self._connection()

        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as sqlite_error:
            raise _translate(sqlite_error) from sqlite_error

        try:
            yield SQLiteSession(conn)
        except BaseException:
            self._rollback(conn)
            raise

        try:
            conn.execute("COMMIT")
        except sqlite3.Error as sqlite_error:
            self._rollback(conn)
            raise _translate(sqlite_error) from sqlite_error

    def _rollback(self, conn: sqlite3.Connection) -> None:
        if not conn.in_transaction:
            return
        try:
            conn.execute("ROLLBACK")
        except sqlite3.Error:
            log.exception("Rollback failed on %s", self.path)
            raise

    def fetch_one(self, sql: str, params: Params = ()) -> Optional[Row]:
        return SQLiteSession(self._connection()).fetch_one(sql, params)

    def fetch_all(self, sql: str, params: Params = ()) -> List[Row]:
        return SQLiteSession(self._connection()).fetch_all(sql, params)

    # --------------------------
    # Export
    # --------------------------

    def export_database(self) -> bytes:
        """ Export the entire database as SQL text """

        memory_file = io.BytesIO()

        for line in self._connection().iterdump():
            memory_file.write(f"{line}\n".encode('utf-8'))

        return memory_file.getvalue()
