# database/transactions.py
"""
Transaction helpers shared by the repositories.

Every logical operation that touches more than one row (sale commit, stock
addition, payment, borrowing, repayment) runs inside a single IMMEDIATE
transaction. SQLite takes the write lock at BEGIN, so bounds that are read
inside the block (stock on hand, current debt, instance balance) cannot be
changed by another writer before our own writes land.
"""
from __future__ import annotations

from contextlib import contextmanager
import itertools
import logging
import sqlite3

from ..errors import DomainError, PartialCommitError

_log = logging.getLogger(__name__)
_savepoint_ids = itertools.count(1)


@contextmanager
def immediate_tx(conn: sqlite3.Connection):
    """
    Start an IMMEDIATE transaction (write lock taken up front),
    commit on success, rollback on error.

    If the connection is already inside a transaction (caller controls it),
    a SAVEPOINT is used instead so the block can still be undone on its own.
    """
    if conn.in_transaction:
        name = f"sp_{next(_savepoint_ids)}"
        conn.execute(f"SAVEPOINT {name}")
        try:
            yield conn
        except BaseException as exc:
            _rollback(conn, f"ROLLBACK TO {name}", exc)
            conn.execute(f"RELEASE {name}")
            raise
        conn.execute(f"RELEASE {name}")
        return

    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException as exc:
        _rollback(conn, None, exc)
        raise
    conn.commit()


def _rollback(conn: sqlite3.Connection, sql: str | None, exc: BaseException) -> None:
    try:
        if sql:
            conn.execute(sql)
        else:
            conn.rollback()
    except sqlite3.Error as rb_exc:
        _log.exception("rollback failed after %r", exc)
        raise PartialCommitError(
            f"Operation failed and could not be rolled back: {exc}",
            original=exc,
            rolled_back=False,
        ) from rb_exc


@contextmanager
def atomic_write(conn: sqlite3.Connection, operation: str):
    """
    immediate_tx() plus error mapping: domain/validation errors pass through
    untouched, storage errors become PartialCommitError(rolled_back=True).
    """
    try:
        with immediate_tx(conn):
            yield conn
    except DomainError as e:
        _log.debug("%s rejected: %s", operation, e)
        raise
    except sqlite3.Error as e:
        _log.exception("%s failed; changes rolled back", operation)
        raise PartialCommitError(
            f"{operation} failed: {e}", original=e, rolled_back=True
        ) from e
