from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, Optional

import singer

from tcp_audit_pg_sink.conn import Conn, Tx
from tcp_audit_pg_sink.records import SQLStatement, SQLValue
from tcp_audit_pg_sink.utils.error import CommitError, ExecutionError

LOGGER = singer.get_logger()


class Execer(ABC):
    """Executes SQL statements and owns the connection they run on."""

    @abstractmethod
    def exec(self, sql: str, *arguments: SQLValue) -> None:
        ...

    @abstractmethod
    def exec_multiple(self, *statements: SQLStatement) -> None:
        ...

    @abstractmethod
    def close(self) -> None:
        ...


class PGExecer(Execer):
    def __init__(self, conn: Conn) -> None:
        self.conn: Optional[Conn] = conn

    def _live_conn(self) -> Conn:
        if self.conn is None:
            raise ExecutionError("connection is closed")
        return self.conn

    def exec(self, sql: str, *arguments: SQLValue) -> None:
        """
        Execute a single statement using the provided arguments.

        No explicit transaction is used: the statement is atomic on its own.
        """
        conn = self._live_conn()

        try:
            conn.execute(sql, *arguments)
        except Exception as ex:
            raise ExecutionError(f"execing {sql} on connection") from ex

    @contextmanager
    def transaction(self) -> Iterator[Tx]:
        """
        Run the body of the `with` block in a transaction.

        If the body raises, the transaction is rolled back and the body's
        exception propagates. Otherwise the transaction is committed. Commit and
        rollback are never both attempted.
        """
        conn = self._live_conn()

        try:
            tx = conn.begin()
        except Exception as ex:
            raise ExecutionError("beginning transaction") from ex

        try:
            yield tx
        except Exception:
            try:
                tx.rollback()
            except Exception as rollback_ex:
                # The caller only needs the error which caused the rollback
                LOGGER.warning(f"Error rolling back transaction: {rollback_ex}")
            raise

        try:
            tx.commit()
        except Exception as ex:
            raise CommitError(
                "committing transaction: writes may or may not be durable"
            ) from ex

    def exec_multiple(self, *statements: SQLStatement) -> None:
        """
        Execute the provided statements, in order, as one atomic unit.
        """
        if not statements:
            return

        with self.transaction() as tx:
            for i, statement in enumerate(statements, start=1):
                try:
                    tx.execute(statement.sql, *statement.arguments)
                except Exception as ex:
                    raise ExecutionError(
                        f"execing statement {i} ({statement.sql}) in transaction"
                    ) from ex

    def close(self) -> None:
        """
        Release the database connection. Closing twice is a no-op.
        """
        if self.conn is None:
            LOGGER.debug("Database connection already closed")
            return

        conn, self.conn = self.conn, None
        LOGGER.info(f"Closing database connection: {conn.describe()}")
        try:
            conn.close()
        except Exception as ex:
            raise ExecutionError("closing connection") from ex
